from storefront.common.logging_setup import get_logger
from storefront.schema.full_schema import OrderStatus

logger = get_logger("storefront.orders")

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURN_REQUESTED},
    OrderStatus.RETURN_REQUESTED: {OrderStatus.RETURNED},
}

CANCELLABLE_STATUSES = {OrderStatus.PENDING, OrderStatus.PROCESSING}
ORDER_NUMBER_ATTEMPTS = 5
