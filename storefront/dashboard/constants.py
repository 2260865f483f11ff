from storefront.common.logging_setup import get_logger
from storefront.schema.full_schema import PaymentStatus

logger = get_logger("storefront.dashboard")

REVENUE_PAYMENT_STATUSES = (PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED)
RECENT_ORDERS = 5
MAX_SALES_DAYS = 365
