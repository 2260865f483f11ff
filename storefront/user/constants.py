from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.user")

MAX_ADDRESSES_PER_USER = 20
