from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.products")

PRODUCT_SORTS = ("newest", "price_asc", "price_desc", "rating")
