from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.coupons")

COUPON_CODE_PATTERN = r"^[A-Z0-9-]{4,50}$"
ELIGIBILITY_CRITERIA = ("NONE", "NEW_USER", "FIRST_ORDER", "ALL_USERS")
NEW_USER_MAX_AGE_DAYS = 30
CODE_GENERATION_ATTEMPTS = 5
