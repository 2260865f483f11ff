from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.messaging")

SMS_TIMEOUT_SECONDS = 5.0
IMAGE_TIMEOUT_SECONDS = 4.0
SMTP_TIMEOUT_SECONDS = 10
