from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.payments")

PROVIDER_RAZORPAY = "razorpay"
DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_BASE = 0.5
PSP_TIMEOUT_SECONDS = 10.0
