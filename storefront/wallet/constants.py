from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.wallet")

# paise, rupees 1 to 100000
MIN_TRANSACTION_AMOUNT = 100
MAX_TRANSACTION_AMOUNT = 10_000_000
