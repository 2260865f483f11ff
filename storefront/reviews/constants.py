from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.reviews")

SUSPICIOUS_WORDS = ("spam", "scam", "fake", "fraud", "click here", "buy now", "free money", "http://", "https://",
                    "www.")
CAPS_RATIO_LIMIT = 0.7
CAPS_MIN_LETTERS = 10
REPORTS_TO_FLAG = 3
MAX_REVIEW_IMAGES = 5
REVIEW_SORTS = ("newest", "rating", "helpful")
