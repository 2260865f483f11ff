from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.notifications")

ADMIN_ROLE_NAMES = {"admin", "superadmin"}
