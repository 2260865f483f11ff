from storefront.config.settings import config_settings
from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.auth")

REFRESH_TOKEN_EXPIRE_DAYS = int(config_settings.REFRESH_TOKEN_EXPIRE)

REFRESH_TOKEN_TTL_SECONDS = REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600

ACCESS_TOKEN_TTL_SECONDS = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES) * 60

VERIFICATION_CODE_TTL_MINUTES = config_settings.VERIFICATION_CODE_TTL_MINUTES

VERIFICATION_MAX_ATTEMPTS = config_settings.VERIFICATION_MAX_ATTEMPTS
