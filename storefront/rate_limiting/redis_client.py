import redis.asyncio as redis
from storefront.config.settings import config_settings
from storefront.rate_limiting.constants import REDIS_TIMEOUT_SECONDS

redis_client = redis.Redis(
    host=config_settings.REDIS_HOST, port=config_settings.REDIS_PORT, db=config_settings.REDIS_DB,
    socket_timeout=REDIS_TIMEOUT_SECONDS, socket_connect_timeout=REDIS_TIMEOUT_SECONDS,
    decode_responses=False)
