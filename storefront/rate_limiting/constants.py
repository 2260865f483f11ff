import asyncio
from typing import Dict, Optional
from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.rate_limit")

DEFAULT_LIMIT = 20          # requests per window
DEFAULT_WINDOW = 60         # seconds
RATE_LIMIT_PREFIX = "rl"    # redis key prefix
REDIS_TIMEOUT_SECONDS = 0.5
FAIL_OPEN = True                  # allow requests when neither redis nor the fallback can answer
USE_IN_MEMORY_FALLBACK = True     # per process counters while redis is unreachable, not distributed

_script_sha: Optional[str] = None
_script_lock = asyncio.Lock()

_in_memory_counters: Dict[str, dict] = {}
_in_memory_lock = asyncio.Lock()
