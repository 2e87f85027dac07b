"""
Rate-limited logging for repeated adapter errors.

A relayer rescans overlapping block ranges, so the same bad record or the
same flaky node error can surface on every poll. This keeps each distinct
line visible once per interval instead of once per scan.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60

# key -> True, expiry handled by the cache
_log_cache: TTLCache = TTLCache(maxsize=1024, ttl=DEFAULT_INTERVAL)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    *args,
    level: str = "warning",
    key: Optional[str] = None,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message unless the same key was logged within the interval.

    Args:
        message: Log format string
        *args: Arguments for the format string
        level: Log level (debug, info, warning, error, critical)
        key: Deduplication key (defaults to the level and format string)
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    cache_key = f"{level}:{key if key is not None else message}"

    with _log_cache_lock:
        if cache_key in _log_cache:
            return False
        log_method(message, *args)
        _log_cache[cache_key] = True
    return True


def reset_rate_limits() -> None:
    """Forget every suppressed key"""
    with _log_cache_lock:
        _log_cache.clear()
