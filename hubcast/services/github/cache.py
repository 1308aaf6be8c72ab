"""
TTL caching for GitHub subject lookups.

Adding several feeds for the same owner checks the same user/repository
repeatedly; existence rarely changes, so results are kept for 10 minutes.
Event feeds themselves are never cached (ETags handle that).
"""

import hashlib
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Type vars for decorator typing
P = ParamSpec("P")
T = TypeVar("T")

_subject_cache: TTLCache[str, Any] = TTLCache(maxsize=200, ttl=600)  # 10 min


def _make_cache_key(func_name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    """
    Generate a cache key from function name and arguments.

    Skips 'self' (first positional arg) since we're caching by subject, not instance.
    """
    cache_args = args[1:] if args else ()
    key_data = f"{func_name}:{cache_args}:{sorted(kwargs.items())}"
    return hashlib.md5(key_data.encode()).hexdigest()


def cached_github_call(
    cache: TTLCache[str, Any],
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator for caching async GitHub API calls.

    The cache key is generated from the function name and arguments (excluding 'self').
    Exceptions are not cached.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            key = _make_cache_key(func.__name__, args, kwargs)

            if key in cache:
                logger.debug(f"Cache HIT: {func.__name__}")
                cached_result: T = cache[key]
                return cached_result

            logger.debug(f"Cache MISS: {func.__name__}")
            result = await func(*args, **kwargs)
            cache[key] = result
            return result

        return wrapper

    return decorator


def clear_all_caches() -> None:
    """Clear all GitHub caches. Useful for testing or when data is known to be stale."""
    _subject_cache.clear()
    logger.debug("Cleared all GitHub caches")


def get_cache_stats() -> dict[str, dict[str, int]]:
    """Get current cache statistics for monitoring."""
    return {
        "subjects": {"size": len(_subject_cache), "maxsize": _subject_cache.maxsize},
    }


# Export cache instances for decorator use
subject_cache = _subject_cache
