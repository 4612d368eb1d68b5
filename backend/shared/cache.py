"""In-process TTL cache for read-mostly history queries.

Built on cachetools.TTLCache. Only public, append-only data (round history) is
cached here; balances, seats and the pot are always read from the database.

Two tiers are kept per cache:
  1. fresh values, expired after *ttl* seconds;
  2. the last value seen for each key, served only when the database cannot
     be reached so history panels keep rendering during an outage.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None
_MISSING = object()

T = TypeVar("T")


class AsyncTTLCache:
    """TTL cache with a bounded last-known-good store and per-key locks."""

    def __init__(self, maxsize: int = 32, ttl: float = 30.0):
        self._maxsize = maxsize
        self._fresh: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._last_good: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            if len(self._locks) >= self._maxsize * 2:
                self._locks = {k: v for k, v in self._locks.items() if v.locked()}
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def get(self, key: str) -> Any:
        """Fresh value or ``_MISSING``."""
        return self._fresh.get(key, _MISSING)

    def get_last_good(self, key: str) -> Any:
        """Last value stored under ``key`` regardless of age, or ``_MISSING``."""
        return self._last_good.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._fresh[key] = value
        self._last_good[key] = value
        self._last_good.move_to_end(key)
        while len(self._last_good) > self._maxsize:
            self._last_good.popitem(last=False)

    def invalidate(self, key: str) -> None:
        self._fresh.pop(key, None)

    def clear(self) -> None:
        """Drop fresh values; last-known-good values are kept for outages."""
        self._fresh.clear()

    @property
    def size(self) -> int:
        return len(self._fresh)


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    fallback_on: tuple[type[BaseException], ...] = (OSError, asyncio.TimeoutError),
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Cache the result of an async read.

    ``key_func`` receives the decorated function's arguments and returns the
    cache key. When the call fails with one of ``fallback_on`` and a
    last-known-good value exists, that value is returned with a warning;
    otherwise the error propagates.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            key = key_func(*args, **kwargs)

            value = cache.get(key)
            if value is not _MISSING:
                return value

            async with cache.lock_for(key):
                value = cache.get(key)
                if value is not _MISSING:
                    return value
                try:
                    value = await func(*args, **kwargs)
                except fallback_on as exc:
                    stale = cache.get_last_good(key)
                    if stale is _MISSING:
                        raise
                    logger.warning(
                        "Serving last-known-good value for %s (%s)", key, type(exc).__name__
                    )
                    return stale
                cache.set(key, value)
                return value

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper

    return decorator
