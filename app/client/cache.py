import logging
from typing import Any, Hashable, Tuple

from cachetools import TTLCache

from app.core.config import CLIENT_CACHE_MAXSIZE, CLIENT_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

_MISSING = object()


class QueryCache:
    """
    Short-lived cache of GET results, keyed by (care recipient, query...).

    Every write for a recipient calls invalidate_recipient(), so the dashboard
    never serves a record older than the last save or submit made through
    this client.
    """

    def __init__(self, maxsize: int = CLIENT_CACHE_MAXSIZE, ttl: float = CLIENT_CACHE_TTL_SECONDS):
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl)

    @staticmethod
    def key(care_recipient_id: int, *parts: Hashable) -> Tuple:
        return (care_recipient_id,) + parts

    def get(self, key: Tuple, default: Any = None) -> Any:
        value = self._cache.get(key, _MISSING)
        if value is _MISSING:
            return default
        logger.debug(f"Cache hit for {key}")
        return value

    def set(self, key: Tuple, value: Any) -> None:
        self._cache[key] = value

    def __contains__(self, key: Tuple) -> bool:
        return key in self._cache

    def invalidate_recipient(self, care_recipient_id: int) -> int:
        stale = [key for key in list(self._cache.keys()) if key[0] == care_recipient_id]
        for key in stale:
            self._cache.pop(key, None)
        if stale:
            logger.info(f"INVALIDATED {len(stale)} cached queries for recipient {care_recipient_id}")
        return len(stale)

    def clear(self) -> None:
        self._cache.clear()
