"""
Cache-aside helpers for catalog listings.

The cache never holds authoritative data: every value stored here can be
rebuilt from the database, and a broken cache backend only costs latency.
"""
import logging
from dataclasses import dataclass
from typing import Any

from django.core.cache import caches

logger = logging.getLogger(__name__)

UPCOMING = 'upcoming'
POPULAR = 'popular'
LISTING_KINDS = (UPCOMING, POPULAR)

GENRES_KEY = 'genres:all'


def page_key(kind, page):
    return f"movies:{kind}:page:{page}"


@dataclass(frozen=True)
class CacheResult:
    hit: bool
    value: Any = None


MISS = CacheResult(hit=False)


class CatalogCache:
    """
    Get/set/delete over a Django cache backend that swallows backend errors.

    Reads that fail are reported as a miss, writes that fail are dropped.
    """

    def __init__(self, backend=None, alias='default'):
        self._backend = backend
        self.alias = alias

    @property
    def backend(self):
        if self._backend is None:
            return caches[self.alias]
        return self._backend

    def get(self, key):
        try:
            value = self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return MISS

        if value is None:
            logger.debug(f"Cache miss: {key}")
            return MISS
        logger.debug(f"Cache hit: {key}")
        return CacheResult(hit=True, value=value)

    def set(self, key, value, timeout):
        try:
            self.backend.set(key, value, timeout=timeout)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
        return True

    def delete(self, key):
        try:
            self.backend.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False
        return True
