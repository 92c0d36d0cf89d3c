# finboard_proxy/proxy/handlers.py
import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Dict, Optional

from ..cache.freshness_cache import AgeClass, FreshnessCache
from ..cache.inflight_cache import InflightCoordinator
from ..utils.validators import validate_url
from .errors import FetchError, InvalidInput, ProxyFailure, describe_fetch_error
from .fetcher import BackoffFetcher

logger = logging.getLogger("finboard_proxy.handlers")


class CacheStatus(str, Enum):
    FRESH = "fresh"
    NEW = "new"
    STALE = "stale"


@dataclass(frozen=True)
class ProxyResult:
    payload: Any
    cache_status: CacheStatus


class ProxyService:
    """
    Long-lived owner of the freshness cache and the inflight table.

    One instance is shared by every request thread of the app; tests build a
    fresh one with their own cache, fetcher or clock.
    """

    def __init__(
        self,
        cache: Optional[FreshnessCache] = None,
        fetcher: Optional[BackoffFetcher] = None,
        coordinator: Optional[InflightCoordinator] = None,
    ):
        self.cache = cache or FreshnessCache()
        self.fetcher = fetcher or BackoffFetcher()
        self.coordinator = coordinator or InflightCoordinator(self.cache, self.fetcher)
        self._counters = {"fresh": 0, "new": 0, "stale": 0, "failed": 0, "invalid": 0}
        self._counters_lock = Lock()

    def _count(self, name: str):
        with self._counters_lock:
            self._counters[name] += 1

    def handle(self, url: Any) -> ProxyResult:
        """Serve url from cache or upstream, falling back to a stale copy on failure."""
        try:
            url = validate_url(url)
        except InvalidInput:
            self._count("invalid")
            raise

        cached = self.cache.lookup(url)
        if cached.age_class is AgeClass.FRESH:
            self._count("fresh")
            return ProxyResult(cached.entry.payload, CacheStatus.FRESH)

        try:
            payload = self.coordinator.get_or_fetch(url)
        except FetchError as e:
            fallback = self.cache.lookup(url)
            if fallback.servable:
                logger.warning(f"[PROXY] Serving {fallback.age_class.value} cache for {url} after fetch error: {e}")
                self._count(fallback.age_class.value)
                return ProxyResult(fallback.entry.payload, CacheStatus(fallback.age_class.value))

            message = describe_fetch_error(e)
            logger.error(f"[PROXY] Upstream fetch failed for {url}: {message}")
            self._count("failed")
            raise ProxyFailure(message) from e

        self._count("new")
        return ProxyResult(payload, CacheStatus.NEW)

    def clear_cache(self) -> int:
        removed = self.cache.clear()
        logger.info(f"[CACHE] Cleared {removed} cached entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        """Combine cache, inflight and per-status counters."""
        stats = self.cache.stats()
        stats.update(self.coordinator.stats())
        with self._counters_lock:
            stats["responses"] = dict(self._counters)
        return stats


def handle_list_cache(service: ProxyService):
    """
    Return the cache's current state and stats.
    This is called by the /cache API endpoint.
    """
    return {
        "items": service.cache.list_cache(),
        "stats": service.stats()
    }
