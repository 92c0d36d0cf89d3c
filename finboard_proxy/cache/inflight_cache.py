# finboard_proxy/cache/inflight_cache.py
import logging
from threading import Event, Lock
from typing import Any, Dict, List, Optional

from ..proxy.errors import FetchError
from .freshness_cache import FreshnessCache

logger = logging.getLogger("finboard_proxy.inflight")


class InflightRequest:
    """Represents a URL currently being fetched. Waiters block on ``event``."""

    def __init__(self, key: str):
        self.key = key
        self.event = Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.waiters = 0

    @property
    def done(self) -> bool:
        return self.event.is_set()

    def resolve(self, result: Any):
        self.result = result
        self.event.set()

    def reject(self, error: BaseException):
        self.error = error
        self.event.set()

    def wait(self) -> Any:
        """Block until the fetch settles, then return its value or raise its error."""
        self.event.wait()
        if self.error is not None:
            raise self.error
        return self.result


class InflightCoordinator:
    """
    Collapses concurrent fetches of the same URL into a single upstream call.

    The first caller for a URL becomes the owner: it publishes an
    InflightRequest, runs the fetch in its own thread and stores the payload in
    the freshness cache. Callers arriving while the fetch is outstanding attach
    to the same InflightRequest and get the identical value or error.
    """

    def __init__(self, cache: FreshnessCache, fetcher):
        self.cache = cache
        self.fetcher = fetcher
        # A temporary dictionary to track requests currently being fetched
        self.inflight_requests: Dict[str, InflightRequest] = {}
        self.lock = Lock()
        self.origin_fetches = 0
        self.deduplicated = 0

    def get_or_fetch(self, url: str) -> Any:
        """Return the payload for url, sharing any fetch already in progress."""
        with self.lock:
            req = self.inflight_requests.get(url)
            if req is not None:
                req.waiters += 1
                self.deduplicated += 1
                is_owner = False
            else:
                req = InflightRequest(url)
                self.inflight_requests[url] = req
                self.origin_fetches += 1
                is_owner = True

        if not is_owner:
            logger.info(f"[CACHE] Deduplicating request for {url} (waiters: {req.waiters})")
            return req.wait()

        try:
            payload = self.fetcher.fetch(url)
            # the cache is written before any waiter is released
            self.cache.put(url, payload)
        except FetchError as e:
            logger.warning(f"[CACHE] Fetch failed for {url}: {e}")
            req.reject(e)
        else:
            logger.info(f"[CACHE] Stored fresh response for {url}.")
            req.resolve(payload)
        finally:
            with self.lock:
                if self.inflight_requests.get(url) is req:
                    del self.inflight_requests[url]
            if not req.done:
                # owner died on something other than a FetchError; waiters must not hang
                req.reject(FetchError(f"Fetch for {url} was abandoned"))

        return req.wait()

    def waiters(self, url: str) -> int:
        """Number of callers currently attached to the inflight fetch for url."""
        with self.lock:
            req = self.inflight_requests.get(url)
            return req.waiters if req is not None else 0

    def pending_keys(self) -> List[str]:
        with self.lock:
            return list(self.inflight_requests.keys())

    def stats(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "inflight_requests": len(self.inflight_requests),
                "origin_fetches": self.origin_fetches,
                "deduplicated": self.deduplicated
            }
