# finboard_proxy/cache/freshness_cache.py
import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from .. import config


class AgeClass(str, Enum):
    ABSENT = "absent"
    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    fetched_at: float

    def to_dict(self):
        return {
            "url": self.key,
            "fetched_at": self.fetched_at
        }


@dataclass(frozen=True)
class Lookup:
    entry: Optional[CacheEntry]
    age_class: AgeClass

    @property
    def servable(self) -> bool:
        """True for entries that may still be handed to a client."""
        return self.age_class in (AgeClass.FRESH, AgeClass.STALE)


class FreshnessCache:
    """
    In-memory store of the last successful payload per URL.

    Entries are never evicted by age: a stale entry is kept so it can be served
    when a live fetch fails, and expired entries are simply reported as such.
    """

    def __init__(
        self,
        fresh_ttl: float = config.CACHE_FRESH_TTL_S,
        stale_ttl: float = config.CACHE_STALE_TTL_S,
        clock: Callable[[], float] = time.time,
    ):
        if fresh_ttl <= 0:
            raise ValueError("fresh_ttl must be > 0")
        if stale_ttl < fresh_ttl:
            raise ValueError("stale_ttl must be >= fresh_ttl")
        self.fresh_ttl = float(fresh_ttl)
        self.stale_ttl = float(stale_ttl)
        self.clock = clock
        self.map: Dict[str, CacheEntry] = {}  # URL → CacheEntry
        self.lock = Lock()

    def classify(self, entry: Optional[CacheEntry], now: float) -> AgeClass:
        if entry is None:
            return AgeClass.ABSENT
        age = now - entry.fetched_at
        if age < self.fresh_ttl:
            return AgeClass.FRESH
        if age < self.stale_ttl:
            return AgeClass.STALE
        return AgeClass.EXPIRED

    def lookup(self, url: str) -> Lookup:
        """Return the entry for url together with its age class."""
        with self.lock:
            entry = self.map.get(url)
        return Lookup(entry=entry, age_class=self.classify(entry, self.clock()))

    def put(self, url: str, payload: Any, now: Optional[float] = None) -> CacheEntry:
        """Overwrite the entry for url with a freshly fetched payload."""
        if now is None:
            now = self.clock()
        with self.lock:
            old = self.map.get(url)
            # a clock step backwards must not make an entry look older
            if old is not None and old.fetched_at > now:
                now = old.fetched_at
            entry = CacheEntry(key=url, payload=payload, fetched_at=now)
            self.map[url] = entry
            return entry

    def clear(self) -> int:
        with self.lock:
            removed = len(self.map)
            self.map.clear()
            return removed

    def stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        now = self.clock()
        with self.lock:
            entries = list(self.map.values())
        counts = {age_class.value: 0 for age_class in (AgeClass.FRESH, AgeClass.STALE, AgeClass.EXPIRED)}
        for entry in entries:
            counts[self.classify(entry, now).value] += 1
        return {
            "fresh_ttl_s": self.fresh_ttl,
            "stale_ttl_s": self.stale_ttl,
            "items": len(entries),
            **counts
        }

    def list_cache(self) -> List[Dict[str, Any]]:
        """Return list of cached items for dashboard."""
        now = self.clock()
        with self.lock:
            entries = list(self.map.values())
        return [
            {**entry.to_dict(), "age_s": round(now - entry.fetched_at, 3),
             "age_class": self.classify(entry, now).value}
            for entry in entries
        ]
