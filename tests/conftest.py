import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from finboard_proxy.cache.freshness_cache import FreshnessCache  # noqa: E402
from finboard_proxy.proxy.fetcher import BackoffFetcher  # noqa: E402
from finboard_proxy.proxy.handlers import ProxyService  # noqa: E402
from tests.http_fakes import FakeClock  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_000.0)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def make_fetcher(sleeps):
    def _make(session, **kwargs) -> BackoffFetcher:
        kwargs.setdefault("sleep", sleeps.append)
        return BackoffFetcher(session=session, **kwargs)

    return _make


@pytest.fixture
def make_service(clock, make_fetcher):
    def _make(session) -> ProxyService:
        cache = FreshnessCache(fresh_ttl=60, stale_ttl=600, clock=clock)
        return ProxyService(cache=cache, fetcher=make_fetcher(session))

    return _make
