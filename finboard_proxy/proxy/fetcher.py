# finboard_proxy/proxy/fetcher.py
import logging
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from threading import Lock, Thread
from typing import Any, Callable, Dict, Optional

import requests
from requests.exceptions import ReadTimeout, RequestException

from .. import config
from .errors import FetchError, NetworkFailure, UpstreamHTTPError, UpstreamRateLimited

logger = logging.getLogger("finboard_proxy.fetcher")

RATE_LIMITED = 429


def default_headers() -> Dict[str, str]:
    return {
        "Accept": config.FETCH_ACCEPT,
        "User-Agent": config.FETCH_USER_AGENT,
    }


class _Attempt:
    """
    One GET with a hard deadline covering connect, headers and body.

    requests' own timeout only bounds each socket operation, so a body that
    trickles in can outlive it. The request runs on its own thread; once the
    deadline passes the attempt is abandoned and its response closed.
    """

    def __init__(self, session: requests.Session, url: str, timeout: float):
        self.session = session
        self.url = url
        self.timeout = timeout
        self.future: Future = Future()
        self.lock = Lock()
        self.response: Optional[requests.Response] = None
        self.abandoned = False

    def run(self) -> requests.Response:
        Thread(target=self._worker, name="fetch-attempt", daemon=True).start()
        try:
            return self.future.result(timeout=self.timeout)
        except FutureTimeout:
            self._abandon()
            raise ReadTimeout(f"Request to {self.url} timed out after {self.timeout:g}s") from None

    def _worker(self):
        try:
            response = self.session.get(self.url, headers=default_headers(), timeout=self.timeout, stream=True)
            with self.lock:
                self.response = response
                abandoned = self.abandoned
            if abandoned:
                response.close()
                return
            response.content  # read the whole body inside the deadline
        except Exception as e:
            self.future.set_exception(e)
        else:
            self.future.set_result(response)

    def _abandon(self):
        with self.lock:
            self.abandoned = True
            response = self.response
        if response is not None:
            response.close()


class BackoffFetcher:
    """
    Issues one logical GET for a JSON resource, retrying transient failures.

    - 429 responses wait ``base_delay * 2**attempt`` and retry.
    - Network errors wait ``base_delay * 1.5**attempt`` and retry, and are
      raised as NetworkFailure on the last attempt.
    - Any other non-OK status is raised immediately as UpstreamHTTPError.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        retries: int = config.FETCH_RETRIES,
        base_delay: float = config.FETCH_BASE_DELAY_S,
        timeout: float = config.FETCH_TIMEOUT_S,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        if retries < 1:
            raise ValueError("retries must be >= 1")
        # shared by all request threads: only the adapter's connection pool is
        # relied on, headers and timeout are passed per call
        self.session = session or requests.Session()
        self.retries = retries
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep

    def fetch(self, url: str) -> Any:
        """Return the decoded JSON body of ``url`` or raise a FetchError."""
        response = self._get_with_retry(url)

        if response.status_code == RATE_LIMITED:
            raise UpstreamRateLimited(url, response.status_code, response.reason)
        if not response.ok:
            raise UpstreamHTTPError(url, response.status_code, response.reason)

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Upstream returned invalid JSON: {e}") from e

    def _get_with_retry(self, url: str) -> requests.Response:
        response = None
        for attempt in range(self.retries):
            is_last_attempt = attempt == self.retries - 1
            try:
                response = _Attempt(self.session, url, self.timeout).run()
            except RequestException as e:
                if is_last_attempt:
                    logger.error(f"[FETCH] Giving up on {url} after {self.retries} attempts: {e}")
                    raise NetworkFailure(url, e) from e
                wait = self.base_delay * (1.5 ** attempt)
                logger.warning(f"[FETCH] Attempt {attempt + 1} for {url} failed ({e}). Retrying in {wait:.1f}s...")
                self._sleep(wait)
                continue

            if response.ok:
                return response

            if response.status_code == RATE_LIMITED:
                if is_last_attempt:
                    break
                wait = self.base_delay * (2 ** attempt)
                logger.warning(f"[FETCH] Rate limited by {url}. Waiting {wait:.1f}s before retry...")
                self._sleep(wait)
                continue

            return response

        # still rate limited after the last attempt
        return response
