# finboard_proxy/proxy/errors.py
"""
Exception types raised by the proxy.

Two families:
 - FetchError: raised by the fetcher once its retry budget is spent, and
   shared unchanged with every caller attached to the same inflight fetch.
 - ProxyError: terminal errors of the request handler, carrying the
   user-facing message and the HTTP status the app should answer with.
"""

from typing import Iterator

from requests.exceptions import ConnectTimeout, Timeout

# ============================================================================
# TRANSPORT ERRORS
# ============================================================================


class FetchError(Exception):
    """A logical upstream fetch failed after all retries."""


class UpstreamHTTPError(FetchError):
    """Upstream answered with a non-OK status that is not retried."""

    def __init__(self, url: str, status_code: int, reason: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason or ""
        super().__init__(f"API returned status {status_code}: {self.reason}")


class UpstreamRateLimited(UpstreamHTTPError):
    """Upstream kept answering 429 until the attempt budget ran out."""


class NetworkFailure(FetchError):
    """Timeout, reset, DNS error or abort on the final attempt."""

    def __init__(self, url: str, cause: BaseException):
        self.url = url
        self.cause = cause
        super().__init__(str(cause))


# ============================================================================
# HANDLER ERRORS
# ============================================================================


class ProxyError(Exception):
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {"error": self.message}


class InvalidInput(ProxyError):
    status_code = 400


class ProxyFailure(ProxyError):
    status_code = 500


# ============================================================================
# USER-FACING MESSAGES
# ============================================================================

REQUEST_TIMED_OUT = "Request timed out"
CONNECTION_RESET = "Connection reset - API may be rate limiting"
CONNECTION_TIMED_OUT = "Connection timed out"


def _iter_causes(error: BaseException) -> Iterator[BaseException]:
    """Walk an exception, its chain and nested exception args."""
    seen = set()
    stack = [error]
    while stack:
        exc = stack.pop()
        if exc is None or id(exc) in seen:
            continue
        seen.add(id(exc))
        yield exc
        stack.extend(arg for arg in exc.args if isinstance(arg, BaseException))
        stack.append(exc.__cause__)
        stack.append(exc.__context__)
        # urllib3 keeps the low-level error on .reason
        reason = getattr(exc, "reason", None)
        if isinstance(reason, BaseException):
            stack.append(reason)
        if isinstance(exc, NetworkFailure):
            stack.append(exc.cause)


def _is_connection_reset(error: BaseException) -> bool:
    for exc in _iter_causes(error):
        if isinstance(exc, ConnectionResetError):
            return True
        text = str(exc)
        if "ECONNRESET" in text or "Connection reset" in text:
            return True
    return False


def describe_fetch_error(error: BaseException) -> str:
    """Pick the message shown to the dashboard for a failed fetch."""
    causes = list(_iter_causes(error))
    # ConnectTimeout is also a Timeout, so it has to be checked first
    if any(isinstance(exc, ConnectTimeout) for exc in causes):
        return CONNECTION_TIMED_OUT
    if any(isinstance(exc, Timeout) for exc in causes):
        return REQUEST_TIMED_OUT
    if _is_connection_reset(error):
        return CONNECTION_RESET

    text = str(error)
    # an upstream status line ("504: Gateway Timeout") is reported as is
    if not isinstance(error, UpstreamHTTPError) and ("CONNECT_TIMEOUT" in text or "timeout" in text):
        return CONNECTION_TIMED_OUT
    return text or "Failed to fetch data"
