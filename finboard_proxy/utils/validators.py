# finboard_proxy/utils/validators.py
"""
Input validation for proxied URLs.

Provides:
 - validate_url(url) -> normalized url, or raises InvalidInput
 - extract_hostname(url) helper
"""

from typing import Any
from urllib.parse import urlsplit

from ..proxy.errors import InvalidInput

URL_REQUIRED = "URL is required"
INVALID_URL_FORMAT = "Invalid URL format"

ALLOWED_SCHEMES = ("http", "https")


def extract_hostname(url: str) -> str:
    """Return hostname from URL or empty string on failure."""
    try:
        parsed = urlsplit(url)
        return parsed.hostname or ""
    except ValueError:
        return ""


def validate_url(url: Any) -> str:
    """
    Check that url is present and is an absolute http(s) URL.
    Returns the url with surrounding whitespace removed; raises InvalidInput
    otherwise.
    """
    if url is None or url == "":
        raise InvalidInput(URL_REQUIRED)
    if not isinstance(url, str):
        raise InvalidInput(INVALID_URL_FORMAT)

    url = url.strip()
    try:
        parsed = urlsplit(url)
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        raise InvalidInput(INVALID_URL_FORMAT)

    host = extract_hostname(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not host or any(c.isspace() for c in host):
        raise InvalidInput(INVALID_URL_FORMAT)
    return url
