# finboard_proxy/config.py
"""
Runtime configuration for the proxy. Every value can be overridden through
the environment; defaults match the dashboard's expectations.
"""

import os

# ============================================================================
# CACHE
# ============================================================================
# Entries younger than this are served without touching the network
CACHE_FRESH_TTL_S = float(os.getenv("CACHE_FRESH_TTL_S", "60"))
# Entries younger than this are kept as a fallback when a live fetch fails
CACHE_STALE_TTL_S = float(os.getenv("CACHE_STALE_TTL_S", "600"))

# ============================================================================
# UPSTREAM FETCH
# ============================================================================
FETCH_RETRIES = int(os.getenv("FETCH_RETRIES", "3"))
# Base for both backoff curves (2^i on 429, 1.5^i on network errors)
FETCH_BASE_DELAY_S = float(os.getenv("FETCH_BASE_DELAY_S", "2.0"))
FETCH_TIMEOUT_S = float(os.getenv("FETCH_TIMEOUT_S", "25"))
FETCH_USER_AGENT = os.getenv("FETCH_USER_AGENT", "FinBoard/1.0")
FETCH_ACCEPT = os.getenv("FETCH_ACCEPT", "application/json")

# ============================================================================
# SERVER
# ============================================================================
PROXY_HOST = os.getenv("PROXY_HOST", "0.0.0.0")
PROXY_PORT = int(os.getenv("PROXY_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
