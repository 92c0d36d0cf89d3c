# finboard_proxy/app.py
"""
FinBoard proxy: server-side fetch proxy for the dashboard widgets
- Request deduplication for concurrent fetches of the same URL
- Short-lived freshness cache with stale fallback
- Bounded retries with backoff for flaky or rate-limited APIs
"""

import logging
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from finboard_proxy import __version__, config
from finboard_proxy.proxy.errors import ProxyError
from finboard_proxy.proxy.handlers import ProxyService, handle_list_cache

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s [%(threadName)s] %(levelname)s: %(message)s'
)
logger = logging.getLogger("finboard_proxy")

CACHE_STATUS_HEADER = "X-Cache-Status"


def create_app(service: Optional[ProxyService] = None) -> Flask:
    """Build the Flask app around a single shared ProxyService."""
    app = Flask(__name__)
    CORS(app)
    # upstream JSON is passed through as-is
    app.json.sort_keys = False

    service = service or ProxyService()
    app.extensions["proxy_service"] = service

    logger.info(
        f"Initialized cache (fresh {service.cache.fresh_ttl:.0f}s, stale {service.cache.stale_ttl:.0f}s), "
        f"fetcher ({service.fetcher.retries} attempts, {service.fetcher.timeout:.0f}s timeout)"
    )

    # ========================================================================
    # ERROR HANDLERS
    # ========================================================================

    @app.errorhandler(ProxyError)
    def proxy_error(e: ProxyError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def unexpected_error(e: Exception):
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Proxy error: {e}")
        return jsonify({"error": "Failed to fetch data"}), 500

    # ========================================================================
    # API ROUTES
    # ========================================================================

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({
            "status": "ok",
            "service": "finboard-proxy",
            "version": __version__
        })

    @app.route("/api/proxy", methods=["POST"])
    def proxy_route():
        """
        Fetch the JSON document at ``url`` on behalf of the dashboard.
        Cache provenance is reported in the X-Cache-Status header.
        """
        data = request.get_json(silent=True) or {}
        url = data.get("url") if isinstance(data, dict) else None

        result = service.handle(url)

        response = jsonify(result.payload)
        response.headers[CACHE_STATUS_HEADER] = result.cache_status.value
        return response

    @app.route("/cache", methods=["GET"])
    def cache_route():
        """Get cache statistics and contents."""
        return jsonify(handle_list_cache(service))

    @app.route("/cache", methods=["DELETE"])
    def cache_clear_route():
        """Drop every cached entry, fresh or stale."""
        removed = service.clear_cache()
        return jsonify({"removed": removed})

    return app


app = create_app()

# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    logger.info(f"Starting FinBoard proxy on {config.PROXY_HOST}:{config.PROXY_PORT}")
    app.run(host=config.PROXY_HOST, port=config.PROXY_PORT, debug=False, use_reloader=False, threaded=True)
