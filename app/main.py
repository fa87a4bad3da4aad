"""
Main entry point for Readarr Request.

Starts the Flask web server that fronts the ebook and audiobook
Readarr instances.
"""

import atexit
import base64
import hmac
import os
import time
from typing import Optional

from flask import Flask, g, jsonify, request, send_from_directory

from app.config import AppConfig, get_config_from_env
from app.db.database import init_db, close_db
from app.search.service import RequestService, create_request_service
from app.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _authorized(header: str, secret: str) -> bool:
    """Accept the secret as a Basic password, a Bearer token, or the raw header."""
    header = header or ""
    candidate = header.strip()

    if header.startswith("Basic "):
        try:
            decoded = base64.b64decode(header[6:]).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return False
        candidate = decoded.split(":", 1)[1] if ":" in decoded else ""
    elif header.startswith("Bearer "):
        candidate = header[7:].strip()

    return hmac.compare_digest(candidate.encode("utf-8"), secret.encode("utf-8"))


def create_app(
    config: Optional[AppConfig] = None,
    service: Optional[RequestService] = None,
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Process configuration (read from the environment if omitted)
        service: Request service (built from ``config`` if omitted)

    Returns:
        Configured Flask app
    """
    config = config or get_config_from_env()
    client_dist = os.path.abspath(config.client_dist)

    app = Flask(__name__, static_folder=None)
    app.json.sort_keys = False
    if service is None:
        init_db(config.database_url)
        service = create_request_service(config)
    app.extensions['request_service'] = service

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.before_request
    def require_auth():
        if not config.auth or request.path == '/api/health':
            return None
        if not _authorized(request.headers.get('Authorization', ''), config.auth):
            return jsonify({'error': 'Unauthorized'}), 401
        return None

    @app.after_request
    def log_request(response):
        started = g.get('request_started')
        duration_ms = (time.perf_counter() - started) * 1000 if started else None
        logger.info(
            "HTTP request",
            method=request.method,
            path=request.full_path.rstrip('?'),
            status=response.status_code,
            duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
            ip=request.remote_addr
        )
        return response

    # Register blueprints
    from app.web.routes.api import api_bp

    app.register_blueprint(api_bp)

    if os.path.isdir(client_dist):
        @app.route('/', defaults={'path': ''})
        @app.route('/<path:path>')
        def client(path):
            if path and os.path.isfile(os.path.join(client_dist, path)):
                return send_from_directory(client_dist, path)
            return send_from_directory(client_dist, 'index.html')

    return app


def main():
    """Main entry point."""
    config = get_config_from_env()

    # Setup logging
    setup_logging(config.log_level)

    atexit.register(close_db)

    logger.info(
        "Starting Readarr Request",
        version="0.1.0",
        port=config.port,
        lookup_limit=config.lookup_limit,
        auth_enabled=bool(config.auth)
    )

    app = create_app(config)

    # Run Flask app with waitress
    from waitress import serve
    serve(app, host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
