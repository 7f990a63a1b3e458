"""
Flask Application Factory
=========================

Factory pattern for creating Flask application instances with
proper initialization.
"""

import logging
import time
from typing import Optional

from flask import Flask, g, request

from nevra.config import config
from nevra.config.settings import ENV_FILE
from nevra.extensions import init_extensions
from nevra.services.gateway import UpstreamClient
from nevra.utils.logging_config import get_logger, setup_application_logging

logger = get_logger('factory')


def create_app(config_name: str = 'default', client: Optional[UpstreamClient] = None, **overrides) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config_name: Configuration environment name
        client: Upstream client handle; built from config when omitted
        **overrides: Extra config values applied last (tests)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    config_cls = config.get(config_name, config['default'])
    app.config.from_object(config_cls() if config_name == 'production' else config_cls)
    app.config.update(overrides)

    setup_application_logging(
        log_level=app.config.get('LOG_LEVEL'),
        log_dir=app.config.get('LOG_DIR'),
        log_to_file=app.config.get('LOG_TO_FILE', False),
    )

    if ENV_FILE.exists():
        logger.info(f"Loaded .env from {ENV_FILE}")

    init_extensions(app, client=client)

    from nevra.errors import register_error_handlers
    register_error_handlers(app)

    from nevra.routes import register_blueprints
    register_blueprints(app)

    @app.before_request  # type: ignore[misc]
    def _req_start_timer():
        g._req_start = time.perf_counter()

    @app.after_request  # type: ignore[misc]
    def _log_response(resp):
        if request.path == '/api/health':
            return resp
        duration_ms = None
        if hasattr(g, '_req_start'):
            duration_ms = (time.perf_counter() - g._req_start) * 1000.0
        logger.log(
            logging.WARNING if resp.status_code >= 500 else logging.INFO,
            f"{request.method} {request.path} -> {resp.status_code}"
            + (f" ({duration_ms:.0f}ms)" if duration_ms is not None else ""),
        )
        return resp

    logger.info(f"Flask application created successfully with config: {config_name}")
    return app
