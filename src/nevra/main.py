"""
Main Application Entry Point
===========================

Runs the gateway on Flask's server: ``python -m nevra.main`` or ``nevra``.
"""

import os
import sys

from nevra.utils.logging_config import get_logger

logger = get_logger('main')


def main() -> int:
    """Main application entry point."""
    from nevra.factory import create_app

    config_name = os.environ.get('FLASK_ENV', 'development')
    port = int(os.environ.get('PORT', 5000))
    host = os.environ.get('HOST', '0.0.0.0')
    debug = os.environ.get('DEBUG', 'false').lower() == 'true'

    try:
        app = create_app(config_name)
    except Exception as e:
        logger.error(f"Failed to create Flask application: {e}")
        return 1

    logger.info(f"Starting Nevra gateway in {config_name} mode on {host}:{port}")
    logger.info(f"Providers: {', '.join(app.extensions['gateway_components'].registry.ids())}")

    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False)
    except KeyboardInterrupt:
        logger.info("Application shutdown requested by user")
    return 0


if __name__ == '__main__':
    sys.exit(main())
