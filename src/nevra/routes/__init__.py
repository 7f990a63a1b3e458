"""
Routes Package
Handles all application routes.
"""

from .api import core_bp, gen_bp, plan_bp

__all__ = [
    'core_bp',
    'gen_bp',
    'plan_bp',
    'register_blueprints',
]


def register_blueprints(app):
    """
    Register all application blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(core_bp)
    app.register_blueprint(gen_bp)   # /api/generate
    app.register_blueprint(plan_bp)  # /api/plan
