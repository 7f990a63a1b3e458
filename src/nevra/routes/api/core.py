"""
Core API routes
===============

Liveness ping, health check and the provider listing.
"""

from flask import Blueprint, jsonify

from nevra.extensions import get_components

core_bp = Blueprint('core_api', __name__)


@core_bp.route('/')
def ping():
    """Plain-text liveness ping."""
    return 'Nevra gateway is running', 200, {'Content-Type': 'text/plain; charset=utf-8'}


@core_bp.route('/api/health')
def api_health():
    return jsonify({'ok': True})


@core_bp.route('/api/providers')
def api_providers():
    """Providers with model, ceilings, timeout and configured flag (never secrets)."""
    components = get_components()
    return jsonify({
        'default': components.default_provider,
        'providers': components.registry.describe(),
    })
