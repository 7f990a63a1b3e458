"""
Flask Extensions Configuration

Gateway components (provider registry, upstream client handle, dispatcher,
planner) are built once in the app factory and stored on
``app.extensions``; views reach them through the getters below. Nothing is
held in module globals, so tests build apps with fake adapters freely.
"""

import logging
import os
from collections import ChainMap
from typing import Any, Mapping, Optional

from flask import Flask, current_app
from flask_cors import CORS

from nevra.services.gateway import ProviderRegistry, RequestDispatcher, UpstreamClient
from nevra.services.planning import PlanningDecomposer

logger = logging.getLogger(__name__)

cors = CORS()


class GatewayComponents:
    """Centralized component manager for the Flask app."""

    def __init__(
        self,
        registry: ProviderRegistry,
        client: UpstreamClient,
        planning_timeout_seconds: float,
        default_provider: str,
    ):
        self.registry = registry
        self.client = client
        self.dispatcher = RequestDispatcher(registry, client)
        self.planner = PlanningDecomposer(self.dispatcher, timeout_seconds=planning_timeout_seconds)
        self.default_provider = default_provider

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], client: Optional[UpstreamClient] = None) -> 'GatewayComponents':
        return cls(
            registry=ProviderRegistry.from_config(settings),
            client=client or UpstreamClient.from_config(settings),
            planning_timeout_seconds=float(settings.get('PLANNING_TIMEOUT_SECONDS') or 15.0),
            default_provider=settings.get('DEFAULT_PROVIDER') or 'deepseek',
        )

    def init_app(self, app: Flask):
        app.extensions['gateway_components'] = self


def app_settings(app: Flask) -> Mapping[str, Any]:
    """App config layered over the process environment."""
    return ChainMap(app.config, os.environ)


def init_extensions(app: Flask, client: Optional[UpstreamClient] = None) -> GatewayComponents:
    """Initialize CORS and the gateway components with the app instance."""
    origins = [o.strip() for o in str(app.config.get('CORS_ORIGIN') or '*').split(',') if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins if origins != ['*'] else '*'}})

    components = GatewayComponents.from_settings(app_settings(app), client=client)
    components.init_app(app)
    return components


def get_components() -> GatewayComponents:
    """Get components from current Flask app."""
    return current_app.extensions['gateway_components']

