"""Generation Gateway
==================

Routes generation requests to upstream providers with graceful degradation:
registry lookup, per-attempt deadlines, failure classification and a single
retry state machine shared by every provider.

Usage:
    registry = ProviderRegistry.from_config(app.config)
    dispatcher = RequestDispatcher(registry, UpstreamClient.from_config(app.config))
    result = await dispatcher.dispatch(GenerationRequest(prompt='...', provider='deepseek'))
"""

from .adapters import (
    ChatCompletionAdapter,
    OpenRouterAdapter,
    ProviderAdapter,
    PuterAdapter,
    UpstreamClient,
)
from .classifier import classify
from .dispatcher import MAX_UPSTREAM_CALLS, RequestDispatcher, fractions_tried
from .models import (
    AttemptOutcome,
    Deadline,
    GenerationRequest,
    GenerationResult,
    HistoryTurn,
    ProviderProfile,
    UpstreamCall,
)
from .registry import ProviderRegistry

__all__ = [
    'AttemptOutcome',
    'ChatCompletionAdapter',
    'Deadline',
    'GenerationRequest',
    'GenerationResult',
    'HistoryTurn',
    'MAX_UPSTREAM_CALLS',
    'OpenRouterAdapter',
    'ProviderAdapter',
    'ProviderProfile',
    'ProviderRegistry',
    'PuterAdapter',
    'RequestDispatcher',
    'UpstreamCall',
    'UpstreamClient',
    'classify',
    'fractions_tried',
]
