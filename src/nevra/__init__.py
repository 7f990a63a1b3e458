"""
Nevra Generation Gateway
========================

HTTP gateway that routes code-generation and tutoring requests to upstream
LLM providers with graceful degradation, normalizes model output into
artifacts and decomposes prompts into task plans.

Uses the factory pattern implemented in factory.py for application creation.
"""

from nevra.factory import create_app

__all__ = ['create_app']
