"""Test doubles shared by the unit and route tests."""

import asyncio

from nevra.constants import EndpointFamily, FailureKind
from nevra.services.gateway import AttemptOutcome, ProviderAdapter, UpstreamClient


class ScriptedAdapter(ProviderAdapter):
    """Fake adapter replaying a script of outcomes, one per call.

    Script items may be an ``AttemptOutcome``, an exception instance (raised),
    or a float (seconds to sleep before answering ``'slow'``).
    Once the script is exhausted every call succeeds with ``default``.
    """

    family = EndpointFamily.OPENROUTER

    def __init__(self, *script, default='<html>ok</html>'):
        self.script = list(script)
        self.default = default
        self.calls = []

    async def send(self, call, deadline):
        self.calls.append(call)
        item = self.script.pop(0) if self.script else AttemptOutcome.success(self.default)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, (int, float)):
            await asyncio.sleep(item)
            return AttemptOutcome.success('slow')
        return item


def quota_failure():
    return AttemptOutcome.failure(402, 'This request requires more credits, or fewer max_tokens')


def timeout_failure():
    return AttemptOutcome.failure(None, 'Request timeout', kind=FailureKind.TIMEOUT)


def prompt_too_large_failure():
    return AttemptOutcome.failure(400, 'Prompt tokens limit exceeded: 9000 > 8192')


def openrouter_prompt_limit_failure():
    """OpenRouter reports an oversized prompt with the 402 it also uses for credits."""
    return AttemptOutcome.failure(
        402,
        'Prompt tokens limit exceeded: 9120 > 8000. To increase, visit '
        'https://openrouter.ai/settings/credits and upgrade to a paid account',
    )


def client_for(adapter):
    return UpstreamClient({
        EndpointFamily.OPENROUTER: adapter,
        EndpointFamily.PUTER: adapter,
    })
