"""Unified error response utilities and exception hierarchy for the gateway.

HTTP-facing errors carry their status; gateway errors additionally carry the
``FailureKind`` they terminate with so the HTTP layer and the client can map
them without string matching.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from nevra.constants import FailureKind

HTTP_DEFAULT_STATUS = 500

@dataclass
class AppError(Exception):
    message: str
    http_status: int = 400
    code: Optional[str] = None  # machine readable stable code
    details: Optional[Dict[str, Any]] = None

    def __str__(self):  # pragma: no cover - trivial
        return self.message

@dataclass
class BadRequestError(AppError):
    http_status: int = 400


@dataclass
class GatewayError(AppError):
    """A terminal generation failure surfaced as an exception."""
    http_status: int = 500
    kind: FailureKind = FailureKind.UPSTREAM
    detail: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return build_error_payload(self.message, detail=self.detail, kind=self.kind.value)


class UnknownProviderError(GatewayError):
    def __init__(self, provider_id: str):
        super().__init__(
            message=f'Unknown provider "{provider_id}"',
            http_status=400,
            code='unknown_provider',
            kind=FailureKind.UNKNOWN_PROVIDER,
            detail=describe_failure(FailureKind.UNKNOWN_PROVIDER),
        )
        self.provider_id = provider_id


class ProviderNotConfiguredError(GatewayError):
    def __init__(self, provider_id: str, missing: str):
        super().__init__(
            message=f'Provider "{provider_id}" is not configured: {missing} is not set',
            http_status=500,
            code='provider_not_configured',
            kind=FailureKind.CONFIGURATION,
            detail=describe_failure(FailureKind.CONFIGURATION),
        )
        self.provider_id = provider_id
        self.missing = missing


class EmptyResponseError(GatewayError):
    def __init__(self, message: str = 'Received empty response from provider'):
        super().__init__(
            message=message,
            http_status=500,
            code='empty_response',
            kind=FailureKind.EMPTY_RESPONSE,
            detail=describe_failure(FailureKind.EMPTY_RESPONSE),
        )


# Terminal failure kind -> HTTP status of the generation endpoint.
# Upstream failures use the provider-reported status when there is one.
FAILURE_HTTP_STATUS = {
    FailureKind.CONFIGURATION: 500,
    FailureKind.PROMPT_TOO_LARGE: 500,
    FailureKind.QUOTA_EXCEEDED: 500,
    FailureKind.TIMEOUT: 504,
    FailureKind.UPSTREAM: 500,
    FailureKind.EMPTY_RESPONSE: 500,
    FailureKind.UNKNOWN_PROVIDER: 400,
}

FAILURE_DETAILS = {
    FailureKind.CONFIGURATION: (
        'Configuration problem: the provider credentials are missing or were rejected. '
        'Set OPENROUTER_API_KEY (or fix it) and restart the server.'
    ),
    FailureKind.UNKNOWN_PROVIDER: (
        'Configuration problem: choose one of the providers listed by /api/providers.'
    ),
    FailureKind.PROMPT_TOO_LARGE: (
        'Capacity problem: the prompt and history exceed the model context even after '
        'trimming the history. Use a shorter prompt or start a new conversation.'
    ),
    FailureKind.QUOTA_EXCEEDED: (
        'Capacity problem: the provider allowance cannot cover even the smallest output '
        'budget. Try again later or switch to a different provider.'
    ),
    FailureKind.TIMEOUT: (
        'Transient problem: the provider took too long to answer, also with a shortened '
        'history. Retry later, use a shorter prompt or switch provider.'
    ),
    FailureKind.EMPTY_RESPONSE: (
        'Transient problem: the provider returned no content. Retry later.'
    ),
    FailureKind.UPSTREAM: (
        'Transient problem: the provider reported an error. Retry later.'
    ),
}


def describe_failure(kind: FailureKind) -> str:
    return FAILURE_DETAILS.get(kind, FAILURE_DETAILS[FailureKind.UPSTREAM])


def status_for_failure(kind: FailureKind, upstream_status: Optional[int] = None) -> int:
    """HTTP status for a terminal failure kind."""
    if kind == FailureKind.UPSTREAM and upstream_status and 400 <= upstream_status <= 599:
        return upstream_status
    return FAILURE_HTTP_STATUS.get(kind, HTTP_DEFAULT_STATUS)


def build_error_payload(message: str, *, detail: Any = None, **extra: Any) -> Dict[str, Any]:
    """Wire shape of every failure response: ``{error, detail?}``.

    Extra keys (e.g. ``kind``, ``request_id``) are added when not None.
    """
    payload: Dict[str, Any] = {'error': message}
    if detail is not None:
        payload['detail'] = detail
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload
