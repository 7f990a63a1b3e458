"""Gateway Models
==============

Plain dataclasses describing one generation request, the provider profile it
is routed to, every upstream attempt, and the terminal result.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from nevra.constants import (
    EndpointFamily,
    FailureKind,
    Framework,
    GenerationMode,
    HistoryRole,
    coerce_enum,
)


@dataclass(frozen=True)
class HistoryTurn:
    """One prior conversation turn."""
    role: HistoryRole
    text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> Optional['HistoryTurn']:
        """Parse ``{role, text}`` or the legacy ``{role: model, parts: [{text}]}`` shape.

        Returns None for turns without text.
        """
        role = HistoryRole.ASSISTANT if data.get('role') in ('assistant', 'model') else HistoryRole.USER
        text = data.get('text')
        if text is None:
            parts = data.get('parts') or []
            if parts and isinstance(parts[0], Mapping):
                text = parts[0].get('text')
        if not text:
            return None
        return cls(role=role, text=str(text))


@dataclass(frozen=True)
class GenerationRequest:
    """A single logical generation request.

    Attributes:
        prompt: User request, never empty
        history: Prior turns, oldest first
        mode: Builder (apps) or tutor (explanations)
        provider: Logical provider id looked up in the registry
        images: Encoded image references (data URLs or http URLs)
        framework_hint: Target framework for builder mode
        system_prompt: Optional caller-supplied system prompt override
    """
    prompt: str
    provider: str
    history: Tuple[HistoryTurn, ...] = ()
    mode: GenerationMode = GenerationMode.BUILDER
    images: Tuple[str, ...] = ()
    framework_hint: Optional[Framework] = None
    system_prompt: Optional[str] = None

    def __post_init__(self):
        if not self.prompt or not self.prompt.strip():
            raise ValueError("prompt must not be empty")

    @classmethod
    def from_payload(cls, data: Mapping[str, Any], default_provider: str) -> 'GenerationRequest':
        history = []
        for raw_turn in data.get('history') or []:
            if isinstance(raw_turn, Mapping):
                turn = HistoryTurn.from_payload(raw_turn)
                if turn is not None:
                    history.append(turn)

        framework = data.get('framework') or data.get('frameworkHint')
        return cls(
            prompt=str(data.get('prompt') or ''),
            provider=str(data.get('provider') or default_provider),
            history=tuple(history),
            mode=coerce_enum(GenerationMode, data.get('mode'), GenerationMode.BUILDER),
            images=tuple(str(img) for img in (data.get('images') or []) if img),
            framework_hint=coerce_enum(Framework, framework, None) if framework else None,
            system_prompt=data.get('systemPrompt') or None,
        )

    def history_window(self, turns: Optional[int]) -> Tuple[HistoryTurn, ...]:
        """Full history when ``turns`` is None, else the most recent ``turns``."""
        if turns is None:
            return self.history
        if turns <= 0:
            return ()
        return self.history[-turns:]


@dataclass(frozen=True)
class ProviderProfile:
    """Static description of a provider, built once at startup."""
    id: str
    model_id: str
    endpoint_family: EndpointFamily
    token_ceilings: Mapping[GenerationMode, int]
    timeout_ms: int
    supports_images: bool = True
    temperatures: Mapping[GenerationMode, float] = field(default_factory=dict)
    top_p: Optional[float] = None
    configured: bool = True
    missing_credential: Optional[str] = None

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def ceiling_for(self, mode: GenerationMode) -> int:
        return int(self.token_ceilings.get(mode) or self.token_ceilings[GenerationMode.BUILDER])

    def temperature_for(self, mode: GenerationMode) -> float:
        default = 0.7 if mode == GenerationMode.TUTOR else 0.5
        return float(self.temperatures.get(mode, default))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'model': self.model_id,
            'endpoint_family': self.endpoint_family.value,
            'max_tokens': {mode.value: value for mode, value in self.token_ceilings.items()},
            'timeout_ms': self.timeout_ms,
            'supports_images': self.supports_images,
            'configured': self.configured,
        }


@dataclass(frozen=True)
class UpstreamCall:
    """Everything an adapter needs for one attempt."""
    profile: ProviderProfile
    request: GenerationRequest
    system_prompt: str
    history: Tuple[HistoryTurn, ...]
    max_tokens: int
    temperature: float


@dataclass
class Deadline:
    """Cancellation token for one attempt.

    The dispatcher owns it; adapters read ``remaining`` to size their own
    transport timeouts so both expire together.
    """
    seconds: float
    started_at: float = field(default_factory=time.monotonic)

    @property
    def expires_at(self) -> float:
        return self.started_at + self.seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())


def content_text(content: Any) -> Optional[str]:
    """Flatten a message ``content`` field to text.

    Providers return either a plain string or a list of typed parts; text
    parts are joined in order and everything else is ignored.
    """
    if content is None or isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part.get('text') if isinstance(part, Mapping) else part for part in content]
        return ''.join(part for part in parts if isinstance(part, str))
    return str(content)


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of exactly one upstream call. Never mutated."""
    succeeded: bool
    content: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    http_status: Optional[int] = None
    diagnostic: Optional[str] = None
    budget_fraction: float = 1.0
    max_tokens: int = 0
    history_turns: int = 0
    elapsed_ms: int = 0

    @classmethod
    def success(cls, content: str, http_status: int = 200) -> 'AttemptOutcome':
        return cls(succeeded=True, content=content_text(content), http_status=http_status)

    @classmethod
    def failure(
        cls,
        http_status: Optional[int],
        diagnostic: Optional[str],
        kind: Optional[FailureKind] = None,
    ) -> 'AttemptOutcome':
        """Failed attempt; the kind is classified from status/diagnostic unless given."""
        if kind is None:
            from .classifier import classify
            kind = classify(http_status, diagnostic)
        return cls(succeeded=False, failure_kind=kind, http_status=http_status, diagnostic=diagnostic)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'succeeded': self.succeeded,
            'failure_kind': self.failure_kind.value if self.failure_kind else None,
            'http_status': self.http_status,
            'diagnostic': self.diagnostic,
            'budget_fraction': self.budget_fraction,
            'max_tokens': self.max_tokens,
            'history_turns': self.history_turns,
            'elapsed_ms': self.elapsed_ms,
        }


@dataclass
class GenerationResult:
    """Terminal outcome of a GenerationRequest.

    Attributes:
        success: Whether a non-empty completion was obtained
        content: Completion text (success only)
        error_payload: ``{error, detail}`` wire payload (failure only)
        failure_kind: Terminal failure kind (failure only)
        attempts: Attempt log, one entry per upstream call, in call order
        status_hint: HTTP status chosen before any upstream call (request rejected)
    """
    success: bool
    content: Optional[str] = None
    error_payload: Optional[Dict[str, Any]] = None
    failure_kind: Optional[FailureKind] = None
    attempts: List[AttemptOutcome] = field(default_factory=list)
    status_hint: Optional[int] = None

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        if self.status_hint is not None:
            return self.status_hint
        from nevra.utils.errors import status_for_failure
        upstream = self.attempts[-1].http_status if self.attempts else None
        return status_for_failure(self.failure_kind or FailureKind.UPSTREAM, upstream)

    @property
    def final_budget_fraction(self) -> Optional[float]:
        return self.attempts[-1].budget_fraction if self.attempts else None

    def to_response(self) -> Dict[str, Any]:
        """Wire body for the generation endpoint."""
        if self.success:
            return {'content': self.content}
        return dict(self.error_payload or {'error': 'Generation failed'})
