"""Request Dispatcher
==================

Runs one GenerationRequest against its provider and recovers from
retry-eligible failures by degrading the request.

State machine (one retry axis per request):
- Timeout on the first attempt: one retry with the last 2 history turns
  and a fresh deadline
- PromptTooLarge: one retry at half the token ceiling with the last 2 turns
- QuotaExceeded / EmptyResponse: walk the budget fractions 1.0, 0.75, 0.5, 0.25
- Configuration / Upstream: terminal

The dispatcher never raises; every request ends in exactly one
``GenerationResult`` whose attempt log lists every upstream call.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from nevra.constants import (
    BUDGET_FRACTIONS,
    PROMPT_RETRY_FRACTION,
    SHORT_HISTORY_TURNS,
    FailureKind,
    RetryAxis,
)
from nevra.utils.errors import GatewayError, build_error_payload, describe_failure

from .adapters import UpstreamClient
from .models import (
    AttemptOutcome,
    Deadline,
    GenerationRequest,
    GenerationResult,
    ProviderProfile,
    UpstreamCall,
    content_text,
)
from .prompts import build_system_prompt
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)

MAX_UPSTREAM_CALLS = 5

RETRYABLE_ON_BUDGET = (FailureKind.QUOTA_EXCEEDED, FailureKind.EMPTY_RESPONSE)


@dataclass(frozen=True)
class AttemptPlan:
    """The ``Attempting(budget_fraction, history_window)`` state."""
    fraction_index: int = 0
    budget_fraction: float = BUDGET_FRACTIONS[0]
    history_turns: Optional[int] = None  # None = full history
    axis: Optional[RetryAxis] = None


class RequestDispatcher:
    """Generic retrying dispatcher, parameterized by ``ProviderProfile``.

    Args:
        registry: Read-only provider table
        client: Upstream client handle holding one adapter per endpoint family
    """

    def __init__(self, registry: ProviderRegistry, client: UpstreamClient):
        self.registry = registry
        self.client = client

    async def dispatch(
        self,
        request: GenerationRequest,
        *,
        max_tokens_override: Optional[int] = None,
        temperature_override: Optional[float] = None,
    ) -> GenerationResult:
        """Run ``request`` to a terminal result."""
        try:
            profile = self.registry.profile_for(request.provider)
        except GatewayError as e:
            logger.warning(f"Rejected request for provider '{request.provider}': {e.message}")
            return self._rejected(e)

        if request.images and not profile.supports_images:
            message = f'Provider "{profile.id}" does not accept image input'
            logger.warning(message)
            return GenerationResult(
                success=False,
                error_payload=build_error_payload(
                    message,
                    detail=describe_failure(FailureKind.CONFIGURATION),
                    kind=FailureKind.CONFIGURATION.value,
                ),
                failure_kind=FailureKind.CONFIGURATION,
                status_hint=400,
            )

        try:
            adapter = self.client.adapter_for(profile.endpoint_family)
        except LookupError as e:
            logger.error(str(e))
            return GenerationResult(
                success=False,
                error_payload=build_error_payload(
                    str(e),
                    detail=describe_failure(FailureKind.CONFIGURATION),
                    kind=FailureKind.CONFIGURATION.value,
                ),
                failure_kind=FailureKind.CONFIGURATION,
            )

        ceiling = max_tokens_override or profile.ceiling_for(request.mode)
        temperature = temperature_override if temperature_override is not None else profile.temperature_for(request.mode)
        system_prompt = request.system_prompt or build_system_prompt(
            request.mode, request.framework_hint, has_images=bool(request.images)
        )

        attempts: List[AttemptOutcome] = []
        state: Optional[AttemptPlan] = AttemptPlan()

        while state is not None:
            history = request.history_window(state.history_turns)
            call = UpstreamCall(
                profile=profile,
                request=request,
                system_prompt=system_prompt,
                history=history,
                max_tokens=max(1, int(ceiling * state.budget_fraction)),
                temperature=temperature,
            )
            logger.info(
                f"Attempt {len(attempts) + 1} -> {profile.id} ({profile.model_id}) "
                f"budget={state.budget_fraction:.2f} max_tokens={call.max_tokens} history={len(history)}"
            )
            outcome = await self._attempt(adapter, call, state)
            attempts.append(outcome)

            if outcome.succeeded:
                logger.info(f"{profile.id} succeeded after {len(attempts)} attempt(s) in {outcome.elapsed_ms}ms")
                return GenerationResult(success=True, content=outcome.content, attempts=attempts)

            logger.warning(
                f"{profile.id} attempt {len(attempts)} failed: {outcome.failure_kind.value} "
                f"(status={outcome.http_status}) {outcome.diagnostic or ''}".rstrip()
            )
            state = self._next_state(state, outcome.failure_kind, len(attempts))
            if state is not None:
                logger.info(
                    f"Retrying {profile.id} on {state.axis.value} axis: "
                    f"budget={state.budget_fraction:.2f} history={state.history_turns}"
                )

        return self._failed(profile, attempts)

    async def _attempt(self, adapter, call: UpstreamCall, state: AttemptPlan) -> AttemptOutcome:
        """One upstream call under a fresh deadline, stamped with its bookkeeping."""
        deadline = Deadline(call.profile.timeout_seconds)
        try:
            outcome = await asyncio.wait_for(adapter.send(call, deadline), timeout=deadline.seconds)
        except asyncio.TimeoutError:
            outcome = AttemptOutcome.failure(
                None, f"Request aborted after {deadline.seconds:.1f}s", kind=FailureKind.TIMEOUT
            )
        except Exception as e:
            logger.exception(f"Adapter for {call.profile.id} raised unexpectedly")
            outcome = AttemptOutcome.failure(None, f"Unexpected adapter error: {e}", kind=FailureKind.UPSTREAM)

        if outcome.succeeded and not isinstance(outcome.content, str):
            outcome = replace(outcome, content=content_text(outcome.content) or '')
        if outcome.succeeded and not outcome.content.strip():
            outcome = AttemptOutcome.failure(
                outcome.http_status, "Provider returned an empty response", kind=FailureKind.EMPTY_RESPONSE
            )

        elapsed_ms = int((time.monotonic() - deadline.started_at) * 1000)
        return replace(
            outcome,
            budget_fraction=state.budget_fraction,
            max_tokens=call.max_tokens,
            history_turns=len(call.history),
            elapsed_ms=elapsed_ms,
        )

    @staticmethod
    def _next_state(state: AttemptPlan, kind: FailureKind, calls_made: int) -> Optional[AttemptPlan]:
        """Transition after a failed attempt; None means terminal."""
        if calls_made >= MAX_UPSTREAM_CALLS:
            return None

        if kind == FailureKind.TIMEOUT:
            if state.axis is None and calls_made == 1:
                return replace(state, history_turns=SHORT_HISTORY_TURNS, axis=RetryAxis.TIMEOUT)
            return None

        if kind == FailureKind.PROMPT_TOO_LARGE:
            if state.axis is None:
                return replace(
                    state,
                    budget_fraction=PROMPT_RETRY_FRACTION,
                    history_turns=SHORT_HISTORY_TURNS,
                    axis=RetryAxis.PROMPT_LENGTH,
                )
            return None

        if kind in RETRYABLE_ON_BUDGET:
            next_index = state.fraction_index + 1
            if state.axis in (None, RetryAxis.BUDGET) and next_index < len(BUDGET_FRACTIONS):
                return replace(
                    state,
                    fraction_index=next_index,
                    budget_fraction=BUDGET_FRACTIONS[next_index],
                    axis=RetryAxis.BUDGET,
                )
            return None

        return None

    @staticmethod
    def _rejected(error: GatewayError) -> GenerationResult:
        return GenerationResult(
            success=False,
            error_payload=error.to_payload(),
            failure_kind=error.kind,
            status_hint=error.http_status,
        )

    @staticmethod
    def _failed(profile: ProviderProfile, attempts: List[AttemptOutcome]) -> GenerationResult:
        last = attempts[-1]
        kind = last.failure_kind or FailureKind.UPSTREAM
        message = failure_message(kind, profile, last)
        result = GenerationResult(
            success=False,
            error_payload=build_error_payload(message, detail=describe_failure(kind), kind=kind.value),
            failure_kind=kind,
            attempts=attempts,
        )
        logger.error(
            f"{profile.id} failed terminally with {kind.value} after {len(attempts)} attempt(s), "
            f"budgets tried: {fractions_tried(result)}"
        )
        return result


def failure_message(kind: FailureKind, profile: ProviderProfile, last: AttemptOutcome) -> str:
    """Headline error text for a terminal failure."""
    diagnostic = (last.diagnostic or '').strip()
    if kind == FailureKind.TIMEOUT:
        return f"{profile.id} request timed out after {profile.timeout_seconds:g}s"
    if kind == FailureKind.PROMPT_TOO_LARGE:
        return f"Prompt is too long for {profile.id}, even with a shortened history"
    if kind == FailureKind.QUOTA_EXCEEDED:
        return f"{profile.id} cannot cover the request at any output budget: {diagnostic}".rstrip(': ')
    if kind == FailureKind.EMPTY_RESPONSE:
        return f"Received empty response from {profile.id}"
    if kind == FailureKind.CONFIGURATION:
        return diagnostic or f"{profile.id} rejected the configured credentials"
    return diagnostic or f"{profile.id} request failed"


def fractions_tried(result: GenerationResult) -> Tuple[float, ...]:
    """Budget fractions of every attempt, in call order."""
    return tuple(attempt.budget_fraction for attempt in result.attempts)
