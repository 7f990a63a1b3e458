"""
Gateway Client
==============

Synchronous ``requests`` client for the gateway HTTP API.

- ``generate`` returns a normalized artifact (single document or multi-file
  project) and raises ``GatewayError`` carrying the terminal failure kind.
- ``plan`` never fails: after 15 seconds, or on any error, it returns the
  fixed fallback plan.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import requests

from nevra.constants import (
    DEFAULT_PLANNING_TIMEOUT_SECONDS,
    FailureKind,
    Framework,
    GenerationMode,
    coerce_enum,
)
from nevra.services.gateway.classifier import classify
from nevra.services.gateway.models import HistoryTurn
from nevra.services.normalizer import Artifact, normalize
from nevra.services.planning import Plan, create_fallback_plan, plan_from_payload
from nevra.utils.errors import GatewayError, describe_failure

logger = logging.getLogger(__name__)

HistoryLike = Union[HistoryTurn, Mapping[str, Any]]


def _history_payload(history: Optional[Iterable[HistoryLike]]) -> List[Dict[str, str]]:
    turns = []
    for turn in history or []:
        if isinstance(turn, HistoryTurn):
            turns.append({'role': turn.role.value, 'text': turn.text})
        else:
            parsed = HistoryTurn.from_payload(turn)
            if parsed is not None:
                turns.append({'role': parsed.role.value, 'text': parsed.text})
    return turns


class GatewayClient:
    """Client for the generation and planning endpoints.

    Usage:
        client = GatewayClient('http://localhost:5000')
        artifact = client.generate('Build a landing page', provider='deepseek')
        plan = client.plan('Build a todo app')
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        generate_timeout: Optional[float] = 300.0,
        plan_timeout: float = DEFAULT_PLANNING_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.generate_timeout = generate_timeout
        self.plan_timeout = plan_timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def generate(
        self,
        prompt: str,
        *,
        provider: Optional[str] = None,
        history: Optional[Iterable[HistoryLike]] = None,
        mode: Union[GenerationMode, str] = GenerationMode.BUILDER,
        images: Optional[Sequence[str]] = None,
        framework: Optional[Union[Framework, str]] = None,
    ) -> Artifact:
        """Generate and normalize one completion.

        Raises:
            GatewayError: the gateway reported a terminal failure or was unreachable
            EmptyResponseError: the completion was empty
        """
        payload: Dict[str, Any] = {
            'prompt': prompt,
            'history': _history_payload(history),
            'mode': str(mode),
            'images': list(images or []),
        }
        if provider:
            payload['provider'] = provider
        if framework:
            payload['framework'] = str(framework)

        try:
            response = self.session.post(self._url('/api/generate'), json=payload, timeout=self.generate_timeout)
        except requests.exceptions.Timeout as e:
            raise GatewayError(
                message=f"Gateway request timed out: {e}",
                http_status=504,
                kind=FailureKind.TIMEOUT,
                detail=describe_failure(FailureKind.TIMEOUT),
            ) from e
        except requests.exceptions.RequestException as e:
            raise GatewayError(
                message=f"Gateway unreachable: {e}",
                kind=FailureKind.UPSTREAM,
                detail=describe_failure(FailureKind.UPSTREAM),
            ) from e

        data = self._json(response)
        if response.status_code != 200:
            raise self._error_from_response(response.status_code, data)

        return normalize(data.get('content'))

    def plan(self, prompt: str, provider: Optional[str] = None) -> Plan:
        """Fetch a task plan; any failure yields the fallback plan."""
        payload: Dict[str, Any] = {'prompt': prompt}
        if provider:
            payload['provider'] = provider

        try:
            response = self.session.post(self._url('/api/plan'), json=payload, timeout=self.plan_timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning("Planning timeout, using fallback plan")
            return create_fallback_plan(prompt)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Planning error ({e}), using fallback plan")
            return create_fallback_plan(prompt)

        plan = plan_from_payload(data, prompt) if isinstance(data, dict) else None
        return plan or create_fallback_plan(prompt)

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {'error': response.text[:500] or response.reason or f"HTTP {response.status_code}"}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_from_response(status_code: int, data: Mapping[str, Any]) -> GatewayError:
        message = str(data.get('error') or f"Generation failed with HTTP {status_code}")
        kind = coerce_enum(FailureKind, data.get('kind'), None) or classify(status_code, message)
        return GatewayError(
            message=message,
            http_status=status_code,
            kind=kind,
            detail=data.get('detail') or describe_failure(kind),
        )
