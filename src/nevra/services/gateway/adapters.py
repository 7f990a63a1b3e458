"""Provider Adapters
=================

One adapter per upstream endpoint family, all exposing
``send(call, deadline) -> AttemptOutcome``. Provider quirks (auth headers,
image content encoding, alternate response field names) live here so the
dispatcher's retry state machine is written once.

Features:
- Async HTTP calls with aiohttp, one session per attempt
- Transport timeout sized from the dispatcher-owned deadline
- Never raises for upstream errors; failures come back as outcomes
"""

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Union

import aiohttp

from nevra.constants import EndpointFamily, FailureKind

from .models import AttemptOutcome, Deadline, UpstreamCall, content_text

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Sends one attempt to an upstream provider."""

    family: EndpointFamily

    @abstractmethod
    async def send(self, call: UpstreamCall, deadline: Deadline) -> AttemptOutcome:
        """Perform one upstream call; must not raise for upstream failures."""


class ChatCompletionAdapter(ProviderAdapter):
    """Shared logic for OpenAI-compatible chat completion endpoints."""

    path = '/chat/completions'

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Request-ID": str(uuid.uuid4()),
        }

    def _user_content(self, call: UpstreamCall, prompt: str) -> Union[str, List[Dict[str, Any]]]:
        if not call.request.images:
            return prompt
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in call.request.images:
            content.append({"type": "image_url", "image_url": {"url": image}})
        return content

    def _messages(self, call: UpstreamCall) -> List[Dict[str, Any]]:
        from .prompts import build_user_prompt

        messages: List[Dict[str, Any]] = [{"role": "system", "content": call.system_prompt}]
        for turn in call.history:
            messages.append({"role": turn.role.value, "content": turn.text})
        prompt = build_user_prompt(call.request.prompt, call.request.mode, call.request.framework_hint)
        messages.append({"role": "user", "content": self._user_content(call, prompt)})
        return messages

    def _payload(self, call: UpstreamCall) -> Dict[str, Any]:
        payload = {
            "model": call.profile.model_id,
            "messages": self._messages(call),
            "temperature": call.temperature,
            "max_tokens": call.max_tokens,
        }
        if call.profile.top_p is not None:
            payload["top_p"] = call.profile.top_p
        return payload

    def _extract_content(self, data: Mapping[str, Any]) -> Optional[str]:
        choices = data.get('choices') or []
        if choices and isinstance(choices[0], Mapping):
            message = choices[0].get('message') or {}
            return content_text(message.get('content'))
        return None

    def _extract_error(self, data: Mapping[str, Any]) -> str:
        error_obj = data.get('error')
        if isinstance(error_obj, Mapping):
            return str(error_obj.get('message') or json.dumps(error_obj)[:500])
        if error_obj:
            return str(error_obj)
        return json.dumps(data, ensure_ascii=False)[:500]

    async def _read_body(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        content_type = response.headers.get('Content-Type', '')
        if 'application/json' in content_type:
            try:
                data = await response.json()
            except (aiohttp.ContentTypeError, json.JSONDecodeError, ValueError):
                text = await response.text()
                return {"error": f"Invalid JSON: {text[:200]}"}
            return data if isinstance(data, dict) else {"error": f"Unexpected payload: {str(data)[:200]}"}
        text = await response.text()
        return {"error": text[:500] or response.reason or f"HTTP {response.status}"}

    async def send(self, call: UpstreamCall, deadline: Deadline) -> AttemptOutcome:
        short_model = call.profile.model_id.split('/')[-1]
        payload = self._payload(call)
        timeout = aiohttp.ClientTimeout(total=max(deadline.remaining, 0.001))

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.url, json=payload, headers=self._headers(), timeout=timeout) as response:
                    status_code = response.status
                    data = await self._read_body(response)

                    if status_code == 200:
                        content = self._extract_content(data)
                        if content is None and data.get('error'):
                            # Some providers wrap errors in a 200 envelope
                            error_msg = self._extract_error(data)
                            logger.warning("Malformed 200 response from %s: %s", short_model, error_msg)
                            return AttemptOutcome.failure(status_code, error_msg)
                        return AttemptOutcome.success(content or '', http_status=status_code)

                    error_msg = self._extract_error(data)
                    logger.warning("API error %s (%s): %s", status_code, short_model, error_msg)
                    return AttemptOutcome.failure(status_code, error_msg)

        except asyncio.TimeoutError:
            logger.warning("Timeout after %.1fs calling %s", deadline.seconds, short_model)
            return AttemptOutcome.failure(None, "Request timeout", kind=FailureKind.TIMEOUT)
        except aiohttp.ClientError as e:
            logger.warning("Network error calling %s: %s", short_model, e)
            return AttemptOutcome.failure(None, f"Network error: {e}")


class OpenRouterAdapter(ChatCompletionAdapter):
    """OpenRouter chat completions (bearer auth plus attribution headers)."""

    family = EndpointFamily.OPENROUTER

    def __init__(self, base_url: str, api_key: str, site_url: str, site_name: str):
        super().__init__(base_url)
        self.api_key = api_key
        self.site_url = site_url
        self.site_name = site_name

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers.update({
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.site_url,
            "X-Title": self.site_name,
        })
        return headers


class PuterAdapter(ChatCompletionAdapter):
    """Puter chat API: user-pays model, no key, several response shapes."""

    family = EndpointFamily.PUTER
    path = '/ai/chat'

    def _payload(self, call: UpstreamCall) -> Dict[str, Any]:
        payload = super()._payload(call)
        payload["stream"] = False
        return payload

    def _extract_content(self, data: Mapping[str, Any]) -> Optional[str]:
        content = super()._extract_content(data)
        if content:
            return content

        message = data.get('message')
        if isinstance(message, Mapping):
            inner = content_text(message.get('content'))
            if inner is not None:
                return inner

        for key in ('output_text', 'response'):
            if isinstance(data.get(key), str):
                return data[key]
        return None


class UpstreamClient:
    """Explicit client handle: one adapter per endpoint family.

    Constructed once at startup (see ``nevra.factory``) and injected into the
    dispatcher; tests substitute fake adapters.
    """

    def __init__(self, adapters: Mapping[EndpointFamily, ProviderAdapter]):
        self._adapters = dict(adapters)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'UpstreamClient':
        return cls({
            EndpointFamily.OPENROUTER: OpenRouterAdapter(
                base_url=config.get('OPENROUTER_BASE_URL') or 'https://openrouter.ai/api/v1',
                api_key=str(config.get('OPENROUTER_API_KEY') or '').strip(),
                site_url=config.get('OPENROUTER_SITE_URL') or 'https://nevra.local',
                site_name=config.get('OPENROUTER_SITE_NAME') or 'Nevra',
            ),
            EndpointFamily.PUTER: PuterAdapter(
                base_url=config.get('PUTER_API_BASE') or 'https://api.puter.com/v1',
            ),
        })

    def adapter_for(self, family: EndpointFamily) -> ProviderAdapter:
        try:
            return self._adapters[family]
        except KeyError:
            raise LookupError(f"No adapter registered for endpoint family {family}") from None
