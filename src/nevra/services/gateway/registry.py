"""Provider Registry
=================

Static table of logical provider ids to ``ProviderProfile``.

Built once at startup from configuration (environment / Flask config) and
read-only afterwards. Credential presence is checked here, once; a provider
without credentials stays in the table flagged as not configured so the
failure surfaces per request while other providers remain usable.
"""

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional

from nevra.constants import EndpointFamily, GenerationMode
from nevra.utils.errors import ProviderNotConfiguredError, UnknownProviderError

from .models import ProviderProfile

logger = logging.getLogger(__name__)

# Credential setting required per endpoint family (None = no key needed)
FAMILY_CREDENTIALS = {
    EndpointFamily.OPENROUTER: 'OPENROUTER_API_KEY',
    EndpointFamily.PUTER: None,
}

DEFAULT_PROVIDERS: Dict[str, Dict[str, Any]] = {
    'anthropic': {
        'model_id': 'openai/gpt-oss-20b:free',
        'endpoint_family': EndpointFamily.OPENROUTER,
        'ceilings': {'builder': 8192, 'tutor': 4096},
        'timeout_ms': 45_000,
        'temperatures': {'builder': 0.5, 'tutor': 0.7},
    },
    'deepseek': {
        'model_id': 'mistralai/devstral-2512:free',
        'endpoint_family': EndpointFamily.OPENROUTER,
        'ceilings': {'builder': 8192, 'tutor': 4096},
        'timeout_ms': 90_000,
        'temperatures': {'builder': 0.3, 'tutor': 0.7},
        'top_p': 0.9,
    },
    'gemini': {
        'model_id': 'openai/gpt-oss-20b:free',
        'endpoint_family': EndpointFamily.OPENROUTER,
        'ceilings': {'builder': 4096, 'tutor': 4096},
        'timeout_ms': 45_000,
        'temperatures': {'builder': 0.5, 'tutor': 0.7},
    },
    'openai': {
        'model_id': 'gpt-5-nano',
        'endpoint_family': EndpointFamily.PUTER,
        'ceilings': {'builder': 2000, 'tutor': 2000},
        'timeout_ms': 45_000,
        'temperatures': {'builder': 0.5, 'tutor': 0.7},
        # The puter-backed provider historically shared one ceiling setting
        'ceiling_setting': 'OPENROUTER_MAX_TOKENS',
    },
}


def _int_setting(config: Mapping[str, Any], key: str, default: int) -> int:
    raw = config.get(key)
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer setting %s=%r", key, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive setting %s=%r", key, raw)
        return default
    return value


def _has_credential(config: Mapping[str, Any], key: Optional[str]) -> bool:
    if key is None:
        return True
    value = config.get(key)
    return bool(value and str(value).strip())


class ProviderRegistry:
    """Read-only lookup of provider profiles.

    Usage:
        registry = ProviderRegistry.from_config(os.environ)
        profile = registry.profile_for('deepseek')
    """

    def __init__(self, profiles: Mapping[str, ProviderProfile]):
        self._profiles: Dict[str, ProviderProfile] = dict(profiles)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        providers: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> 'ProviderRegistry':
        """Build profiles from defaults plus ``<PROVIDER>_MAX_TOKENS_<MODE>`` and
        ``<PROVIDER>_TIMEOUT_MS`` overrides."""
        profiles = {}
        for provider_id, spec in (providers or DEFAULT_PROVIDERS).items():
            prefix = provider_id.upper()
            family = EndpointFamily(spec['endpoint_family'])

            ceilings = {}
            for mode in GenerationMode:
                default = spec['ceilings'][mode.value]
                key = spec.get('ceiling_setting') or f"{prefix}_MAX_TOKENS_{mode.value.upper()}"
                ceilings[mode] = _int_setting(config, key, default)

            credential = FAMILY_CREDENTIALS.get(family)
            configured = _has_credential(config, credential)
            if not configured:
                logger.warning("Provider %s not configured: %s missing", provider_id, credential)

            profiles[provider_id] = ProviderProfile(
                id=provider_id,
                model_id=config.get(f"{prefix}_MODEL") or spec['model_id'],
                endpoint_family=family,
                token_ceilings=ceilings,
                timeout_ms=_int_setting(config, f"{prefix}_TIMEOUT_MS", spec['timeout_ms']),
                supports_images=spec.get('supports_images', True),
                temperatures={GenerationMode(k): v for k, v in spec.get('temperatures', {}).items()},
                top_p=spec.get('top_p'),
                configured=configured,
                missing_credential=None if configured else credential,
            )

        logger.info(
            "Provider registry ready: %s",
            ', '.join(f"{p.id}={'ok' if p.configured else 'unconfigured'}" for p in profiles.values()),
        )
        return cls(profiles)

    def profile_for(self, provider_id: str) -> ProviderProfile:
        """Return the profile for ``provider_id``.

        Raises:
            UnknownProviderError: id not in the table
            ProviderNotConfiguredError: credentials were absent at startup
        """
        profile = self._profiles.get(provider_id)
        if profile is None:
            raise UnknownProviderError(provider_id)
        if not profile.configured:
            raise ProviderNotConfiguredError(provider_id, profile.missing_credential or 'credentials')
        return profile

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._profiles

    def __iter__(self) -> Iterator[ProviderProfile]:
        return iter(self._profiles.values())

    def ids(self) -> List[str]:
        return list(self._profiles)

    def describe(self) -> List[Dict[str, Any]]:
        return [profile.to_dict() for profile in self._profiles.values()]
