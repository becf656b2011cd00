# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Credential resolution for providers.

Lookup order: explicit store entry (by provider id, then by type tag),
inline provider config, then the environment.
"""

from typing import Callable, Dict, Optional

from storyflow.core.config import (
    get_anthropic_api_key,
    get_google_api_key,
    get_openai_api_key,
    get_openrouter_api_key,
)
from storyflow.llm.models import LLMProviderConfig, ProviderCredentials, ProviderType


ENV_KEY_LOOKUPS: Dict[ProviderType, Callable[[], Optional[str]]] = {
    ProviderType.CLAUDE_API: get_anthropic_api_key,
    ProviderType.OPENAI: get_openai_api_key,
    ProviderType.GOOGLE: get_google_api_key,
    ProviderType.OPENROUTER: get_openrouter_api_key,
}


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class CredentialStore:
    """In-memory API keys keyed by provider id or type tag"""

    def __init__(self, keys: Optional[Dict[str, str]] = None):
        self._keys: Dict[str, str] = {}
        for key, value in (keys or {}).items():
            self.set(key, value)

    def set(self, provider_key: str, api_key: str) -> None:
        normalized = _normalize(api_key)
        if normalized is None:
            self._keys.pop(provider_key, None)
        else:
            self._keys[provider_key] = normalized

    def remove(self, provider_key: str) -> None:
        self._keys.pop(provider_key, None)

    def has(self, provider_key: str) -> bool:
        return provider_key in self._keys

    def get(self, provider_key: str) -> Optional[str]:
        return self._keys.get(provider_key)

    def resolve(self, provider: LLMProviderConfig) -> ProviderCredentials:
        """Build normalized credentials for one provider."""
        api_key = (
            self.get(provider.id)
            or self.get(provider.type.value)
            or _normalize(provider.config.api_key)
        )
        if api_key is None and provider.type in ENV_KEY_LOOKUPS:
            api_key = _normalize(ENV_KEY_LOOKUPS[provider.type]())

        return ProviderCredentials(
            api_key=api_key,
            endpoint=provider.config.endpoint,
            api_format=provider.config.api_format,
            model=provider.config.model,
        )
