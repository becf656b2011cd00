# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Provider Manager

Registry of adapters keyed by provider type tag. Resolves credentials,
runs one prompt on the adapter matching ``provider.type`` and reports the
outcome to an observer callback.

There is no cross-provider fallback. When a provider fails, the failed
LLMResponse is returned as is and switching to another provider is left to
the caller.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from storyflow.core.config import Config, get_config
from storyflow.core.errors import NotFoundError, ProviderError, sanitize_error_for_user
from storyflow.core.logging import get_engine_logger, log_event
from storyflow.llm.base import ProviderAdapter
from storyflow.llm.credentials import CredentialStore
from storyflow.llm.models import (
    CredentialValidation,
    LLMProviderConfig,
    LLMRequest,
    LLMResponse,
    ProviderCredentials,
)

logger = get_engine_logger("providers.manager")

UpdateCallback = Callable[[Dict[str, Any]], Awaitable[None]]

EXECUTION_COMPLETE = "execution-complete"
EXECUTION_ERROR = "execution-error"


class ProviderManager:
    """
    Uniform entry point to every generation backend.

    Example:
        manager = ProviderManager(update_callback=on_provider_event)
        response = await manager.execute_prompt(provider, "Outline chapter 1", context)
        if not response.success:
            print(response.error_kind, response.error)
    """

    def __init__(
        self,
        adapters: Optional[Iterable[ProviderAdapter]] = None,
        credential_store: Optional[CredentialStore] = None,
        update_callback: Optional[UpdateCallback] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.credential_store = credential_store or CredentialStore()
        self.update_callback = update_callback
        self._adapters: Dict[str, ProviderAdapter] = {}

        if adapters is None:
            from storyflow.llm.adapters import DEFAULT_ADAPTERS
            adapters = [adapter_class(config=self.config) for adapter_class in DEFAULT_ADAPTERS]
        for adapter in adapters:
            self.register_adapter(adapter)

    def register_adapter(self, adapter: ProviderAdapter) -> None:
        if adapter.type in self._adapters:
            logger.warning(f"Replacing adapter for provider type '{adapter.type}'")
        self._adapters[adapter.type] = adapter

    def get_adapter(self, provider_type: str) -> ProviderAdapter:
        adapter = self._adapters.get(getattr(provider_type, "value", provider_type))
        if adapter is None:
            raise NotFoundError("Provider adapter", str(provider_type))
        return adapter

    def available_providers(self) -> List[Dict[str, Any]]:
        return [
            {
                "type": adapter.type,
                "stream_support": adapter.stream_support,
                "requires_credentials": adapter.requires_credentials,
                "timeout": adapter.timeout,
            }
            for adapter in self._adapters.values()
        ]

    async def execute_prompt(
        self,
        provider: LLMProviderConfig,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        system_prompt: Optional[str] = None,
        skill: Optional[str] = None,
    ) -> LLMResponse:
        """
        Run one prompt on ``provider``.

        Never raises for provider failures: every failure, including missing
        configuration, comes back as ``LLMResponse(success=False)`` with an
        ``error_kind``. Task cancellation still propagates.
        """
        provider_type = provider.type.value

        try:
            adapter = self.get_adapter(provider_type)
        except NotFoundError as e:
            return await self._fail(provider, e.message, ProviderError.CONFIGURATION)

        credentials = self.credential_store.resolve(provider)
        if adapter.requires_credentials and not credentials.api_key:
            return await self._fail(
                provider,
                f"No API key configured for provider '{provider.name}' ({provider_type})",
                ProviderError.CONFIGURATION,
            )

        request = LLMRequest(
            provider=provider,
            credentials=credentials,
            prompt=prompt,
            system_prompt=system_prompt,
            context=context or {},
            skill=skill,
        )

        start = time.monotonic()
        try:
            response = await adapter.execute(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Adapter '{provider_type}' raised unexpectedly")
            response = LLMResponse.failure(sanitize_error_for_user(e), ProviderError.BACKEND)

        if not response.success:
            return await self._fail(
                provider, response.error or "Unknown provider error",
                response.error_kind or ProviderError.BACKEND, response,
            )

        log_event(
            logger, "Provider call succeeded",
            provider_type=provider_type,
            model=response.model,
            duration_s=round(time.monotonic() - start, 2),
            total_tokens=response.usage.total_tokens if response.usage else None,
        )
        await self._send_update({
            "type": EXECUTION_COMPLETE,
            "provider_type": provider_type,
            "success": True,
            "model": response.model,
            "usage": response.usage.model_dump() if response.usage else None,
        })
        return response

    async def validate_provider(self, provider: LLMProviderConfig) -> CredentialValidation:
        """Check the credentials that ``execute_prompt`` would use for ``provider``."""
        return await self.validate_credentials(
            provider.type.value, self.credential_store.resolve(provider)
        )

    async def validate_credentials(
        self,
        provider_type: str,
        credentials: ProviderCredentials,
    ) -> CredentialValidation:
        try:
            adapter = self.get_adapter(provider_type)
        except NotFoundError as e:
            return CredentialValidation(valid=False, error=e.message)
        try:
            return await adapter.validate_credentials(credentials)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Credential check for '{provider_type}' raised unexpectedly")
            return CredentialValidation(valid=False, error=sanitize_error_for_user(e))

    async def _fail(
        self,
        provider: LLMProviderConfig,
        error: str,
        kind: str,
        response: Optional[LLMResponse] = None,
    ) -> LLMResponse:
        log_event(
            logger, "Provider call failed", level="WARNING",
            provider_type=provider.type.value, provider_id=provider.id, error_kind=kind, error=error,
        )
        await self._send_update({
            "type": EXECUTION_ERROR,
            "provider_type": provider.type.value,
            "error": error,
            "error_kind": kind,
        })
        if response is not None:
            return response.model_copy(update={"error": error, "error_kind": kind})
        return LLMResponse.failure(error, kind)

    async def _send_update(self, payload: Dict[str, Any]) -> None:
        """Notify the observer; observer faults never break execution."""
        if self.update_callback is None:
            return
        try:
            await self.update_callback(payload)
        except Exception:
            logger.exception(f"Provider update callback failed for '{payload.get('type')}'")
