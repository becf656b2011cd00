# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
OpenRouter adapter. OpenAI-shaped chat completions over httpx.
"""

import httpx

from storyflow.core.errors import ProviderError
from storyflow.core.logging import get_engine_logger
from storyflow.llm.adapters.http_base import HTTPProviderAdapter, response_error_message
from storyflow.llm.models import (
    CredentialValidation,
    LLMRequest,
    LLMResponse,
    ProviderCredentials,
    ProviderType,
    TokenUsage,
)

logger = get_engine_logger("providers.openrouter")

BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-sonnet-4.5"
VALIDATION_TIMEOUT = 10.0


class OpenRouterAdapter(HTTPProviderAdapter):
    """OpenRouter chat completions"""

    provider_type = ProviderType.OPENROUTER

    def _headers(self, api_key: str) -> dict:
        return {
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": self.config.openrouter_referer,
            "X-Title": self.config.openrouter_title,
        }

    async def _generate(self, request: LLMRequest) -> LLMResponse:
        settings = request.provider.config
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        payload = {
            "model": settings.model or DEFAULT_MODEL,
            "messages": messages,
            "max_tokens": self.resolve_max_tokens(request),
        }
        if settings.temperature is not None:
            payload["temperature"] = settings.temperature

        data = await self._request(
            "POST", f"{BASE_URL}/chat/completions",
            headers=self._headers(request.credentials.api_key),
            json=payload,
        )

        choices = data.get("choices") or []
        if not choices:
            raise ProviderError("OpenRouter returned no choices", ProviderError.BACKEND, self.type)

        usage = None
        if data.get("usage"):
            usage = TokenUsage.from_counts(
                data["usage"].get("prompt_tokens"), data["usage"].get("completion_tokens")
            )

        logger.info("OpenRouter call completed", extra={"model": data.get("model")})
        return LLMResponse(
            success=True,
            output=choices[0].get("message", {}).get("content") or "",
            model=data.get("model", payload["model"]),
            usage=usage,
        )

    async def _check_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        data = await self._request(
            "GET", f"{BASE_URL}/key",
            timeout=VALIDATION_TIMEOUT,
            headers=self._headers(credentials.api_key),
        )
        label = (data.get("data") or {}).get("label")
        return CredentialValidation(valid=True, model=credentials.model or label)

    def status_error(self, response: httpx.Response) -> ProviderError:
        message = response_error_message(response)
        if response.status_code == 402:
            return ProviderError(
                f"Insufficient OpenRouter credits: {message}", ProviderError.BACKEND, self.type
            )
        if response.status_code == 404:
            return ProviderError(
                f"Model not found on OpenRouter: {message}", ProviderError.BACKEND, self.type
            )
        return super().status_error(response)
