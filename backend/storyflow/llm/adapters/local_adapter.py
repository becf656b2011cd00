# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Local model server adapter.

Speaks either the native Ollama API or an OpenAI-compatible surface
(LM Studio, llama.cpp server, vLLM).
"""

from typing import Optional

from storyflow.core.errors import ProviderError
from storyflow.core.logging import get_engine_logger
from storyflow.llm.adapters.http_base import HTTPProviderAdapter
from storyflow.llm.models import (
    CredentialValidation,
    LLMRequest,
    LLMResponse,
    ProviderCredentials,
    ProviderType,
    TokenUsage,
)

logger = get_engine_logger("providers.local")

OLLAMA = "ollama"
OPENAI_COMPATIBLE = "openai-compatible"
DEFAULT_MODEL = "llama3.2"
VALIDATION_TIMEOUT = 10.0


class LocalLLMAdapter(HTTPProviderAdapter):
    """Ollama or OpenAI-compatible HTTP server on the local network"""

    provider_type = ProviderType.LOCAL
    requires_credentials = False
    unreachable_hint = "Is the local model server running?"

    def _endpoint(self, *candidates: Optional[str]) -> str:
        for candidate in candidates:
            if candidate:
                return candidate.rstrip("/")
        return self.config.ollama_endpoint.rstrip("/")

    async def _generate(self, request: LLMRequest) -> LLMResponse:
        settings = request.provider.config
        endpoint = self._endpoint(request.credentials.endpoint, settings.endpoint)
        api_format = request.credentials.api_format or settings.api_format or OLLAMA

        if api_format == OLLAMA:
            return await self._generate_ollama(request, endpoint)
        return await self._generate_openai_compatible(request, endpoint)

    async def _generate_ollama(self, request: LLMRequest, endpoint: str) -> LLMResponse:
        settings = request.provider.config
        model = settings.model or DEFAULT_MODEL
        options = {"num_predict": self.resolve_max_tokens(request)}
        if settings.temperature is not None:
            options["temperature"] = settings.temperature

        payload = {
            "model": model,
            "prompt": request.prompt,
            "stream": False,
            "options": options,
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt

        data = await self._request("POST", f"{endpoint}/api/generate", json=payload)
        if "response" not in data:
            raise ProviderError("Ollama reply has no 'response' field", ProviderError.BACKEND, self.type)

        usage = TokenUsage.from_counts(data.get("prompt_eval_count"), data.get("eval_count"))
        logger.info("Ollama call completed", extra={"model": model, "total_tokens": usage.total_tokens})
        return LLMResponse(success=True, output=data["response"], model=data.get("model", model), usage=usage)

    async def _generate_openai_compatible(self, request: LLMRequest, endpoint: str) -> LLMResponse:
        settings = request.provider.config
        model = settings.model or DEFAULT_MODEL
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": self.resolve_max_tokens(request),
            "stream": False,
        }
        if settings.temperature is not None:
            payload["temperature"] = settings.temperature

        headers = {}
        if request.credentials.api_key:
            headers["Authorization"] = f"Bearer {request.credentials.api_key}"

        data = await self._request("POST", f"{endpoint}/v1/chat/completions", headers=headers, json=payload)
        choices = data.get("choices") or []
        if not choices:
            raise ProviderError("Local server returned no choices", ProviderError.BACKEND, self.type)

        usage = None
        if data.get("usage"):
            usage = TokenUsage.from_counts(
                data["usage"].get("prompt_tokens"), data["usage"].get("completion_tokens")
            )
        return LLMResponse(
            success=True,
            output=choices[0].get("message", {}).get("content") or "",
            model=data.get("model", model),
            usage=usage,
        )

    async def _check_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        endpoint = self._endpoint(credentials.endpoint)
        api_format = credentials.api_format or OLLAMA

        if api_format == OLLAMA:
            await self._request("GET", f"{endpoint}/api/version", timeout=VALIDATION_TIMEOUT)
            tags = await self._request("GET", f"{endpoint}/api/tags", timeout=VALIDATION_TIMEOUT)
            names = [m.get("name") for m in tags.get("models", [])]
        else:
            listing = await self._request("GET", f"{endpoint}/v1/models", timeout=VALIDATION_TIMEOUT)
            names = [m.get("id") for m in listing.get("data", [])]

        if credentials.model:
            if credentials.model not in names:
                return CredentialValidation(
                    valid=False,
                    error=f"Model '{credentials.model}' is not available at {endpoint}",
                )
            return CredentialValidation(valid=True, model=credentials.model)

        if not names:
            return CredentialValidation(valid=False, error=f"No models installed at {endpoint}")
        return CredentialValidation(valid=True, model=names[0])
