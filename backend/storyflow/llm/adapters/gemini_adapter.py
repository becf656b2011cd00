# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Google Gemini adapter (google-genai SDK, async surface).
"""

import time
from typing import Callable

import httpx
from google import genai
from google.genai import errors as genai_errors

from storyflow.core.errors import ProviderError
from storyflow.core.logging import get_engine_logger
from storyflow.llm.base import ProviderAdapter
from storyflow.llm.models import (
    CredentialValidation,
    LLMRequest,
    LLMResponse,
    ProviderCredentials,
    ProviderType,
    TokenUsage,
)

logger = get_engine_logger("providers.google")

DEFAULT_MODEL = "gemini-2.5-pro"


def _default_client(api_key: str, timeout: float) -> genai.Client:
    # HttpOptions.timeout is in milliseconds
    return genai.Client(
        api_key=api_key,
        http_options=genai.types.HttpOptions(timeout=int(timeout * 1000)),
    )


class GeminiAdapter(ProviderAdapter):
    """Google Gemini generate_content"""

    provider_type = ProviderType.GOOGLE
    stream_support = True

    def __init__(self, client_factory: Callable[[str, float], genai.Client] = _default_client, **kwargs):
        super().__init__(**kwargs)
        self.client_factory = client_factory

    async def _generate(self, request: LLMRequest) -> LLMResponse:
        settings = request.provider.config
        model = settings.model or DEFAULT_MODEL
        client = self.client_factory(request.credentials.api_key, self.timeout)

        config_kwargs = {"max_output_tokens": self.resolve_max_tokens(request)}
        if settings.temperature is not None:
            config_kwargs["temperature"] = settings.temperature
        if request.system_prompt:
            config_kwargs["system_instruction"] = request.system_prompt

        start = time.monotonic()
        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=request.prompt,
                config=genai.types.GenerateContentConfig(**config_kwargs),
            )
        except genai_errors.APIError as e:
            raise self._map_api_error(e)
        except httpx.TimeoutException:
            raise ProviderError(
                f"Gemini request timed out after {self.timeout}s",
                ProviderError.NETWORK, self.type
            )
        except httpx.TransportError as e:
            raise ProviderError(f"Cannot reach Gemini: {e}", ProviderError.NETWORK, self.type)

        text = response.text or ""
        if not text.strip():
            raise ProviderError(f"Empty response from {model}", ProviderError.BACKEND, self.type)

        usage = None
        metadata = getattr(response, "usage_metadata", None)
        if metadata is not None:
            usage = TokenUsage.from_counts(
                metadata.prompt_token_count, metadata.candidates_token_count
            )

        logger.info(
            f"Gemini call completed in {time.monotonic() - start:.1f}s",
            extra={"model": model, "total_tokens": usage.total_tokens if usage else None}
        )
        return LLMResponse(success=True, output=text, model=model, usage=usage)

    async def _check_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        model = credentials.model or DEFAULT_MODEL
        client = self.client_factory(credentials.api_key, self.timeout)
        try:
            info = await client.aio.models.get(model=model)
        except genai_errors.APIError as e:
            raise self._map_api_error(e)
        except httpx.TransportError as e:
            raise ProviderError(f"Cannot reach Gemini: {e}", ProviderError.NETWORK, self.type)
        return CredentialValidation(valid=True, model=getattr(info, "name", None) or model)

    def _map_api_error(self, e: "genai_errors.APIError") -> ProviderError:
        message = e.message or str(e)
        # Gemini reports bad keys as 400 INVALID_ARGUMENT
        if "API_KEY_INVALID" in str(e) or "API key not valid" in message:
            return ProviderError(
                f"Invalid API key or insufficient permissions: {message}",
                ProviderError.AUTHENTICATION, self.type
            )
        return self.error_for_status(e.code or 500, message)
