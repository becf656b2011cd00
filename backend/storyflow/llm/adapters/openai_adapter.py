# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
OpenAI adapter (openai SDK, chat completions).
"""

import time
from typing import Callable

import openai
from openai import AsyncOpenAI

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

logger = get_engine_logger("providers.openai")

DEFAULT_MODEL = "gpt-4o"


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions"""

    provider_type = ProviderType.OPENAI
    stream_support = True

    def __init__(self, client_factory: Callable[..., AsyncOpenAI] = AsyncOpenAI, **kwargs):
        super().__init__(**kwargs)
        self.client_factory = client_factory

    def _client(self, api_key: str) -> AsyncOpenAI:
        return self.client_factory(api_key=api_key, timeout=self.timeout)

    async def _generate(self, request: LLMRequest) -> LLMResponse:
        settings = request.provider.config
        client = self._client(request.credentials.api_key)

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        start = time.monotonic()
        try:
            completion = await client.chat.completions.create(
                model=settings.model or DEFAULT_MODEL,
                messages=messages,
                max_tokens=self.resolve_max_tokens(request),
                temperature=settings.temperature if settings.temperature is not None else 0.7,
            )
        except openai.APIStatusError as e:
            raise self.error_for_status(e.status_code, e.message)
        except openai.APITimeoutError:
            raise ProviderError(
                f"OpenAI request timed out after {self.timeout}s",
                ProviderError.NETWORK, self.type
            )
        except openai.APIConnectionError as e:
            raise ProviderError(f"Cannot reach OpenAI: {e}", ProviderError.NETWORK, self.type)

        if not completion.choices:
            raise ProviderError("OpenAI returned no choices", ProviderError.BACKEND, self.type)

        usage = None
        if completion.usage:
            usage = TokenUsage.from_counts(
                completion.usage.prompt_tokens, completion.usage.completion_tokens
            )

        logger.info(
            f"OpenAI call completed in {time.monotonic() - start:.1f}s",
            extra={"model": completion.model, "total_tokens": usage.total_tokens if usage else None}
        )
        return LLMResponse(
            success=True,
            output=completion.choices[0].message.content or "",
            model=completion.model,
            usage=usage,
        )

    async def _check_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        client = self._client(credentials.api_key)
        try:
            page = await client.models.list()
        except openai.APIStatusError as e:
            raise self.error_for_status(e.status_code, e.message)
        except openai.APIConnectionError as e:
            raise ProviderError(f"Cannot reach OpenAI: {e}", ProviderError.NETWORK, self.type)

        model = credentials.model
        if model is None and page.data:
            model = page.data[0].id
        return CredentialValidation(valid=True, model=model)
