# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Claude API adapter (anthropic SDK).
"""

import time
from typing import Callable, Optional

import anthropic
from anthropic import AsyncAnthropic

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

logger = get_engine_logger("providers.claude_api")

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# Short names used in saved workflows
MODEL_ALIASES = {
    "claude-sonnet-4-5": "claude-sonnet-4-5-20250929",
    "claude-opus-4": "claude-opus-4-20250514",
}


class ClaudeAPIAdapter(ProviderAdapter):
    """Anthropic Messages API"""

    provider_type = ProviderType.CLAUDE_API
    stream_support = True

    def __init__(self, client_factory: Callable[..., AsyncAnthropic] = AsyncAnthropic, **kwargs):
        super().__init__(**kwargs)
        self.client_factory = client_factory

    def _client(self, api_key: str) -> AsyncAnthropic:
        return self.client_factory(api_key=api_key, timeout=self.timeout)

    @staticmethod
    def resolve_model(model: Optional[str]) -> str:
        if not model:
            return DEFAULT_MODEL
        return MODEL_ALIASES.get(model, model)

    async def _generate(self, request: LLMRequest) -> LLMResponse:
        settings = request.provider.config
        model = self.resolve_model(settings.model)
        client = self._client(request.credentials.api_key)

        params = {
            "model": model,
            "max_tokens": self.resolve_max_tokens(request),
            "temperature": settings.temperature if settings.temperature is not None else 1.0,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            params["system"] = request.system_prompt

        start = time.monotonic()
        try:
            response = await client.messages.create(**params)
        except anthropic.APIStatusError as e:
            raise self._map_status_error(e)
        except anthropic.APITimeoutError:
            raise ProviderError(
                f"Claude API request timed out after {self.timeout}s",
                ProviderError.NETWORK, self.type
            )
        except anthropic.APIConnectionError as e:
            raise ProviderError(f"Cannot reach Claude API: {e}", ProviderError.NETWORK, self.type)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = TokenUsage.from_counts(response.usage.input_tokens, response.usage.output_tokens)

        logger.info(
            f"Claude API call completed in {time.monotonic() - start:.1f}s",
            extra={"model": response.model, "total_tokens": usage.total_tokens}
        )
        return LLMResponse(success=True, output=text, model=response.model, usage=usage)

    async def _check_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        client = self._client(credentials.api_key)
        try:
            page = await client.models.list(limit=1)
        except anthropic.APIStatusError as e:
            raise self._map_status_error(e)
        except anthropic.APIConnectionError as e:
            raise ProviderError(f"Cannot reach Claude API: {e}", ProviderError.NETWORK, self.type)

        model = self.resolve_model(credentials.model) if credentials.model else None
        if model is None and page.data:
            model = page.data[0].id
        return CredentialValidation(valid=True, model=model)

    def _map_status_error(self, e: "anthropic.APIStatusError") -> ProviderError:
        # 529 is Anthropic's "overloaded"
        if e.status_code == 529:
            return ProviderError(
                "Claude API is overloaded. Please try again later.",
                ProviderError.BACKEND, self.type
            )
        return self.error_for_status(e.status_code, e.message)
