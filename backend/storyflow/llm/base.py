# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Provider adapter contract.

Each backend gets one ProviderAdapter subclass. Subclasses implement
``_generate`` and ``_check_credentials`` and raise ProviderError with a
category; the public ``execute`` and ``validate_credentials`` turn those
into data at the adapter boundary.
"""

from abc import ABC, abstractmethod
from typing import Optional

from storyflow.core.config import Config, get_config
from storyflow.core.errors import ProviderError
from storyflow.core.logging import get_engine_logger
from storyflow.llm.models import (
    CredentialValidation,
    LLMRequest,
    LLMResponse,
    ProviderCredentials,
    ProviderType,
)

logger = get_engine_logger("providers")


class ProviderAdapter(ABC):
    """Uniform interface over one generation backend"""

    provider_type: ProviderType
    stream_support: bool = False
    requires_credentials: bool = True

    def __init__(self, timeout: Optional[float] = None, config: Optional[Config] = None):
        self.config = config or get_config()
        self.timeout = timeout or self.config.get_provider_timeout(self.provider_type.value)

    @property
    def type(self) -> str:
        return self.provider_type.value

    async def execute(self, request: LLMRequest) -> LLMResponse:
        """Run one prompt. Categorized backend failures come back as data."""
        try:
            return await self._generate(request)
        except ProviderError as e:
            logger.warning(
                f"{self.type} call failed ({e.kind}): {e.message}",
                extra={"provider_type": self.type, "error_kind": e.kind}
            )
            return LLMResponse.failure(e.message, e.kind)

    async def validate_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        """Read-only credential check; safe to repeat."""
        if self.requires_credentials and not credentials.api_key:
            return CredentialValidation(valid=False, error="API key is required")
        try:
            return await self._check_credentials(credentials)
        except ProviderError as e:
            return CredentialValidation(valid=False, error=e.message)

    @abstractmethod
    async def _generate(self, request: LLMRequest) -> LLMResponse:
        ...

    @abstractmethod
    async def _check_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        ...

    def resolve_max_tokens(self, request: LLMRequest) -> int:
        return request.provider.config.max_tokens or self.config.llm_max_tokens

    def error_for_status(self, status: int, message: str) -> ProviderError:
        """Map an HTTP status from any backend to a ProviderError category."""
        if status in (401, 403):
            return ProviderError(
                f"Invalid API key or insufficient permissions: {message}",
                ProviderError.AUTHENTICATION, self.type
            )
        if status == 429:
            return ProviderError(
                f"Rate limit exceeded. Please try again later: {message}",
                ProviderError.RATE_LIMIT, self.type
            )
        if status >= 500:
            return ProviderError(
                f"Service error ({status}). Please try again later: {message}",
                ProviderError.BACKEND, self.type
            )
        return ProviderError(f"Request failed ({status}): {message}", ProviderError.BACKEND, self.type)
