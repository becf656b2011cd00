# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
LLM provider layer: adapter contract, credential resolution and the
provider manager.
"""

from storyflow.llm.base import ProviderAdapter
from storyflow.llm.credentials import CredentialStore
from storyflow.llm.manager import ProviderManager, EXECUTION_COMPLETE, EXECUTION_ERROR
from storyflow.llm.models import (
    CredentialValidation,
    LLMProviderConfig,
    LLMRequest,
    LLMResponse,
    ProviderCredentials,
    ProviderSettings,
    ProviderType,
    TokenUsage,
)

__all__ = [
    "ProviderAdapter",
    "CredentialStore",
    "ProviderManager",
    "EXECUTION_COMPLETE",
    "EXECUTION_ERROR",
    "CredentialValidation",
    "LLMProviderConfig",
    "LLMRequest",
    "LLMResponse",
    "ProviderCredentials",
    "ProviderSettings",
    "ProviderType",
    "TokenUsage",
]
