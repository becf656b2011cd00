# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Provider data model.

Provider configurations are persisted inside workflow definitions with
camelCase keys; the models accept both spellings.
"""

from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ProviderType(str, Enum):
    """Registered backend type tags"""
    CLAUDE_CODE_CLI = "claude-code-cli"
    CLAUDE_API = "claude-api"
    OPENAI = "openai"
    GOOGLE = "google"
    OPENROUTER = "openrouter"
    LOCAL = "local"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProviderSettings(_CamelModel):
    """Backend-specific settings of a provider"""
    model: Optional[str] = Field(None, description="Model identifier or alias")
    api_key: Optional[str] = Field(None, description="Inline API key (prefer the credential store)")
    max_tokens: Optional[int] = Field(None, gt=0)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    endpoint: Optional[str] = Field(None, description="Base URL for local servers")
    api_format: Optional[Literal["ollama", "openai-compatible"]] = None
    output_format: Optional[Literal["text", "json"]] = None


class LLMProviderConfig(_CamelModel):
    """
    A named backend plus its configuration.

    Example:
    {
        "id": "claude-main",
        "name": "Claude Sonnet",
        "type": "claude-api",
        "config": {"model": "claude-sonnet-4-5", "maxTokens": 4096}
    }
    """
    id: str
    name: str
    type: ProviderType
    config: ProviderSettings = Field(default_factory=ProviderSettings)


class ProviderCredentials(_CamelModel):
    """Credentials resolved for one call. Never logged."""
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    api_format: Optional[Literal["ollama", "openai-compatible"]] = None
    model: Optional[str] = None

    @field_validator("api_key", "endpoint", mode="before")
    @classmethod
    def normalize_blank(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    def __repr__(self) -> str:
        masked = "***" if self.api_key else None
        return f"ProviderCredentials(api_key={masked!r}, endpoint={self.endpoint!r})"

    __str__ = __repr__


class TokenUsage(BaseModel):
    """Prompt/completion/total token counts"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(cls, prompt: Optional[int], completion: Optional[int]) -> "TokenUsage":
        prompt = prompt or 0
        completion = completion or 0
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion)


class LLMRequest(BaseModel):
    """One prompt sent to one provider"""
    provider: LLMProviderConfig
    credentials: ProviderCredentials = Field(default_factory=ProviderCredentials)
    prompt: str
    system_prompt: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict, description="Context slice visible to the node")
    skill: Optional[str] = None


class LLMResponse(BaseModel):
    """Normalized backend reply. Failures are data, never exceptions."""
    success: bool
    output: str = ""
    model: Optional[str] = None
    usage: Optional[TokenUsage] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def failure(cls, error: str, kind: str) -> "LLMResponse":
        return cls(success=False, error=error, error_kind=kind)


class CredentialValidation(BaseModel):
    """Verdict of a credential check"""
    valid: bool
    model: Optional[str] = None
    error: Optional[str] = None
