# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Backend adapters, one per provider type tag.
"""

from storyflow.llm.adapters.anthropic_adapter import ClaudeAPIAdapter
from storyflow.llm.adapters.claude_cli_adapter import ClaudeCodeCLIAdapter
from storyflow.llm.adapters.gemini_adapter import GeminiAdapter
from storyflow.llm.adapters.local_adapter import LocalLLMAdapter
from storyflow.llm.adapters.openai_adapter import OpenAIAdapter
from storyflow.llm.adapters.openrouter_adapter import OpenRouterAdapter

DEFAULT_ADAPTERS = (
    ClaudeCodeCLIAdapter,
    ClaudeAPIAdapter,
    OpenAIAdapter,
    GeminiAdapter,
    OpenRouterAdapter,
    LocalLLMAdapter,
)

__all__ = [
    "ClaudeAPIAdapter",
    "ClaudeCodeCLIAdapter",
    "GeminiAdapter",
    "LocalLLMAdapter",
    "OpenAIAdapter",
    "OpenRouterAdapter",
    "DEFAULT_ADAPTERS",
]
