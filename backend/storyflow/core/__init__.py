# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities shared by the workflow and provider packages.

This package contains:
- config: Configuration management
- errors: Custom exceptions
- logging: Structured logging
"""

from storyflow.core.config import get_config, Config
from storyflow.core.errors import (
    StoryflowError,
    NotFoundError,
    ValidationError,
    ConfigurationError,
    ProviderError,
)
from storyflow.core.logging import get_logger, get_engine_logger

__all__ = [
    "get_config",
    "Config",
    "StoryflowError",
    "NotFoundError",
    "ValidationError",
    "ConfigurationError",
    "ProviderError",
    "get_logger",
    "get_engine_logger",
]
