# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Storyflow engine configuration.
YAML for settings. Env vars ONLY for secrets.
"""

import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional


DEFAULT_CONFIG_PATH = "configs/engine.yaml"

DEFAULT_PROVIDER_TIMEOUTS: Dict[str, float] = {
    "claude-api": 300.0,
    "openai": 300.0,
    "google": 300.0,
    "openrouter": 120.0,
    "local": 300.0,
    "claude-code-cli": 1800.0,
}


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable engine configuration.
    All values from YAML. No hidden state.
    """

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"

    # -- Providers --
    provider_timeouts: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_PROVIDER_TIMEOUTS)
    )
    llm_max_tokens: int = 4096
    claude_cli_command: str = "claude"
    ollama_endpoint: str = "http://localhost:11434"
    openrouter_referer: str = "https://storyflow.local"
    openrouter_title: str = "Storyflow"

    # -- Workflow --
    workflows_path: str = "workflows"
    user_input_max_attempts: int = 10
    subworkflow_timeout: float = 300.0
    subworkflow_max_depth: int = 5

    def get_provider_timeout(self, provider_type: str) -> float:
        """Timeout in seconds for one provider type."""
        return self.provider_timeouts.get(
            provider_type, DEFAULT_PROVIDER_TIMEOUTS.get(provider_type, 300.0)
        )


# =============================================================================
# SECRETS - The ONLY thing from environment variables
# =============================================================================

def get_anthropic_api_key() -> Optional[str]:
    """API keys cannot be in version control."""
    return os.getenv("ANTHROPIC_API_KEY")


def get_openai_api_key() -> Optional[str]:
    """API keys cannot be in version control."""
    return os.getenv("OPENAI_API_KEY")


def get_google_api_key() -> Optional[str]:
    """API keys cannot be in version control."""
    return os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")


def get_openrouter_api_key() -> Optional[str]:
    """API keys cannot be in version control."""
    return os.getenv("OPENROUTER_API_KEY")


# =============================================================================
# LOADER
# =============================================================================

def load_config(path: str = DEFAULT_CONFIG_PATH) -> Config:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.
    """
    if not Path(path).exists():
        return Config()

    with open(path) as f:
        y = yaml.safe_load(f) or {}

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    timeouts = dict(DEFAULT_PROVIDER_TIMEOUTS)
    timeouts.update({
        str(name): float(seconds)
        for name, seconds in (get(y, "providers", "timeouts") or {}).items()
    })

    return Config(
        # Logging
        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level") or "INFO",
        log_format=get(y, "logging", "format") or "json",

        # Providers
        provider_timeouts=timeouts,
        llm_max_tokens=get(y, "providers", "max_tokens") or 4096,
        claude_cli_command=get(y, "providers", "claude_cli", "command") or "claude",
        ollama_endpoint=get(y, "providers", "ollama", "endpoint") or "http://localhost:11434",
        openrouter_referer=get(y, "providers", "openrouter", "referer") or "https://storyflow.local",
        openrouter_title=get(y, "providers", "openrouter", "title") or "Storyflow",

        # Workflow
        workflows_path=get(y, "workflow", "workflows_path") or "workflows",
        user_input_max_attempts=get(y, "workflow", "user_input", "max_attempts") or 10,
        subworkflow_timeout=get(y, "workflow", "subworkflow", "timeout") or 300.0,
        subworkflow_max_depth=get(y, "workflow", "subworkflow", "max_depth") or 5,
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        config_path = os.getenv("STORYFLOW_CONFIG_PATH", DEFAULT_CONFIG_PATH)
        _config = load_config(config_path)
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
