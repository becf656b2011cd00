# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tests for configuration loading
"""

import os
import tempfile

import pytest

from storyflow.core.config import (
    Config,
    get_google_api_key,
    load_config,
    reload_config,
    DEFAULT_PROVIDER_TIMEOUTS,
)


ENGINE_YAML = """
logging:
  level: DEBUG
  format: text
providers:
  max_tokens: 8192
  timeouts:
    claude-code-cli: 3600
  ollama:
    endpoint: http://gpu-box:11434
workflow:
  workflows_path: /srv/workflows
  user_input:
    max_attempts: 3
  subworkflow:
    max_depth: 2
"""


@pytest.fixture
def yaml_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "engine.yaml")
        with open(path, "w") as f:
            f.write(ENGINE_YAML)
        yield path


class TestLoadConfig:
    """Test load_config"""

    def test_missing_file_gives_defaults(self):
        """Should return defaults when the file does not exist"""
        config = load_config("/nonexistent/engine.yaml")
        assert config == Config()

    def test_reads_yaml(self, yaml_path, monkeypatch):
        """Should read values from YAML and keep defaults for the rest"""
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = load_config(yaml_path)

        assert config.log_level == "DEBUG"
        assert config.log_format == "text"
        assert config.llm_max_tokens == 8192
        assert config.ollama_endpoint == "http://gpu-box:11434"
        assert config.workflows_path == "/srv/workflows"
        assert config.user_input_max_attempts == 3
        assert config.subworkflow_max_depth == 2
        assert config.subworkflow_timeout == 300.0
        assert config.claude_cli_command == "claude"

    def test_timeouts_merged(self, yaml_path):
        """Should override only the listed provider timeouts"""
        config = load_config(yaml_path)

        assert config.get_provider_timeout("claude-code-cli") == 3600.0
        assert config.get_provider_timeout("openrouter") == DEFAULT_PROVIDER_TIMEOUTS["openrouter"]

    def test_log_level_env_override(self, yaml_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        assert load_config(yaml_path).log_level == "WARNING"

    def test_empty_file(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as f:
            path = f.name
        try:
            assert load_config(path) == Config()
        finally:
            os.unlink(path)

    def test_reload_reads_env_path(self, yaml_path, monkeypatch):
        """Should reload from STORYFLOW_CONFIG_PATH"""
        monkeypatch.setenv("STORYFLOW_CONFIG_PATH", yaml_path)
        try:
            assert reload_config().workflows_path == "/srv/workflows"
        finally:
            monkeypatch.delenv("STORYFLOW_CONFIG_PATH")
            reload_config()

    def test_config_is_frozen(self):
        config = Config()
        with pytest.raises(Exception):
            config.log_level = "DEBUG"


class TestSecrets:
    """API keys only come from the environment"""

    def test_google_key_alias(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        assert get_google_api_key() == "gemini-key"

    def test_unknown_provider_timeout(self):
        assert Config().get_provider_timeout("something-new") == 300.0
