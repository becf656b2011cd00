# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Shared fixtures for engine tests.

Provides a provider manager wired to a scripted adapter, an executor and a
run context bound to a temporary project folder.
"""

import os
import sys
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from storyflow.core.config import Config
from storyflow.llm.manager import ProviderManager
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.executor import WorkflowExecutor
from tests.helpers import ScriptedAdapter


@pytest.fixture
def config():
    """Default engine configuration"""
    return Config()


@pytest.fixture
def project_dir():
    """Temporary project folder"""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def scripted_adapter():
    """Scripted adapter with an empty script (always answers "ok")"""
    return ScriptedAdapter()


@pytest.fixture
def provider_manager(scripted_adapter, config):
    """Provider manager that only knows the scripted adapter"""
    return ProviderManager(adapters=[scripted_adapter], config=config)


@pytest.fixture
def executor(provider_manager, config):
    """Executor without input provider or workflow loader"""
    return WorkflowExecutor(provider_manager, config=config)


@pytest.fixture
def context(project_dir):
    """Fresh run context rooted at the temporary project folder"""
    return ExecutionContext("run-1", "novel-pipeline", project_folder=str(project_dir))
