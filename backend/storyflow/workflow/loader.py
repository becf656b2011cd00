# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Loader - Load and save workflow definitions from text files.

Directory layout:
    workflows/
    ├── novel-pipeline.json          # latest version
    ├── novel-pipeline@1.2.0.json    # pinned version
    └── world-builder.yaml
"""

import json
from pathlib import Path
from typing import List, Optional

import aiofiles
import yaml

from storyflow.core.config import get_config
from storyflow.core.errors import NotFoundError
from storyflow.core.logging import get_engine_logger
from storyflow.workflow.models import WorkflowDefinition

logger = get_engine_logger("loader")

EXTENSIONS = (".json", ".yaml", ".yml")


class WorkflowLoader:
    """Load workflows from the filesystem (text-based configuration)."""

    def __init__(self, base_dir: Optional[str] = None):
        if base_dir is None:
            base_dir = get_config().workflows_path
        self.base_dir = Path(base_dir)

    def _candidates(self, workflow_id: str, version: str) -> List[Path]:
        stems = [f"{workflow_id}@{version}", workflow_id] if version != "latest" else [workflow_id]
        return [self.base_dir / f"{stem}{ext}" for stem in stems for ext in EXTENSIONS]

    async def load(self, workflow_id: str, version: str = "latest") -> WorkflowDefinition:
        """
        Load a workflow by id.

        Args:
            workflow_id: Workflow identifier (file stem)
            version: "latest" or an exact version string

        Returns:
            Parsed workflow definition

        Raises:
            NotFoundError: If no file matches, or the version differs
            pydantic.ValidationError: If the file is not a valid definition
        """
        for path in self._candidates(workflow_id, version):
            if not path.exists():
                continue

            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                text = await f.read()
            data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
            definition = WorkflowDefinition.model_validate(data)

            if version != "latest" and definition.version != version:
                logger.info(f"{path.name} is version {definition.version}, wanted {version}")
                continue
            return definition

        raise NotFoundError("Workflow", f"{workflow_id}@{version}")

    async def save(self, definition: WorkflowDefinition, pin_version: bool = False) -> str:
        """
        Save a workflow as JSON.

        Args:
            definition: Workflow definition
            pin_version: Also write to ``<id>@<version>.json``

        Returns:
            Path of the written file
        """
        self.base_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{definition.id}@{definition.version}" if pin_version else definition.id
        workflow_path = self.base_dir / f"{stem}.json"

        async with aiofiles.open(workflow_path, "w", encoding="utf-8") as f:
            await f.write(definition.model_dump_json(by_alias=True, indent=2))

        return str(workflow_path)
