# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
File operation handler.

Every path is resolved and checked against the project folder before any
I/O happens. Relative paths are relative to the project folder.
"""

import asyncio
import base64
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os

from storyflow.core.errors import ConfigurationError
from storyflow.core.logging import get_engine_logger
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.exceptions import FileSandboxViolation, NodeFailure
from storyflow.workflow.handlers.base import HandlerOutcome, NodeHandler
from storyflow.workflow.models import FileOperationNode, NodeType
from storyflow.workflow.resolver import ContextResolver

logger = get_engine_logger("handlers.file")


class FileOperationHandler(NodeHandler):
    """read / write / copy / move / delete / exists"""

    node_types = (NodeType.FILE,)

    def resolve_path(self, node: FileOperationNode, context: ExecutionContext, raw: str) -> Path:
        """
        Expand placeholders and resolve ``raw`` to an absolute path.

        Raises:
            ConfigurationError: requireProjectFolder is set without a project folder
            FileSandboxViolation: The path leaves the project folder
        """
        expanded = ContextResolver(context).substitute(raw)
        path = Path(expanded).expanduser()
        root: Optional[Path] = Path(context.project_folder).expanduser().resolve() if context.project_folder else None

        if node.require_project_folder and root is None:
            raise ConfigurationError(
                f"File node '{node.id}' requires a project folder but none is set",
                field="requireProjectFolder",
            )
        if not path.is_absolute():
            path = (root or Path.cwd()) / path
        resolved = path.resolve()

        if node.require_project_folder and not resolved.is_relative_to(root):
            raise FileSandboxViolation(node.id, expanded, str(root))
        return resolved

    async def execute(self, node: FileOperationNode, context: ExecutionContext, inputs: Dict[str, Any]) -> HandlerOutcome:
        # Resolve everything first so a violation leaves the filesystem untouched
        source = self.resolve_path(node, context, node.source_path) if node.source_path else None
        target = self.resolve_path(node, context, node.target_path) if node.target_path else None

        operation = getattr(self, f"_{node.operation}")
        output = await operation(node, context, source, target)
        logger.info(
            f"File {node.operation} completed for node '{node.id}'",
            extra={"node_id": node.id, "operation": node.operation}
        )
        return HandlerOutcome(output=output)

    async def _read(self, node, context, source: Path, target) -> Dict[str, Any]:
        if not await aiofiles.os.path.isfile(source):
            raise NodeFailure(node.id, f"File not found: {source}")

        if node.encoding == "base64":
            async with aiofiles.open(source, "rb") as f:
                content = base64.b64encode(await f.read()).decode("ascii")
        else:
            async with aiofiles.open(source, "r", encoding="utf-8") as f:
                content = await f.read()

        context.variables["fileContent"] = content
        return {"operation": "read", "path": str(source), "content": content, "encoding": node.encoding}

    async def _write(self, node, context, source, target: Path) -> Dict[str, Any]:
        content = ContextResolver(context).substitute(node.content or "")
        if not node.overwrite:
            target = await self._available_path(target)
        await aiofiles.os.makedirs(target.parent, exist_ok=True)

        if node.encoding == "base64":
            data = base64.b64decode(content)
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
            size = len(data)
        else:
            async with aiofiles.open(target, "w", encoding="utf-8") as f:
                await f.write(content)
            size = len(content.encode("utf-8"))

        context.variables["filePath"] = str(target)
        return {"operation": "write", "path": str(target), "bytesWritten": size}

    async def _copy(self, node, context, source: Path, target: Path) -> Dict[str, Any]:
        target = await self._prepare_transfer(node, source, target)
        await asyncio.to_thread(shutil.copy2, source, target)
        context.variables["filePath"] = str(target)
        return {"operation": "copy", "source": str(source), "path": str(target)}

    async def _move(self, node, context, source: Path, target: Path) -> Dict[str, Any]:
        target = await self._prepare_transfer(node, source, target)
        await asyncio.to_thread(shutil.move, str(source), str(target))
        context.variables["filePath"] = str(target)
        return {"operation": "move", "source": str(source), "path": str(target)}

    async def _delete(self, node, context, source: Path, target) -> Dict[str, Any]:
        if not await aiofiles.os.path.isfile(source):
            raise NodeFailure(node.id, f"File not found: {source}")
        await aiofiles.os.remove(source)
        return {"operation": "delete", "path": str(source)}

    async def _exists(self, node, context, source: Path, target) -> Dict[str, Any]:
        exists = await aiofiles.os.path.exists(source)
        context.variables["fileExists"] = exists
        return {"operation": "exists", "path": str(source), "exists": exists}

    async def _prepare_transfer(self, node, source: Path, target: Path) -> Path:
        if not await aiofiles.os.path.isfile(source):
            raise NodeFailure(node.id, f"File not found: {source}")
        if not node.overwrite:
            target = await self._available_path(target)
        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        return target

    async def _available_path(self, target: Path) -> Path:
        """name.ext, then name-1.ext, name-2.ext, ... until one is free."""
        candidate = target
        counter = 1
        while await aiofiles.os.path.exists(candidate):
            candidate = target.with_name(f"{target.stem}-{counter}{target.suffix}")
            counter += 1
        return candidate
