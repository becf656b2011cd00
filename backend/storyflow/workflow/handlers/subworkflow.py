# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Sub-workflow handler.

The child runs in its own ExecutionContext. Simple mode hands it a copy of
the parent variables and merges its variables back on success; advanced mode
hands it only the mapped inputs and relies on output mappings.
"""

import asyncio
import copy
from typing import Any, Dict, Optional

from storyflow.core.errors import ConfigurationError, NotFoundError
from storyflow.core.logging import get_engine_logger
from storyflow.workflow.binding import is_advanced
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.exceptions import SubWorkflowError
from storyflow.workflow.handlers.base import HandlerOutcome, NodeHandler
from storyflow.workflow.loader import WorkflowLoader
from storyflow.workflow.models import NodeStatus, NodeType, SubWorkflowNode
from storyflow.workflow.runner import SequentialWorkflowRunner

logger = get_engine_logger("handlers.subworkflow")


class SubWorkflowHandler(NodeHandler):
    """Nested workflows"""

    node_types = (NodeType.SUBWORKFLOW,)

    def __init__(
        self,
        runner: SequentialWorkflowRunner,
        loader: Optional[WorkflowLoader],
        timeout: float = 300.0,
        max_depth: int = 5,
    ):
        self.runner = runner
        self.loader = loader
        self.timeout = timeout
        self.max_depth = max_depth

    async def execute(self, node: SubWorkflowNode, context: ExecutionContext, inputs: Dict[str, Any]) -> HandlerOutcome:
        if self.loader is None:
            raise ConfigurationError(f"Sub-workflow node '{node.id}' needs a workflow loader")
        if context.depth + 1 > self.max_depth:
            raise ConfigurationError(
                f"Sub-workflow nesting deeper than {self.max_depth} levels at node '{node.id}'"
            )

        try:
            definition = await self.loader.load(node.sub_workflow_id, node.sub_workflow_version)
        except NotFoundError as e:
            raise ConfigurationError(e.message, field="subWorkflowId")

        if is_advanced(node):
            child_variables = copy.deepcopy(inputs)
        else:
            child_variables = copy.deepcopy(context.variables)
        child = context.create_child(node.id, definition.id, child_variables)

        logger.info(
            f"Starting sub-workflow '{definition.id}' v{definition.version} as {child.instance_id}",
            extra={"node_id": node.id, "instance_id": child.instance_id}
        )
        try:
            run = await asyncio.wait_for(
                self.runner.run(definition, child, continue_on_error=node.continue_on_error),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise SubWorkflowError(node.id, f"Sub-workflow '{definition.id}' timed out after {self.timeout}s")

        payload = {
            "subWorkflowId": definition.id,
            "version": definition.version,
            "instanceId": child.instance_id,
            "status": run.status.value,
            "variables": child.variables,
            "completedNodes": list(child.completed_nodes),
        }
        if run.status == NodeStatus.FAILED and not node.continue_on_error:
            raise SubWorkflowError(node.id, f"Sub-workflow '{definition.id}' failed: {run.error}", output=payload)

        if not is_advanced(node):
            context.variables.update(child.variables)
        return HandlerOutcome(output=payload)
