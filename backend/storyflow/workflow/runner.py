# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Sequential runner.

Executes every node of a definition once, in topological order, and stops at
the first failure unless told to continue. It follows no conditional branch,
loop body or loop-back edge; it is what sub-workflows run on.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from storyflow.core.logging import get_engine_logger
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.models import NodeResult, NodeStatus, WorkflowDefinition
from storyflow.workflow.validation import validate_workflow

logger = get_engine_logger("runner")


class WorkflowRunResult(BaseModel):
    """Outcome of one sequential run"""
    instance_id: str
    workflow_id: str
    status: NodeStatus
    results: List[NodeResult] = Field(default_factory=list)
    error: Optional[str] = None


class SequentialWorkflowRunner:
    """Runs nodes one after another through a WorkflowExecutor"""

    def __init__(self, executor):
        self.executor = executor

    async def run(
        self,
        definition: WorkflowDefinition,
        context: ExecutionContext,
        continue_on_error: bool = False,
    ) -> WorkflowRunResult:
        order = validate_workflow(definition)
        results: List[NodeResult] = []
        first_error: Optional[str] = None

        logger.info(
            f"Running workflow '{definition.id}' ({len(order)} nodes)",
            extra={"instance_id": context.instance_id, "workflow_id": definition.id}
        )
        for node_id in order:
            result = await self.executor.execute(definition.get_node(node_id), context)
            results.append(result)
            if result.status == NodeStatus.SUCCESS and context.current_loop is not None \
                    and context.current_loop.loop_node_id == node_id:
                # No body re-entry here; the loop only contributes its bookkeeping
                context.exit_loop()
            if result.status == NodeStatus.FAILED:
                first_error = first_error or f"Node '{node_id}' failed: {result.error}"
                if not continue_on_error:
                    break

        context.finalize()
        return WorkflowRunResult(
            instance_id=context.instance_id,
            workflow_id=definition.id,
            status=NodeStatus.FAILED if first_error else NodeStatus.SUCCESS,
            results=results,
            error=first_error,
        )
