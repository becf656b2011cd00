# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Executor

Executes exactly one node per call: dispatches on the node's type tag,
applies the node's binding mode, records the output on the context and
returns a NodeResult. It never reads edges or picks the next node, and it
never retries; both are up to the caller's graph walker.

Ordinary failures (provider errors, gate rejections, loop limits, sandbox
violations, configuration errors, timeouts) come back as failed results.
Only malformed definitions and a second write of a successful node output
raise.
"""

import asyncio
import copy
from typing import Any, Awaitable, Callable, Dict, Optional

from storyflow.core.config import Config, get_config
from storyflow.core.errors import ConfigurationError, ValidationError, sanitize_error_for_user
from storyflow.core.logging import get_engine_logger, log_event
from storyflow.llm.manager import ProviderManager
from storyflow.workflow.binding import apply_input_mappings, apply_output_mappings, is_advanced
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.exceptions import (
    ApprovalRejected,
    FileSandboxViolation,
    GateConditionFailure,
    LoopSafetyLimit,
    NodeFailure,
    ProviderCallFailure,
    UserInputError,
)
from storyflow.workflow.handlers import (
    AgentHandler,
    ConditionalHandler,
    FileOperationHandler,
    HandlerOutcome,
    LoopHandler,
    NodeHandler,
    SubWorkflowHandler,
    UserInputHandler,
)
from storyflow.workflow.inputs import InputProvider, InputRequest
from storyflow.workflow.loader import WorkflowLoader
from storyflow.workflow.models import FailureKind, NodeOutput, NodeResult, NodeStatus, NodeType
from storyflow.workflow.resolver import ContextResolver
from storyflow.workflow.runner import SequentialWorkflowRunner

logger = get_engine_logger("executor")

UpdateCallback = Callable[[Dict[str, Any]], Awaitable[None]]

FAILURE_KINDS = (
    (GateConditionFailure, FailureKind.GATE_CONDITION),
    (LoopSafetyLimit, FailureKind.LOOP_SAFETY_LIMIT),
    (FileSandboxViolation, FailureKind.FILE_SANDBOX),
    (UserInputError, FailureKind.USER_INPUT),
    (ApprovalRejected, FailureKind.APPROVAL_REJECTED),
)


def failure_kind(error: NodeFailure) -> FailureKind:
    if isinstance(error, ProviderCallFailure):
        if error.provider_error_kind == "configuration":
            return FailureKind.CONFIGURATION
        return FailureKind.PROVIDER
    for error_class, kind in FAILURE_KINDS:
        if isinstance(error, error_class):
            return kind
    return FailureKind.EXECUTION


class WorkflowExecutor:
    """
    Single-node executor.

    Example:
        executor = WorkflowExecutor(ProviderManager(), input_provider=QueueInputProvider())
        context = ExecutionContext("run-1", "novel-pipeline", project_folder="/books/one")
        result = await executor.execute(node, context)
        if result.error_kind == FailureKind.GATE_CONDITION:
            ...  # follow the loop-back edge
    """

    def __init__(
        self,
        provider_manager: Optional[ProviderManager] = None,
        input_provider: Optional[InputProvider] = None,
        workflow_loader: Optional[WorkflowLoader] = None,
        update_callback: Optional[UpdateCallback] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.provider_manager = provider_manager or ProviderManager(config=self.config)
        self.input_provider = input_provider
        self.workflow_loader = workflow_loader
        self.update_callback = update_callback

        handlers = [
            AgentHandler(self.provider_manager),
            ConditionalHandler(),
            LoopHandler(),
            FileOperationHandler(),
            UserInputHandler(input_provider, max_attempts=self.config.user_input_max_attempts),
            SubWorkflowHandler(
                SequentialWorkflowRunner(self),
                workflow_loader,
                timeout=self.config.subworkflow_timeout,
                max_depth=self.config.subworkflow_max_depth,
            ),
        ]
        self.handlers: Dict[NodeType, NodeHandler] = {}
        for handler in handlers:
            for node_type in handler.node_types:
                self.handlers[node_type] = handler

    async def execute(self, node, context: ExecutionContext) -> NodeResult:
        """
        Execute one node against ``context``.

        Mutates ``context.variables`` and ``context.node_outputs``; the
        returned result carries a copy of the variables this node changed.

        Raises:
            ValidationError: Node type has no handler
        """
        context.current_node_id = node.id
        variables_before = copy.deepcopy(context.variables)
        await self._send_update("node-started", {"node_id": node.id, "node_type": node.type})

        try:
            outcome = await self._run(node, context)
        except NodeFailure as e:
            return await self._fail(node, context, variables_before, failure_kind(e), e.message, e.output)
        except ConfigurationError as e:
            return await self._fail(node, context, variables_before, FailureKind.CONFIGURATION, e.message)
        except asyncio.TimeoutError:
            return await self._fail(
                node, context, variables_before, FailureKind.TIMEOUT,
                f"Node '{node.id}' exceeded its timeout of {node.timeout_ms}ms",
            )
        except ValidationError:
            raise
        except Exception as e:
            logger.exception(f"Node '{node.id}' raised unexpectedly")
            return await self._fail(
                node, context, variables_before, FailureKind.EXECUTION, sanitize_error_for_user(e)
            )

        context.record_output(NodeOutput(
            node_id=node.id, node_name=node.name, status=NodeStatus.SUCCESS, output=outcome.output
        ))
        context.mark_completed(node.id)

        log_event(
            logger, "Node completed",
            node_id=node.id, node_type=node.type, instance_id=context.instance_id, skipped=outcome.skipped,
        )
        await self._send_update("node-completed", {"node_id": node.id, "node_type": node.type})
        return NodeResult(
            node_id=node.id,
            status=NodeStatus.SUCCESS,
            variables=self._delta(variables_before, context.variables),
            output=outcome.output,
            usage=outcome.usage,
            skipped=outcome.skipped,
        )

    async def _run(self, node, context: ExecutionContext) -> HandlerOutcome:
        if node.skip_condition and ContextResolver(context).evaluate(node.skip_condition):
            logger.info(f"Skipping node '{node.id}': {node.skip_condition}")
            return HandlerOutcome(output={"skipped": True}, skipped=True)

        if node.requires_approval:
            await self._request_approval(node, context)

        handler = self.handlers.get(NodeType(node.type))
        if handler is None:
            raise ValidationError(f"No handler for node type '{node.type}'", field="type")

        inputs = apply_input_mappings(node, context) if is_advanced(node) else {}

        run = handler.execute(node, context, inputs)
        if node.timeout_ms:
            outcome = await asyncio.wait_for(run, timeout=node.timeout_ms / 1000)
        else:
            outcome = await run

        if is_advanced(node):
            apply_output_mappings(node, context, outcome.output)
        return outcome

    async def _request_approval(self, node, context: ExecutionContext) -> None:
        if self.input_provider is None:
            raise ConfigurationError(f"Node '{node.id}' requires approval but no input provider is configured")
        approved = await self.input_provider.request_approval(InputRequest(
            kind="approval",
            node_id=node.id,
            node_name=node.name,
            instance_id=context.instance_id,
            prompt=f"Approve running '{node.name}'?",
        ))
        if not approved:
            raise ApprovalRejected(node.id)

    async def _fail(
        self,
        node,
        context: ExecutionContext,
        variables_before: Dict[str, Any],
        kind: FailureKind,
        message: str,
        output: Any = None,
    ) -> NodeResult:
        context.record_output(NodeOutput(
            node_id=node.id, node_name=node.name, status=NodeStatus.FAILED, output=output
        ))
        log_event(
            logger, "Node failed", level="WARNING",
            node_id=node.id, node_type=node.type, instance_id=context.instance_id,
            error_kind=kind.value, error=message,
        )
        await self._send_update("node-failed", {
            "node_id": node.id, "node_type": node.type, "error_kind": kind.value, "error": message,
        })
        return NodeResult(
            node_id=node.id,
            status=NodeStatus.FAILED,
            variables=self._delta(variables_before, context.variables),
            output=output,
            error=message,
            error_kind=kind,
        )

    @staticmethod
    def _delta(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
        changed = {
            key: value for key, value in after.items()
            if key not in before or before[key] != value
        }
        return copy.deepcopy(changed)

    async def _send_update(self, update_type: str, data: Dict[str, Any]) -> None:
        """Send real-time update via callback"""
        if self.update_callback is None:
            return
        try:
            await self.update_callback({"type": update_type, **data})
        except Exception:
            logger.exception(f"Executor update callback failed for '{update_type}'")
