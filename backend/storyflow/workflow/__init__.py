# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow engine.

This package contains:
- models: Node, edge and workflow definitions
- context: Shared run state
- resolver: Path queries, conditions and template substitution
- executor: Single-node execution
- runner: Sequential execution for sub-workflows
"""

from storyflow.workflow.context import ExecutionContext, LoopFrame
from storyflow.workflow.executor import WorkflowExecutor
from storyflow.workflow.exceptions import (
    WorkflowError,
    NodeFailure,
)
from storyflow.workflow.inputs import InputProvider, InputRequest, QueueInputProvider
from storyflow.workflow.loader import WorkflowLoader
from storyflow.workflow.models import (
    Edge,
    FailureKind,
    NodeOutput,
    NodeResult,
    NodeStatus,
    NodeType,
    WorkflowDefinition,
    WorkflowGraph,
    parse_node,
)
from storyflow.workflow.resolver import ContextResolver, get_available_variables
from storyflow.workflow.runner import SequentialWorkflowRunner, WorkflowRunResult
from storyflow.workflow.validation import topological_sort, validate_workflow

__all__ = [
    "ExecutionContext",
    "LoopFrame",
    "WorkflowExecutor",
    "WorkflowError",
    "NodeFailure",
    "InputProvider",
    "InputRequest",
    "QueueInputProvider",
    "WorkflowLoader",
    "Edge",
    "FailureKind",
    "NodeOutput",
    "NodeResult",
    "NodeStatus",
    "NodeType",
    "WorkflowDefinition",
    "WorkflowGraph",
    "parse_node",
    "ContextResolver",
    "get_available_variables",
    "SequentialWorkflowRunner",
    "WorkflowRunResult",
    "topological_sort",
    "validate_workflow",
]
