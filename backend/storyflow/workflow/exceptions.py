# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Exceptions

Handlers raise these; the executor turns every NodeFailure into a failed
NodeResult.
"""

from typing import Any, List, Optional

from storyflow.core.errors import StoryflowError


class WorkflowError(StoryflowError):
    """Base exception for workflow execution"""
    pass


class NodeFailure(WorkflowError):
    """A node ended in an ordinary, reportable failure"""

    def __init__(self, node_id: str, message: str, output: Any = None, details: Optional[dict] = None):
        self.node_id = node_id
        self.output = output
        super().__init__(message, details=details)


class ProviderCallFailure(NodeFailure):
    """The provider manager returned an unsuccessful response"""

    def __init__(self, node_id: str, message: str, provider_error_kind: Optional[str]):
        super().__init__(node_id, message, details={"provider_error_kind": provider_error_kind})
        self.provider_error_kind = provider_error_kind


class GateConditionFailure(NodeFailure):
    """Gate predicate evaluated false on the node's output"""

    def __init__(self, node_id: str, condition: str, output: Any):
        super().__init__(
            node_id,
            f"Gate condition not met: {condition}",
            output=output,
            details={"condition": condition},
        )
        self.condition = condition


class LoopSafetyLimit(NodeFailure):
    """Loop would run past maxIterations"""

    def __init__(self, node_id: str, max_iterations: int, iterations: List[dict]):
        super().__init__(
            node_id,
            f"Loop exceeded maximum iterations ({max_iterations})",
            output={"iterations": iterations, "iterationCount": len(iterations)},
            details={"max_iterations": max_iterations},
        )
        self.max_iterations = max_iterations
        self.iterations = iterations


class FileSandboxViolation(NodeFailure):
    """Resolved path escapes the project folder"""

    def __init__(self, node_id: str, path: str, root: str):
        super().__init__(
            node_id,
            f"Path '{path}' resolves outside the project folder '{root}'",
            details={"path": path, "root": root},
        )
        self.path = path
        self.root = root


class UserInputError(NodeFailure):
    """No valid answer was given"""
    pass


class ApprovalRejected(NodeFailure):
    """Approval was requested and refused"""

    def __init__(self, node_id: str, reason: Optional[str] = None):
        message = f"Node '{node_id}' was not approved"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(node_id, message)


class SubWorkflowError(NodeFailure):
    """Child workflow failed or timed out"""
    pass
