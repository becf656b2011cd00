# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Context

State of one workflow run. A context is created at run start, owned by that
run only and discarded when it completes; it is never shared between
concurrent runs.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from storyflow.workflow.exceptions import WorkflowError
from storyflow.workflow.models import NodeOutput


@dataclass
class LoopFrame:
    """One active loop on the context's loop stack"""
    loop_node_id: str
    iterator_variable: str
    index_variable: str
    iterations: List[Dict[str, Any]] = field(default_factory=list)
    current_index: Optional[int] = None


class ExecutionContext:
    """
    Execution context for a workflow run.

    Tracks:
    - Variables shared by every node
    - Node outputs (one entry per node id)
    - Completed nodes in completion order
    - Active loop frames for nested loops
    """

    def __init__(
        self,
        instance_id: str,
        workflow_id: str,
        project_folder: Optional[str] = None,
        user_id: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        depth: int = 0,
    ):
        self.instance_id = instance_id
        self.workflow_id = workflow_id
        self.project_folder = project_folder
        self.user_id = user_id
        self.depth = depth
        self.started_at = datetime.now(timezone.utc).isoformat()
        self.completed_at: Optional[str] = None
        self.current_node_id: Optional[str] = None

        self.variables: Dict[str, Any] = dict(variables or {})
        self.node_outputs: Dict[str, NodeOutput] = {}
        self.completed_nodes: List[str] = []
        self.loop_stack: List[LoopFrame] = []

    # -- Node outputs --

    def record_output(self, output: NodeOutput) -> None:
        """
        Store a node output.

        A node id holds one entry; re-running a node (a loop-back retry or a
        loop body pass) replaces it. Inside a loop the output is also kept on
        the active iteration record.
        """
        enclosing = self._enclosing_frame(output.node_id)
        self.node_outputs[output.node_id] = output
        if enclosing is not None and enclosing.current_index is not None:
            record = enclosing.iterations[enclosing.current_index]
            record.setdefault("outputs", {})[output.node_id] = output.output

    def mark_completed(self, node_id: str) -> None:
        if node_id not in self.completed_nodes:
            self.completed_nodes.append(node_id)

    def is_completed(self, node_id: str) -> bool:
        return node_id in self.completed_nodes

    def get_output(self, node_id: str) -> Optional[NodeOutput]:
        return self.node_outputs.get(node_id)

    # -- Loops --

    @property
    def current_loop(self) -> Optional[LoopFrame]:
        return self.loop_stack[-1] if self.loop_stack else None

    def push_loop(self, frame: LoopFrame) -> None:
        self.loop_stack.append(frame)
        self.variables["iterations"] = frame.iterations
        self.variables["iterationCount"] = len(frame.iterations)

    def enter_iteration(self, index: int) -> Dict[str, Any]:
        """Bind the iterator and index variables of iteration ``index`` of the innermost loop."""
        frame = self.current_loop
        if frame is None:
            raise WorkflowError("No active loop to iterate")
        if not 0 <= index < len(frame.iterations):
            raise WorkflowError(
                f"Loop '{frame.loop_node_id}' has no iteration {index} "
                f"({len(frame.iterations)} iterations)"
            )
        frame.current_index = index
        record = frame.iterations[index]
        bindings = {
            frame.iterator_variable: record.get("item"),
            frame.index_variable: index,
        }
        self.variables.update(bindings)
        return bindings

    def exit_loop(self) -> LoopFrame:
        """Pop the innermost loop and restore the enclosing loop's bookkeeping."""
        if not self.loop_stack:
            raise WorkflowError("No active loop to exit")
        frame = self.loop_stack.pop()
        outer = self.current_loop
        if outer is not None:
            self.variables["iterations"] = outer.iterations
            self.variables["iterationCount"] = len(outer.iterations)
            if outer.current_index is not None:
                self.enter_iteration(outer.current_index)
        return frame

    def _enclosing_frame(self, node_id: str) -> Optional[LoopFrame]:
        for frame in reversed(self.loop_stack):
            if frame.loop_node_id != node_id:
                return frame
        return None

    # -- Views --

    def view(self) -> Dict[str, Any]:
        """Read-only shape seen by path queries."""
        return {
            "variables": self.variables,
            "nodeOutputs": {
                node_id: output.model_dump(mode="json", by_alias=True)
                for node_id, output in self.node_outputs.items()
            },
            "completedNodes": list(self.completed_nodes),
            "projectFolder": self.project_folder,
            "instanceId": self.instance_id,
            "workflowId": self.workflow_id,
        }

    def create_child(self, node_id: str, workflow_id: str, variables: Dict[str, Any]) -> "ExecutionContext":
        """Isolated context for a sub-workflow started by ``node_id``."""
        return ExecutionContext(
            instance_id=f"{self.instance_id}-sub-{node_id}",
            workflow_id=workflow_id,
            project_folder=self.project_folder,
            user_id=self.user_id,
            variables=variables,
            depth=self.depth + 1,
        )

    def finalize(self) -> None:
        """Mark execution as complete"""
        self.completed_at = datetime.now(timezone.utc).isoformat()
