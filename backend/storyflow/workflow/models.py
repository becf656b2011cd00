# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow data model.

Nodes are a discriminated union on ``type``: each handler receives only the
fields valid for its kind. The persisted format uses camelCase keys; fields
accept both spellings.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

from storyflow.llm.models import LLMProviderConfig, TokenUsage


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _WorkflowModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NodeType(str, Enum):
    """Node type tags"""
    PLANNING = "planning"
    WRITING = "writing"
    GATE = "gate"
    CONDITIONAL = "conditional"
    LOOP = "loop"
    FILE = "file"
    USER_INPUT = "user-input"
    SUBWORKFLOW = "subworkflow"


AGENT_NODE_TYPES = (NodeType.PLANNING, NodeType.WRITING, NodeType.GATE)


class EdgeType(str, Enum):
    DEFAULT = "default"
    CONDITIONAL = "conditional"
    LOOP_BACK = "loop-back"


class NodeStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Why a node result is ``failed``"""
    PROVIDER = "provider_error"
    GATE_CONDITION = "gate_condition_failure"
    LOOP_SAFETY_LIMIT = "loop_safety_limit"
    FILE_SANDBOX = "file_sandbox_violation"
    CONFIGURATION = "configuration_error"
    USER_INPUT = "user_input_error"
    APPROVAL_REJECTED = "approval_rejected"
    TIMEOUT = "timeout"
    EXECUTION = "execution_error"


# =============================================================================
# BINDING
# =============================================================================

class ContextMapping(_WorkflowModel):
    """
    One path query bound to one variable.

    Example:
    {"source": "planning-1.output.characters[0].name", "target": "protagonistName"}
    """
    source: str = Field(..., min_length=1, description="Path query")
    target: str = Field(..., min_length=1, description="Variable name")
    node_id: Optional[str] = Field(None, description="Scope the source to one node's output")


class ContextConfig(_WorkflowModel):
    """Binding mode of a node"""
    mode: Literal["simple", "advanced"] = "simple"
    inputs: List[ContextMapping] = Field(default_factory=list)
    outputs: List[ContextMapping] = Field(default_factory=list)


class Position(BaseModel):
    """Canvas position. Layout only."""
    x: float = 0
    y: float = 0


# =============================================================================
# NODES
# =============================================================================

class BaseNode(_WorkflowModel):
    """Fields shared by every node kind"""
    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    position: Position = Field(default_factory=Position)
    requires_approval: bool = False
    context_config: ContextConfig = Field(default_factory=ContextConfig)
    skip_condition: Optional[str] = Field(None, description="Skip the node when this evaluates true")
    timeout_ms: Optional[int] = Field(None, gt=0)


class AgentNode(BaseNode):
    """
    Planning, writing or gate step backed by an LLM provider.

    Example:
    {
        "id": "review-1",
        "type": "gate",
        "name": "Quality review",
        "provider": {"id": "claude", "name": "Claude", "type": "claude-api"},
        "agent": "editor",
        "prompt": "Score the chapter from 0 to 100 and reply as JSON",
        "gate": true,
        "gateCondition": "score >= 80"
    }
    """
    type: Literal["planning", "writing", "gate"]
    provider: LLMProviderConfig
    agent: str
    skill: Optional[str] = None
    prompt: Optional[str] = None
    system_prompt: Optional[str] = None
    gate: bool = False
    gate_condition: Optional[str] = None
    output_variable: Optional[str] = None

    @model_validator(mode="after")
    def check_gate(self):
        if self.type == NodeType.GATE.value:
            self.gate = True
        if self.gate and not self.gate_condition:
            raise ValueError(f"Gate node '{self.id}' requires gateCondition")
        return self


class ConditionalNode(BaseNode):
    """
    Writes the boolean outcome of ``condition`` to ``variables.conditionResult``.

    Example:
    {"id": "check", "type": "conditional", "name": "Needs revision?",
     "condition": "$.review.output.score < 70", "conditionType": "jsonpath"}
    """
    type: Literal["conditional"]
    condition: str = Field(..., min_length=1)
    condition_type: Literal["jsonpath", "expression"] = "jsonpath"

    @field_validator("condition_type", mode="before")
    @classmethod
    def accept_legacy_type(cls, v):
        # Older saved graphs call free-form expressions "javascript"
        return "expression" if v == "javascript" else v


class LoopNode(BaseNode):
    """
    Iteration bookkeeping for an externally driven loop body.

    Example:
    {"id": "chapters", "type": "loop", "name": "Each chapter",
     "loopType": "forEach", "collection": "$.outline.output.chapters",
     "iteratorVariable": "chapter", "indexVariable": "chapterIndex"}
    """
    type: Literal["loop"]
    loop_type: Literal["forEach", "count", "while"]
    collection: Optional[str] = None
    count: Optional[int] = None
    while_condition: Optional[str] = None
    iterator_variable: str = "item"
    index_variable: str = "index"
    max_iterations: Optional[int] = Field(None, gt=0)


class FileOperationNode(BaseNode):
    """
    Filesystem step bounded by the project folder.

    Example:
    {"id": "save", "type": "file", "name": "Save chapter", "operation": "write",
     "targetPath": "chapters/{{chapterIndex}}.md", "content": "{{output}}",
     "requireProjectFolder": true}
    """
    type: Literal["file"]
    operation: Literal["read", "write", "copy", "move", "delete", "exists"]
    source_path: Optional[str] = None
    target_path: Optional[str] = None
    content: Optional[str] = None
    encoding: Literal["utf-8", "base64"] = "utf-8"
    overwrite: bool = True
    require_project_folder: bool = True

    @model_validator(mode="after")
    def check_paths(self):
        needs_source = self.operation in ("read", "copy", "move", "delete", "exists")
        needs_target = self.operation in ("write", "copy", "move")
        if needs_source and not self.source_path:
            raise ValueError(f"File operation '{self.operation}' requires sourcePath")
        if needs_target and not self.target_path:
            raise ValueError(f"File operation '{self.operation}' requires targetPath")
        return self


class InputValidation(_WorkflowModel):
    pattern: Optional[str] = None
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    min: Optional[float] = None
    max: Optional[float] = None


class InputOption(BaseModel):
    label: str
    value: Any


class UserInputNode(BaseNode):
    """
    Pause for a human answer.

    Example:
    {"id": "genre", "type": "user-input", "name": "Genre", "prompt": "Which genre?",
     "inputType": "select", "options": [{"label": "Mystery", "value": "mystery"}]}
    """
    type: Literal["user-input"]
    prompt: str
    input_type: Literal["text", "textarea", "number", "select"] = "text"
    required: bool = True
    validation: Optional[InputValidation] = None
    options: List[InputOption] = Field(default_factory=list)
    default_value: Any = None
    output_variable: Optional[str] = None

    @model_validator(mode="after")
    def check_options(self):
        if self.input_type == "select" and not self.options:
            raise ValueError(f"Select input '{self.id}' requires options")
        return self


class SubWorkflowNode(BaseNode):
    """
    Run another saved workflow in an isolated child context.

    Example:
    {"id": "worldbuild", "type": "subworkflow", "name": "World building",
     "subWorkflowId": "world-builder", "subWorkflowVersion": "latest"}
    """
    type: Literal["subworkflow"]
    sub_workflow_id: str = Field(..., min_length=1)
    sub_workflow_version: str = "latest"
    continue_on_error: bool = False


WorkflowNode = Annotated[
    Union[AgentNode, ConditionalNode, LoopNode, FileOperationNode, UserInputNode, SubWorkflowNode],
    Field(discriminator="type"),
]

_node_adapter = TypeAdapter(WorkflowNode)


def parse_node(node_data: Dict[str, Any]):
    """
    Parse node data into the matching node class.

    Raises:
        pydantic.ValidationError: Unknown type tag or invalid fields
    """
    return _node_adapter.validate_python(node_data)


# =============================================================================
# GRAPH
# =============================================================================

class Edge(_WorkflowModel):
    """Graph metadata for the walker. The executor never reads edges."""
    id: str
    source: str
    target: str
    type: EdgeType = EdgeType.DEFAULT
    label: Optional[str] = None
    condition: Optional[str] = None


class WorkflowGraph(_WorkflowModel):
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_references(self):
        node_ids = [node.id for node in self.nodes]
        if len(node_ids) != len(set(node_ids)):
            duplicates = sorted({nid for nid in node_ids if node_ids.count(nid) > 1})
            raise ValueError(f"Duplicate node IDs found: {duplicates}")

        node_id_set = set(node_ids)
        for edge in self.edges:
            for end in (edge.source, edge.target):
                if end not in node_id_set:
                    raise ValueError(f"Edge '{edge.id}' references non-existent node: {end}")
        return self


class WorkflowDefinition(_WorkflowModel):
    """
    Persisted workflow.

    Example:
    {
        "id": "novel-pipeline",
        "name": "Novel pipeline",
        "version": "1.0.0",
        "graph": {"nodes": [...], "edges": [...]}
    }
    """
    id: str
    name: str
    version: str = "1.0.0"
    description: str = ""
    graph: WorkflowGraph = Field(default_factory=WorkflowGraph)

    def get_node(self, node_id: str):
        for node in self.graph.nodes:
            if node.id == node_id:
                return node
        return None


# =============================================================================
# RESULTS
# =============================================================================

class NodeOutput(_WorkflowModel):
    """One entry of ``ExecutionContext.node_outputs``"""
    node_id: str
    node_name: str
    status: NodeStatus
    output: Any = None
    timestamp: str = Field(default_factory=utc_now)


class NodeResult(_WorkflowModel):
    """What ``WorkflowExecutor.execute`` returns for one node"""
    node_id: str
    status: NodeStatus
    variables: Dict[str, Any] = Field(default_factory=dict, description="Variables changed by this node")
    output: Any = None
    error: Optional[str] = None
    error_kind: Optional[FailureKind] = None
    usage: Optional[TokenUsage] = None
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == NodeStatus.SUCCESS
