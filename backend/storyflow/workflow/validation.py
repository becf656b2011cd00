# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Validation

Structural checks beyond what the models enforce at parse time, and a
topological order (Kahn's algorithm) that ignores loop-back edges.
"""

from collections import deque
from typing import Dict, List

from storyflow.core.errors import ValidationError
from storyflow.workflow.models import EdgeType, WorkflowDefinition


def validate_workflow(workflow_def: WorkflowDefinition) -> List[str]:
    """
    Validate workflow structure.

    Returns topological order of nodes for execution.

    Raises ValidationError if validation fails.
    """
    if len(workflow_def.graph.nodes) == 0:
        raise ValidationError("Workflow must have at least one node", field="graph.nodes")

    return topological_sort(workflow_def)


def topological_sort(workflow_def: WorkflowDefinition) -> List[str]:
    """
    Perform topological sort using Kahn's algorithm.

    Loop-back edges are retry paths for the graph walker and are the only
    edges allowed to close a cycle; they are left out of the ordering.
    Ties keep declaration order.

    Raises ValidationError on any other cycle.
    """
    node_ids = [node.id for node in workflow_def.graph.nodes]
    graph: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
    in_degree: Dict[str, int] = {node_id: 0 for node_id in node_ids}

    for edge in workflow_def.graph.edges:
        if edge.type == EdgeType.LOOP_BACK:
            continue
        if edge.source == edge.target:
            raise ValidationError(
                f"Self-loop not allowed: {edge.source} -> {edge.target} (use a loop-back edge)",
                field="graph.edges"
            )
        graph[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque([node_id for node_id in node_ids if in_degree[node_id] == 0])
    if not queue:
        raise ValidationError(
            "No start nodes found (all nodes have incoming edges - cycle detected)",
            field="graph.edges"
        )

    topological_order = []
    while queue:
        node_id = queue.popleft()
        topological_order.append(node_id)

        for neighbor in graph[node_id]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(topological_order) != len(node_ids):
        unprocessed = sorted(set(node_ids) - set(topological_order))
        raise ValidationError(
            f"Cycle detected in workflow graph involving nodes: {unprocessed}. "
            f"Mark retry edges as loop-back.",
            field="graph.edges"
        )

    return topological_order
