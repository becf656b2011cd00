# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Binding modes between nodes.

Simple mode: the node sees all upstream state (variables plus every
successful node output) as ambient context.

Advanced mode: the node sees only its declared input mappings, resolved into
variables before it runs; its output mappings copy fields of its own result
into variables after it runs.
"""

import json
from typing import Any, Dict

from storyflow.core.errors import ConfigurationError
from storyflow.workflow.models import NodeStatus
from storyflow.workflow.resolver import ContextResolver


def is_advanced(node) -> bool:
    return node.context_config.mode == "advanced"


def apply_input_mappings(node, context) -> Dict[str, Any]:
    """
    Resolve the node's input mappings and write them into variables.

    Returns:
        The resolved inputs by target name

    Raises:
        ConfigurationError: If a source does not resolve
    """
    inputs: Dict[str, Any] = {}
    for mapping in node.context_config.inputs:
        if mapping.node_id is not None:
            record = context.get_output(mapping.node_id)
            if record is None:
                raise ConfigurationError(
                    f"Input '{mapping.target}' of node '{node.id}' reads node "
                    f"'{mapping.node_id}', which has no output yet",
                    field="contextConfig.inputs",
                )
            resolver = ContextResolver(context, output=record.output)
        else:
            resolver = ContextResolver(context)
        inputs[mapping.target] = resolver.resolve(mapping.source)

    context.variables.update(inputs)
    return inputs


def apply_output_mappings(node, context, output: Any) -> Dict[str, Any]:
    """Copy fields of ``output`` into variables per the node's output mappings."""
    resolver = ContextResolver(context, output=output)
    extracted = {mapping.target: resolver.resolve(mapping.source) for mapping in node.context_config.outputs}
    context.variables.update(extracted)
    return extracted


def build_ambient_context(context) -> Dict[str, Any]:
    """Everything upstream: variables and successful node outputs."""
    return {
        "variables": dict(context.variables),
        "previousOutputs": {
            node_id: record.output
            for node_id, record in context.node_outputs.items()
            if record.status == NodeStatus.SUCCESS
        },
    }


def context_slice(node, context, inputs: Dict[str, Any]) -> Dict[str, Any]:
    """What the node is allowed to see for its binding mode."""
    if is_advanced(node):
        return {"inputs": dict(inputs)}
    return build_ambient_context(context)


def serialize_context(slice_: Dict[str, Any]) -> str:
    return json.dumps(slice_, indent=2, default=str)
