# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Conditional handler.
"""

from typing import Any, Dict

from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.handlers.base import HandlerOutcome, NodeHandler
from storyflow.workflow.models import ConditionalNode, NodeType
from storyflow.workflow.resolver import ContextResolver, evaluate_condition


class ConditionalHandler(NodeHandler):
    """Writes the boolean outcome of the condition to ``variables.conditionResult``"""

    node_types = (NodeType.CONDITIONAL,)

    async def execute(self, node: ConditionalNode, context: ExecutionContext, inputs: Dict[str, Any]) -> HandlerOutcome:
        scope = ContextResolver(context).scope()
        if node.condition_type == "expression":
            # Saved expressions address variables as context.<name>
            scope.setdefault("context", context.variables)

        result = evaluate_condition(node.condition, scope)
        context.variables["conditionResult"] = result
        return HandlerOutcome(output={"condition": node.condition, "conditionResult": result})
