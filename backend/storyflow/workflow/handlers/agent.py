# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Agent handler for planning, writing and gate nodes.

A gate whose predicate is false fails with GateConditionFailure. Retrying an
earlier node is the graph walker's job (via a loop-back edge); this handler
makes exactly one provider call per run.
"""

from typing import Any, Dict

from storyflow.core.errors import ConfigurationError
from storyflow.core.logging import get_engine_logger
from storyflow.llm.manager import ProviderManager
from storyflow.workflow.binding import context_slice, is_advanced, serialize_context
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.exceptions import GateConditionFailure, ProviderCallFailure
from storyflow.workflow.handlers.base import HandlerOutcome, NodeHandler
from storyflow.workflow.models import AGENT_NODE_TYPES, AgentNode
from storyflow.workflow.resolver import ContextResolver, parse_structured

logger = get_engine_logger("handlers.agent")


class AgentHandler(NodeHandler):
    """Planning / writing / gate steps"""

    node_types = AGENT_NODE_TYPES

    def __init__(self, provider_manager: ProviderManager):
        self.provider_manager = provider_manager

    def build_prompt(self, node: AgentNode, context: ExecutionContext, slice_: Dict[str, Any]) -> str:
        template = node.prompt or node.description
        if not template or not template.strip():
            raise ConfigurationError(f"Agent node '{node.id}' has neither prompt nor description", field="prompt")

        prompt = ContextResolver(context).substitute(template)
        if is_advanced(node):
            if slice_["inputs"]:
                prompt += "\n\n## Inputs\n```json\n" + serialize_context(slice_["inputs"]) + "\n```"
        elif slice_["variables"] or slice_["previousOutputs"]:
            prompt += "\n\n## Workflow context\n```json\n" + serialize_context(slice_) + "\n```"
        return prompt

    async def execute(self, node: AgentNode, context: ExecutionContext, inputs: Dict[str, Any]) -> HandlerOutcome:
        slice_ = context_slice(node, context, inputs)
        prompt = self.build_prompt(node, context, slice_)
        system_prompt = None
        if node.system_prompt:
            system_prompt = ContextResolver(context).substitute(node.system_prompt)

        logger.info(
            f"Running {node.type} node '{node.id}' with agent '{node.agent}' on {node.provider.type.value}",
            extra={"node_id": node.id, "provider_type": node.provider.type.value}
        )
        response = await self.provider_manager.execute_prompt(
            node.provider, prompt, slice_, system_prompt=system_prompt, skill=node.skill
        )
        if not response.success:
            raise ProviderCallFailure(node.id, response.error or "Provider call failed", response.error_kind)

        output = response.output
        if node.gate:
            passed = ContextResolver(context, output=output).evaluate(node.gate_condition)
            if not passed:
                logger.info(f"Gate '{node.id}' rejected output: {node.gate_condition}")
                raise GateConditionFailure(node.id, node.gate_condition, output)

        if not is_advanced(node):
            parsed = parse_structured(output)
            context.variables["output"] = output
            if parsed is not output:
                context.variables["parsed"] = parsed
            if node.output_variable:
                context.variables[node.output_variable] = parsed

        return HandlerOutcome(output=output, usage=response.usage)
