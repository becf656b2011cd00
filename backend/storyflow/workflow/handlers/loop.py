# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Loop handler.

Produces iteration bookkeeping only. Iterations are computed in order, each
one appended to ``variables.iterations`` with ``variables.iterationCount``
kept in step. On success a LoopFrame is pushed on the context so the graph
walker can re-enter the body once per iteration (``enter_iteration``) and
pop it afterwards (``exit_loop``).
"""

import copy
from typing import Any, Dict, Iterator, List, Tuple

from storyflow.core.errors import ConfigurationError
from storyflow.core.logging import get_engine_logger
from storyflow.workflow.context import ExecutionContext, LoopFrame
from storyflow.workflow.exceptions import LoopSafetyLimit
from storyflow.workflow.handlers.base import HandlerOutcome, NodeHandler
from storyflow.workflow.models import LoopNode, NodeType, utc_now
from storyflow.workflow.resolver import ContextResolver, parse_structured

logger = get_engine_logger("handlers.loop")


class LoopHandler(NodeHandler):
    """forEach / count / while"""

    node_types = (NodeType.LOOP,)

    async def execute(self, node: LoopNode, context: ExecutionContext, inputs: Dict[str, Any]) -> HandlerOutcome:
        if node.loop_type == "forEach":
            items = self._for_each_items(node, context)
        elif node.loop_type == "count":
            items = self._count_items(node)
        else:
            items = self._while_items(node, context)

        records: List[Dict[str, Any]] = []
        context.variables["iterations"] = records
        context.variables["iterationCount"] = 0

        for index, item in items:
            if node.max_iterations is not None and index >= node.max_iterations:
                logger.warning(f"Loop '{node.id}' hit its safety cap of {node.max_iterations}")
                raise LoopSafetyLimit(node.id, node.max_iterations, copy.deepcopy(records))

            records.append({
                "iteration": index + 1,
                "index": index,
                "item": item,
                node.iterator_variable: item,
                node.index_variable: index,
                "timestamp": utc_now(),
            })
            context.variables[node.iterator_variable] = item
            context.variables[node.index_variable] = index
            context.variables["iterationCount"] = len(records)

        context.push_loop(LoopFrame(
            loop_node_id=node.id,
            iterator_variable=node.iterator_variable,
            index_variable=node.index_variable,
            iterations=records,
        ))
        logger.info(f"Loop '{node.id}' prepared {len(records)} iterations")
        return HandlerOutcome(output={
            "loopType": node.loop_type,
            "iterationCount": len(records),
            "iterations": copy.deepcopy(records),
        })

    def _for_each_items(self, node: LoopNode, context: ExecutionContext) -> Iterator[Tuple[int, Any]]:
        if not node.collection:
            raise ConfigurationError(f"forEach loop '{node.id}' requires a collection", field="collection")
        collection = parse_structured(ContextResolver(context).resolve(node.collection))
        if not isinstance(collection, (list, tuple)):
            raise ConfigurationError(
                f"Loop collection '{node.collection}' is a {type(collection).__name__}, not a list",
                field="collection",
            )
        return iter(enumerate(collection))

    def _count_items(self, node: LoopNode) -> Iterator[Tuple[int, Any]]:
        if node.count is None or node.count < 1:
            raise ConfigurationError(f"Count loop '{node.id}' requires a positive count", field="count")
        return ((i, i) for i in range(node.count))

    def _while_items(self, node: LoopNode, context: ExecutionContext) -> Iterator[Tuple[int, Any]]:
        if not node.while_condition:
            raise ConfigurationError(f"While loop '{node.id}' requires whileCondition", field="whileCondition")
        if node.max_iterations is None:
            raise ConfigurationError(
                f"While loop '{node.id}' requires maxIterations; unbounded loops are refused",
                field="maxIterations",
            )
        return self._while_generator(node, context)

    def _while_generator(self, node: LoopNode, context: ExecutionContext) -> Iterator[Tuple[int, Any]]:
        # Re-evaluated after each record so the condition sees iterationCount
        index = 0
        while ContextResolver(context).evaluate(node.while_condition):
            yield index, index
            index += 1
