# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Node handler contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from storyflow.llm.models import TokenUsage
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.models import NodeType


@dataclass
class HandlerOutcome:
    """Successful handler run"""
    output: Any = None
    usage: Optional[TokenUsage] = None
    skipped: bool = False


class NodeHandler(ABC):
    """
    Executes one node kind against a context.

    Handlers mutate ``context.variables`` directly and return the output
    payload. Ordinary failures are raised as NodeFailure subclasses or
    ConfigurationError; the executor turns them into failed results.
    """

    node_types: Tuple[NodeType, ...] = ()

    @abstractmethod
    async def execute(self, node, context: ExecutionContext, inputs: Dict[str, Any]) -> HandlerOutcome:
        """
        Run ``node``.

        Args:
            node: Node of one of ``node_types``
            context: Run context (mutated)
            inputs: Advanced-mode inputs, already written into variables
        """
        ...
