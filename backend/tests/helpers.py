# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test helpers: a scripted provider adapter and node builders.
"""

import asyncio
from typing import Any, Dict, List, Optional

from storyflow.core.config import Config
from storyflow.llm.base import ProviderAdapter
from storyflow.llm.models import (
    CredentialValidation,
    LLMRequest,
    LLMResponse,
    ProviderCredentials,
    ProviderType,
    TokenUsage,
)
from storyflow.workflow.models import WorkflowDefinition, parse_node


class ScriptedAdapter(ProviderAdapter):
    """
    Local-type adapter that replays canned outputs.

    Strings become successful responses; LLMResponse objects are returned as
    they are; exceptions are raised.
    """

    provider_type = ProviderType.LOCAL
    requires_credentials = False

    def __init__(self, outputs: Optional[List[Any]] = None, delay: float = 0.0):
        super().__init__(config=Config())
        self.outputs = list(outputs or [])
        self.delay = delay
        self.requests: List[LLMRequest] = []

    async def _generate(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        output = self.outputs.pop(0) if self.outputs else "ok"
        if isinstance(output, Exception):
            raise output
        if isinstance(output, LLMResponse):
            return output
        return LLMResponse(
            success=True, output=output, model="scripted", usage=TokenUsage.from_counts(10, 5)
        )

    async def _check_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        return CredentialValidation(valid=True, model="scripted")


LOCAL_PROVIDER = {"id": "local-test", "name": "Local test model", "type": "local"}


def agent_node(node_id: str, node_type: str = "planning", **fields) -> Any:
    """Build an agent node backed by the scripted local provider."""
    data: Dict[str, Any] = {
        "id": node_id,
        "type": node_type,
        "name": node_id.replace("-", " ").title(),
        "provider": LOCAL_PROVIDER,
        "agent": "writer",
        "prompt": f"Run {node_id}",
    }
    data.update(fields)
    return parse_node(data)


def node(node_id: str, node_type: str, **fields) -> Any:
    """Build any node from camelCase fields."""
    data: Dict[str, Any] = {"id": node_id, "type": node_type, "name": node_id}
    data.update(fields)
    return parse_node(data)


def workflow(workflow_id: str, nodes: List[Dict[str, Any]], edges: Optional[List[Dict[str, Any]]] = None,
             version: str = "1.0.0") -> WorkflowDefinition:
    return WorkflowDefinition.model_validate({
        "id": workflow_id,
        "name": workflow_id,
        "version": version,
        "graph": {"nodes": nodes, "edges": edges or []},
    })
