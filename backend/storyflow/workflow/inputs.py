# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Human input sources.

The executor asks an InputProvider for user-input answers and approvals.
QueueInputProvider parks each request on an asyncio future until the host
application answers it by request id.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from storyflow.core.errors import NotFoundError
from storyflow.core.logging import get_engine_logger
from storyflow.workflow.exceptions import UserInputError

logger = get_engine_logger("inputs")


class InputRequest(BaseModel):
    """A question put to the user"""
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: Literal["input", "approval"] = "input"
    node_id: str
    node_name: str
    instance_id: str
    prompt: str
    input_type: str = "text"
    options: List[Dict[str, Any]] = Field(default_factory=list)
    default_value: Any = None
    attempt: int = 1
    error: Optional[str] = Field(None, description="Why the previous answer was rejected")


class InputProvider(ABC):
    """Source of user answers"""

    @abstractmethod
    async def request_input(self, request: InputRequest) -> Any:
        ...

    @abstractmethod
    async def request_approval(self, request: InputRequest) -> bool:
        ...


class QueueInputProvider(InputProvider):
    """
    Pending requests answered out of band.

    Example:
        provider = QueueInputProvider(on_request=push_to_ui)
        ...
        provider.submit(request_id, "mystery")
    """

    def __init__(self, on_request: Optional[Callable[[InputRequest], Awaitable[None]]] = None):
        self.on_request = on_request
        self._pending: Dict[str, tuple] = {}

    def pending_requests(self) -> List[InputRequest]:
        return [request for request, _ in self._pending.values()]

    async def request_input(self, request: InputRequest) -> Any:
        future = asyncio.get_running_loop().create_future()
        self._pending[request.request_id] = (request, future)
        logger.info(
            f"Waiting for {request.kind} on node '{request.node_id}'",
            extra={"request_id": request.request_id, "node_id": request.node_id}
        )
        try:
            if self.on_request is not None:
                await self.on_request(request)
            return await future
        finally:
            self._pending.pop(request.request_id, None)

    async def request_approval(self, request: InputRequest) -> bool:
        answer = await self.request_input(request.model_copy(update={"kind": "approval"}))
        if isinstance(answer, dict):
            return bool(answer.get("approved"))
        return bool(answer)

    def submit(self, request_id: str, value: Any) -> None:
        _, future = self._get(request_id)
        if not future.done():
            future.set_result(value)

    def cancel(self, request_id: str, reason: str = "Input request cancelled") -> None:
        request, future = self._get(request_id)
        if not future.done():
            future.set_exception(UserInputError(request.node_id, reason))

    def _get(self, request_id: str) -> tuple:
        entry = self._pending.get(request_id)
        if entry is None:
            raise NotFoundError("Input request", request_id)
        return entry
