# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
User input handler.

Asks the InputProvider, validates the answer and asks again with the
validation message until the attempt limit is reached.
"""

import re
from typing import Any, Dict, Optional, Tuple

from storyflow.core.errors import ConfigurationError
from storyflow.core.logging import get_engine_logger
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.exceptions import UserInputError
from storyflow.workflow.handlers.base import HandlerOutcome, NodeHandler
from storyflow.workflow.inputs import InputProvider, InputRequest
from storyflow.workflow.models import NodeType, UserInputNode
from storyflow.workflow.resolver import ContextResolver

logger = get_engine_logger("handlers.user_input")


def validate_answer(node: UserInputNode, value: Any) -> Tuple[bool, Any, Optional[str]]:
    """
    Check one answer against the node's rules.

    Returns:
        (valid, coerced value, error message)
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if node.required:
            return False, None, "This field is required"
        return True, None, None

    rules = node.validation

    if node.input_type == "number":
        try:
            number = float(value)
        except (TypeError, ValueError):
            return False, None, "Please enter a valid number"
        if number.is_integer():
            number = int(number)
        if rules and rules.min is not None and number < rules.min:
            return False, None, f"Value must be at least {rules.min:g}"
        if rules and rules.max is not None and number > rules.max:
            return False, None, f"Value must be at most {rules.max:g}"
        return True, number, None

    if node.input_type == "select":
        for option in node.options:
            if value == option.value or value == option.label:
                return True, option.value, None
        labels = ", ".join(option.label for option in node.options)
        return False, None, f"Please choose one of: {labels}"

    text = str(value)
    if rules:
        if rules.min_length is not None and len(text) < rules.min_length:
            return False, None, f"Must be at least {rules.min_length} characters"
        if rules.max_length is not None and len(text) > rules.max_length:
            return False, None, f"Must be at most {rules.max_length} characters"
        if rules.pattern:
            try:
                matched = re.search(rules.pattern, text)
            except re.error as e:
                raise ConfigurationError(
                    f"Invalid validation pattern on node '{node.id}': {e}", field="validation.pattern"
                )
            if not matched:
                return False, None, "Input does not match the required format"
    return True, text, None


class UserInputHandler(NodeHandler):
    """Human-input pauses"""

    node_types = (NodeType.USER_INPUT,)

    def __init__(self, input_provider: Optional[InputProvider], max_attempts: int = 10):
        self.input_provider = input_provider
        self.max_attempts = max_attempts

    async def execute(self, node: UserInputNode, context: ExecutionContext, inputs: Dict[str, Any]) -> HandlerOutcome:
        if self.input_provider is None:
            raise ConfigurationError(f"User input node '{node.id}' needs an input provider")

        prompt = ContextResolver(context).substitute(node.prompt)
        error = None
        for attempt in range(1, self.max_attempts + 1):
            answer = await self.input_provider.request_input(InputRequest(
                node_id=node.id,
                node_name=node.name,
                instance_id=context.instance_id,
                prompt=prompt,
                input_type=node.input_type,
                options=[option.model_dump() for option in node.options],
                default_value=node.default_value,
                attempt=attempt,
                error=error,
            ))
            if (answer is None or answer == "") and node.default_value is not None:
                answer = node.default_value

            valid, value, error = validate_answer(node, answer)
            if valid:
                context.variables["userInput"] = value
                if node.output_variable:
                    context.variables[node.output_variable] = value
                return HandlerOutcome(output={"value": value, "attempts": attempt})
            logger.info(f"Rejected input for node '{node.id}' (attempt {attempt}): {error}")

        raise UserInputError(node.id, f"No valid input after {self.max_attempts} attempts: {error}")
