# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Node handlers, one per node kind.
"""

from storyflow.workflow.handlers.agent import AgentHandler
from storyflow.workflow.handlers.base import HandlerOutcome, NodeHandler
from storyflow.workflow.handlers.conditional import ConditionalHandler
from storyflow.workflow.handlers.file_operation import FileOperationHandler
from storyflow.workflow.handlers.loop import LoopHandler
from storyflow.workflow.handlers.subworkflow import SubWorkflowHandler
from storyflow.workflow.handlers.user_input import UserInputHandler

__all__ = [
    "AgentHandler",
    "ConditionalHandler",
    "FileOperationHandler",
    "HandlerOutcome",
    "LoopHandler",
    "NodeHandler",
    "SubWorkflowHandler",
    "UserInputHandler",
]
