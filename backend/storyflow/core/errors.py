# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for the Storyflow engine.

All exceptions inherit from StoryflowError for consistent error handling.
"""

from typing import Optional


class StoryflowError(Exception):
    """Base exception for all Storyflow errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize Storyflow error.

        Args:
            message: Human-readable error message
            details: Additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for result payloads and logs."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class NotFoundError(StoryflowError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        """
        Initialize not found error.

        Args:
            resource: Type of resource (e.g., "Workflow", "Adapter")
            identifier: Resource identifier
            details: Additional error details
        """
        message = f"{resource} not found: {identifier}"
        super().__init__(message, details=details)
        self.resource = resource
        self.identifier = identifier


class ValidationError(StoryflowError):
    """Workflow definition failed validation."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize validation error.

        Args:
            message: Validation error message
            field: Field that failed validation
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.field = field


class ConfigurationError(StoryflowError):
    """Missing or invalid configuration, detected before any external call."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize configuration error.

        Args:
            message: Configuration error message
            field: Node or provider field at fault
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.field = field


class ProviderError(StoryflowError):
    """
    Failure reported by an LLM backend.

    ``kind`` is one of the categories in ``PROVIDER_ERROR_KINDS`` so callers
    never see raw transport errors.
    """

    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    BACKEND = "backend"
    NETWORK = "network"
    CONFIGURATION = "configuration"

    def __init__(
        self,
        message: str,
        kind: str = BACKEND,
        provider_type: Optional[str] = None,
        details: Optional[dict] = None
    ):
        if kind not in PROVIDER_ERROR_KINDS:
            raise ValueError(f"Unknown provider error kind: {kind}")
        super().__init__(message, details=details)
        self.kind = kind
        self.provider_type = provider_type

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["kind"] = self.kind
        data["provider_type"] = self.provider_type
        return data


PROVIDER_ERROR_KINDS = (
    ProviderError.AUTHENTICATION,
    ProviderError.RATE_LIMIT,
    ProviderError.BACKEND,
    ProviderError.NETWORK,
    ProviderError.CONFIGURATION,
)


# Error Message Utilities

def sanitize_error_for_user(error: Exception, include_type: bool = True) -> str:
    """
    Sanitize error messages for user display.
    Removes stack traces and overly long payloads.

    Args:
        error: The exception to sanitize
        include_type: Whether to include exception type

    Returns:
        User-friendly error message without stack trace
    """
    error_msg = str(error).strip()

    # Limit message length
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."

    if include_type:
        return f"{error.__class__.__name__}: {error_msg}"

    return error_msg
