"""
Exception hierarchy for the agentloop framework.

This module defines the exceptions raised by the orchestration core, each
carrying an error code, structured details, and an optional cause so that
callers can serialize failures into conversation content or error fragments.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    UNKNOWN = "UNKNOWN"
    CONFIGURATION = "CONFIGURATION"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    TOOL_EXECUTION = "TOOL_EXECUTION"
    CONVERSATION_STATE = "CONVERSATION_STATE"
    MODEL_PROVIDER = "MODEL_PROVIDER"
    STREAM = "STREAM"
    RECURSION_LIMIT = "RECURSION_LIMIT"


class AgentLoopError(Exception):
    """
    Base exception class for all agentloop errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    error_code : ErrorCode, default=ErrorCode.UNKNOWN
        Categorization code for the error.
    details : dict[str, Any] | None, optional
        Additional context about the error.
    cause : Exception | None, optional
        The underlying exception that caused this error.

    Attributes
    ----------
    message : str
        The error message.
    error_code : ErrorCode
        The error code categorizing this error.
    details : dict[str, Any]
        Additional error context.
    cause : Exception | None
        The underlying exception that caused this error.

    Examples
    --------
    >>> raise AgentLoopError("Something went wrong", ErrorCode.UNKNOWN)
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.error_code: ErrorCode = error_code
        self.details: dict[str, Any] = details or {}
        self.cause: Exception | None = cause

    def __str__(self) -> str:
        """
        Return a string representation of the error.

        Returns
        -------
        str
            Formatted error string with message, details, and cause.
        """
        parts: list[str] = [f"[{self.error_code.value}] {self.message}"]
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"Details: {detail_str}")
        if self.cause:
            parts.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")
        return " | ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value!r}, "
            f"details={self.details!r}, "
            f"cause={self.cause!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize the error to a dictionary.

        Returns
        -------
        dict[str, Any]
            Dictionary representation of the error with all context.
        """
        result: dict[str, Any] = {
            "type": self.__class__.__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }
        if self.cause:
            result["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return result


class ConfigurationError(AgentLoopError):
    """
    Exception raised for configuration-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    config_key : str | None, optional
        The configuration key that caused the error.
    config_file : str | None, optional
        The configuration file path where the error occurred.
    details : dict[str, Any] | None, optional
        Additional context about the error.
    cause : Exception | None, optional
        The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        config_file: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        if config_file:
            details["config_file"] = config_file
        super().__init__(
            message,
            error_code=ErrorCode.CONFIGURATION,
            details=details,
            cause=cause,
        )
        self.config_key: str | None = config_key
        self.config_file: str | None = config_file


class NotFoundError(AgentLoopError):
    """
    Exception raised when an agent, tool, or conversation state is missing.

    Parameters
    ----------
    message : str
        Human-readable error message.
    resource : str | None, optional
        Kind of resource that was looked up (``"agent"``, ``"tool"``, ...).
    identifier : str | None, optional
        Identifier or name that was looked up.
    details : dict[str, Any] | None, optional
        Additional context about the error.
    cause : Exception | None, optional
        The underlying exception that caused this error.

    Examples
    --------
    >>> raise NotFoundError("Agent not found", resource="agent", identifier="a-1")
    """

    def __init__(
        self,
        message: str,
        resource: str | None = None,
        identifier: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if resource:
            details["resource"] = resource
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details=details,
            cause=cause,
        )
        self.resource: str | None = resource
        self.identifier: str | None = identifier


class ValidationError(AgentLoopError):
    """
    Exception raised for validation errors.

    Raised by ``Tool.execute`` when arguments do not match the declared
    parameters, and by the data models when an invariant is violated.

    Parameters
    ----------
    message : str
        Human-readable error message.
    field : str | None, optional
        The field that failed validation.
    details : dict[str, Any] | None, optional
        Additional context about the error.
    cause : Exception | None, optional
        The underlying exception that caused this error.

    Examples
    --------
    >>> raise ValidationError("Parameter 'x' must be a number", field="x")
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION,
            details=details,
            cause=cause,
        )
        self.field: str | None = field


class ToolExecutionError(AgentLoopError):
    """
    Exception raised when a tool handler fails.

    Parameters
    ----------
    message : str
        Human-readable error message.
    tool_name : str | None, optional
        Name of the tool whose handler failed.
    details : dict[str, Any] | None, optional
        Additional context about the error.
    cause : Exception | None, optional
        The underlying exception raised by the handler.
    """

    def __init__(
        self,
        message: str,
        tool_name: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if tool_name:
            details["tool_name"] = tool_name
        super().__init__(
            message,
            error_code=ErrorCode.TOOL_EXECUTION,
            details=details,
            cause=cause,
        )
        self.tool_name: str | None = tool_name


class ConversationStateError(AgentLoopError):
    """
    Exception raised when the context window breaks an orchestration invariant.

    Parameters
    ----------
    message : str
        Human-readable error message.
    conversation_id : str | None, optional
        Identifier of the offending conversation.
    details : dict[str, Any] | None, optional
        Additional context about the error.
    cause : Exception | None, optional
        The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        conversation_id: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if conversation_id:
            details["conversation_id"] = conversation_id
        super().__init__(
            message,
            error_code=ErrorCode.CONVERSATION_STATE,
            details=details,
            cause=cause,
        )
        self.conversation_id: str | None = conversation_id


class ModelProviderError(AgentLoopError):
    """
    Exception raised when the upstream model call fails.

    The orchestrator performs no retries; retry policy belongs to the
    provider implementation.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict[str, Any] | None, optional
        Additional context about the error.
    cause : Exception | None, optional
        The underlying exception raised by the provider.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.MODEL_PROVIDER,
            details=details,
            cause=cause,
        )


class StreamError(AgentLoopError):
    """
    Exception describing a mid-stream failure.

    Streaming callers never see it raised; it is serialized into the final
    error fragment before the stream terminates.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.STREAM,
            details=details,
            cause=cause,
        )


class RecursionLimitError(AgentLoopError):
    """
    Exception raised when a request exceeds the configured number of tool rounds.

    Parameters
    ----------
    message : str
        Human-readable error message.
    max_rounds : int | None, optional
        The round limit that was exceeded.
    details : dict[str, Any] | None, optional
        Additional context about the error.
    cause : Exception | None, optional
        The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        max_rounds: int | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if max_rounds is not None:
            details["max_rounds"] = max_rounds
        super().__init__(
            message,
            error_code=ErrorCode.RECURSION_LIMIT,
            details=details,
            cause=cause,
        )
        self.max_rounds: int | None = max_rounds
