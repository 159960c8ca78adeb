"""
Data models exchanged with model providers.

This module defines the provider-neutral request options, responses, and
streaming events that a Model Provider adapter produces and the
orchestrator consumes.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from agentloop.constants import RAW_ARGUMENTS_KEY
from agentloop.conversation.models import Message, ToolCall


class TokenUsage(BaseModel):
    """
    Represents token usage statistics for a model request.

    Parameters
    ----------
    prompt_tokens : int, default=0
        Number of tokens in the prompt.
    completion_tokens : int, default=0
        Number of tokens in the completion.
    total_tokens : int, default=0
        Total number of tokens used.

    Examples
    --------
    >>> usage = TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150)
    """

    prompt_tokens: int = Field(default=0, ge=0, description="Prompt tokens")
    completion_tokens: int = Field(default=0, ge=0, description="Completion tokens")
    total_tokens: int = Field(default=0, ge=0, description="Total tokens")

    def __add__(self, other: TokenUsage) -> TokenUsage:
        """
        Add two TokenUsage objects together.

        Parameters
        ----------
        other : TokenUsage
            Another TokenUsage object to add.

        Returns
        -------
        TokenUsage
            New TokenUsage with summed values.
        """
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class ModelRequestOptions(BaseModel):
    """
    Options forwarded to the model provider for one call.

    Parameters
    ----------
    temperature : float | None, optional
        Sampling temperature.
    max_tokens : int | None, optional
        Completion token limit.
    model_id : str | None, optional
        Provider model identifier taken from the agent profile.
    """

    temperature: float | None = Field(default=None, description="Sampling temperature")
    max_tokens: int | None = Field(default=None, ge=1, description="Max completion tokens")
    model_id: str | None = Field(default=None, description="Provider model id")


class ToolCallResult(BaseModel):
    """
    A tool call as reported by a model provider.

    Parameters
    ----------
    tool_id : str
        Identifier of the call.
    tool_name : str
        Name of the requested tool.
    arguments : dict[str, Any] | str, default={}
        Structured arguments, or raw argument text still to be parsed.
    result : Any, optional
        Result, once executed.
    is_error : bool, default=False
        Whether the result is an error.
    error_message : str | None, optional
        Error text when ``is_error`` is set.
    """

    tool_id: str = Field(description="Tool call identifier")
    tool_name: str = Field(description="Tool name")
    arguments: dict[str, Any] | str = Field(
        default_factory=dict,
        description="Tool call arguments",
    )
    result: Any = Field(default=None, description="Execution result")
    is_error: bool = Field(default=False, description="Result is an error")
    error_message: str | None = Field(default=None, description="Error text")

    def to_tool_call(self) -> ToolCall:
        """
        Convert to the tool call stored on an assistant message.

        Returns
        -------
        ToolCall
            Tool call with parsed arguments.
        """
        return ToolCall(
            id=self.tool_id,
            name=self.tool_name,
            arguments=parse_tool_call_arguments(self.arguments),
        )


class ModelResponse(BaseModel):
    """
    A complete reply from a model provider.

    Parameters
    ----------
    message : Message
        Assistant message.
    tool_calls : list[ToolCallResult], default=[]
        Tool calls requested by the reply.
    usage : TokenUsage | None, optional
        Token usage statistics.
    metadata : dict[str, Any], default={}
        Provider-specific response data.
    """

    message: Message = Field(description="Assistant message")
    tool_calls: list[ToolCallResult] = Field(
        default_factory=list,
        description="Requested tool calls",
    )
    usage: TokenUsage | None = Field(default=None, description="Token usage")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Metadata")


class ModelStreamEventType(str, Enum):
    """Types of events in a streaming model response."""

    CONTENT_DELTA = "content_delta"
    TOOL_CALL_DELTA = "tool_call_delta"
    TOOL_CALL = "tool_call"
    USAGE = "usage"
    ERROR = "error"
    MESSAGE_COMPLETE = "message_complete"


class ToolCallDelta(BaseModel):
    """
    Represents a delta in a tool call during streaming.

    Parameters
    ----------
    call_id : str, default=""
        Identifier of the call. Providers may omit it after the first delta.
    name : str | None, optional
        Name of the tool being called.
    arguments_delta : str, default=""
        Incremental argument text.

    Examples
    --------
    >>> delta = ToolCallDelta(call_id="call_1", name="getPrice", arguments_delta='{"sym')
    """

    call_id: str = Field(default="", description="Tool call identifier")
    name: str | None = Field(default=None, description="Tool name")
    arguments_delta: str = Field(default="", description="Incremental arguments")


class ModelStreamEvent(BaseModel):
    """
    One fragment of a streaming model response.

    Parameters
    ----------
    type : ModelStreamEventType
        Type of the event.
    content : str | None, optional
        Text delta for ``CONTENT_DELTA`` events.
    tool_call_delta : ToolCallDelta | None, optional
        Partial tool call for ``TOOL_CALL_DELTA`` events.
    tool_call : ToolCallResult | None, optional
        Complete tool call for ``TOOL_CALL`` events.
    usage : TokenUsage | None, optional
        Token usage for ``USAGE`` and ``MESSAGE_COMPLETE`` events.
    error : str | None, optional
        Error message for ``ERROR`` events.
    finish_reason : str | None, optional
        Reason for completion.

    Examples
    --------
    >>> ModelStreamEvent.content_delta("Hel")
    >>> ModelStreamEvent.tool_call_fragment("call_1", "getPrice", '{"symbol": "AAPL"}')
    """

    type: ModelStreamEventType = Field(description="Event type")
    content: str | None = Field(default=None, description="Text delta")
    tool_call_delta: ToolCallDelta | None = Field(
        default=None,
        description="Tool call delta",
    )
    tool_call: ToolCallResult | None = Field(default=None, description="Complete tool call")
    usage: TokenUsage | None = Field(default=None, description="Token usage")
    error: str | None = Field(default=None, description="Error message")
    finish_reason: str | None = Field(default=None, description="Finish reason")

    @classmethod
    def content_delta(cls, content: str) -> ModelStreamEvent:
        return cls(type=ModelStreamEventType.CONTENT_DELTA, content=content)

    @classmethod
    def tool_call_fragment(
        cls,
        call_id: str,
        name: str | None = None,
        arguments_delta: str = "",
    ) -> ModelStreamEvent:
        return cls(
            type=ModelStreamEventType.TOOL_CALL_DELTA,
            tool_call_delta=ToolCallDelta(
                call_id=call_id,
                name=name,
                arguments_delta=arguments_delta,
            ),
        )

    @classmethod
    def usage_report(cls, usage: TokenUsage) -> ModelStreamEvent:
        return cls(type=ModelStreamEventType.USAGE, usage=usage)

    @classmethod
    def error_event(cls, error: str) -> ModelStreamEvent:
        return cls(type=ModelStreamEventType.ERROR, error=error)


def parse_tool_call_arguments(arguments: dict[str, Any] | str | None) -> dict[str, Any]:
    """
    Parse tool call arguments into a dictionary.

    Parameters
    ----------
    arguments : dict[str, Any] | str | None
        Structured arguments, or JSON text.

    Returns
    -------
    dict[str, Any]
        Parsed arguments. Returns an empty dict for empty input, and a dict
        with a ``raw_arguments`` key when the text is not a JSON object.

    Examples
    --------
    >>> parse_tool_call_arguments('{"symbol": "AAPL"}')
    {'symbol': 'AAPL'}
    >>> parse_tool_call_arguments("symbol=AAPL")
    {'raw_arguments': 'symbol=AAPL'}
    """
    if arguments is None:
        return {}
    if isinstance(arguments, dict):
        return arguments
    if not arguments.strip():
        return {}

    try:
        parsed: Any = json.loads(arguments)
    except json.JSONDecodeError:
        return {RAW_ARGUMENTS_KEY: arguments}

    if not isinstance(parsed, dict):
        return {RAW_ARGUMENTS_KEY: arguments}

    return parsed
