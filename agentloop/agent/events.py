"""
Outward fragments of a streaming reply.

This module defines the partial messages the orchestrator yields while a
streaming request is in progress.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from agentloop.conversation.models import MessageRole, ToolCall
from agentloop.exceptions import AgentLoopError
from agentloop.llm.models import TokenUsage


class FragmentType(str, Enum):
    """
    Types of fragments yielded by a streaming request.

    Attributes
    ----------
    CONTENT : str
        Assistant text delta.
    TOOL_CALL : str
        Tool calls the assistant requested, once fully assembled.
    TOOL_RESULT : str
        Result (or error) of one tool call.
    USAGE : str
        Token usage reported by the provider.
    ERROR : str
        Terminal failure; always the last fragment.
    """

    CONTENT = "content"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    USAGE = "usage"
    ERROR = "error"


class MessageFragment(BaseModel):
    """
    A partial message yielded to the streaming caller.

    Parameters
    ----------
    type : FragmentType
        Kind of fragment.
    role : MessageRole, default=MessageRole.ASSISTANT
        Role of the message the fragment belongs to.
    conversation_id : str, default=""
        Conversation the fragment belongs to.
    content : str, default=""
        Text delta, tool output, or error message.
    tool_calls : list[ToolCall], default=[]
        Assembled tool calls for ``TOOL_CALL`` fragments.
    tool_call_id : str | None, optional
        Answered call for ``TOOL_RESULT`` fragments.
    tool_name : str | None, optional
        Tool name for ``TOOL_RESULT`` fragments.
    is_tool_error : bool, default=False
        Whether a ``TOOL_RESULT`` fragment carries an error.
    metadata : dict[str, Any], default={}
        Usage figures, serialized errors, and other extras.

    Examples
    --------
    >>> MessageFragment.content_delta("conv-1", "Hel")
    """

    type: FragmentType = Field(description="Fragment type")
    role: MessageRole = Field(default=MessageRole.ASSISTANT, description="Message role")
    conversation_id: str = Field(default="", description="Conversation id")
    content: str = Field(default="", description="Fragment content")
    tool_calls: list[ToolCall] = Field(default_factory=list, description="Tool calls")
    tool_call_id: str | None = Field(default=None, description="Tool call id")
    tool_name: str | None = Field(default=None, description="Tool name")
    is_tool_error: bool = Field(default=False, description="Tool result is an error")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Metadata")

    @classmethod
    def content_delta(cls, conversation_id: str, text: str) -> MessageFragment:
        return cls(type=FragmentType.CONTENT, conversation_id=conversation_id, content=text)

    @classmethod
    def tool_call(cls, conversation_id: str, tool_calls: list[ToolCall]) -> MessageFragment:
        return cls(
            type=FragmentType.TOOL_CALL,
            conversation_id=conversation_id,
            tool_calls=list(tool_calls),
        )

    @classmethod
    def tool_result(
        cls,
        conversation_id: str,
        tool_call_id: str,
        tool_name: str,
        content: str,
        is_error: bool = False,
    ) -> MessageFragment:
        """
        Create a tool result fragment.

        Parameters
        ----------
        conversation_id : str
            Conversation id.
        tool_call_id : str
            Answered call.
        tool_name : str
            Tool that ran.
        content : str
            Serialized result or error text.
        is_error : bool, default=False
            Whether the call failed.

        Returns
        -------
        MessageFragment
            Tool result fragment with the ``tool`` role.
        """
        return cls(
            type=FragmentType.TOOL_RESULT,
            role=MessageRole.TOOL,
            conversation_id=conversation_id,
            content=content,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            is_tool_error=is_error,
        )

    @classmethod
    def usage(cls, conversation_id: str, usage: TokenUsage) -> MessageFragment:
        return cls(
            type=FragmentType.USAGE,
            conversation_id=conversation_id,
            metadata={"usage": usage.model_dump()},
        )

    @classmethod
    def error(cls, conversation_id: str, error: AgentLoopError) -> MessageFragment:
        """
        Create the terminal error fragment.

        Parameters
        ----------
        conversation_id : str
            Conversation id.
        error : AgentLoopError
            Failure that ended the stream.

        Returns
        -------
        MessageFragment
            Error fragment with ``error.to_dict()`` under ``metadata["error"]``.
        """
        return cls(
            type=FragmentType.ERROR,
            conversation_id=conversation_id,
            content=error.message,
            metadata={"error": error.to_dict()},
        )
