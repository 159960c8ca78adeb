"""
Message models for conversation history.

This module defines the provider-neutral message format that is stored in a
conversation state and handed to model providers.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agentloop.exceptions import ValidationError
from agentloop.types import MessageDict


class MessageRole(str, Enum):
    """Role of the author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class MessageContent(BaseModel):
    """
    Rich message content with text and optional media references.

    Parameters
    ----------
    text : str, default=""
        Text part of the content.
    images : list[str] | None, optional
        Image URLs or base64 payloads.
    audio : str | None, optional
        Audio URL or base64 payload.

    Examples
    --------
    >>> content = MessageContent(text="What is in this picture?", images=["https://..."])
    """

    model_config = ConfigDict(extra="allow")

    text: str = Field(default="", description="Text content")
    images: list[str] | None = Field(default=None, description="Image references")
    audio: str | None = Field(default=None, description="Audio reference")


class ToolCall(BaseModel):
    """
    A tool invocation requested by an assistant message.

    Parameters
    ----------
    id : str
        Identifier of the call, referenced by the tool result message.
    name : str
        Name of the tool to invoke.
    arguments : dict[str, Any], default={}
        Arguments for the tool.
    """

    id: str = Field(description="Tool call identifier")
    name: str = Field(description="Tool name")
    arguments: dict[str, Any] = Field(
        default_factory=dict,
        description="Tool call arguments",
    )


class Message(BaseModel):
    """
    One turn in a conversation.

    Parameters
    ----------
    id : str, optional
        Message identifier. A uuid4 is generated if omitted.
    role : MessageRole
        Author role.
    content : str | MessageContent, default=""
        Plain text, or rich content with media references.
    conversation_id : str, default=""
        Identifier of the conversation state this message belongs to.
    created_at : datetime, optional
        Creation timestamp, used to keep history ordered.
    metadata : dict[str, Any], default={}
        Opaque key/value bag.
    tool_calls : list[ToolCall], default=[]
        Calls requested by an assistant message.
    tool_call_id : str | None, optional
        Call this tool message answers.
    tool_name : str | None, optional
        Tool this tool message comes from.
    is_tool_error : bool, default=False
        Whether this tool message carries an error.
    is_streaming : bool, default=False
        Whether the message is still being assembled from fragments.

    Raises
    ------
    ValidationError
        If a tool message lacks ``tool_call_id`` or ``tool_name``.

    Examples
    --------
    >>> msg = Message(role=MessageRole.USER, content="Hello", conversation_id="c-1")
    >>> msg.text_content
    'Hello'
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Message id")
    role: MessageRole = Field(description="Author role")
    content: str | MessageContent = Field(default="", description="Message content")
    conversation_id: str = Field(default="", description="Conversation id")
    created_at: datetime = Field(default_factory=datetime.now, description="Created at")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Metadata")
    tool_calls: list[ToolCall] = Field(default_factory=list, description="Requested tool calls")
    tool_call_id: str | None = Field(default=None, description="Answered tool call id")
    tool_name: str | None = Field(default=None, description="Answering tool name")
    is_tool_error: bool = Field(default=False, description="Tool result is an error")
    is_streaming: bool = Field(default=False, description="Still streaming")

    @model_validator(mode="after")
    def validate_tool_message(self) -> Message:
        """
        Ensure tool messages reference the call they answer.

        Raises
        ------
        ValidationError
            If a tool-role message lacks ``tool_call_id`` or ``tool_name``.
        """
        if self.role == MessageRole.TOOL and not (self.tool_call_id and self.tool_name):
            raise ValidationError(
                "Tool messages require 'tool_call_id' and 'tool_name'",
                field="tool_call_id",
            )
        return self

    @property
    def text_content(self) -> str:
        """
        Get the text part of the content.

        Returns
        -------
        str
            The plain text, or the ``text`` field of rich content.
        """
        if isinstance(self.content, str):
            return self.content
        return self.content.text or ""

    @property
    def has_pending_tool_calls(self) -> bool:
        """
        Check whether this message requests tool execution.

        Returns
        -------
        bool
            True for an assistant message with non-empty ``tool_calls``.
        """
        return self.role == MessageRole.ASSISTANT and len(self.tool_calls) > 0

    def append_content(self, text: str) -> None:
        """
        Append text to the content, preserving its shape.

        Parameters
        ----------
        text : str
            Text to append.
        """
        if isinstance(self.content, str):
            self.content += text
        else:
            self.content.text = (self.content.text or "") + text

    def complete_streaming(self) -> None:
        """Mark the message as fully assembled."""
        self.is_streaming = False

    def is_tool_call(self) -> bool:
        return self.role == MessageRole.ASSISTANT and (
            bool(self.tool_call_id) or len(self.tool_calls) > 0
        )

    def is_tool_response(self) -> bool:
        return self.role == MessageRole.TOOL

    def is_tool_error_response(self) -> bool:
        return self.role == MessageRole.TOOL and self.is_tool_error

    def is_user_message(self) -> bool:
        return self.role == MessageRole.USER

    def is_assistant_message(self) -> bool:
        return self.role == MessageRole.ASSISTANT and not self.is_tool_call()

    def is_system_message(self) -> bool:
        return self.role == MessageRole.SYSTEM

    def opens_turn(self) -> bool:
        """
        Check whether a context window may start with this message.

        Returns
        -------
        bool
            True for user and tool messages.
        """
        return self.role in (MessageRole.USER, MessageRole.TOOL)

    def to_openai_message(self) -> MessageDict:
        """
        Convert to the generic chat-completion message shape.

        Provider adapters start from this dictionary and reshape it into
        their own wire format.

        Returns
        -------
        dict[str, Any]
            Message with ``role`` and ``content`` plus tool call fields.

        Examples
        --------
        >>> Message(
        ...     role=MessageRole.TOOL,
        ...     content='{"price": 175.5}',
        ...     tool_call_id="call_1",
        ...     tool_name="getPrice",
        ... ).to_openai_message()
        {'role': 'tool', 'content': '{"price": 175.5}', 'tool_call_id': 'call_1'}
        """
        result: dict[str, Any] = {
            "role": self.role.value,
            "content": self.text_content,
        }

        if self.role == MessageRole.TOOL:
            result["tool_call_id"] = self.tool_call_id
        elif self.tool_calls:
            result["content"] = self.text_content or None
            result["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments),
                    },
                }
                for tc in self.tool_calls
            ]

        return result
