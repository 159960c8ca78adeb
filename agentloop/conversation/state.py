"""
Conversation state for one agent session.

This module provides the ordered message history, free-form memory, and
expiry tracking of a single conversation, together with the context-window
selection used before every model call.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field

from agentloop.conversation.models import Message, MessageRole

logger = logging.getLogger(__name__)


class ConversationState(BaseModel):
    """
    One logical session for one agent.

    History is kept sorted non-decreasing by ``created_at``. Every mutation
    goes through a method of this class and touches ``updated_at``.

    Parameters
    ----------
    id : str, optional
        State identifier, also used as the conversation id. A uuid4 is
        generated if omitted.
    agent_id : str, default=""
        Agent owning this conversation.
    history : list[Message], default=[]
        Ordered message history.
    memory : dict[str, Any], default={}
        Free-form memory.
    ttl : int | None, optional
        Seconds of inactivity after which the state expires.

    Examples
    --------
    >>> state = ConversationState(agent_id="agent-1")
    >>> state.append(Message(role=MessageRole.USER, content="Hello"))
    >>> state.last_n_interactions(5)[0].text_content
    'Hello'
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="State id")
    agent_id: str = Field(default="", description="Owning agent id")
    history: list[Message] = Field(default_factory=list, description="Message history")
    memory: dict[str, Any] = Field(default_factory=dict, description="Conversation memory")
    ttl: int | None = Field(default=None, description="Time-to-live in seconds")
    created_at: datetime = Field(default_factory=datetime.now, description="Created at")
    updated_at: datetime = Field(default_factory=datetime.now, description="Updated at")

    def _touch(self) -> None:
        self.updated_at = datetime.now()

    @property
    def message_count(self) -> int:
        """
        Get the number of messages in the history.

        Returns
        -------
        int
            Number of messages.
        """
        return len(self.history)

    def append(self, message: Message) -> None:
        """
        Insert a message at its chronological position.

        The message goes after every message with an equal or earlier
        timestamp, so out-of-order arrivals still leave the history sorted.

        Parameters
        ----------
        message : Message
            Message to insert. Its ``conversation_id`` is filled in if empty.
        """
        if not message.conversation_id:
            message.conversation_id = self.id

        insert_index: int = len(self.history)
        for index, existing in enumerate(self.history):
            if existing.created_at > message.created_at:
                insert_index = index
                break

        self.history.insert(insert_index, message)
        self._touch()

    def last_n(self, n: int) -> list[Message]:
        """
        Get the last ``n`` raw messages in chronological order.

        Parameters
        ----------
        n : int
            Number of messages.

        Returns
        -------
        list[Message]
            Up to ``n`` most recent messages.
        """
        if n <= 0:
            return []
        return list(self.history[-n:])

    def last_n_interactions(self, n: int) -> list[Message]:
        """
        Build a context window holding the last ``n`` interactions.

        The history is walked backward and one interaction is counted at
        every user message, which opens a turn. Tool results and assistant
        replies belong to the turn of the user message before them. The walk
        stops once ``n`` interactions are collected. A window never opens
        with an assistant message: leading messages before the first user or
        tool message are dropped, and a window without any is empty.

        A trailing user message that has no reply yet occupies one
        interaction slot, so ``[U1, A1, U2]`` with ``n=1`` yields ``[U2]``.

        Parameters
        ----------
        n : int
            Number of interactions.

        Returns
        -------
        list[Message]
            Context window in chronological order.

        Examples
        --------
        >>> # history: U1 A1 U2 A2 U3 A3
        >>> [m.text_content for m in state.last_n_interactions(2)]
        ['U2', 'A2', 'U3', 'A3']
        """
        if n <= 0:
            return []

        result: list[Message] = []
        interaction_count: int = 0

        for message in reversed(self.history):
            result.insert(0, message)

            if message.role == MessageRole.USER:
                interaction_count += 1
                if interaction_count >= n:
                    break

        for index, message in enumerate(result):
            if message.opens_turn():
                return result[index:]

        return []

    def pending_tool_call_ids(self) -> set[str]:
        """
        Get tool call ids that have no tool result message yet.

        Returns
        -------
        set[str]
            Identifiers of unanswered tool calls.
        """
        requested: set[str] = set()
        answered: set[str] = set()

        for message in self.history:
            if message.has_pending_tool_calls:
                requested.update(tc.id for tc in message.tool_calls)
            elif message.role == MessageRole.TOOL and message.tool_call_id:
                answered.add(message.tool_call_id)

        return requested - answered

    def is_resolved(self) -> bool:
        return not self.pending_tool_call_ids()

    def set_memory(self, key: str, value: Any) -> None:
        self.memory[key] = value
        self._touch()

    def get_memory(self, key: str, default: Any = None) -> Any:
        return self.memory.get(key, default)

    def update_memory(self, values: dict[str, Any]) -> None:
        """
        Merge several entries into memory.

        Parameters
        ----------
        values : dict[str, Any]
            Entries to merge; existing keys are overwritten.
        """
        self.memory.update(values)
        self._touch()

    def delete_memory(self, key: str) -> None:
        self.memory.pop(key, None)
        self._touch()

    def clear_memory(self) -> None:
        self.memory = {}
        self._touch()

    def clear_conversation(self) -> None:
        self.history = []
        self._touch()

    def is_expired(self) -> bool:
        """
        Check whether the state outlived its time-to-live.

        Returns
        -------
        bool
            True once ``now > updated_at + ttl``; always False without ttl.
        """
        if not self.ttl:
            return False

        return datetime.now() > self.updated_at + timedelta(seconds=self.ttl)

    def reset(self) -> None:
        """Clear history and memory of an expired conversation."""
        logger.debug(f"Resetting conversation state {self.id}")
        self.history = []
        self.memory = {}
        self._touch()
