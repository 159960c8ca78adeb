"""Conversation messages, state, storage and locking."""

from agentloop.conversation.locks import ConversationLocks
from agentloop.conversation.models import Message, MessageContent, MessageRole, ToolCall
from agentloop.conversation.state import ConversationState
from agentloop.conversation.store import InMemoryStateStore

__all__ = [
    "ConversationLocks",
    "ConversationState",
    "InMemoryStateStore",
    "Message",
    "MessageContent",
    "MessageRole",
    "ToolCall",
]
