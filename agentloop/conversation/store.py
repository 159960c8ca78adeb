"""
In-memory conversation state store.

This module provides a dict-backed implementation of the state store
contract for tests and single-process embedders. Durable stores live
outside the package and implement the same methods.
"""

import asyncio
import logging

from agentloop.conversation.state import ConversationState

logger = logging.getLogger(__name__)


class InMemoryStateStore:
    """
    Conversation states kept in process memory.

    States are copied on the way in and out, so a caller mutating a loaded
    state does not change the stored one until it saves again.

    Attributes
    ----------
    save_count : int
        Number of :meth:`save` calls since creation.

    Examples
    --------
    >>> store = InMemoryStateStore()
    >>> await store.save(ConversationState(agent_id="agent-1"))
    >>> states = await store.find_by_agent_id("agent-1")
    """

    def __init__(self) -> None:
        self._states: dict[str, ConversationState] = {}
        self._lock = asyncio.Lock()
        self.save_count: int = 0

    async def find_by_id(self, state_id: str) -> ConversationState | None:
        async with self._lock:
            state = self._states.get(state_id)
            return state.model_copy(deep=True) if state else None

    async def find_by_agent_id(self, agent_id: str) -> list[ConversationState]:
        async with self._lock:
            return [
                state.model_copy(deep=True)
                for state in self._states.values()
                if state.agent_id == agent_id
            ]

    async def save(self, state: ConversationState) -> None:
        async with self._lock:
            self._states[state.id] = state.model_copy(deep=True)
            self.save_count += 1
        logger.debug(f"Saved conversation state {state.id} ({state.message_count} messages)")

    async def delete(self, state_id: str) -> bool:
        async with self._lock:
            return self._states.pop(state_id, None) is not None

    async def delete_by_agent_id(self, agent_id: str) -> int:
        """
        Delete every state of an agent.

        Parameters
        ----------
        agent_id : str
            Owning agent.

        Returns
        -------
        int
            Number of deleted states.
        """
        async with self._lock:
            doomed: list[str] = [
                state_id
                for state_id, state in self._states.items()
                if state.agent_id == agent_id
            ]
            for state_id in doomed:
                del self._states[state_id]

        return len(doomed)

    async def clear_expired_states(self) -> int:
        """
        Delete every state whose time-to-live has elapsed.

        Returns
        -------
        int
            Number of deleted states.
        """
        async with self._lock:
            expired: list[str] = [
                state_id
                for state_id, state in self._states.items()
                if state.is_expired()
            ]
            for state_id in expired:
                del self._states[state_id]

        if expired:
            logger.info(f"Cleared {len(expired)} expired conversation states")
        return len(expired)
