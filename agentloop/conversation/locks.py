"""
Per-conversation locking.

Concurrent top-level requests for the same conversation id are serialized
so that two load-mutate-save cycles never interleave. Requests for
different conversations run freely.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class ConversationLocks:
    """
    Keyed ``asyncio.Lock`` registry.

    A lock exists only while some task holds or waits for it.

    Examples
    --------
    >>> locks = ConversationLocks()
    >>> async with locks.hold("conv-1"):
    ...     ...
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, conversation_id: str) -> bool:
        lock = self._locks.get(conversation_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        """
        Hold the lock of one conversation.

        Parameters
        ----------
        conversation_id : str
            Conversation to lock.

        Yields
        ------
        None
            Control while the lock is held.
        """
        lock: asyncio.Lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._users[conversation_id] = self._users.get(conversation_id, 0) + 1

        try:
            if lock.locked():
                logger.debug(f"Waiting for conversation {conversation_id}")
            async with lock:
                yield
        finally:
            self._users[conversation_id] -= 1
            if self._users[conversation_id] == 0:
                del self._users[conversation_id]
                del self._locks[conversation_id]
