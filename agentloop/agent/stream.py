"""
Streaming state machine and tool-call assembly.

A streaming request moves through explicit phases, and tool calls arrive
from the provider as argument fragments that must be stitched together
before they can run.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum

from agentloop.exceptions import StreamError
from agentloop.llm.models import ToolCallDelta, ToolCallResult

logger = logging.getLogger(__name__)


class StreamPhase(str, Enum):
    """
    Phases of a streaming request.

    Attributes
    ----------
    IDLE : str
        Created, no model call yet.
    RECEIVING : str
        Consuming a provider stream.
    EXECUTING_TOOLS : str
        Running the tool calls of the last round.
    DONE : str
        Finished with a final assistant message.
    ERRORED : str
        Finished with an error fragment.
    """

    IDLE = "idle"
    RECEIVING = "receiving"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ERRORED = "errored"


_TRANSITIONS: dict[StreamPhase, frozenset[StreamPhase]] = {
    StreamPhase.IDLE: frozenset({StreamPhase.RECEIVING, StreamPhase.ERRORED}),
    StreamPhase.RECEIVING: frozenset(
        {StreamPhase.EXECUTING_TOOLS, StreamPhase.DONE, StreamPhase.ERRORED},
    ),
    StreamPhase.EXECUTING_TOOLS: frozenset({StreamPhase.RECEIVING, StreamPhase.ERRORED}),
    StreamPhase.DONE: frozenset(),
    StreamPhase.ERRORED: frozenset(),
}


class StreamStateMachine:
    """
    Tracks the phase of one streaming request.

    Parameters
    ----------
    conversation_id : str
        Conversation being streamed, used in log messages.

    Examples
    --------
    >>> machine = StreamStateMachine("conv-1")
    >>> machine.transition(StreamPhase.RECEIVING)
    >>> machine.phase
    <StreamPhase.RECEIVING: 'receiving'>
    """

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id: str = conversation_id
        self.phase: StreamPhase = StreamPhase.IDLE
        self.rounds: int = 0

    @property
    def is_finished(self) -> bool:
        return self.phase in (StreamPhase.DONE, StreamPhase.ERRORED)

    def transition(self, target: StreamPhase) -> None:
        """
        Move to another phase.

        Entering ``RECEIVING`` starts a new model round.

        Parameters
        ----------
        target : StreamPhase
            Next phase.

        Raises
        ------
        StreamError
            If the transition is not allowed from the current phase.
        """
        if target not in _TRANSITIONS[self.phase]:
            raise StreamError(
                f"Invalid stream transition {self.phase.value} -> {target.value}",
                details={"conversation_id": self.conversation_id},
            )

        logger.debug(
            f"Stream {self.conversation_id}: {self.phase.value} -> {target.value}",
        )
        self.phase = target
        if target == StreamPhase.RECEIVING:
            self.rounds += 1


class ToolCallAccumulator:
    """
    Assembles tool calls from streamed fragments.

    Fragments are grouped by call id and their argument text concatenated
    in arrival order. A fragment without a call id continues the most
    recently started call.

    Examples
    --------
    >>> acc = ToolCallAccumulator()
    >>> acc.add_delta(ToolCallDelta(call_id="c1", name="getPrice", arguments_delta='{"sym'))
    >>> acc.add_delta(ToolCallDelta(arguments_delta='bol": "AAPL"}'))
    >>> acc.results()[0].arguments
    '{"symbol": "AAPL"}'
    """

    def __init__(self) -> None:
        self._calls: dict[str, ToolCallResult] = {}
        self._last_id: str | None = None

    def __len__(self) -> int:
        return len(self._calls)

    def __bool__(self) -> bool:
        return bool(self._calls)

    def add_delta(self, delta: ToolCallDelta) -> None:
        """
        Merge one fragment into its call.

        Parameters
        ----------
        delta : ToolCallDelta
            Fragment from the provider.
        """
        call_id: str | None = delta.call_id or self._last_id
        if call_id is None:
            call_id = f"call_{uuid.uuid4().hex[:12]}"
            logger.debug(f"Tool call fragment without id, assigned {call_id}")

        call: ToolCallResult | None = self._calls.get(call_id)
        if call is None:
            call = ToolCallResult(tool_id=call_id, tool_name=delta.name or "", arguments="")
            self._calls[call_id] = call
        elif delta.name and not call.tool_name:
            call.tool_name = delta.name

        if delta.arguments_delta:
            if isinstance(call.arguments, str):
                call.arguments += delta.arguments_delta
            else:
                logger.warning(
                    f"Ignoring argument fragment for completed tool call {call_id}",
                )

        self._last_id = call_id

    def add_call(self, call: ToolCallResult) -> None:
        """
        Record a tool call that arrived complete.

        Parameters
        ----------
        call : ToolCallResult
            Complete tool call; replaces any fragments with the same id.
        """
        self._calls[call.tool_id] = call.model_copy()
        self._last_id = call.tool_id

    def results(self) -> list[ToolCallResult]:
        return list(self._calls.values())
