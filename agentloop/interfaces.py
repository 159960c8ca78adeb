"""
Protocol definitions for the collaborators of the orchestrator.

This module defines the interfaces the orchestrator depends on. Concrete
model providers, tool registries, state stores, and agent repositories are
injected, which keeps vendor wire formats and storage out of the core and
lets tests substitute in-memory doubles.
"""

from typing import Any, AsyncIterator, Protocol

from agentloop.agent.profile import AgentProfile
from agentloop.conversation.models import Message
from agentloop.conversation.state import ConversationState
from agentloop.llm.models import ModelRequestOptions, ModelResponse, ModelStreamEvent
from agentloop.tools.base import Tool
from agentloop.tools.models import ToolEnvironment
from agentloop.types import ToolArguments


class ModelProviderProtocol(Protocol):
    """
    Protocol for model provider adapters.

    An adapter translates the provider-neutral messages and tools into a
    vendor request, and the vendor reply back into a :class:`ModelResponse`
    or a sequence of :class:`ModelStreamEvent`. Retries and timeouts belong
    to the adapter.
    """

    async def generate(
        self,
        messages: list[Message],
        system_prompt: str,
        tools: list[Tool],
        options: ModelRequestOptions,
    ) -> ModelResponse:
        """
        Generate one complete reply.

        Parameters
        ----------
        messages : list[Message]
            Context window, oldest first.
        system_prompt : str
            System instructions for the model.
        tools : list[Tool]
            Tools the model may call.
        options : ModelRequestOptions
            Temperature, token limit and model id.

        Returns
        -------
        ModelResponse
            Assistant message, tool calls and usage.

        Raises
        ------
        Exception
            Any upstream failure; the orchestrator wraps it.
        """
        ...

    def generate_stream(
        self,
        messages: list[Message],
        system_prompt: str,
        tools: list[Tool],
        options: ModelRequestOptions,
    ) -> AsyncIterator[ModelStreamEvent]:
        """
        Generate one reply as a stream of fragments.

        Parameters
        ----------
        messages : list[Message]
            Context window, oldest first.
        system_prompt : str
            System instructions for the model.
        tools : list[Tool]
            Tools the model may call.
        options : ModelRequestOptions
            Temperature, token limit and model id.

        Returns
        -------
        AsyncIterator[ModelStreamEvent]
            Content deltas, tool-call deltas, usage and error events. The
            iterator is closed with ``aclose()`` when the consumer stops
            early, if it provides that method.
        """
        ...

    async def generate_embedding(self, text: str) -> list[float]:
        ...


class ToolRegistryProtocol(Protocol):
    """Protocol for tool lookup and execution."""

    def get_tool_by_name(self, name: str) -> Tool | None:
        ...

    def get_tools(self, names: list[str] | None = None) -> list[Tool]:
        """
        Get the tools with the given names.

        Parameters
        ----------
        names : list[str] | None, optional
            Names to select; None selects every tool.

        Returns
        -------
        list[Tool]
            Matching tools.
        """
        ...

    async def execute_tool_by_name(
        self,
        name: str,
        args: ToolArguments,
        environment: ToolEnvironment | None = None,
    ) -> Any:
        """
        Execute a tool by name.

        Parameters
        ----------
        name : str
            Tool name.
        args : ToolArguments
            Arguments for the tool.
        environment : ToolEnvironment | None, optional
            Read-only execution context.

        Returns
        -------
        Any
            Tool result.

        Raises
        ------
        NotFoundError
            If no tool has this name.
        ValidationError
            If the arguments are invalid.
        ToolExecutionError
            If the tool handler fails.
        """
        ...


class StateStoreProtocol(Protocol):
    """Protocol for conversation state persistence."""

    async def find_by_id(self, state_id: str) -> ConversationState | None:
        ...

    async def save(self, state: ConversationState) -> None:
        """
        Persist a conversation state, replacing any stored version.

        Parameters
        ----------
        state : ConversationState
            State to store.
        """
        ...

    async def delete_by_agent_id(self, agent_id: str) -> int:
        ...


class AgentRepositoryProtocol(Protocol):
    """Protocol for resolving agent ids to profiles."""

    async def find_by_id(self, agent_id: str) -> AgentProfile | None:
        ...
