"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator

import pytest

from agentloop.agent.orchestrator import MessageOrchestrator
from agentloop.agent.profile import AgentProfile, InMemoryAgentRepository
from agentloop.config.schema import Configuration, OrchestratorConfig
from agentloop.conversation.models import Message, MessageRole
from agentloop.conversation.store import InMemoryStateStore
from agentloop.llm.models import (
    ModelRequestOptions,
    ModelResponse,
    ModelStreamEvent,
    TokenUsage,
    ToolCallResult,
)
from agentloop.tools.base import Tool
from agentloop.tools.builder import ToolBuilder
from agentloop.tools.registry import ToolRegistry


class FakeModelProvider:
    """Model provider that replays scripted replies and records every call."""

    def __init__(self) -> None:
        self._replies: list[ModelResponse | Exception] = []
        self._streams: list[tuple[list[ModelStreamEvent], Exception | None]] = []
        self.calls: list[dict[str, Any]] = []
        self.streams_closed: int = 0

    def reply(
        self,
        text: str = "",
        tool_calls: list[ToolCallResult] | None = None,
        usage: TokenUsage | None = None,
    ) -> None:
        self._replies.append(
            ModelResponse(
                message=Message(role=MessageRole.ASSISTANT, content=text),
                tool_calls=tool_calls or [],
                usage=usage,
            ),
        )

    def fail(self, error: Exception) -> None:
        self._replies.append(error)

    def stream(self, events: list[ModelStreamEvent], error: Exception | None = None) -> None:
        self._streams.append((events, error))

    def _record(
        self,
        messages: list[Message],
        system_prompt: str,
        tools: list[Tool],
        options: ModelRequestOptions,
    ) -> None:
        self.calls.append(
            {
                "messages": [m.model_copy(deep=True) for m in messages],
                "system_prompt": system_prompt,
                "tools": [t.name for t in tools],
                "options": options,
            },
        )

    async def generate(
        self,
        messages: list[Message],
        system_prompt: str,
        tools: list[Tool],
        options: ModelRequestOptions,
    ) -> ModelResponse:
        self._record(messages, system_prompt, tools, options)
        item = self._replies.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def generate_stream(
        self,
        messages: list[Message],
        system_prompt: str,
        tools: list[Tool],
        options: ModelRequestOptions,
    ) -> AsyncIterator[ModelStreamEvent]:
        self._record(messages, system_prompt, tools, options)
        events, error = self._streams.pop(0)
        try:
            for event in events:
                await asyncio.sleep(0)
                yield event
            if error is not None:
                raise error
        finally:
            self.streams_closed += 1

    async def generate_embedding(self, text: str) -> list[float]:
        return [float(len(text))]


@pytest.fixture
def provider() -> FakeModelProvider:
    return FakeModelProvider()


@pytest.fixture
def registry() -> ToolRegistry:
    """Registry with a price lookup, a failing tool and a slow tool."""
    registry = ToolRegistry()

    registry.register(
        ToolBuilder("getPrice")
        .describe("Get the latest price of a stock")
        .input("symbol", "string", "Ticker symbol")
        .handle(lambda args, env: {"symbol": args["symbol"], "price": 175.5}),
    )

    def explode(args: dict[str, Any], env: Any) -> None:
        raise RuntimeError("quote service unavailable")

    registry.register(
        ToolBuilder("getNews").describe("Get company news").handle(explode),
    )

    async def slow_echo(args: dict[str, Any], env: Any) -> str:
        await asyncio.sleep(0.05)
        return f"echo {args.get('text', '')}"

    registry.register(
        ToolBuilder("slowEcho")
        .describe("Echo text after a delay")
        .input("text", "string", "Text to echo", required=False)
        .handle(slow_echo),
    )

    return registry


@pytest.fixture
def profile() -> AgentProfile:
    return AgentProfile(
        id="agent-1",
        name="analyst",
        model_id="test-model",
        system_prompt="You answer questions about stocks.",
    )


@pytest.fixture
def agents(profile: AgentProfile) -> InMemoryAgentRepository:
    return InMemoryAgentRepository([profile])


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def config() -> Configuration:
    return Configuration(orchestrator=OrchestratorConfig(memory_size=10, max_tool_rounds=3))


@pytest.fixture
def orchestrator(
    provider: FakeModelProvider,
    registry: ToolRegistry,
    store: InMemoryStateStore,
    agents: InMemoryAgentRepository,
    config: Configuration,
) -> MessageOrchestrator:
    return MessageOrchestrator(provider, registry, store, agents, config)
