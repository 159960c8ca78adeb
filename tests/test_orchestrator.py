"""Tests for MessageOrchestrator.process_sync."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta
from typing import Any

import pytest

from agentloop.agent.events import FragmentType
from agentloop.agent.orchestrator import MessageOrchestrator, ProcessOptions
from agentloop.agent.profile import AgentProfile, InMemoryAgentRepository
from agentloop.config.schema import Configuration, OrchestratorConfig
from agentloop.conversation.models import Message, MessageRole
from agentloop.conversation.state import ConversationState
from agentloop.exceptions import (
    ConversationStateError,
    ModelProviderError,
    NotFoundError,
    RecursionLimitError,
)
from agentloop.llm.models import ModelStreamEvent, TokenUsage, ToolCallResult
from agentloop.tools.builder import ToolBuilder
from agentloop.tools.models import ToolEnvironment


def _call(call_id: str, name: str, arguments: dict[str, Any] | str) -> ToolCallResult:
    return ToolCallResult(tool_id=call_id, tool_name=name, arguments=arguments)


def _roles(state: ConversationState) -> list[str]:
    return [m.role.value for m in state.history]


# ---------------------------------------------------------------------------
# basic rounds
# ---------------------------------------------------------------------------


async def test_simple_reply(orchestrator, provider, store) -> None:
    provider.reply("Hello! How can I help?")

    reply = await orchestrator.process_sync("agent-1", None, "Hi")

    assert reply.role == MessageRole.ASSISTANT
    assert reply.text_content == "Hello! How can I help?"
    assert reply.metadata["tool_rounds"] == 0

    state = await store.find_by_id(reply.conversation_id)
    assert _roles(state) == ["user", "assistant"]
    assert store.save_count == 1

    call = provider.calls[0]
    assert [m.text_content for m in call["messages"]] == ["Hi"]
    assert "You answer questions about stocks." in call["system_prompt"]
    assert call["tools"] == ["getPrice", "getNews", "slowEcho"]
    assert call["options"].model_id == "test-model"


async def test_one_tool_round(orchestrator, provider, store) -> None:
    provider.reply("", tool_calls=[_call("c1", "getPrice", {"symbol": "AAPL"})])
    provider.reply("AAPL trades at 175.5")

    reply = await orchestrator.process_sync("agent-1", None, "Price of AAPL?")

    state = await store.find_by_id(reply.conversation_id)
    assert _roles(state) == ["user", "assistant", "tool", "assistant"]

    tool_message = state.history[2]
    assert tool_message.tool_call_id == "c1"
    assert tool_message.tool_name == "getPrice"
    assert not tool_message.is_tool_error
    assert json.loads(tool_message.text_content) == {"symbol": "AAPL", "price": 175.5}

    # The follow-up call sees the tool result
    assert [m.role for m in provider.calls[1]["messages"]] == [
        MessageRole.USER,
        MessageRole.ASSISTANT,
        MessageRole.TOOL,
    ]
    assert reply.text_content == "AAPL trades at 175.5"
    assert store.save_count == 1


async def test_recursive_tool_rounds(orchestrator, provider, store) -> None:
    provider.reply("", tool_calls=[_call("c1", "getPrice", {"symbol": "AAPL"})])
    provider.reply("", tool_calls=[_call("c2", "getPrice", {"symbol": "MSFT"})])
    provider.reply("Both fetched")

    reply = await orchestrator.process_sync("agent-1", None, "Compare AAPL and MSFT")

    state = await store.find_by_id(reply.conversation_id)
    assert _roles(state) == ["user", "assistant", "tool", "assistant", "tool", "assistant"]
    assert reply.metadata["tool_rounds"] == 2
    assert store.save_count == 1


async def test_continues_existing_conversation(orchestrator, provider, store) -> None:
    provider.reply("First answer")
    provider.reply("Second answer")

    first = await orchestrator.process_sync("agent-1", None, "First")
    second = await orchestrator.process_sync("agent-1", first.conversation_id, "Second")

    assert second.conversation_id == first.conversation_id
    state = await store.find_by_id(first.conversation_id)
    assert [m.text_content for m in state.history] == ["First", "First answer", "Second", "Second answer"]
    assert store.save_count == 2


async def test_memory_size_limits_window(orchestrator, provider) -> None:
    provider.reply("A1")
    provider.reply("A2")

    first = await orchestrator.process_sync("agent-1", None, "U1")
    await orchestrator.process_sync(
        "agent-1",
        first.conversation_id,
        "U2",
        ProcessOptions(memory_size=1),
    )

    assert [m.text_content for m in provider.calls[1]["messages"]] == ["U2"]


async def test_usage_is_summed_across_rounds(orchestrator, provider) -> None:
    provider.reply(
        "",
        tool_calls=[_call("c1", "getPrice", {"symbol": "AAPL"})],
        usage=TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )
    provider.reply(
        "Done",
        usage=TokenUsage(prompt_tokens=20, completion_tokens=10, total_tokens=30),
    )

    reply = await orchestrator.process_sync("agent-1", None, "Price?")

    assert reply.metadata["usage"] == {
        "prompt_tokens": 30,
        "completion_tokens": 15,
        "total_tokens": 45,
    }


# ---------------------------------------------------------------------------
# tool fan-out
# ---------------------------------------------------------------------------


async def test_failing_tool_does_not_affect_sibling(orchestrator, provider, store) -> None:
    provider.reply(
        "",
        tool_calls=[
            _call("c1", "getPrice", {"symbol": "AAPL"}),
            _call("c2", "getNews", {}),
        ],
    )
    provider.reply("Price found, news unavailable")

    reply = await orchestrator.process_sync("agent-1", None, "Price and news for AAPL")

    state = await store.find_by_id(reply.conversation_id)
    results = {m.tool_call_id: m for m in state.history if m.role == MessageRole.TOOL}
    assert set(results) == {"c1", "c2"}

    assert not results["c1"].is_tool_error
    assert results["c2"].is_tool_error
    assert results["c2"].text_content.startswith("Error executing tool getNews")
    assert "quote service unavailable" in results["c2"].text_content
    assert state.is_resolved()


async def test_results_are_appended_in_completion_order(orchestrator, provider, store) -> None:
    provider.reply(
        "",
        tool_calls=[
            _call("slow", "slowEcho", {"text": "hi"}),
            _call("fast", "getPrice", {"symbol": "AAPL"}),
        ],
    )
    provider.reply("done")

    reply = await orchestrator.process_sync("agent-1", None, "go")

    state = await store.find_by_id(reply.conversation_id)
    tool_ids = [m.tool_call_id for m in state.history if m.role == MessageRole.TOOL]
    assert tool_ids == ["fast", "slow"]


async def test_unknown_tool_becomes_error_message(orchestrator, provider, store) -> None:
    provider.reply("", tool_calls=[_call("c1", "missingTool", {})])
    provider.reply("Sorry")

    reply = await orchestrator.process_sync("agent-1", None, "go")

    state = await store.find_by_id(reply.conversation_id)
    tool_message = state.history[2]
    assert tool_message.is_tool_error
    assert tool_message.text_content == "Error executing tool missingTool: Tool not found: missingTool"


async def test_unparseable_arguments_are_passed_raw(orchestrator, provider, registry) -> None:
    seen: list[dict[str, Any]] = []
    registry.register(
        ToolBuilder("capture").describe("Capture arguments").handle(lambda args, env: seen.append(args)),
    )
    provider.reply("", tool_calls=[_call("c1", "capture", "symbol=AAPL")])
    provider.reply("ok")

    await orchestrator.process_sync("agent-1", None, "go")

    assert seen == [{"raw_arguments": "symbol=AAPL"}]


async def test_tools_receive_read_only_environment(orchestrator, provider, registry, store) -> None:
    environments: list[ToolEnvironment] = []

    def capture(args: dict[str, Any], env: ToolEnvironment) -> str:
        environments.append(env)
        env.memory["leak"] = True
        return "ok"

    registry.register(ToolBuilder("capture").describe("Capture env").handle(capture))
    state = ConversationState(id="conv-1", agent_id="agent-1", memory={"risk": "low"})
    await store.save(state)

    provider.reply("", tool_calls=[_call("c1", "capture", {})])
    provider.reply("ok")

    await orchestrator.process_sync("agent-1", "conv-1", "go")

    env = environments[0]
    assert env.agent_id == "agent-1"
    assert env.conversation_id == "conv-1"
    assert env.tool_call_id == "c1"
    assert env.memory["risk"] == "low"

    saved = await store.find_by_id("conv-1")
    assert saved.memory == {"risk": "low"}


@pytest.fixture
def pricer(agents: InMemoryAgentRepository) -> AgentProfile:
    """Agent that may only call getPrice."""
    profile = AgentProfile(id="pricer", name="pricer", tool_names=["getPrice"])
    agents.add(profile)
    return profile


async def test_tool_outside_allow_list_is_refused(orchestrator, provider, store, pricer) -> None:
    provider.reply(
        "",
        tool_calls=[
            _call("c1", "slowEcho", {"text": "hi"}),
            _call("c2", "getPrice", {"symbol": "AAPL"}),
        ],
    )
    provider.reply("done")

    reply = await orchestrator.process_sync(pricer.id, None, "go")

    assert provider.calls[0]["tools"] == ["getPrice"]
    state = await store.find_by_id(reply.conversation_id)
    results = {m.tool_call_id: m for m in state.history if m.role == MessageRole.TOOL}
    assert results["c1"].is_tool_error
    assert results["c1"].text_content == "Error executing tool slowEcho: Tool not found: slowEcho"
    assert not results["c2"].is_tool_error


async def test_stream_refuses_tool_outside_allow_list(orchestrator, provider, pricer) -> None:
    provider.stream([ModelStreamEvent.tool_call_fragment("c1", "slowEcho", '{"text": "hi"}')])
    provider.stream([ModelStreamEvent.content_delta("done")])

    fragments = [f async for f in orchestrator.process_stream(pricer.id, None, "go")]

    result = next(f for f in fragments if f.type == FragmentType.TOOL_RESULT)
    assert result.is_tool_error
    assert result.content == "Error executing tool slowEcho: Tool not found: slowEcho"


# ---------------------------------------------------------------------------
# failures and limits
# ---------------------------------------------------------------------------


async def test_unknown_agent(orchestrator, provider, store) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        await orchestrator.process_sync("nobody", None, "Hi")

    assert exc_info.value.resource == "agent"
    assert provider.calls == []
    assert store.save_count == 0


async def test_conversation_of_another_agent(orchestrator, provider, store) -> None:
    await store.save(ConversationState(id="conv-x", agent_id="agent-2"))

    with pytest.raises(NotFoundError):
        await orchestrator.process_sync("agent-1", "conv-x", "Hi")

    assert provider.calls == []


async def test_expired_conversation_is_reset(orchestrator, provider, store) -> None:
    old = ConversationState(id="conv-old", agent_id="agent-1", ttl=60, memory={"k": "v"})
    old.append(Message(role=MessageRole.USER, content="ancient"))
    old.updated_at = datetime.now() - timedelta(hours=1)
    await store.save(old)
    provider.reply("fresh")

    await orchestrator.process_sync("agent-1", "conv-old", "Hi again")

    state = await store.find_by_id("conv-old")
    assert [m.text_content for m in state.history] == ["Hi again", "fresh"]
    assert state.memory == {}


async def test_provider_failure_is_wrapped_and_state_saved(orchestrator, provider, store) -> None:
    provider.fail(ConnectionError("upstream down"))

    with pytest.raises(ModelProviderError) as exc_info:
        await orchestrator.process_sync("agent-1", "conv-1", "Hi")

    assert isinstance(exc_info.value.cause, ConnectionError)
    assert store.save_count == 1
    state = await store.find_by_id("conv-1")
    assert _roles(state) == ["user"]


async def test_recursion_limit(orchestrator, provider, store) -> None:
    for i in range(4):
        provider.reply("", tool_calls=[_call(f"c{i}", "getPrice", {"symbol": "AAPL"})])

    with pytest.raises(RecursionLimitError) as exc_info:
        await orchestrator.process_sync("agent-1", "conv-1", "Loop forever")

    assert exc_info.value.max_rounds == 3
    assert len(provider.calls) == 4
    assert store.save_count == 1

    state = await store.find_by_id("conv-1")
    assert state.is_resolved()
    assert state.history[-1].is_tool_error


async def test_window_must_open_with_user_or_tool(orchestrator, provider, store, monkeypatch) -> None:
    monkeypatch.setattr(
        ConversationState,
        "last_n_interactions",
        lambda self, n: [Message(role=MessageRole.ASSISTANT, content="orphan")],
    )

    with pytest.raises(ConversationStateError):
        await orchestrator.process_sync("agent-1", "conv-1", "Hi")

    assert provider.calls == []
    assert store.save_count == 1


# ---------------------------------------------------------------------------
# concurrency and configuration
# ---------------------------------------------------------------------------


async def test_concurrent_requests_for_one_conversation_are_serialized(
    orchestrator, provider, store,
) -> None:
    provider.reply("A1")
    provider.reply("A2")

    await asyncio.gather(
        orchestrator.process_sync("agent-1", "conv-1", "U1"),
        orchestrator.process_sync("agent-1", "conv-1", "U2"),
    )

    state = await store.find_by_id("conv-1")
    assert _roles(state) == ["user", "assistant", "user", "assistant"]
    assert len(provider.calls[1]["messages"]) == 3


async def test_tool_round_temperature(provider, registry, store, agents) -> None:
    config = Configuration(orchestrator=OrchestratorConfig(tool_round_temperature=0.0))
    orchestrator = MessageOrchestrator(provider, registry, store, agents, config)
    provider.reply("", tool_calls=[_call("c1", "getPrice", {"symbol": "AAPL"})])
    provider.reply("done")

    await orchestrator.process_sync("agent-1", None, "go", ProcessOptions(temperature=0.7, max_tokens=256))

    assert provider.calls[0]["options"].temperature == 0.7
    assert provider.calls[1]["options"].temperature == 0.0
    assert provider.calls[1]["options"].max_tokens == 256


async def test_process_message_dispatch(orchestrator, provider) -> None:
    provider.reply("sync reply")

    reply = await orchestrator.process_message("agent-1", None, "Hi")

    assert isinstance(reply, Message)
    stream = await orchestrator.process_message("agent-1", None, "Hi", ProcessOptions(stream=True))
    assert hasattr(stream, "__aiter__")
    await stream.aclose()
