"""
Message-processing orchestrator.

This module drives one user utterance through the agent loop: it appends
the message to the conversation, calls the model provider, runs requested
tools concurrently, feeds their results back to the model until it answers
without tool calls, and persists the conversation once at the end. Replies
are returned whole or streamed as fragments.
"""

import asyncio
import copy
import json
import logging
import uuid
from contextlib import aclosing
from typing import Any, AsyncIterator

from pydantic import BaseModel, Field

from agentloop.agent.events import MessageFragment
from agentloop.agent.profile import AgentProfile
from agentloop.agent.stream import StreamPhase, StreamStateMachine, ToolCallAccumulator
from agentloop.config.schema import Configuration
from agentloop.constants import TOOL_ERROR_PREFIX
from agentloop.conversation.locks import ConversationLocks
from agentloop.conversation.models import Message, MessageRole, ToolCall
from agentloop.conversation.state import ConversationState
from agentloop.exceptions import (
    AgentLoopError,
    ConversationStateError,
    ModelProviderError,
    NotFoundError,
    RecursionLimitError,
    StreamError,
)
from agentloop.interfaces import (
    AgentRepositoryProtocol,
    ModelProviderProtocol,
    StateStoreProtocol,
    ToolRegistryProtocol,
)
from agentloop.llm.models import (
    ModelRequestOptions,
    ModelResponse,
    ModelStreamEvent,
    ModelStreamEventType,
    TokenUsage,
)
from agentloop.prompts.builder import PromptBuilder
from agentloop.tools.base import Tool
from agentloop.tools.models import ToolEnvironment

logger = logging.getLogger(__name__)


class ProcessOptions(BaseModel):
    """
    Per-request options.

    Parameters
    ----------
    temperature : float | None, optional
        Sampling temperature for the model calls.
    max_tokens : int | None, optional
        Completion token limit per model call.
    memory_size : int | None, optional
        Interactions in the context window. Falls back to
        ``orchestrator.memory_size`` from the configuration.
    stream : bool, default=False
        Whether :meth:`MessageOrchestrator.process_message` streams.
    """

    temperature: float | None = Field(default=None, description="Sampling temperature")
    max_tokens: int | None = Field(default=None, ge=1, description="Max completion tokens")
    memory_size: int | None = Field(default=None, ge=1, description="Context window size")
    stream: bool = Field(default=False, description="Stream the reply")


class _Request:
    """Everything one top-level call needs after the agent is resolved."""

    def __init__(
        self,
        profile: AgentProfile,
        state: ConversationState,
        options: ProcessOptions,
        system_prompt: str,
        tools: list[Tool],
    ) -> None:
        self.profile: AgentProfile = profile
        self.state: ConversationState = state
        self.options: ProcessOptions = options
        self.system_prompt: str = system_prompt
        self.tools: list[Tool] = tools
        self.allowed_tools: frozenset[str] | None = (
            frozenset(profile.tool_names) if profile.tool_names is not None else None
        )
        self.tool_rounds: int = 0
        self.usage: TokenUsage = TokenUsage()
        self.usage_reported: bool = False

    def allows_tool(self, name: str) -> bool:
        return self.allowed_tools is None or name in self.allowed_tools

    def add_usage(self, usage: TokenUsage | None) -> None:
        if usage is not None:
            self.usage = self.usage + usage
            self.usage_reported = True


class MessageOrchestrator:
    """
    Drives the model/tool loop for agent conversations.

    The coordinating task is the only writer to the conversation state;
    tool tasks only return values. Concurrent requests for the same
    conversation id wait for each other.

    Parameters
    ----------
    model_provider : ModelProviderProtocol
        Adapter for the language model.
    tool_registry : ToolRegistryProtocol
        Source of tools and their execution.
    state_store : StateStoreProtocol
        Conversation persistence.
    agent_repository : AgentRepositoryProtocol
        Resolves agent ids to profiles.
    config : Configuration | None, optional
        Limits and defaults. Uses defaults if not provided.
    prompt_builder : PromptBuilder | None, optional
        System prompt builder. One is created from ``config`` if omitted.

    Examples
    --------
    >>> orchestrator = MessageOrchestrator(provider, registry, store, agents)
    >>> reply = await orchestrator.process_sync(agent.id, None, "What is AAPL trading at?")
    >>> async for fragment in orchestrator.process_stream(agent.id, reply.conversation_id, "And MSFT?"):
    ...     print(fragment.content, end="")
    """

    def __init__(
        self,
        model_provider: ModelProviderProtocol,
        tool_registry: ToolRegistryProtocol,
        state_store: StateStoreProtocol,
        agent_repository: AgentRepositoryProtocol,
        config: Configuration | None = None,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        self.model_provider: ModelProviderProtocol = model_provider
        self.tool_registry: ToolRegistryProtocol = tool_registry
        self.state_store: StateStoreProtocol = state_store
        self.agent_repository: AgentRepositoryProtocol = agent_repository
        self.config: Configuration = config or Configuration()
        self.prompt_builder: PromptBuilder = prompt_builder or PromptBuilder(self.config)
        self._locks: ConversationLocks = ConversationLocks()
        self._tool_tasks: set[asyncio.Task[Any]] = set()

    async def process_message(
        self,
        agent_id: str,
        conversation_id: str | None,
        user_text: str,
        options: ProcessOptions | None = None,
    ) -> Message | AsyncIterator[MessageFragment]:
        """
        Process a user message, streaming if ``options.stream`` is set.

        Parameters
        ----------
        agent_id : str
            Agent answering the message.
        conversation_id : str | None
            Existing conversation, or None to start a new one.
        user_text : str
            The user's message.
        options : ProcessOptions | None, optional
            Request options.

        Returns
        -------
        Message | AsyncIterator[MessageFragment]
            The final assistant message, or the fragment stream.
        """
        if options is not None and options.stream:
            return self.process_stream(agent_id, conversation_id, user_text, options)

        return await self.process_sync(agent_id, conversation_id, user_text, options)

    async def process_sync(
        self,
        agent_id: str,
        conversation_id: str | None,
        user_text: str,
        options: ProcessOptions | None = None,
    ) -> Message:
        """
        Process a user message and return the final reply.

        Parameters
        ----------
        agent_id : str
            Agent answering the message.
        conversation_id : str | None
            Existing conversation, or None to start a new one.
        user_text : str
            The user's message.
        options : ProcessOptions | None, optional
            Request options.

        Returns
        -------
        Message
            Final assistant message, without tool calls. Its
            ``metadata["usage"]`` holds the token usage summed over all
            rounds when the provider reported any.

        Raises
        ------
        NotFoundError
            If the agent is unknown or the conversation belongs to another
            agent.
        ConversationStateError
            If the context window does not open with a user or tool message.
        ModelProviderError
            If a model call fails.
        RecursionLimitError
            If the model keeps requesting tools past the round limit.
        """
        options = options or ProcessOptions()
        profile: AgentProfile = await self._resolve_agent(agent_id)
        conversation_id = conversation_id or str(uuid.uuid4())

        async with self._locks.hold(conversation_id):
            state: ConversationState = await self._load_state(profile, conversation_id)
            try:
                return await self._run_sync(self._new_request(profile, state, options), user_text)
            finally:
                self._close_pending_calls(state)
                await self.state_store.save(state)

    async def process_stream(
        self,
        agent_id: str,
        conversation_id: str | None,
        user_text: str,
        options: ProcessOptions | None = None,
    ) -> AsyncIterator[MessageFragment]:
        """
        Process a user message and stream the reply as fragments.

        Failures never raise out of the stream; they end it with a single
        ``ERROR`` fragment carrying the serialized error. Closing the stream
        early closes the provider stream and leaves dispatched tool calls
        to finish in the background with their results discarded; the
        calls are recorded as cancelled.

        Parameters
        ----------
        agent_id : str
            Agent answering the message.
        conversation_id : str | None
            Existing conversation, or None to start a new one.
        user_text : str
            The user's message.
        options : ProcessOptions | None, optional
            Request options.

        Yields
        ------
        MessageFragment
            Content deltas, tool calls, tool results, usage and errors.
        """
        options = options or ProcessOptions(stream=True)
        conversation_id = conversation_id or str(uuid.uuid4())
        machine = StreamStateMachine(conversation_id)

        try:
            profile: AgentProfile = await self._resolve_agent(agent_id)
        except AgentLoopError as e:
            machine.transition(StreamPhase.ERRORED)
            yield MessageFragment.error(conversation_id, e)
            return

        async with self._locks.hold(conversation_id):
            try:
                state: ConversationState = await self._load_state(profile, conversation_id)
            except AgentLoopError as e:
                machine.transition(StreamPhase.ERRORED)
                yield MessageFragment.error(conversation_id, e)
                return

            try:
                request = self._new_request(profile, state, options)
                async with aclosing(self._run_stream(request, user_text, machine)) as fragments:
                    async for fragment in fragments:
                        yield fragment
            finally:
                self._close_pending_calls(state)
                await self.state_store.save(state)
                logger.debug(
                    f"Stream {conversation_id} finished in phase {machine.phase.value}",
                )

    async def _resolve_agent(self, agent_id: str) -> AgentProfile:
        profile: AgentProfile | None = await self.agent_repository.find_by_id(agent_id)
        if profile is None:
            raise NotFoundError(
                f"Agent not found: {agent_id}",
                resource="agent",
                identifier=agent_id,
            )
        return profile

    async def _load_state(self, profile: AgentProfile, conversation_id: str) -> ConversationState:
        """
        Load the conversation, or start a new one under this id.

        Parameters
        ----------
        profile : AgentProfile
            Agent answering the request.
        conversation_id : str
            Conversation id.

        Returns
        -------
        ConversationState
            Stored state, reset if it expired, or a fresh state.

        Raises
        ------
        NotFoundError
            If the stored conversation belongs to another agent.
        """
        state: ConversationState | None = await self.state_store.find_by_id(conversation_id)

        if state is None:
            logger.debug(f"Starting conversation {conversation_id} for agent {profile.id}")
            return ConversationState(
                id=conversation_id,
                agent_id=profile.id,
                ttl=self.config.conversation.ttl,
            )

        if state.agent_id and state.agent_id != profile.id:
            raise NotFoundError(
                f"Conversation {conversation_id} not found for agent {profile.id}",
                resource="conversation",
                identifier=conversation_id,
            )

        if state.is_expired():
            logger.info(f"Conversation {conversation_id} expired, resetting")
            state.reset()

        state.agent_id = profile.id
        return state

    def _new_request(
        self,
        profile: AgentProfile,
        state: ConversationState,
        options: ProcessOptions,
    ) -> _Request:
        return _Request(
            profile=profile,
            state=state,
            options=options,
            system_prompt=self.prompt_builder.build(profile, state.memory),
            tools=self.tool_registry.get_tools(profile.tool_names),
        )

    def _build_window(self, request: _Request) -> list[Message]:
        """
        Select the context window for the next model call.

        Parameters
        ----------
        request : _Request
            Current request.

        Returns
        -------
        list[Message]
            Window opening with a user or tool message.

        Raises
        ------
        ConversationStateError
            If the window is empty or opens with another role.
        """
        memory_size: int = request.options.memory_size or self.config.memory_size
        window: list[Message] = request.state.last_n_interactions(memory_size)

        if not window or not window[0].opens_turn():
            raise ConversationStateError(
                "Context window must start with a user or tool message",
                conversation_id=request.state.id,
                details={"window_size": len(window)},
            )

        return window

    def _request_options(self, request: _Request) -> ModelRequestOptions:
        temperature: float | None = request.options.temperature
        round_temperature: float | None = self.config.orchestrator.tool_round_temperature
        if request.tool_rounds > 0 and round_temperature is not None:
            temperature = round_temperature

        return ModelRequestOptions(
            temperature=temperature,
            max_tokens=request.options.max_tokens,
            model_id=request.profile.model_id,
        )

    async def _generate(self, request: _Request, window: list[Message]) -> ModelResponse:
        try:
            return await self.model_provider.generate(
                window,
                request.system_prompt,
                request.tools,
                self._request_options(request),
            )
        except ModelProviderError:
            raise
        except Exception as e:
            logger.error(f"Model provider failed for conversation {request.state.id}: {e}")
            raise ModelProviderError(f"Model provider failed: {e}", cause=e) from e

    async def _run_sync(self, request: _Request, user_text: str) -> Message:
        state: ConversationState = request.state
        state.append(Message(role=MessageRole.USER, content=user_text, conversation_id=state.id))

        while True:
            window: list[Message] = self._build_window(request)
            logger.debug(
                f"Conversation {state.id}: model round {request.tool_rounds} "
                f"with {len(window)} messages",
            )

            response: ModelResponse = await self._generate(request, window)
            request.add_usage(response.usage)

            assistant: Message = self._assistant_message(state, response)
            state.append(assistant)

            if not assistant.tool_calls:
                return self._finalize(request, assistant)

            self._check_round_limit(request, assistant.tool_calls)
            request.tool_rounds += 1

            async with aclosing(self._execute_tool_calls(request, assistant.tool_calls)) as results:
                async for _ in results:
                    pass

    async def _run_stream(
        self,
        request: _Request,
        user_text: str,
        machine: StreamStateMachine,
    ) -> AsyncIterator[MessageFragment]:
        state: ConversationState = request.state

        try:
            state.append(
                Message(role=MessageRole.USER, content=user_text, conversation_id=state.id),
            )

            while True:
                window: list[Message] = self._build_window(request)
                machine.transition(StreamPhase.RECEIVING)
                logger.debug(
                    f"Conversation {state.id}: streaming round {request.tool_rounds} "
                    f"with {len(window)} messages",
                )

                placeholder = Message(
                    role=MessageRole.ASSISTANT,
                    content="",
                    conversation_id=state.id,
                    is_streaming=True,
                )
                accumulator = ToolCallAccumulator()

                async with aclosing(
                    self._receive(request, window, placeholder, accumulator),
                ) as fragments:
                    async for fragment in fragments:
                        yield fragment

                placeholder.tool_calls = [call.to_tool_call() for call in accumulator.results()]
                placeholder.complete_streaming()
                state.append(placeholder)

                if not placeholder.tool_calls:
                    self._finalize(request, placeholder)
                    machine.transition(StreamPhase.DONE)
                    return

                yield MessageFragment.tool_call(state.id, placeholder.tool_calls)

                self._check_round_limit(request, placeholder.tool_calls)
                request.tool_rounds += 1
                machine.transition(StreamPhase.EXECUTING_TOOLS)

                async with aclosing(
                    self._execute_tool_calls(request, placeholder.tool_calls),
                ) as results:
                    async for message in results:
                        yield MessageFragment.tool_result(
                            state.id,
                            message.tool_call_id or "",
                            message.tool_name or "",
                            message.text_content,
                            is_error=message.is_tool_error,
                        )
        except Exception as e:
            error: AgentLoopError = (
                e if isinstance(e, AgentLoopError) else StreamError(f"Stream failed: {e}", cause=e)
            )
            logger.error(f"Stream for conversation {state.id} failed: {error.message}")
            machine.transition(StreamPhase.ERRORED)
            yield MessageFragment.error(state.id, error)

    async def _receive(
        self,
        request: _Request,
        window: list[Message],
        placeholder: Message,
        accumulator: ToolCallAccumulator,
    ) -> AsyncIterator[MessageFragment]:
        """
        Consume one provider stream.

        Parameters
        ----------
        request : _Request
            Current request.
        window : list[Message]
            Context window.
        placeholder : Message
            Assistant message collecting the content deltas.
        accumulator : ToolCallAccumulator
            Collects tool-call fragments.

        Yields
        ------
        MessageFragment
            Content and usage fragments.

        Raises
        ------
        StreamError
            If the provider sends an error event.
        ModelProviderError
            If the provider stream raises.
        """
        conversation_id: str = request.state.id

        try:
            upstream: AsyncIterator[ModelStreamEvent] = self.model_provider.generate_stream(
                window,
                request.system_prompt,
                request.tools,
                self._request_options(request),
            )
        except Exception as e:
            raise ModelProviderError(f"Model provider failed: {e}", cause=e) from e

        try:
            while True:
                try:
                    event: ModelStreamEvent = await upstream.__anext__()
                except StopAsyncIteration:
                    break
                except AgentLoopError:
                    raise
                except Exception as e:
                    raise ModelProviderError(f"Model stream failed: {e}", cause=e) from e

                if event.type == ModelStreamEventType.CONTENT_DELTA:
                    if event.content:
                        placeholder.append_content(event.content)
                        yield MessageFragment.content_delta(conversation_id, event.content)
                elif event.type == ModelStreamEventType.TOOL_CALL_DELTA:
                    if event.tool_call_delta is not None:
                        accumulator.add_delta(event.tool_call_delta)
                elif event.type == ModelStreamEventType.TOOL_CALL:
                    if event.tool_call is not None:
                        accumulator.add_call(event.tool_call)
                elif event.type == ModelStreamEventType.ERROR:
                    raise StreamError(
                        event.error or "Model stream reported an error",
                        details={"conversation_id": conversation_id},
                    )
                elif event.usage is not None:
                    request.add_usage(event.usage)
                    yield MessageFragment.usage(conversation_id, event.usage)
        finally:
            aclose = getattr(upstream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _assistant_message(self, state: ConversationState, response: ModelResponse) -> Message:
        tool_calls: list[ToolCall] = [call.to_tool_call() for call in response.tool_calls]
        if not tool_calls:
            tool_calls = list(response.message.tool_calls)

        return Message(
            role=MessageRole.ASSISTANT,
            content=response.message.content,
            conversation_id=state.id,
            metadata=dict(response.message.metadata),
            tool_calls=tool_calls,
        )

    def _finalize(self, request: _Request, message: Message) -> Message:
        if request.usage_reported:
            message.metadata["usage"] = request.usage.model_dump()
        message.metadata["tool_rounds"] = request.tool_rounds

        logger.info(
            f"Conversation {request.state.id} answered after "
            f"{request.tool_rounds} tool rounds",
        )
        return message

    def _check_round_limit(self, request: _Request, tool_calls: list[ToolCall]) -> None:
        """
        Stop a request that wants more tool rounds than allowed.

        The refused calls are answered with error tool messages, so the
        history stays resolved for the next request.

        Raises
        ------
        RecursionLimitError
            If the round limit is reached.
        """
        max_rounds: int = self.config.max_tool_rounds
        if request.tool_rounds < max_rounds:
            return

        _answer_calls(
            request.state,
            tool_calls,
            f"Tool call skipped: limit of {max_rounds} tool rounds reached",
        )

        logger.warning(f"Conversation {request.state.id} hit the tool round limit")
        raise RecursionLimitError(
            f"Exceeded maximum of {max_rounds} tool rounds",
            max_rounds=max_rounds,
        )

    def _close_pending_calls(self, state: ConversationState) -> None:
        """
        Answer tool calls left without a result before the state is saved.

        This happens when a request is cancelled while its tools run; the
        late results are discarded, so every open call is marked cancelled.
        """
        pending: set[str] = state.pending_tool_call_ids()
        if not pending:
            return

        calls: list[ToolCall] = [
            call
            for message in state.history
            if message.has_pending_tool_calls
            for call in message.tool_calls
            if call.id in pending
        ]
        logger.warning(f"Conversation {state.id}: {len(calls)} tool calls cancelled")
        _answer_calls(state, calls, "Tool call cancelled before it returned a result")

    async def _execute_tool_calls(
        self,
        request: _Request,
        tool_calls: list[ToolCall],
    ) -> AsyncIterator[Message]:
        """
        Run tool calls concurrently and record their results.

        Each call runs in its own task; one failure never cancels the
        others. Results are appended to the history in completion order.

        Parameters
        ----------
        request : _Request
            Current request.
        tool_calls : list[ToolCall]
            Calls requested by the assistant.

        Yields
        ------
        Message
            Each tool message, right after it was appended.
        """
        state: ConversationState = request.state
        tasks: list[asyncio.Task[tuple[ToolCall, str, bool]]] = []

        for call in tool_calls:
            environment = ToolEnvironment(
                agent_id=request.profile.id,
                conversation_id=state.id,
                tool_call_id=call.id,
                memory=copy.deepcopy(state.memory),
            )
            task = asyncio.create_task(
                self._run_tool(request, call, environment),
                name=f"tool:{call.name}:{call.id}",
            )
            self._tool_tasks.add(task)
            task.add_done_callback(self._tool_tasks.discard)
            tasks.append(task)

        logger.info(f"Conversation {state.id}: dispatched {len(tasks)} tool calls")

        for next_done in asyncio.as_completed(tasks):
            call, content, is_error = await next_done
            message = Message(
                role=MessageRole.TOOL,
                content=content,
                conversation_id=state.id,
                tool_call_id=call.id,
                tool_name=call.name,
                is_tool_error=is_error,
            )
            state.append(message)
            yield message

    async def _run_tool(
        self,
        request: _Request,
        call: ToolCall,
        environment: ToolEnvironment,
    ) -> tuple[ToolCall, str, bool]:
        try:
            # tools outside the agent's allow-list look the same as unknown ones
            if not request.allows_tool(call.name):
                raise NotFoundError(
                    f"Tool not found: {call.name}",
                    resource="tool",
                    identifier=call.name,
                )
            result: Any = await self.tool_registry.execute_tool_by_name(
                call.name,
                copy.deepcopy(call.arguments),
                environment,
            )
        except Exception as e:
            logger.warning(f"Tool call {call.name} ({call.id}) failed: {e}")
            return call, _format_tool_error(call.name, e), True

        return call, _serialize_result(result), False


def _format_tool_error(tool_name: str, error: Exception) -> str:
    message: str = error.message if isinstance(error, AgentLoopError) else str(error)
    if message.startswith(TOOL_ERROR_PREFIX):
        return message
    return f"{TOOL_ERROR_PREFIX} {tool_name}: {message}"


def _serialize_result(result: Any) -> str:
    """
    Render a tool result as message content.

    Parameters
    ----------
    result : Any
        Tool return value.

    Returns
    -------
    str
        Strings unchanged, pydantic models and JSON-compatible values as
        JSON, anything else through ``str``.
    """
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()

    try:
        return json.dumps(result, default=str)
    except (TypeError, ValueError):
        return str(result)


def _answer_calls(state: ConversationState, tool_calls: list[ToolCall], content: str) -> None:
    for call in tool_calls:
        state.append(
            Message(
                role=MessageRole.TOOL,
                content=content,
                conversation_id=state.id,
                tool_call_id=call.id,
                tool_name=call.name,
                is_tool_error=True,
            ),
        )
