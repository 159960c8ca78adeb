"""Tests for Tool argument validation, execution and the ToolBuilder."""

from __future__ import annotations

from typing import Any

import pytest

from agentloop.exceptions import ToolExecutionError, ValidationError
from agentloop.tools.base import Tool
from agentloop.tools.builder import ToolBuilder
from agentloop.tools.models import ParameterType, ToolEnvironment, ToolParameter


def _recording_tool(*parameters: ToolParameter) -> tuple[Tool, list[dict[str, Any]]]:
    seen: list[dict[str, Any]] = []

    def handler(args: dict[str, Any], env: ToolEnvironment | None) -> str:
        seen.append(dict(args))
        return "ok"

    return Tool(name="probe", description="Records arguments", parameters=list(parameters), handler=handler), seen


# ---------------------------------------------------------------------------
# validation
# ---------------------------------------------------------------------------


async def test_numeric_string_is_coerced_before_handler() -> None:
    tool, seen = _recording_tool(ToolParameter(name="count", type=ParameterType.NUMBER, required=True))
    args: dict[str, Any] = {"count": "42"}

    assert await tool.execute(args) == "ok"

    assert seen == [{"count": 42}]
    assert args["count"] == 42


async def test_decimal_string_becomes_float() -> None:
    tool, seen = _recording_tool(ToolParameter(name="ratio", type=ParameterType.NUMBER))

    await tool.execute({"ratio": "0.25"})

    assert seen == [{"ratio": 0.25}]


@pytest.mark.parametrize(
    "value",
    ["abc", "nan", "inf", "-Infinity", "1e400", float("nan"), float("inf"), True, [1]],
)
async def test_non_numbers_are_rejected(value: Any) -> None:
    tool, seen = _recording_tool(ToolParameter(name="count", type=ParameterType.NUMBER))

    with pytest.raises(ValidationError) as exc_info:
        await tool.execute({"count": value})

    assert exc_info.value.field == "count"
    assert seen == []


@pytest.mark.parametrize("args", [{}, {"symbol": None}, {"symbol": ""}])
async def test_missing_required_parameter(args: dict[str, Any]) -> None:
    tool, seen = _recording_tool(ToolParameter(name="symbol", type=ParameterType.STRING, required=True))

    with pytest.raises(ValidationError, match="Required parameter 'symbol'"):
        await tool.execute(args)

    assert seen == []


async def test_type_mismatch_is_rejected() -> None:
    tool, _ = _recording_tool(
        ToolParameter(name="symbol", type=ParameterType.STRING),
        ToolParameter(name="tags", type=ParameterType.ARRAY),
    )

    with pytest.raises(ValidationError, match="must be of type array"):
        await tool.execute({"symbol": "AAPL", "tags": "tech"})


async def test_enum_membership() -> None:
    tool, seen = _recording_tool(
        ToolParameter(name="period", type=ParameterType.STRING, enum=["1d", "1w"]),
    )

    await tool.execute({"period": "1w"})
    with pytest.raises(ValidationError, match="must be one of"):
        await tool.execute({"period": "1y"})

    assert seen == [{"period": "1w"}]


async def test_empty_string_takes_default() -> None:
    tool, seen = _recording_tool(
        ToolParameter(name="currency", type=ParameterType.STRING, default="USD"),
    )

    await tool.execute({"currency": ""})

    assert seen == [{"currency": "USD"}]


async def test_optional_parameter_may_be_absent() -> None:
    tool, seen = _recording_tool(ToolParameter(name="currency", type=ParameterType.STRING))

    await tool.execute({})

    assert seen == [{}]


async def test_nested_object_and_array_are_checked() -> None:
    order = ToolParameter(
        name="order",
        type=ParameterType.OBJECT,
        required=True,
        properties={
            "symbol": ToolParameter(name="symbol", type=ParameterType.STRING, required=True),
            "quantities": ToolParameter(
                name="quantities",
                type=ParameterType.ARRAY,
                items=ToolParameter(name="quantity", type=ParameterType.NUMBER),
            ),
        },
    )
    tool, seen = _recording_tool(order)

    await tool.execute({"order": {"symbol": "AAPL", "quantities": ["1", 2.5]}})
    assert seen == [{"order": {"symbol": "AAPL", "quantities": [1, 2.5]}}]

    with pytest.raises(ValidationError) as exc_info:
        await tool.execute({"order": {"quantities": [1]}})
    assert exc_info.value.field == "order.symbol"

    with pytest.raises(ValidationError) as exc_info:
        await tool.execute({"order": {"symbol": "AAPL", "quantities": [1, "x"]}})
    assert exc_info.value.field == "order.quantities[1]"


# ---------------------------------------------------------------------------
# execution
# ---------------------------------------------------------------------------


async def test_handler_error_is_wrapped() -> None:
    def handler(args: dict[str, Any], env: Any) -> None:
        raise KeyError("symbol")

    tool = Tool(name="getPrice", description="Get a price", handler=handler)

    with pytest.raises(ToolExecutionError) as exc_info:
        await tool.execute({})

    error = exc_info.value
    assert error.tool_name == "getPrice"
    assert error.message.startswith("Error executing tool getPrice:")
    assert isinstance(error.__cause__, KeyError)
    assert error.to_dict()["details"] == {"tool_name": "getPrice"}


async def test_async_handler_receives_environment() -> None:
    received: list[ToolEnvironment | None] = []

    async def handler(args: dict[str, Any], env: ToolEnvironment | None) -> dict[str, str]:
        received.append(env)
        return {"agent": env.agent_id if env else ""}

    tool = Tool(name="whoami", description="Agent id", handler=handler)
    env = ToolEnvironment(agent_id="agent-1", conversation_id="conv-1", memory={"k": "v"})

    assert await tool.execute({}, env) == {"agent": "agent-1"}
    assert received == [env]


async def test_tool_without_handler_fails_cleanly() -> None:
    tool = Tool(name="empty", description="No handler")

    with pytest.raises(ToolExecutionError, match="has no handler") as exc_info:
        await tool.execute({})

    assert exc_info.value.tool_name == "empty"
    assert exc_info.value.__cause__ is None


# ---------------------------------------------------------------------------
# schema and builder
# ---------------------------------------------------------------------------


def test_json_schema_from_parameters() -> None:
    tool = Tool(
        name="getPrice",
        description="Get a price",
        parameters=[
            ToolParameter(name="symbol", type=ParameterType.STRING, description="Ticker", required=True),
            ToolParameter(name="period", type=ParameterType.STRING, enum=["1d", "1w"], default="1d"),
        ],
    )

    schema = tool.to_schema()

    assert schema["name"] == "getPrice"
    assert schema["parameters"]["required"] == ["symbol"]
    assert schema["parameters"]["properties"]["period"] == {
        "type": "string",
        "description": "",
        "enum": ["1d", "1w"],
        "default": "1d",
    }


async def test_builder_produces_validating_tool() -> None:
    tool = (
        ToolBuilder("convert")
        .describe("Convert an amount")
        .input("amount", "number", "Amount to convert")
        .input("currency", ParameterType.STRING, "Target currency", required=False, default="EUR")
        .handle(lambda args, env: args["amount"] * 2)
    )

    assert tool.name == "convert"
    assert await tool.execute({"amount": "21", "currency": ""}) == 42
    with pytest.raises(ValidationError):
        await tool.execute({})


async def test_builder_schema_is_sent_as_is_and_still_validated() -> None:
    schema = {
        "type": "object",
        "properties": {"limit": {"type": "integer", "description": "Max items"}},
        "required": ["limit"],
        "additionalProperties": False,
    }
    tool = ToolBuilder("list").describe("List items").schema(schema).handle(lambda args, env: args["limit"])

    assert tool.to_json_schema() is schema
    assert await tool.execute({"limit": "3"}) == 3
    with pytest.raises(ValidationError):
        await tool.execute({})


def test_builder_requires_description() -> None:
    with pytest.raises(ValidationError, match="description is required"):
        ToolBuilder("nameless").handle(lambda args, env: None)
