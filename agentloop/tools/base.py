"""
Tool capability with declarative argument validation.

This module provides the single tool interface used by the orchestrator,
whatever the tool's provenance: a local function, an SDK-built tool, or a
tool hosted on an MCP server.
"""

from __future__ import annotations

import inspect
import logging
import math
import uuid
from datetime import datetime
from typing import Any

from agentloop.exceptions import ToolExecutionError, ValidationError
from agentloop.tools.models import ParameterType, ToolEnvironment, ToolParameter
from agentloop.types import ToolArguments, ToolDefinition, ToolHandler

logger = logging.getLogger(__name__)

__all__ = ["Tool"]


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


class Tool:
    """
    A named capability the model may invoke.

    Arguments are validated against the declared parameters before the
    handler runs; the handler never sees arguments that failed validation.

    Parameters
    ----------
    name : str
        Unique tool name.
    description : str
        Human-readable description for the model.
    parameters : list[ToolParameter] | None, optional
        Declared parameters.
    handler : ToolHandler | None, optional
        Callable invoked as ``handler(args, environment)``. May be sync or
        async. Subclasses may override :meth:`handle` instead.
    json_schema : dict[str, Any] | None, optional
        Explicit JSON schema for the model, overriding the one derived from
        ``parameters``.
    metadata : dict[str, Any] | None, optional
        Opaque key/value bag.
    id : str | None, optional
        Tool identifier. A uuid4 is generated if omitted.

    Examples
    --------
    >>> tool = Tool(
    ...     name="getPrice",
    ...     description="Get the latest price of a stock",
    ...     parameters=[ToolParameter(name="symbol", type=ParameterType.STRING, required=True)],
    ...     handler=lambda args, env: {"price": 175.5},
    ... )
    >>> await tool.execute({"symbol": "AAPL"})
    {'price': 175.5}
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: list[ToolParameter] | None = None,
        handler: ToolHandler | None = None,
        json_schema: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        id: str | None = None,
    ) -> None:
        self.id: str = id or str(uuid.uuid4())
        self.name: str = name
        self.description: str = description
        self.parameters: list[ToolParameter] = list(parameters or [])
        self.handler: ToolHandler | None = handler
        self.json_schema: dict[str, Any] | None = json_schema
        self.metadata: dict[str, Any] = metadata or {}
        self.created_at: datetime = datetime.now()
        self.updated_at: datetime = self.created_at

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    async def handle(self, args: ToolArguments, environment: ToolEnvironment | None) -> Any:
        """
        Run the handler with validated arguments.

        Parameters
        ----------
        args : ToolArguments
            Validated arguments.
        environment : ToolEnvironment | None
            Read-only execution context.

        Returns
        -------
        Any
            Handler result.

        Raises
        ------
        ToolExecutionError
            If no handler was given and the subclass does not override this.
        """
        if self.handler is None:
            raise ToolExecutionError(
                f"Tool '{self.name}' has no handler",
                tool_name=self.name,
            )

        result: Any = self.handler(args, environment)
        if inspect.isawaitable(result):
            result = await result

        return result

    async def execute(
        self,
        args: ToolArguments,
        environment: ToolEnvironment | None = None,
    ) -> Any:
        """
        Validate the arguments and run the handler.

        Numeric strings passed for ``number`` parameters are coerced in
        place, and empty strings are replaced by declared defaults.

        Parameters
        ----------
        args : ToolArguments
            Arguments from the model.
        environment : ToolEnvironment | None, optional
            Read-only execution context.

        Returns
        -------
        Any
            Handler result.

        Raises
        ------
        ValidationError
            If the arguments do not match the declared parameters.
        ToolExecutionError
            If the handler raises.

        Examples
        --------
        >>> await tool.execute({"symbol": "AAPL"})
        """
        self.validate_arguments(args)

        try:
            return await self.handle(args, environment)
        except ToolExecutionError:
            raise
        except Exception as e:
            logger.debug(f"Tool {self.name} handler raised {type(e).__name__}: {e}")
            raise ToolExecutionError(
                f"Error executing tool {self.name}: {e}",
                tool_name=self.name,
                cause=e,
            ) from e

    def validate_arguments(self, args: ToolArguments) -> None:
        """
        Check and normalize arguments against the declared parameters.

        Parameters
        ----------
        args : ToolArguments
            Arguments to validate, modified in place.

        Raises
        ------
        ValidationError
            On the first parameter that fails validation.
        """
        if not isinstance(args, dict):
            raise ValidationError(
                f"Arguments for tool '{self.name}' must be an object",
            )

        for param in self.parameters:
            self._validate_parameter(args, param.name, param, param.name)

    def _validate_parameter(
        self,
        container: dict[str, Any],
        key: str,
        param: ToolParameter,
        path: str,
    ) -> None:
        value: Any = container.get(key)

        if _is_empty(value):
            if param.required:
                raise ValidationError(
                    f"Required parameter '{path}' is missing for tool '{self.name}'",
                    field=path,
                )
            if value == "" and param.has_default:
                container[key] = param.default
            return

        container[key] = self._validate_value(value, param, path)

    def _validate_value(self, value: Any, param: ToolParameter, path: str) -> Any:
        value = self._check_type(value, param, path)

        if param.enum is not None and value not in param.enum:
            allowed: str = ", ".join(str(v) for v in param.enum)
            raise ValidationError(
                f"Parameter '{path}' must be one of: {allowed}",
                field=path,
            )

        if param.type == ParameterType.OBJECT and param.properties:
            for key, prop in param.properties.items():
                self._validate_parameter(value, key, prop, f"{path}.{key}")
        elif param.type == ParameterType.ARRAY and param.items is not None:
            for index, item in enumerate(value):
                if not _is_empty(item):
                    value[index] = self._validate_value(
                        item,
                        param.items,
                        f"{path}[{index}]",
                    )

        return value

    def _check_type(self, value: Any, param: ToolParameter, path: str) -> Any:
        expected: ParameterType = param.type

        if expected == ParameterType.NUMBER:
            return self._coerce_number(value, path)

        valid: bool
        if expected == ParameterType.STRING:
            valid = isinstance(value, str)
        elif expected == ParameterType.BOOLEAN:
            valid = isinstance(value, bool)
        elif expected == ParameterType.OBJECT:
            valid = isinstance(value, dict)
        else:
            valid = isinstance(value, list)

        if not valid:
            raise ValidationError(
                f"Parameter '{path}' must be of type {expected.value}",
                field=path,
            )

        return value

    def _coerce_number(self, value: Any, path: str) -> int | float:
        number: float = math.nan

        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float):
            number = value
        elif isinstance(value, str):
            text: str = value.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                number = float(text)
            except ValueError:
                pass

        # rejects NaN and infinities
        if math.isfinite(number):
            return number

        raise ValidationError(
            f"Parameter '{path}' must be of type number",
            field=path,
        )

    def to_json_schema(self) -> dict[str, Any]:
        """
        Get the JSON schema describing the tool's arguments.

        Returns
        -------
        dict[str, Any]
            The explicit ``json_schema`` if set, else an object schema
            derived from ``parameters``.
        """
        if self.json_schema is not None:
            return self.json_schema

        schema: dict[str, Any] = {
            "type": "object",
            "properties": {p.name: p.to_json_schema() for p in self.parameters},
        }
        required: list[str] = [p.name for p in self.parameters if p.required]
        if required:
            schema["required"] = required

        return schema

    def to_schema(self) -> ToolDefinition:
        """
        Get the tool description handed to a model provider.

        Returns
        -------
        dict[str, Any]
            ``name``, ``description`` and ``parameters`` of the tool.

        Examples
        --------
        >>> tool.to_schema()["name"]
        'getPrice'
        """
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.to_json_schema(),
        }
