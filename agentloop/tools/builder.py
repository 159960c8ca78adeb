"""
Fluent builder for tools.

This module lets embedders declare a tool step by step instead of building
the parameter list by hand.
"""

from __future__ import annotations

from typing import Any

from agentloop.exceptions import ValidationError
from agentloop.tools.base import Tool
from agentloop.tools.models import ParameterType, ToolParameter, parameters_from_schema
from agentloop.types import ToolHandler


class ToolBuilder:
    """
    Build a :class:`Tool` with chained calls.

    Parameters
    ----------
    name : str
        Name of the tool being built.

    Examples
    --------
    >>> tool = (
    ...     ToolBuilder("getPrice")
    ...     .describe("Get the latest price of a stock")
    ...     .input("symbol", "string", "Ticker symbol")
    ...     .input("currency", "string", "Quote currency", required=False, default="USD")
    ...     .handle(lambda args, env: {"price": 175.5})
    ... )
    """

    def __init__(self, name: str) -> None:
        self._name: str = name
        self._description: str | None = None
        self._inputs: list[ToolParameter] = []
        self._json_schema: dict[str, Any] | None = None
        self._metadata: dict[str, Any] = {}

    def describe(self, description: str) -> ToolBuilder:
        self._description = description
        return self

    def input(
        self,
        name: str,
        type: ParameterType | str,
        description: str,
        required: bool = True,
        **options: Any,
    ) -> ToolBuilder:
        """
        Declare one parameter.

        Parameters
        ----------
        name : str
            Parameter name.
        type : ParameterType | str
            Parameter type, e.g. ``"string"`` or ``ParameterType.NUMBER``.
        description : str
            Parameter description.
        required : bool, default=True
            Whether the parameter is required.
        **options : Any
            ``enum``, ``default``, ``properties`` or ``items``.

        Returns
        -------
        ToolBuilder
            This builder.
        """
        self._inputs.append(
            ToolParameter(
                name=name,
                type=ParameterType(type),
                description=description,
                required=required,
                **options,
            ),
        )
        return self

    def schema(self, schema: dict[str, Any]) -> ToolBuilder:
        """
        Use a complete JSON schema for the tool's arguments.

        The schema is sent to the model as-is; its properties are also
        converted into parameters so arguments are still validated.

        Parameters
        ----------
        schema : dict[str, Any]
            Object schema with ``properties`` and optional ``required``.

        Returns
        -------
        ToolBuilder
            This builder.
        """
        self._json_schema = schema
        return self

    def metadata(self, **values: Any) -> ToolBuilder:
        self._metadata.update(values)
        return self

    def handle(self, handler: ToolHandler) -> Tool:
        """
        Finish the tool with its handler.

        Parameters
        ----------
        handler : ToolHandler
            Callable invoked as ``handler(args, environment)``.

        Returns
        -------
        Tool
            The built tool.

        Raises
        ------
        ValidationError
            If no description was given.
        """
        if self._description is None:
            raise ValidationError(
                f"Tool description is required for '{self._name}'",
                field="description",
            )

        parameters: list[ToolParameter] = list(self._inputs)
        if self._json_schema is not None:
            parameters = parameters_from_schema(self._json_schema)

        return Tool(
            name=self._name,
            description=self._description,
            parameters=parameters,
            handler=handler,
            json_schema=self._json_schema,
            metadata=dict(self._metadata),
        )
