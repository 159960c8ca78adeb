"""
Tool registry for managing and invoking tools.

This module provides functionality to register, discover, and execute tools
by id or by name, regardless of whether they are local or MCP-hosted.
"""

import logging
from typing import Any

from agentloop.exceptions import NotFoundError
from agentloop.tools.base import Tool
from agentloop.tools.models import ToolEnvironment
from agentloop.types import ToolArguments, ToolDefinitions

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for managing and invoking tools.

    Tools are keyed by id; names are unique across the registry, and
    registering a second tool with an existing name replaces the first.

    Attributes
    ----------
    _tools : dict[str, Tool]
        Registered tools keyed by id.
    _names : dict[str, str]
        Tool ids keyed by tool name.

    Examples
    --------
    >>> registry = ToolRegistry()
    >>> registry.register(price_tool)
    >>> result = await registry.execute_tool_by_name("getPrice", {"symbol": "AAPL"})
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._names: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def register(self, tool: Tool) -> None:
        """
        Register a tool in the registry.

        Parameters
        ----------
        tool : Tool
            Tool instance to register.

        Examples
        --------
        >>> registry.register(ToolBuilder("ping").describe("Ping").handle(ping))
        """
        existing_id: str | None = self._names.get(tool.name)
        if existing_id is not None:
            logger.warning(f"Overwriting existing tool: {tool.name}")
            self._tools.pop(existing_id, None)

        self._tools[tool.id] = tool
        self._names[tool.name] = tool.id
        logger.debug(f"Registered tool: {tool.name}")

    def unregister(self, tool_id: str) -> bool:
        """
        Unregister a tool from the registry.

        Parameters
        ----------
        tool_id : str
            Id of the tool to unregister.

        Returns
        -------
        bool
            True if tool was found and removed, False otherwise.
        """
        tool: Tool | None = self._tools.pop(tool_id, None)
        if tool is None:
            return False

        self._names.pop(tool.name, None)
        logger.debug(f"Unregistered tool: {tool.name}")
        return True

    def get_tool(self, tool_id: str) -> Tool | None:
        return self._tools.get(tool_id)

    def get_tool_by_name(self, name: str) -> Tool | None:
        """
        Get a tool by name.

        Parameters
        ----------
        name : str
            Name of the tool to retrieve.

        Returns
        -------
        Tool | None
            Tool instance if found, None otherwise.
        """
        tool_id: str | None = self._names.get(name)
        if tool_id is None:
            return None

        return self._tools.get(tool_id)

    def get_all_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def get_tools(self, names: list[str] | None = None) -> list[Tool]:
        """
        Get the tools with the given names.

        Parameters
        ----------
        names : list[str] | None, optional
            Tool names to select. If None, every registered tool is returned.

        Returns
        -------
        list[Tool]
            Matching tools, in the order of ``names``. Unknown names are
            skipped with a warning.

        Examples
        --------
        >>> tools = registry.get_tools(["getPrice", "getNews"])
        """
        if names is None:
            return self.get_all_tools()

        tools: list[Tool] = []
        for name in names:
            tool = self.get_tool_by_name(name)
            if tool is None:
                logger.warning(f"Requested tool not registered: {name}")
                continue
            tools.append(tool)

        return tools

    def get_schemas(self, names: list[str] | None = None) -> ToolDefinitions:
        """
        Get provider-facing schemas for the selected tools.

        Parameters
        ----------
        names : list[str] | None, optional
            Tool names to select. If None, every registered tool is used.

        Returns
        -------
        list[dict[str, Any]]
            ``{name, description, parameters}`` dictionaries.
        """
        return [tool.to_schema() for tool in self.get_tools(names)]

    async def execute_tool(
        self,
        tool_id: str,
        args: ToolArguments,
        environment: ToolEnvironment | None = None,
    ) -> Any:
        """
        Execute a tool by id.

        Parameters
        ----------
        tool_id : str
            Id of the tool.
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
            If no tool has this id.
        ValidationError
            If the arguments are invalid.
        ToolExecutionError
            If the tool handler fails.
        """
        tool: Tool | None = self.get_tool(tool_id)
        if tool is None:
            raise NotFoundError(
                f"Tool not found: {tool_id}",
                resource="tool",
                identifier=tool_id,
            )

        return await tool.execute(args, environment)

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
            Name of the tool.
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

        Examples
        --------
        >>> await registry.execute_tool_by_name("getPrice", {"symbol": "AAPL"}, env)
        """
        tool: Tool | None = self.get_tool_by_name(name)
        if tool is None:
            raise NotFoundError(
                f"Tool not found: {name}",
                resource="tool",
                identifier=name,
            )

        logger.debug(f"Executing tool {name}")
        return await tool.execute(args, environment)
