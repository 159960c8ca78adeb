"""
Tool adapter for MCP-hosted tools.

This module exposes a tool advertised by an MCP server through the same
:class:`~agentloop.tools.base.Tool` interface as local tools, so the
registry and orchestrator never distinguish between them.
"""

import logging
from typing import Any

from agentloop.exceptions import ToolExecutionError
from agentloop.tools.base import Tool
from agentloop.tools.mcp.client import MCPClient
from agentloop.tools.mcp.models import MCPToolInfo
from agentloop.tools.models import ToolEnvironment, parameters_from_schema
from agentloop.types import ToolArguments

logger = logging.getLogger(__name__)


class MCPTool(Tool):
    """
    A tool whose handler runs on an MCP server.

    The server's input schema is sent to the model unchanged and is also
    converted into parameters, so arguments are validated locally before
    the remote call.

    Parameters
    ----------
    client : MCPClient
        Client connected to the hosting server.
    tool_info : MCPToolInfo
        Tool description advertised by the server.
    name : str | None, optional
        Registry name. Defaults to ``<server>__<tool>``.

    Examples
    --------
    >>> tool = MCPTool(client, tool_info)
    >>> await tool.execute({"symbol": "AAPL"})
    """

    def __init__(
        self,
        client: MCPClient,
        tool_info: MCPToolInfo,
        name: str | None = None,
    ) -> None:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": tool_info.input_schema.get("properties", {}),
            "required": tool_info.input_schema.get("required", []),
        }
        super().__init__(
            name=name or tool_info.qualified_name,
            description=tool_info.description,
            parameters=parameters_from_schema(schema),
            json_schema=schema,
            metadata={"mcp_server": tool_info.server_name, "mcp_tool": tool_info.name},
        )
        self._client: MCPClient = client
        self._tool_info: MCPToolInfo = tool_info

    async def handle(self, args: ToolArguments, environment: ToolEnvironment | None) -> str:
        """
        Forward the call to the MCP server.

        Parameters
        ----------
        args : ToolArguments
            Validated arguments.
        environment : ToolEnvironment | None
            Execution context; not sent to the server.

        Returns
        -------
        str
            Text output of the remote tool.

        Raises
        ------
        ToolExecutionError
            If the server reports the call as failed.
        """
        result = await self._client.call_tool(self._tool_info.name, args)

        if result.is_error:
            logger.warning(f"MCP tool '{self.name}' reported an error")
            raise ToolExecutionError(
                f"Error executing tool {self.name}: {result.output}",
                tool_name=self.name,
                details={"mcp_server": self._tool_info.server_name},
            )

        return result.output
