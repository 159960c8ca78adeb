"""
MCP client for tool servers.

This module connects to one MCP server over stdio or HTTP/SSE, discovers
the tools it advertises, and forwards tool calls to it.
"""

import logging
import os
from pathlib import Path
from typing import Any

from fastmcp import Client
from fastmcp.client.transports import SSETransport, StdioTransport

from agentloop.config.schema import MCPServerConfig
from agentloop.exceptions import ConfigurationError, ToolExecutionError
from agentloop.tools.mcp.models import MCPCallResult, MCPServerStatus, MCPToolInfo

logger = logging.getLogger(__name__)


class MCPClient:
    """
    Connection to a single MCP tool server.

    Parameters
    ----------
    name : str
        Server name, used as the prefix of its tools in the registry.
    config : MCPServerConfig
        Server configuration.
    cwd : Path
        Fallback working directory for stdio servers.

    Attributes
    ----------
    status : MCPServerStatus
        Current connection status.
    _client : Client | None
        Underlying fastmcp client while connected.
    _tools : dict[str, MCPToolInfo]
        Advertised tools keyed by their server-side name.

    Examples
    --------
    >>> client = MCPClient("market", MCPServerConfig(command="quotes-server"), Path.cwd())
    >>> await client.connect()
    >>> result = await client.call_tool("quote", {"symbol": "AAPL"})
    >>> await client.disconnect()
    """

    def __init__(
        self,
        name: str,
        config: MCPServerConfig,
        cwd: Path,
    ) -> None:
        self.name: str = name
        self.config: MCPServerConfig = config
        self.cwd: Path = cwd
        self.status: MCPServerStatus = MCPServerStatus.DISCONNECTED
        self._client: Client | None = None
        self._tools: dict[str, MCPToolInfo] = {}

    @property
    def tools(self) -> list[MCPToolInfo]:
        return list(self._tools.values())

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self.status == MCPServerStatus.CONNECTED

    def _create_transport(self) -> StdioTransport | SSETransport:
        """
        Create the transport described by the server configuration.

        Returns
        -------
        StdioTransport | SSETransport
            Stdio transport for ``command`` servers, SSE for ``url`` servers.

        Raises
        ------
        ConfigurationError
            If neither a command nor a url is configured.
        """
        if self.config.command:
            env: dict[str, str] = os.environ.copy()
            env.update(self.config.env)

            return StdioTransport(
                command=self.config.command,
                args=list(self.config.args),
                env=env,
                cwd=str(self.config.cwd or self.cwd),
            )

        if self.config.url:
            return SSETransport(url=self.config.url)

        raise ConfigurationError(
            f"MCP server '{self.name}' must have either command or url",
            config_key=f"mcp_servers.{self.name}",
        )

    async def connect(self) -> None:
        """
        Connect to the server and discover its tools.

        Raises
        ------
        Exception
            Whatever the transport raises when the connection fails; the
            status is set to ``ERROR`` first.
        """
        if self.status == MCPServerStatus.CONNECTED:
            return

        self.status = MCPServerStatus.CONNECTING

        try:
            self._client = Client(transport=self._create_transport())
            await self._client.__aenter__()

            for tool in await self._client.list_tools():
                self._tools[tool.name] = MCPToolInfo(
                    name=tool.name,
                    description=tool.description or "",
                    input_schema=getattr(tool, "inputSchema", None) or {},
                    server_name=self.name,
                )

            self.status = MCPServerStatus.CONNECTED
            logger.info(
                f"MCP server '{self.name}' connected with {len(self._tools)} tools",
            )
        except Exception as e:
            self.status = MCPServerStatus.ERROR
            logger.error(f"Failed to connect to MCP server '{self.name}': {e}")
            raise

    async def disconnect(self) -> None:
        if self._client:
            await self._client.__aexit__(None, None, None)
            self._client = None

        self._tools.clear()
        self.status = MCPServerStatus.DISCONNECTED
        logger.debug(f"MCP server '{self.name}' disconnected")

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
    ) -> MCPCallResult:
        """
        Call a tool on the server.

        Parameters
        ----------
        tool_name : str
            Server-side tool name.
        arguments : dict[str, Any]
            Validated arguments.

        Returns
        -------
        MCPCallResult
            Joined text output and the server's error flag.

        Raises
        ------
        ToolExecutionError
            If the client is not connected.
        """
        if not self.is_connected:
            raise ToolExecutionError(
                f"Not connected to MCP server {self.name}",
                tool_name=tool_name,
            )

        result = await self._client.call_tool(
            tool_name,
            arguments,
            raise_on_error=False,
        )

        output: list[str] = []
        for item in result.content:
            text: str | None = getattr(item, "text", None)
            output.append(text if text is not None else str(item))

        return MCPCallResult(output="\n".join(output), is_error=result.is_error)
