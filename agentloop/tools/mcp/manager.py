"""
MCP manager for all configured tool servers.

This module connects every enabled MCP server in parallel, registers the
tools they advertise, and shuts the connections down again.
"""

import asyncio
import logging
from typing import Any

from agentloop.config.schema import Configuration
from agentloop.tools.mcp.client import MCPClient
from agentloop.tools.mcp.models import MCPServerStatus
from agentloop.tools.mcp.tool import MCPTool
from agentloop.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class MCPManager:
    """
    Manages the connections to all configured MCP servers.

    Parameters
    ----------
    config : Configuration
        Configuration with the ``mcp_servers`` table.

    Attributes
    ----------
    _clients : dict[str, MCPClient]
        Clients keyed by server name.
    _initialized : bool
        Whether :meth:`initialize` has run.

    Examples
    --------
    >>> manager = MCPManager(config)
    >>> await manager.initialize()
    >>> manager.register_tools(registry)
    >>> await manager.shutdown()
    """

    def __init__(self, config: Configuration) -> None:
        self.config: Configuration = config
        self._clients: dict[str, MCPClient] = {}
        self._initialized: bool = False

    @property
    def clients(self) -> dict[str, MCPClient]:
        return dict(self._clients)

    async def initialize(self) -> None:
        """
        Connect to every enabled server in parallel.

        A server that fails or times out is logged and left out; the others
        stay usable.
        """
        if self._initialized:
            return

        for name, server_config in self.config.mcp_servers.items():
            if not server_config.enabled:
                logger.debug(f"MCP server '{name}' is disabled, skipping")
                continue

            self._clients[name] = MCPClient(
                name=name,
                config=server_config,
                cwd=self.config.cwd,
            )

        if not self._clients:
            logger.debug("No MCP servers configured")
            self._initialized = True
            return

        results = await asyncio.gather(
            *(
                asyncio.wait_for(
                    client.connect(),
                    timeout=client.config.startup_timeout_sec,
                )
                for client in self._clients.values()
            ),
            return_exceptions=True,
        )

        for name, result in zip(self._clients, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to connect to MCP server '{name}': {result}")

        self._initialized = True

    def register_tools(self, registry: ToolRegistry) -> int:
        """
        Register the tools of every connected server.

        Parameters
        ----------
        registry : ToolRegistry
            Registry to add the tools to, named ``<server>__<tool>``.

        Returns
        -------
        int
            Number of tools registered.
        """
        count: int = 0

        for client in self._clients.values():
            if client.status != MCPServerStatus.CONNECTED:
                continue

            for tool_info in client.tools:
                registry.register(MCPTool(client, tool_info))
                count += 1

        logger.info(f"Registered {count} MCP tools")
        return count

    async def shutdown(self) -> None:
        await asyncio.gather(
            *(client.disconnect() for client in self._clients.values()),
            return_exceptions=True,
        )

        self._clients.clear()
        self._initialized = False
        logger.info("MCP manager shut down")

    def get_all_servers(self) -> list[dict[str, Any]]:
        """
        Describe the configured servers.

        Returns
        -------
        list[dict[str, Any]]
            ``name``, ``status`` and tool count per server.
        """
        return [
            {
                "name": name,
                "status": client.status.value,
                "tools": len(client.tools),
            }
            for name, client in self._clients.items()
        ]
