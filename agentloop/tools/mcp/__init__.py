"""MCP-hosted tool source."""

from agentloop.tools.mcp.client import MCPClient
from agentloop.tools.mcp.manager import MCPManager
from agentloop.tools.mcp.models import MCPCallResult, MCPServerStatus, MCPToolInfo
from agentloop.tools.mcp.tool import MCPTool

__all__ = [
    "MCPCallResult",
    "MCPClient",
    "MCPManager",
    "MCPServerStatus",
    "MCPTool",
    "MCPToolInfo",
]
