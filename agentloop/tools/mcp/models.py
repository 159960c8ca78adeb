"""
Data models for MCP-hosted tools.

This module defines the connection status of an MCP server, the tool
descriptions it advertises, and the outcome of a remote tool call.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from agentloop.constants import MCP_TOOL_SEPARATOR


class MCPServerStatus(str, Enum):
    """Status of an MCP server connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class MCPToolInfo(BaseModel):
    """
    A tool advertised by an MCP server.

    Parameters
    ----------
    name : str
        Tool name on the server.
    description : str, default=""
        Description of what the tool does.
    input_schema : dict[str, Any], default={}
        JSON schema for the tool's arguments.
    server_name : str, default=""
        Name of the MCP server providing this tool.

    Examples
    --------
    >>> MCPToolInfo(name="quote", description="Latest quote", server_name="market")
    """

    name: str = Field(description="Tool name")
    description: str = Field(default="", description="Tool description")
    input_schema: dict[str, Any] = Field(
        default_factory=dict,
        description="Input parameter schema",
    )
    server_name: str = Field(default="", description="MCP server name")

    @property
    def qualified_name(self) -> str:
        """
        Get the registry name of the tool.

        Returns
        -------
        str
            ``<server>__<tool>``, or the bare name without a server.
        """
        if not self.server_name:
            return self.name
        return f"{self.server_name}{MCP_TOOL_SEPARATOR}{self.name}"


class MCPCallResult(BaseModel):
    """
    Outcome of one remote tool call.

    Parameters
    ----------
    output : str, default=""
        Text content returned by the server, joined by newlines.
    is_error : bool, default=False
        Whether the server reported the call as failed.
    """

    output: str = Field(default="", description="Tool output text")
    is_error: bool = Field(default=False, description="Server reported an error")
