"""
Configuration schema definitions for the agentloop framework.

This module defines the Pydantic models for configuration validation,
including orchestration limits, conversation expiry, logging, and MCP
server connections.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from agentloop.constants import DEFAULT_MAX_TOOL_ROUNDS, DEFAULT_MEMORY_SIZE
from agentloop.exceptions import ValidationError

_LOG_LEVELS: frozenset[str] = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"},
)


class OrchestratorConfig(BaseModel):
    """
    Settings for the message-processing control loop.

    Parameters
    ----------
    memory_size : int, default=10
        Number of interactions placed in the context window when a request
        does not specify its own ``memory_size``.
    max_tool_rounds : int, default=25
        Maximum number of tool rounds for one top-level request.
    tool_round_temperature : float | None, optional
        Temperature used for the follow-up model calls that answer tool
        results. ``None`` keeps the request's temperature.
    include_memory_in_prompt : bool, default=True
        Whether conversation memory is rendered into the system prompt.

    Examples
    --------
    >>> OrchestratorConfig(memory_size=4, max_tool_rounds=5)
    """

    memory_size: int = Field(
        default=DEFAULT_MEMORY_SIZE,
        ge=1,
        description="Default number of interactions in the context window",
    )
    max_tool_rounds: int = Field(
        default=DEFAULT_MAX_TOOL_ROUNDS,
        ge=1,
        description="Maximum tool rounds per request",
    )
    tool_round_temperature: float | None = Field(
        default=None,
        description="Temperature override for tool follow-up rounds",
    )
    include_memory_in_prompt: bool = Field(
        default=True,
        description="Render conversation memory into the system prompt",
    )

    @field_validator("tool_round_temperature")
    @classmethod
    def validate_temperature(cls, v: float | None) -> float | None:
        """
        Validate the follow-up temperature is within acceptable range.

        Raises
        ------
        ValidationError
            If temperature is outside the valid range.
        """
        if v is not None and not 0.0 <= v <= 2.0:
            raise ValidationError(
                f"Temperature must be between 0.0 and 2.0, got {v}",
                field="tool_round_temperature",
            )
        return v


class ConversationConfig(BaseModel):
    """
    Settings applied to newly created conversation states.

    Parameters
    ----------
    ttl : int | None, optional
        Seconds of inactivity after which a conversation expires.
    """

    ttl: int | None = Field(
        default=None,
        ge=1,
        description="Conversation time-to-live in seconds",
    )


class LoggingConfig(BaseModel):
    """
    Logging configuration.

    Parameters
    ----------
    level : str, default="INFO"
        Root log level name.
    format : str
        Log record format string.
    date_format : str
        Timestamp format string.
    """

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Timestamp format",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValidationError(
                f"Unknown log level: {v}",
                field="level",
            )
        return level


class MCPServerConfig(BaseModel):
    """
    Configuration for an MCP (Model Context Protocol) tool server.

    Supports both stdio (command-based) and HTTP/SSE (URL-based) transports.

    Parameters
    ----------
    enabled : bool, default=True
        Whether this MCP server is enabled.
    startup_timeout_sec : float, default=10.0
        Timeout in seconds for server startup.
    command : str | None, optional
        Command to run for stdio transport.
    args : list[str], default=[]
        Arguments for the command.
    env : dict[str, str], default={}
        Environment variables for the command.
    cwd : Path | None, optional
        Working directory for the command.
    url : str | None, optional
        URL for HTTP/SSE transport.

    Raises
    ------
    ValidationError
        If both command and url are provided, or neither is provided.

    Examples
    --------
    >>> server = MCPServerConfig(command="python", args=["-m", "quotes_server"])
    >>> server = MCPServerConfig(url="https://tools.example.com/sse")
    """

    enabled: bool = Field(default=True, description="Whether server is enabled")
    startup_timeout_sec: float = Field(
        default=10.0,
        ge=0.0,
        description="Startup timeout in seconds",
    )

    # stdio transport
    command: str | None = Field(
        default=None,
        description="Command for stdio transport",
    )
    args: list[str] = Field(
        default_factory=list,
        description="Command arguments",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Environment variables",
    )
    cwd: Path | None = Field(
        default=None,
        description="Working directory",
    )

    # http/sse transport
    url: str | None = Field(
        default=None,
        description="URL for HTTP/SSE transport",
    )

    @model_validator(mode="after")
    def validate_transport(self) -> MCPServerConfig:
        """
        Validate that exactly one transport method is specified.

        Raises
        ------
        ValidationError
            If transport configuration is invalid.
        """
        has_command: bool = self.command is not None
        has_url: bool = self.url is not None

        if not has_command and not has_url:
            raise ValidationError(
                "MCP Server must have either 'command' (stdio) or 'url' (http/sse)",
                field="transport",
            )

        if has_command and has_url:
            raise ValidationError(
                "MCP Server cannot have both 'command' (stdio) and 'url' (http/sse)",
                field="transport",
            )

        return self


class Configuration(BaseModel):
    """
    Main configuration model for the agentloop framework.

    Parameters
    ----------
    orchestrator : OrchestratorConfig, optional
        Control loop settings. Uses defaults if not provided.
    conversation : ConversationConfig, optional
        Conversation state settings. Uses defaults if not provided.
    logging : LoggingConfig, optional
        Logging settings. Uses defaults if not provided.
    cwd : Path, optional
        Working directory used for stdio MCP servers.
    mcp_servers : dict[str, MCPServerConfig], default={}
        MCP server configurations keyed by server name.
    debug : bool, default=False
        Enable debug mode.

    Examples
    --------
    >>> config = Configuration(
    ...     orchestrator=OrchestratorConfig(max_tool_rounds=5),
    ...     debug=True,
    ... )
    """

    orchestrator: OrchestratorConfig = Field(
        default_factory=OrchestratorConfig,
        description="Orchestrator configuration",
    )
    conversation: ConversationConfig = Field(
        default_factory=ConversationConfig,
        description="Conversation configuration",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    cwd: Path = Field(
        default_factory=Path.cwd,
        description="Working directory",
    )
    mcp_servers: dict[str, MCPServerConfig] = Field(
        default_factory=dict,
        description="MCP server configurations",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    @property
    def memory_size(self) -> int:
        """
        Get the default context window size in interactions.

        Returns
        -------
        int
            Number of interactions.
        """
        return self.orchestrator.memory_size

    @property
    def max_tool_rounds(self) -> int:
        """
        Get the maximum number of tool rounds per request.

        Returns
        -------
        int
            Round limit.
        """
        return self.orchestrator.max_tool_rounds

    def validate(self) -> list[str]:
        """
        Validate the configuration and return any errors.

        Returns
        -------
        list[str]
            List of error messages. Empty list if configuration is valid.

        Examples
        --------
        >>> errors = Configuration().validate()
        """
        errors: list[str] = []

        for name, server in self.mcp_servers.items():
            if server.enabled and server.command and not (server.cwd or self.cwd).exists():
                errors.append(
                    f"Working directory for MCP server '{name}' does not exist",
                )

        return errors

    def to_dict(self) -> dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns
        -------
        dict[str, Any]
            Dictionary representation of the configuration.
        """
        return self.model_dump(mode="json")
