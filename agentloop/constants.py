"""
Application-wide constants for the agentloop framework.

This module defines constants used throughout the application to ensure
consistency and maintainability.
"""

# Configuration file names
CONFIG_FILE_NAME: str = "config.toml"

# Application directories
APP_NAME: str = "agentloop"
CONFIG_DIR_NAME: str = ".agentloop"

# Environment variables
LOG_LEVEL_ENV_VAR: str = "AGENTLOOP_LOG_LEVEL"

# Orchestration defaults
DEFAULT_MEMORY_SIZE: int = 10
DEFAULT_MAX_TOOL_ROUNDS: int = 25

# Tool argument handling
RAW_ARGUMENTS_KEY: str = "raw_arguments"
TOOL_ERROR_PREFIX: str = "Error executing tool"

# MCP tool naming
MCP_TOOL_SEPARATOR: str = "__"
