"""
Type definitions and aliases for the agentloop framework.

This module provides common type aliases used throughout the codebase to
ensure consistency and type safety.
"""

from typing import Any, Awaitable, Callable, Dict, List, Union

# Message types for provider adapters
MessageDict = Dict[str, Any]

# Tool definitions handed to model providers
ToolDefinition = Dict[str, Any]
ToolDefinitions = List[ToolDefinition]

# Tool arguments and handlers
ToolArguments = Dict[str, Any]
ToolHandler = Callable[..., Union[Any, Awaitable[Any]]]

# Conversation memory
MemoryDict = Dict[str, Any]
