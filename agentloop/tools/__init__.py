"""Tools: declared parameters, validation, building and registry."""

from agentloop.tools.base import Tool
from agentloop.tools.builder import ToolBuilder
from agentloop.tools.models import ParameterType, ToolEnvironment, ToolParameter
from agentloop.tools.registry import ToolRegistry

__all__ = [
    "ParameterType",
    "Tool",
    "ToolBuilder",
    "ToolEnvironment",
    "ToolParameter",
    "ToolRegistry",
]
