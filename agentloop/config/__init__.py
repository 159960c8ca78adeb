"""
Configuration models and loading for the agentloop framework.
"""

from agentloop.config.loader import load_configuration
from agentloop.config.schema import (
    Configuration,
    ConversationConfig,
    LoggingConfig,
    MCPServerConfig,
    OrchestratorConfig,
)

__all__ = [
    "Configuration",
    "ConversationConfig",
    "LoggingConfig",
    "MCPServerConfig",
    "OrchestratorConfig",
    "load_configuration",
]
