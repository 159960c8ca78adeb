"""
Agent profiles and their lookup.

This module defines the per-agent settings the orchestrator needs (prompt,
model, allowed tools) and a dict-backed repository implementing the agent
repository contract.
"""

import logging
import uuid

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AgentProfile(BaseModel):
    """
    Settings of one agent.

    Parameters
    ----------
    id : str, optional
        Agent identifier. A uuid4 is generated if omitted.
    name : str
        Display name.
    description : str, default=""
        What the agent is for.
    model_id : str | None, optional
        Provider model identifier passed in the request options.
    system_prompt : str, default=""
        Agent-specific instructions appended to the default guidelines.
    tool_names : list[str] | None, optional
        Tools the agent may call. None allows every registered tool.

    Examples
    --------
    >>> profile = AgentProfile(
    ...     name="analyst",
    ...     system_prompt="You answer questions about stocks.",
    ...     tool_names=["getPrice"],
    ... )
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Agent id")
    name: str = Field(description="Agent name")
    description: str = Field(default="", description="Agent description")
    model_id: str | None = Field(default=None, description="Provider model id")
    system_prompt: str = Field(default="", description="Agent instructions")
    tool_names: list[str] | None = Field(
        default=None,
        description="Allowed tool names, None for all",
    )


class InMemoryAgentRepository:
    """
    Agent profiles kept in process memory.

    Examples
    --------
    >>> repository = InMemoryAgentRepository([profile])
    >>> await repository.find_by_id(profile.id)
    """

    def __init__(self, profiles: list[AgentProfile] | None = None) -> None:
        self._profiles: dict[str, AgentProfile] = {}
        for profile in profiles or []:
            self.add(profile)

    def add(self, profile: AgentProfile) -> None:
        if profile.id in self._profiles:
            logger.warning(f"Replacing agent profile: {profile.id}")
        self._profiles[profile.id] = profile

    def remove(self, agent_id: str) -> bool:
        return self._profiles.pop(agent_id, None) is not None

    async def find_by_id(self, agent_id: str) -> AgentProfile | None:
        return self._profiles.get(agent_id)

    async def find_all(self) -> list[AgentProfile]:
        return list(self._profiles.values())
