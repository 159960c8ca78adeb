"""
System prompt construction.

This module assembles the system prompt sent with every model call from
the default guidelines, the agent's own instructions, and the
conversation memory.
"""

import json
import logging

from agentloop.agent.profile import AgentProfile
from agentloop.config.schema import Configuration
from agentloop.types import MemoryDict

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT: str = """\
You are an AI assistant that helps users through conversation. Follow these guidelines:

1. Prioritize using available tools over relying on your general knowledge:
   - Tools provide up-to-date and accurate information
   - Tools can execute actions and interact with the system
   - Only use your general knowledge when tools are not available or appropriate
2. For each user request:
   - First determine if any available tools can help
   - Use the most appropriate tool for the task
   - Combine tool outputs when needed for comprehensive answers
3. Follow any additional directives provided below as long as they are not in \
conflict with the above guidelines."""


class PromptBuilder:
    """
    Builds system prompts for an agent.

    Parameters
    ----------
    config : Configuration | None, optional
        Configuration; ``orchestrator.include_memory_in_prompt`` decides
        whether memory is rendered. Uses defaults if not provided.
    guidelines : str, optional
        Guidelines placed before the agent instructions.

    Examples
    --------
    >>> builder = PromptBuilder()
    >>> prompt = builder.build(profile, memory={"risk_profile": "conservative"})
    """

    def __init__(
        self,
        config: Configuration | None = None,
        guidelines: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self.config: Configuration = config or Configuration()
        self.guidelines: str = guidelines

    def build(
        self,
        profile: AgentProfile,
        memory: MemoryDict | None = None,
    ) -> str:
        """
        Build the system prompt for one model call.

        Parameters
        ----------
        profile : AgentProfile
            Agent whose instructions are included.
        memory : MemoryDict | None, optional
            Conversation memory, rendered as JSON in a ``<memory>`` section
            when non-empty.

        Returns
        -------
        str
            Sections joined by blank lines.
        """
        sections: list[str] = []

        if self.guidelines:
            sections.append(self.guidelines)

        if profile.system_prompt.strip():
            sections.append(profile.system_prompt.strip())

        if memory and self.config.orchestrator.include_memory_in_prompt:
            sections.append(self._memory_section(memory))

        return "\n\n".join(sections)

    def _memory_section(self, memory: MemoryDict) -> str:
        try:
            rendered: str = json.dumps(memory, indent=2, sort_keys=True, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not render conversation memory: {e}")
            rendered = str(memory)

        return f"<memory>\n{rendered}\n</memory>"
