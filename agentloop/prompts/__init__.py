"""System prompt construction."""

from agentloop.prompts.builder import DEFAULT_SYSTEM_PROMPT, PromptBuilder

__all__ = ["DEFAULT_SYSTEM_PROMPT", "PromptBuilder"]
