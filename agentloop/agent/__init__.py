"""Agent profiles, streaming fragments and the message orchestrator."""
