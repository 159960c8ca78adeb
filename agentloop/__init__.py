"""
Core package for the agentloop conversational orchestration framework.

This package provides the control loop that drives model calls interleaved
with tool invocations over a persisted conversation, together with the
contracts that model providers, tool registries, and state stores plug into.
"""

__version__ = "0.1.0"
