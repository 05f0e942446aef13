"""Agent implementations for the LyricLens storyboard studio"""

from .base import (
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    RetryPolicy,
    classify_remote_error,
    is_quota_error,
)

__all__ = [
    "Agent",
    "AgentExecutionError",
    "AgentInput",
    "AgentOutput",
    "RetryPolicy",
    "classify_remote_error",
    "is_quota_error",
]
