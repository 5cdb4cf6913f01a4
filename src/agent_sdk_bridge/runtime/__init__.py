"""Agent runtime port and its Claude agent SDK adapter."""

from .claude import ClaudeAgentRuntime
from .messages import AssistantTurn, OtherMessage, PartialEvent, ResultTurn, SystemInit, parse_runtime_message
from .port import AgentRuntime, QueryOptions

__all__ = [
    "AgentRuntime",
    "QueryOptions",
    "ClaudeAgentRuntime",
    "PartialEvent",
    "AssistantTurn",
    "ResultTurn",
    "SystemInit",
    "OtherMessage",
    "parse_runtime_message",
]
