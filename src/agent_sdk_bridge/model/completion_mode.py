"""Decide how a call is answered: plain text, JSON, or tool routing."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence

from ..provider.types import CallOptions, FunctionTool, ToolChoice

CompletionModeType = Literal["plain-text", "json", "tools"]


@dataclass
class CompletionMode:
    type: CompletionModeType
    schema: Dict[str, Any] = field(default_factory=dict)
    tools: List[FunctionTool] = field(default_factory=list)


def _call_variant(tool: FunctionTool) -> Dict[str, Any]:
    return {
        "type": "object",
        "additionalProperties": False,
        "required": ["toolName", "input"],
        "properties": {
            "toolName": {"const": tool.name},
            "input": tool.input_schema,
        },
    }


def build_tool_schema(tools: Sequence[FunctionTool], tool_choice: Optional[ToolChoice]) -> Dict[str, Any]:
    """JSON schema of the structured envelope that answers a routing call."""
    choice = tool_choice.type if tool_choice is not None else "auto"
    variants = [_call_variant(tool) for tool in tools]

    calls: Dict[str, Any] = {
        "type": "array",
        "items": {"oneOf": variants} if variants else {"type": "object", "additionalProperties": True},
    }
    if choice in ("required", "tool"):
        calls["minItems"] = 1

    return {
        "type": "object",
        "oneOf": [
            {
                "type": "object",
                "additionalProperties": False,
                "required": ["type", "text"],
                "properties": {"type": {"const": "text"}, "text": {"type": "string"}},
            },
            {
                "type": "object",
                "additionalProperties": False,
                "required": ["type", "calls"],
                "properties": {"type": {"const": "tool-calls"}, "calls": calls},
            },
        ],
    }


def build_completion_mode(options: CallOptions) -> CompletionMode:
    tools = [tool for tool in options.tools or [] if isinstance(tool, FunctionTool)]
    choice = options.tool_choice

    if tools and (choice is None or choice.type != "none"):
        if choice is not None and choice.type == "tool":
            tools = [tool for tool in tools if tool.name == choice.tool_name] or tools
        return CompletionMode(type="tools", schema=build_tool_schema(tools, choice), tools=tools)

    if options.response_format is not None and options.response_format.type == "json":
        return CompletionMode(type="json", schema=dict(options.response_format.json_schema or {}))

    return CompletionMode(type="plain-text")
