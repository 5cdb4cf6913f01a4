"""Expose caller-declared tools to the agent runtime through an in-process MCP server.

The runtime names MCP tools ``mcp__<server>__<tool>``, so every caller tool
is registered on the ``ai_sdk_tool_bridge`` server and only those prefixed
names are allowed. Tool calls coming back out are mapped to the caller's
names again.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..util.log import Log
from ..util.readers import safe_json_dumps, try_parse_json
from .types import FunctionTool

log = Log.create({"service": "tool_bridge"})

BRIDGE_SERVER_NAME = "ai_sdk_tool_bridge"
BRIDGE_SERVER_VERSION = "1.0.0"
BRIDGE_TOOL_PREFIX = f"mcp__{BRIDGE_SERVER_NAME}__"

EXECUTION_DISABLED_TEXT = "Provider-side execution is disabled for AI SDK bridge tools."

ToolExecutor = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]
ToolExecutorMap = Mapping[str, ToolExecutor]


def to_bridge_tool_name(tool_name: str) -> str:
    return f"{BRIDGE_TOOL_PREFIX}{tool_name}"


def is_bridge_tool_name(tool_name: str) -> bool:
    return tool_name.startswith(BRIDGE_TOOL_PREFIX) and len(tool_name) > len(BRIDGE_TOOL_PREFIX)


def from_bridge_tool_name(tool_name: str) -> str:
    """Strip the bridge prefix. Names without it (or with nothing after it) pass through."""
    if not is_bridge_tool_name(tool_name):
        return tool_name
    return tool_name[len(BRIDGE_TOOL_PREFIX):]


def normalize_tool_input_json(raw_input: str) -> str:
    """Canonical JSON for a buffered tool input; unparsable input is passed through trimmed."""
    stripped = raw_input.strip()
    if not stripped:
        return "{}"
    ok, value = try_parse_json(stripped)
    if not ok:
        return stripped
    return safe_json_dumps(value)


def _text_result(text: str, is_error: bool = False) -> Dict[str, Any]:
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["is_error"] = True
    return result


def _input_schema(tool: FunctionTool) -> Dict[str, Any]:
    schema = dict(tool.input_schema or {})
    if schema.get("type") != "object":
        return {"type": "object", "properties": {}}
    schema.setdefault("properties", {})
    return schema


def make_tool_handler(
    tool_name: str,
    executor: Optional[ToolExecutor],
) -> Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]:
    """Build the MCP handler that runs ``executor`` or reports execution disabled."""

    async def handler(args: Dict[str, Any]) -> Dict[str, Any]:
        if executor is None:
            return _text_result(EXECUTION_DISABLED_TEXT, is_error=True)
        try:
            output = executor(dict(args or {}))
            if inspect.isawaitable(output):
                output = await output
        except Exception as e:
            log.warn("bridge tool failed", {"tool": tool_name, "error": e})
            return _text_result(str(e) or type(e).__name__, is_error=True)
        if isinstance(output, str):
            return _text_result(output)
        return _text_result(safe_json_dumps(output))

    return handler


@dataclass
class ToolBridgeConfig:
    """What the runtime needs to see the caller's tools."""
    allowed_tools: List[str]
    mcp_servers: Dict[str, Any]
    has_any_executor: bool = False
    all_tools_have_executors: bool = False
    missing_executor_tool_names: List[str] = field(default_factory=list)


def build_tool_bridge_config(
    tools: Sequence[FunctionTool],
    executors: Optional[ToolExecutorMap] = None,
) -> Optional[ToolBridgeConfig]:
    """Register ``tools`` on a fresh in-process MCP server, or None when there are none."""
    if not tools:
        return None

    from claude_agent_sdk import create_sdk_mcp_server, tool

    executors = executors or {}
    sdk_tools = []
    missing: List[str] = []
    for definition in tools:
        executor = executors.get(definition.name)
        if executor is None:
            missing.append(definition.name)
        decorate = tool(definition.name, definition.description or "", _input_schema(definition))
        sdk_tools.append(decorate(make_tool_handler(definition.name, executor)))

    server = create_sdk_mcp_server(
        name=BRIDGE_SERVER_NAME,
        version=BRIDGE_SERVER_VERSION,
        tools=sdk_tools,
    )
    return ToolBridgeConfig(
        allowed_tools=[to_bridge_tool_name(definition.name) for definition in tools],
        mcp_servers={BRIDGE_SERVER_NAME: server},
        has_any_executor=len(missing) < len(tools),
        all_tools_have_executors=not missing,
        missing_executor_tool_names=missing,
    )
