import pytest

from agent_sdk_bridge.provider.tool_bridge import (
    BRIDGE_SERVER_NAME,
    EXECUTION_DISABLED_TEXT,
    build_tool_bridge_config,
    from_bridge_tool_name,
    is_bridge_tool_name,
    make_tool_handler,
    normalize_tool_input_json,
    to_bridge_tool_name,
)
from agent_sdk_bridge.provider.tool_input_buffer import PendingBridgeToolInputs
from agent_sdk_bridge.provider.types import FunctionTool


def test_names_round_trip() -> None:
    bridged = to_bridge_tool_name("bash")

    assert bridged == "mcp__ai_sdk_tool_bridge__bash"
    assert is_bridge_tool_name(bridged)
    assert from_bridge_tool_name(bridged) == "bash"


def test_foreign_and_bare_prefix_names_pass_through() -> None:
    assert from_bridge_tool_name("Read") == "Read"
    assert from_bridge_tool_name("mcp__other__bash") == "mcp__other__bash"
    assert not is_bridge_tool_name("mcp__ai_sdk_tool_bridge__")
    assert from_bridge_tool_name("mcp__ai_sdk_tool_bridge__") == "mcp__ai_sdk_tool_bridge__"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("", "{}"),
        ("   ", "{}"),
        ('{ "cmd" : "ls" }', '{"cmd":"ls"}'),
        ('  {"cmd": ', '{"cmd":'),
    ],
)
def test_input_normalization(raw: str, expected: str) -> None:
    assert normalize_tool_input_json(raw) == expected


@pytest.mark.anyio
async def test_handler_without_executor_reports_disabled() -> None:
    result = await make_tool_handler("bash", None)({"cmd": "ls"})

    assert result == {"content": [{"type": "text", "text": EXECUTION_DISABLED_TEXT}], "is_error": True}


@pytest.mark.anyio
async def test_handler_runs_sync_and_async_executors() -> None:
    async def lookup(args):
        return {"found": args["key"]}

    text = await make_tool_handler("echo", lambda args: "echo " + args["text"])({"text": "hi"})
    data = await make_tool_handler("lookup", lookup)({"key": "k"})

    assert text == {"content": [{"type": "text", "text": "echo hi"}]}
    assert data == {"content": [{"type": "text", "text": '{"found":"k"}'}]}


@pytest.mark.anyio
async def test_handler_reports_executor_failure_as_tool_error() -> None:
    def boom(args):
        raise RuntimeError("disk on fire")

    result = await make_tool_handler("boom", boom)({})

    assert result["is_error"] is True
    assert result["content"][0]["text"] == "disk on fire"


def test_no_tools_no_bridge() -> None:
    assert build_tool_bridge_config([]) is None


def test_bridge_config_registers_prefixed_tools() -> None:
    tools = [
        FunctionTool(name="bash", input_schema={"type": "object", "properties": {"cmd": {"type": "string"}}}),
        FunctionTool(name="read", input_schema={"type": "string"}),
    ]

    config = build_tool_bridge_config(tools, {"bash": lambda args: "ok"})

    assert config is not None
    assert config.allowed_tools == ["mcp__ai_sdk_tool_bridge__bash", "mcp__ai_sdk_tool_bridge__read"]
    assert list(config.mcp_servers) == [BRIDGE_SERVER_NAME]
    assert config.has_any_executor is True
    assert config.all_tools_have_executors is False
    assert config.missing_executor_tool_names == ["read"]


def test_pending_inputs_buffer_fragments_per_block() -> None:
    pending = PendingBridgeToolInputs()
    pending.start("t1", "mcp__ai_sdk_tool_bridge__bash")

    assert pending.append("t1", '{"cmd":')
    assert pending.append("t1", '"ls"}')
    assert not pending.append("other", "x")
    finished = pending.finish("t1")

    assert finished is not None and finished.raw_input == '{"cmd":"ls"}'
    assert pending.finish("t1") is None
    assert len(pending) == 0
