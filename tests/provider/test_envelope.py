from agent_sdk_bridge.core.id import sequential
from agent_sdk_bridge.provider.envelope import (
    StructuredToolCall,
    TextEnvelope,
    ToolCallsEnvelope,
    parse_structured_envelope,
    parse_structured_envelope_from_text,
    structured_tool_calls_to_content,
)


def test_tool_calls_envelope() -> None:
    envelope = parse_structured_envelope({
        "type": "tool-calls",
        "calls": [{"toolName": "read", "input": {"path": "a"}}, {"toolName": "ls", "input": {}}],
    })

    assert envelope == ToolCallsEnvelope(calls=(
        StructuredToolCall(tool_name="read", input={"path": "a"}),
        StructuredToolCall(tool_name="ls", input={}),
    ))


def test_malformed_call_rejects_the_whole_envelope() -> None:
    assert parse_structured_envelope({"type": "tool-calls", "calls": [{"toolName": "read"}]}) is None
    assert parse_structured_envelope({"type": "tool-calls", "calls": ["read"]}) is None


def test_text_envelope() -> None:
    assert parse_structured_envelope({"type": "text", "text": "hi"}) == TextEnvelope(text="hi")
    assert parse_structured_envelope({"type": "text", "text": 3}) is None


def test_legacy_shapes() -> None:
    single = parse_structured_envelope({"tool": "bash", "parameters": {"cmd": "ls"}})
    listed = parse_structured_envelope({"tool_calls": [{"toolName": "a", "arguments": 1}, {"nope": True}]})

    assert single == ToolCallsEnvelope(calls=(StructuredToolCall(tool_name="bash", input={"cmd": "ls"}),))
    assert listed == ToolCallsEnvelope(calls=(StructuredToolCall(tool_name="a", input=1),))
    assert parse_structured_envelope({"tool_calls": [{"nope": True}]}) is None


def test_from_text_requires_a_single_json_document() -> None:
    assert parse_structured_envelope_from_text('  {"type":"text","text":"ok"}\n') == TextEnvelope(text="ok")
    assert parse_structured_envelope_from_text('Sure! {"type":"text","text":"ok"}') is None
    assert parse_structured_envelope_from_text("   ") is None
    assert parse_structured_envelope_from_text("[1, 2]") is None


def test_calls_become_tool_call_content_with_fresh_ids() -> None:
    content = structured_tool_calls_to_content(
        [StructuredToolCall(tool_name="read", input={"path": "한글"})],
        sequential("call"),
    )

    assert content[0].tool_call_id == "call-1"
    assert content[0].input == '{"path":"한글"}'
    assert content[0].provider_executed is False
