"""Structured answer envelopes.

When the runtime can only answer through a single text or structured-output
channel, a routed answer travels as JSON::

    {"type": "tool-calls", "calls": [{"toolName": "...", "input": {...}}]}
    {"type": "text", "text": "..."}

Older callers emitted a single ``{"tool": ..., "parameters": ...}`` object or
a ``{"tool_calls": [...]}`` list; both are still understood.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from ..core.id import IdGenerator
from ..util.readers import read_string, safe_json_dumps, try_parse_json
from .types import ToolCallContent

_LEGACY_INPUT_KEYS = ("input", "parameters", "arguments")


@dataclass(frozen=True)
class StructuredToolCall:
    tool_name: str
    input: Any


@dataclass(frozen=True)
class ToolCallsEnvelope:
    calls: Tuple[StructuredToolCall, ...]


@dataclass(frozen=True)
class TextEnvelope:
    text: str


Envelope = Union[ToolCallsEnvelope, TextEnvelope]


def _read_tool_calls_envelope(value: Mapping[str, Any]) -> Optional[ToolCallsEnvelope]:
    if value.get("type") != "tool-calls" or not isinstance(value.get("calls"), list):
        return None
    calls = []
    for call in value["calls"]:
        if not isinstance(call, Mapping):
            return None
        name = call.get("toolName")
        if not isinstance(name, str) or "input" not in call:
            return None
        calls.append(StructuredToolCall(tool_name=name, input=call["input"]))
    return ToolCallsEnvelope(calls=tuple(calls))


def _read_legacy_call(value: Any) -> Optional[StructuredToolCall]:
    if not isinstance(value, Mapping):
        return None
    name = read_string(value, "tool") or read_string(value, "toolName")
    if name is None:
        return None
    for key in _LEGACY_INPUT_KEYS:
        if key in value:
            return StructuredToolCall(tool_name=name, input=value[key])
    return None


def _read_legacy_envelope(value: Mapping[str, Any]) -> Optional[ToolCallsEnvelope]:
    single = _read_legacy_call(value)
    if single is not None:
        return ToolCallsEnvelope(calls=(single,))

    tool_calls = value.get("tool_calls")
    if not isinstance(tool_calls, list):
        return None
    calls = tuple(call for call in map(_read_legacy_call, tool_calls) if call is not None)
    return ToolCallsEnvelope(calls=calls) if calls else None


def parse_structured_envelope(value: Any) -> Optional[Envelope]:
    """Read an envelope from an already-decoded JSON value."""
    if not isinstance(value, Mapping):
        return None

    envelope = _read_tool_calls_envelope(value)
    if envelope is not None:
        return envelope
    if value.get("type") == "text" and isinstance(value.get("text"), str):
        return TextEnvelope(text=value["text"])
    return _read_legacy_envelope(value)


def parse_structured_envelope_from_text(text: str) -> Optional[Envelope]:
    """Read an envelope from raw text, which must be a single JSON document."""
    stripped = text.strip()
    if not stripped:
        return None
    ok, value = try_parse_json(stripped)
    if not ok:
        return None
    return parse_structured_envelope(value)


def structured_tool_calls_to_content(
    calls: Sequence[StructuredToolCall],
    generate_id: IdGenerator,
) -> List[ToolCallContent]:
    return [
        ToolCallContent(
            tool_call_id=generate_id(),
            tool_name=call.tool_name,
            input=safe_json_dumps(call.input),
            provider_executed=False,
        )
        for call in calls
    ]
