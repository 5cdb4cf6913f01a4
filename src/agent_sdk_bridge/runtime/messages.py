"""Typed runtime messages.

The runtime yields SDK message objects (or, from fakes and recorded traces,
their wire-format dicts). ``parse_runtime_message`` turns either into one of a
small closed set of variants so the rest of the bridge never inspects raw
payloads.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from claude_agent_sdk import (
    AssistantMessage as SdkAssistantMessage,
    ResultMessage as SdkResultMessage,
    SystemMessage as SdkSystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from claude_agent_sdk.types import StreamEvent

from ..util.readers import read_field, read_non_empty_string, read_record, read_string


@dataclass(frozen=True)
class PartialEvent:
    """A raw Messages API stream event forwarded by the runtime."""
    event: Mapping[str, Any]
    session_id: Optional[str] = None


@dataclass(frozen=True)
class AssistantTurn:
    """A complete assistant message. Blocks are wire-format dicts."""
    content: Tuple[Mapping[str, Any], ...] = ()
    session_id: Optional[str] = None

    @property
    def text(self) -> str:
        return "".join(
            block["text"]
            for block in self.content
            if block.get("type") == "text" and isinstance(block.get("text"), str)
        )


@dataclass(frozen=True)
class ResultTurn:
    """The final message of a runtime invocation."""
    subtype: str
    is_error: bool = False
    result: str = ""
    structured_output: Any = None
    usage: Optional[Dict[str, Any]] = None
    stop_reason: Optional[str] = None
    errors: Tuple[str, ...] = ()
    session_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.subtype == "success"

    @property
    def error_text(self) -> str:
        return "\n".join(self.errors)


@dataclass(frozen=True)
class SystemInit:
    session_id: Optional[str] = None


@dataclass(frozen=True)
class OtherMessage:
    raw: Any = None


RuntimeMessage = Union[PartialEvent, AssistantTurn, ResultTurn, SystemInit, OtherMessage]


def _block_to_dict(block: Any) -> Optional[Dict[str, Any]]:
    if isinstance(block, Mapping):
        return dict(block) if isinstance(block.get("type"), str) else None
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ThinkingBlock):
        return {"type": "thinking", "thinking": block.thinking}
    if isinstance(block, ToolUseBlock):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    if isinstance(block, ToolResultBlock):
        return {
            "type": "tool_result",
            "tool_use_id": block.tool_use_id,
            "content": block.content,
            "is_error": block.is_error,
        }
    return None


def _content_blocks(content: Any) -> Tuple[Dict[str, Any], ...]:
    if not isinstance(content, (list, tuple)):
        return ()
    blocks = (_block_to_dict(block) for block in content)
    return tuple(block for block in blocks if block is not None)


def _errors(value: Any) -> Tuple[str, ...]:
    items = read_field(value, "errors")
    if not isinstance(items, (list, tuple)):
        return ()
    return tuple(item for item in items if isinstance(item, str))


def _result_turn(value: Any) -> ResultTurn:
    result = read_field(value, "result")
    usage = read_record(value, "usage")
    return ResultTurn(
        subtype=read_string(value, "subtype") or "success",
        is_error=bool(read_field(value, "is_error", False)),
        result=result if isinstance(result, str) else "",
        structured_output=read_field(value, "structured_output"),
        usage=dict(usage) if usage is not None else None,
        stop_reason=read_non_empty_string(value, "stop_reason"),
        errors=_errors(value),
        session_id=read_non_empty_string(value, "session_id"),
    )


def _system_message(subtype: Optional[str], data: Any, fallback_session_id: Any) -> RuntimeMessage:
    if subtype != "init":
        return OtherMessage(raw=data)
    session_id = read_non_empty_string(data, "session_id")
    if session_id is None and isinstance(fallback_session_id, str) and fallback_session_id:
        session_id = fallback_session_id
    return SystemInit(session_id=session_id)


def _parse_wire_message(value: Mapping[str, Any]) -> RuntimeMessage:
    message_type = value.get("type")
    session_id = read_non_empty_string(value, "session_id")

    if message_type == "stream_event":
        event = read_record(value, "event")
        return PartialEvent(event=event, session_id=session_id) if event is not None else OtherMessage(raw=value)
    if message_type == "assistant":
        message = read_field(value, "message")
        return AssistantTurn(content=_content_blocks(read_field(message, "content")), session_id=session_id)
    if message_type == "result":
        return _result_turn(value)
    if message_type == "system":
        return _system_message(read_string(value, "subtype"), value, session_id)
    return OtherMessage(raw=value)


def parse_runtime_message(value: Any) -> RuntimeMessage:
    """Classify one message yielded by the runtime."""
    if isinstance(value, (PartialEvent, AssistantTurn, ResultTurn, SystemInit, OtherMessage)):
        return value
    if isinstance(value, Mapping):
        return _parse_wire_message(value)
    if isinstance(value, StreamEvent):
        return PartialEvent(event=dict(value.event), session_id=value.session_id or None)
    if isinstance(value, SdkAssistantMessage):
        return AssistantTurn(
            content=_content_blocks(value.content),
            session_id=read_non_empty_string(value, "session_id"),
        )
    if isinstance(value, SdkResultMessage):
        return _result_turn(value)
    if isinstance(value, SdkSystemMessage):
        return _system_message(value.subtype, value.data, None)
    return OtherMessage(raw=value)


def tool_use_blocks(assistant: Optional[AssistantTurn]) -> List[Mapping[str, Any]]:
    """Tool-use blocks of every flavour on an assistant message."""
    if assistant is None:
        return []
    return [
        block
        for block in assistant.content
        if block.get("type") in ("tool_use", "server_tool_use", "mcp_tool_use")
    ]
