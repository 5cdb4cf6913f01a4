"""Translate raw runtime stream events into unified stream parts.

The runtime forwards Messages API stream events (``message_start``,
``content_block_start``/``delta``/``stop``, ``message_delta``). Blocks are
tracked by their event index so that deltas are routed to the right block
and every block that was started is ended exactly once, either by its own
stop event or by ``close_pending_stream_blocks`` at the end of the stream.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence

from ..core.id import IdGenerator
from ..util.readers import read_field, read_int, read_non_empty_string, read_record, read_string
from .result_mapping import merge_usage_delta
from .types import (
    Content,
    ReasoningContent,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningStart,
    ResponseMetadata,
    StreamPart,
    TextContent,
    TextDelta,
    TextEnd,
    TextStart,
    ToolCallContent,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
)

BlockKind = Literal["text", "reasoning", "tool-input"]

TOOL_USE_BLOCK_TYPES = frozenset({"tool_use", "server_tool_use", "mcp_tool_use"})
PROVIDER_EXECUTED_BLOCK_TYPES = frozenset({"server_tool_use", "mcp_tool_use"})
UNKNOWN_TOOL_NAME = "unknown_tool"


@dataclass
class StreamBlockState:
    """An open content block."""
    kind: BlockKind
    id: str


@dataclass
class StreamEventState:
    """Per-invocation translator state."""
    blocks: Dict[int, StreamBlockState] = field(default_factory=dict)
    response_metadata_emitted: bool = False
    latest_stop_reason: Optional[str] = None
    latest_usage: Optional[Dict[str, Any]] = None


def _end_part(block: StreamBlockState) -> StreamPart:
    if block.kind == "text":
        return TextEnd(id=block.id)
    if block.kind == "reasoning":
        return ReasoningEnd(id=block.id)
    return ToolInputEnd(id=block.id)


def _start_block(
    index: int,
    content_block: Any,
    state: StreamEventState,
    generate_id: IdGenerator,
) -> List[StreamPart]:
    parts: List[StreamPart] = []

    previous = state.blocks.pop(index, None)
    if previous is not None:
        parts.append(_end_part(previous))

    block_type = read_string(content_block, "type")
    if block_type == "text":
        block = StreamBlockState(kind="text", id=generate_id())
        state.blocks[index] = block
        parts.append(TextStart(id=block.id))
        initial = read_non_empty_string(content_block, "text")
        if initial is not None:
            parts.append(TextDelta(id=block.id, delta=initial))
        return parts

    if block_type == "thinking":
        block = StreamBlockState(kind="reasoning", id=generate_id())
        state.blocks[index] = block
        parts.append(ReasoningStart(id=block.id))
        initial = read_non_empty_string(content_block, "thinking")
        if initial is not None:
            parts.append(ReasoningDelta(id=block.id, delta=initial))
        return parts

    if block_type in TOOL_USE_BLOCK_TYPES:
        block = StreamBlockState(
            kind="tool-input",
            id=read_non_empty_string(content_block, "id") or generate_id(),
        )
        state.blocks[index] = block
        parts.append(ToolInputStart(
            id=block.id,
            tool_name=read_non_empty_string(content_block, "name") or UNKNOWN_TOOL_NAME,
            provider_executed=True if block_type in PROVIDER_EXECUTED_BLOCK_TYPES else None,
            dynamic=True if block_type == "mcp_tool_use" else None,
        ))
    return parts


def _delta_part(block: StreamBlockState, delta: Any) -> Optional[StreamPart]:
    delta_type = read_string(delta, "type")
    if delta_type == "text_delta" and block.kind == "text":
        text = read_non_empty_string(delta, "text")
        return TextDelta(id=block.id, delta=text) if text is not None else None
    if delta_type == "thinking_delta" and block.kind == "reasoning":
        text = read_non_empty_string(delta, "thinking")
        return ReasoningDelta(id=block.id, delta=text) if text is not None else None
    if delta_type == "input_json_delta" and block.kind == "tool-input":
        fragment = read_non_empty_string(delta, "partial_json")
        return ToolInputDelta(id=block.id, delta=fragment) if fragment is not None else None
    return None


def translate_stream_event(
    event: Any,
    state: StreamEventState,
    model_id: str,
    generate_id: IdGenerator,
) -> List[StreamPart]:
    """Advance ``state`` with one raw event and return the parts it produces."""
    event_type = read_string(event, "type")

    if event_type == "message_start":
        message = read_field(event, "message")
        state.latest_usage = merge_usage_delta(state.latest_usage, read_record(message, "usage"))
        if state.response_metadata_emitted:
            return []
        state.response_metadata_emitted = True
        return [ResponseMetadata(
            id=read_non_empty_string(message, "id"),
            model_id=read_non_empty_string(message, "model") or model_id,
            timestamp=datetime.now(timezone.utc),
        )]

    if event_type in ("content_block_start", "content_block_delta", "content_block_stop"):
        index = read_int(event, "index")
        if index is None:
            return []

    if event_type == "content_block_start":
        return _start_block(index, read_field(event, "content_block"), state, generate_id)

    if event_type == "content_block_delta":
        block = state.blocks.get(index)
        if block is None:
            return []
        part = _delta_part(block, read_field(event, "delta"))
        return [part] if part is not None else []

    if event_type == "content_block_stop":
        block = state.blocks.pop(index, None)
        return [_end_part(block)] if block is not None else []

    if event_type == "message_delta":
        stop_reason = read_string(read_field(event, "delta"), "stop_reason")
        if stop_reason is not None:
            state.latest_stop_reason = stop_reason
        state.latest_usage = merge_usage_delta(state.latest_usage, read_record(event, "usage"))
        return []

    return []


def close_pending_stream_blocks(state: StreamEventState) -> List[StreamPart]:
    """End every still-open block in index order and forget them."""
    parts = [_end_part(state.blocks[index]) for index in sorted(state.blocks)]
    state.blocks.clear()
    return parts


def text_block_parts(text: str, block_id: str) -> List[StreamPart]:
    """A complete text block carrying ``text`` as a single delta."""
    return [TextStart(id=block_id), TextDelta(id=block_id, delta=text), TextEnd(id=block_id)]


def content_to_stream_parts(content: Sequence[Content], generate_id: IdGenerator) -> List[StreamPart]:
    """Replay finished content as stream parts."""
    parts: List[StreamPart] = []
    for item in content:
        if isinstance(item, TextContent):
            if item.text:
                parts.extend(text_block_parts(item.text, generate_id()))
        elif isinstance(item, ReasoningContent):
            block_id = generate_id()
            parts.extend([
                ReasoningStart(id=block_id),
                ReasoningDelta(id=block_id, delta=item.text),
                ReasoningEnd(id=block_id),
            ])
        elif isinstance(item, ToolCallContent):
            parts.append(item)
    return parts