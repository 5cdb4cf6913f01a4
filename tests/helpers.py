"""Shared test helpers: a scripted runtime and wire-format message builders."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any

from agent_sdk_bridge.provider.tool_bridge import to_bridge_tool_name
from agent_sdk_bridge.runtime.port import QueryOptions, QueryPrompt


class FakeRuntime:
    """Yields one scripted batch of wire messages per query and records the calls."""

    def __init__(self, *scripts: Sequence[Any], raise_after: BaseException | None = None, stall: bool = False):
        self.scripts = list(scripts)
        self.calls: list[tuple[QueryPrompt, QueryOptions]] = []
        self.raise_after = raise_after
        self.stall = stall
        self.closed = False

    @property
    def last_options(self) -> QueryOptions:
        return self.calls[-1][1]

    @property
    def last_prompt(self) -> QueryPrompt:
        return self.calls[-1][0]

    async def query(self, prompt: QueryPrompt, options: QueryOptions) -> AsyncIterator[Any]:
        self.calls.append((prompt, options))
        script = self.scripts.pop(0) if self.scripts else []
        try:
            for message in script:
                yield message
            if self.raise_after is not None:
                raise self.raise_after
            if self.stall:
                await asyncio.sleep(3600)
        finally:
            self.closed = True


def init_message(session_id: str) -> dict[str, Any]:
    return {"type": "system", "subtype": "init", "session_id": session_id}


def assistant_message(session_id: str, *blocks: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "assistant",
        "session_id": session_id,
        "message": {"role": "assistant", "content": list(blocks)},
    }


def result_message(
    session_id: str,
    subtype: str = "success",
    result: str = "",
    structured_output: Any = None,
    usage: dict[str, Any] | None = None,
    stop_reason: str | None = None,
    errors: Sequence[str] = (),
) -> dict[str, Any]:
    message: dict[str, Any] = {
        "type": "result",
        "subtype": subtype,
        "is_error": subtype != "success",
        "session_id": session_id,
        "result": result,
        "usage": usage or {"input_tokens": 10, "output_tokens": 5},
        "errors": list(errors),
    }
    if structured_output is not None:
        message["structured_output"] = structured_output
    if stop_reason is not None:
        message["stop_reason"] = stop_reason
    return message


def stream_event(session_id: str, event: dict[str, Any]) -> dict[str, Any]:
    return {"type": "stream_event", "session_id": session_id, "event": event}


def text_events(session_id: str, text: str, index: int = 0) -> list[dict[str, Any]]:
    return [
        stream_event(session_id, {"type": "message_start", "message": {"id": "msg_1", "model": "claude-test", "usage": {"input_tokens": 10}}}),
        stream_event(session_id, {"type": "content_block_start", "index": index, "content_block": {"type": "text", "text": ""}}),
        stream_event(session_id, {"type": "content_block_delta", "index": index, "delta": {"type": "text_delta", "text": text}}),
        stream_event(session_id, {"type": "content_block_stop", "index": index}),
        stream_event(session_id, {"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 5}}),
    ]


def bridge_tool_events(
    session_id: str,
    tool_use_id: str,
    tool_name: str,
    fragments: Sequence[str],
    index: int = 0,
    stop: bool = True,
) -> list[dict[str, Any]]:
    events = [
        stream_event(session_id, {
            "type": "content_block_start",
            "index": index,
            "content_block": {"type": "tool_use", "id": tool_use_id, "name": to_bridge_tool_name(tool_name), "input": {}},
        }),
    ]
    for fragment in fragments:
        events.append(stream_event(session_id, {
            "type": "content_block_delta",
            "index": index,
            "delta": {"type": "input_json_delta", "partial_json": fragment},
        }))
    if stop:
        events.append(stream_event(session_id, {"type": "content_block_stop", "index": index}))
    return events


def user(text: str) -> dict[str, Any]:
    return {"role": "user", "content": [{"type": "text", "text": text}]}


def assistant(text: str) -> dict[str, Any]:
    return {"role": "assistant", "content": [{"type": "text", "text": text}]}


def system(text: str) -> dict[str, Any]:
    return {"role": "system", "content": text}


async def collect(stream: AsyncIterator[Any]) -> list[Any]:
    return [part async for part in stream]


def prompt_of(*messages: dict[str, Any]) -> list[Any]:
    """Typed prompt messages from wire-style dicts."""
    from agent_sdk_bridge.provider.types import CallOptions

    return CallOptions.model_validate({"prompt": list(messages)}).prompt
