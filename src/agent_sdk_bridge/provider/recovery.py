"""Recover a tool-call or text answer from a single-turn tool routing run.

When the caller executes tools itself, the runtime is given one turn and the
answer can surface in several places. ``CASCADE`` lists the extraction steps in
priority order; the first step that yields content wins. ``recover_tool_output``
then decides the finish reason, downgrading recoverable runtime failures when
usable content was found.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from ..core.id import IdGenerator
from ..runtime.messages import AssistantTurn, ResultTurn, tool_use_blocks
from ..util.log import Log
from ..util.readers import read_non_empty_string, safe_json_dumps
from .envelope import (
    TextEnvelope,
    ToolCallsEnvelope,
    parse_structured_envelope,
    parse_structured_envelope_from_text,
    structured_tool_calls_to_content,
)
from .errors import recoverable_subtype, structured_retries_exhausted
from .result_mapping import error_finish, map_finish_reason, tool_calls_finish
from .tool_bridge import from_bridge_tool_name
from .types import Content, FinishReason, TextContent, ToolCallContent

log = Log.create({"service": "recovery"})

EMPTY_TOOL_ROUTING_OUTPUT_ERROR = "empty-tool-routing-output"
EMPTY_TOOL_ROUTING_OUTPUT_TEXT = "Tool routing produced no tool call or text response."
NO_RESULT_ERROR = "agent-sdk-no-result"
NO_RESULT_TEXT = "Agent runtime finished without a result message."
STRUCTURED_RETRIES_RECOVERED = "error_max_structured_output_retries_recovered"


@dataclass
class RecoverySource:
    """Everything a routing run left behind."""
    result: Optional[ResultTurn]
    assistant: Optional[AssistantTurn]
    streamed_tool_calls: Sequence[ToolCallContent] = ()
    buffered_text: Optional[str] = None

    @property
    def assistant_text(self) -> str:
        if self.buffered_text is not None:
            return self.buffered_text
        return self.assistant.text if self.assistant is not None else ""

    @property
    def text_allowed(self) -> bool:
        # Text only counts as an answer when the run succeeded or hit the
        # structured-output retry limit.
        if self.result is None:
            return False
        return self.result.success or structured_retries_exhausted(self.result.subtype)


@dataclass
class Recovery:
    content: List[Content]
    finish_reason: FinishReason
    step: Optional[str] = None
    error: Optional[str] = None


Step = Callable[[RecoverySource, IdGenerator], Optional[List[Content]]]


def _non_blank(text: Optional[str]) -> bool:
    return bool(text and text.strip())


def structured_output_tool_calls(source: RecoverySource, generate_id: IdGenerator) -> Optional[List[Content]]:
    if source.result is None or not source.result.success:
        return None
    envelope = parse_structured_envelope(source.result.structured_output)
    if isinstance(envelope, ToolCallsEnvelope) and envelope.calls:
        return list(structured_tool_calls_to_content(envelope.calls, generate_id))
    return None


def streamed_tool_calls(source: RecoverySource, generate_id: IdGenerator) -> Optional[List[Content]]:
    return list(source.streamed_tool_calls) or None


def assistant_tool_use_blocks(source: RecoverySource, generate_id: IdGenerator) -> Optional[List[Content]]:
    calls: List[Content] = []
    for block in tool_use_blocks(source.assistant):
        name = read_non_empty_string(block, "name")
        if name is None:
            continue
        calls.append(ToolCallContent(
            tool_call_id=read_non_empty_string(block, "id") or generate_id(),
            tool_name=from_bridge_tool_name(name),
            input=safe_json_dumps(block.get("input", {})),
            provider_executed=False,
        ))
    return calls or None


def structured_output_text(source: RecoverySource, generate_id: IdGenerator) -> Optional[List[Content]]:
    if source.result is None or not source.result.success:
        return None
    envelope = parse_structured_envelope(source.result.structured_output)
    if isinstance(envelope, TextEnvelope) and _non_blank(envelope.text):
        return [TextContent(text=envelope.text)]
    return None


def assistant_text_envelope(source: RecoverySource, generate_id: IdGenerator) -> Optional[List[Content]]:
    text = source.assistant_text
    if not source.text_allowed or not text:
        return None

    envelope = parse_structured_envelope_from_text(text)
    if isinstance(envelope, ToolCallsEnvelope) and envelope.calls:
        return list(structured_tool_calls_to_content(envelope.calls, generate_id))
    if isinstance(envelope, TextEnvelope):
        return [TextContent(text=envelope.text)] if _non_blank(envelope.text) else None
    return [TextContent(text=text)] if _non_blank(text) else None


def result_text(source: RecoverySource, generate_id: IdGenerator) -> Optional[List[Content]]:
    if source.result is None or not source.result.success:
        return None
    if _non_blank(source.result.result):
        return [TextContent(text=source.result.result)]
    return None


CASCADE: Tuple[Step, ...] = (
    structured_output_tool_calls,
    streamed_tool_calls,
    assistant_tool_use_blocks,
    structured_output_text,
    assistant_text_envelope,
    result_text,
)

# Once tool calls have been streamed live they are the answer.
LIVE_STREAM_CASCADE: Tuple[Step, ...] = (
    streamed_tool_calls,
    structured_output_tool_calls,
    assistant_tool_use_blocks,
    structured_output_text,
    assistant_text_envelope,
    result_text,
)


def run_cascade(
    source: RecoverySource,
    generate_id: IdGenerator,
    steps: Sequence[Step] = CASCADE,
) -> Tuple[Optional[str], List[Content]]:
    """Apply ``steps`` in order; return the winning step's name and content."""
    for step in steps:
        content = step(source, generate_id)
        if content:
            return step.__name__, content
    return None, []


def _has_tool_calls(content: Sequence[Content]) -> bool:
    return any(isinstance(item, ToolCallContent) for item in content)


def recover_tool_output(
    source: RecoverySource,
    generate_id: IdGenerator,
    steps: Sequence[Step] = CASCADE,
) -> Recovery:
    """Run the cascade and settle the finish reason."""
    step, content = run_cascade(source, generate_id, steps)
    has_tool_calls = _has_tool_calls(content)
    result = source.result

    if result is None:
        if has_tool_calls:
            return Recovery(content=content, finish_reason=tool_calls_finish(), step=step)
        log.warn("runtime produced no result message")
        return Recovery(
            content=[TextContent(text=source.assistant_text)],
            finish_reason=error_finish(NO_RESULT_ERROR),
            error=NO_RESULT_TEXT,
        )

    if has_tool_calls:
        if structured_retries_exhausted(result.subtype) and step == "assistant_text_envelope":
            log.info("recovered tool calls after structured output retries", {"step": step})
            return Recovery(
                content=content,
                finish_reason=FinishReason(unified="tool-calls", raw=STRUCTURED_RETRIES_RECOVERED),
                step=step,
            )
        if result.success or recoverable_subtype(result.subtype):
            return Recovery(content=content, finish_reason=tool_calls_finish(), step=step)

    elif content:
        if result.success:
            finish = map_finish_reason(result.stop_reason)
            if finish.unified == "tool-calls":
                finish = FinishReason(unified="stop", raw=finish.raw)
            return Recovery(content=content, finish_reason=finish, step=step)
        if structured_retries_exhausted(result.subtype):
            log.info("recovered text after structured output retries", {"step": step})
            return Recovery(
                content=content,
                finish_reason=FinishReason(unified="stop", raw=STRUCTURED_RETRIES_RECOVERED),
                step=step,
            )

    if result.success:
        log.warn("tool routing produced no output")
        return Recovery(
            content=[TextContent(text=EMPTY_TOOL_ROUTING_OUTPUT_TEXT)],
            finish_reason=error_finish(EMPTY_TOOL_ROUTING_OUTPUT_ERROR),
            error=EMPTY_TOOL_ROUTING_OUTPUT_TEXT,
        )

    log.warn("runtime reported failure", {"subtype": result.subtype})
    return Recovery(
        content=[TextContent(text=result.error_text)],
        finish_reason=error_finish(result.subtype),
        error=result.error_text,
    )
