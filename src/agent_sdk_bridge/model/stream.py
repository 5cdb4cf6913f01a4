"""Streaming generation.

Parts are produced by an async generator: ``stream-start`` first, then the
translated block lifecycle, then whatever the recovery cascade adds, and
exactly one ``finish`` last, even when the runtime fails. Closing the
generator early aborts the runtime query.
"""

from contextlib import aclosing
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

from ..provider.recovery import LIVE_STREAM_CASCADE, RecoverySource, recover_tool_output
from ..provider.result_mapping import build_provider_metadata, error_finish, map_finish_reason, map_usage
from ..provider.stream_events import (
    StreamEventState,
    close_pending_stream_blocks,
    content_to_stream_parts,
    text_block_parts,
    translate_stream_event,
)
from ..provider.tool_bridge import from_bridge_tool_name, is_bridge_tool_name, normalize_tool_input_json
from ..provider.tool_input_buffer import PendingBridgeToolInputs
from ..provider.types import (
    CallOptions,
    ErrorPart,
    Finish,
    ResponseMetadata,
    StreamPart,
    StreamResult,
    StreamStart,
    TextDelta,
    TextEnd,
    TextStart,
    ToolCallContent,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
)
from ..runtime.messages import AssistantTurn, PartialEvent, ResultTurn, SystemInit
from ..util.log import Log
from .persistence import persist_query_session_state
from .query_context import AbortBridge, QueryContext, QueryHost, drain_runtime, prepare_query_context
from .query_options import build_query_options

log = Log.create({"service": "model.stream"})

STREAM_BRIDGE_ERROR = "stream-bridge-error"


class _PartRouter:
    """Rename bridge tool parts, emit tool calls, and hold back routed text."""

    def __init__(self, context: QueryContext):
        self.tools_mode = context.completion_mode.type == "tools"
        self.buffer_text = context.tool_routing
        self.provider_executed = context.native_tool_execution
        self.pending = PendingBridgeToolInputs()
        self.emitted_calls: List[ToolCallContent] = []
        self.text_deltas: List[str] = []

    @property
    def buffered_text(self) -> str:
        return "".join(self.text_deltas)

    def route(self, parts: List[StreamPart]) -> List[StreamPart]:
        out: List[StreamPart] = []
        for part in parts:
            if self.tools_mode and isinstance(part, ToolInputStart) and is_bridge_tool_name(part.tool_name):
                self.pending.start(part.id, part.tool_name)
                out.append(part.model_copy(update={
                    "tool_name": from_bridge_tool_name(part.tool_name),
                    "provider_executed": self.provider_executed,
                }))
                continue

            if self.tools_mode and isinstance(part, ToolInputDelta) and self.pending.append(part.id, part.delta):
                out.append(part)
                continue

            if self.tools_mode and isinstance(part, ToolInputEnd) and part.id in self.pending:
                finished = self.pending.finish(part.id)
                call = ToolCallContent(
                    tool_call_id=part.id,
                    tool_name=from_bridge_tool_name(finished.tool_name),
                    input=normalize_tool_input_json(finished.raw_input),
                    provider_executed=self.provider_executed,
                )
                self.emitted_calls.append(call)
                out.extend([part, call])
                continue

            if self.buffer_text and isinstance(part, (TextStart, TextDelta, TextEnd)):
                if isinstance(part, TextDelta):
                    self.text_deltas.append(part.delta)
                continue

            out.append(part)
        return out

    def unrouted_closing_parts(self, parts: List[StreamPart]) -> List[StreamPart]:
        """Closing parts after a failure; routed text stays suppressed."""
        return [part for part in parts if not (self.buffer_text and isinstance(part, TextEnd))]


async def stream_parts(host: QueryHost, options: CallOptions, context: QueryContext) -> AsyncIterator[StreamPart]:
    abort = AbortBridge(options.abort_signal)
    query_options = build_query_options(
        host.model_id,
        host.settings,
        context,
        abort.event,
        include_partial_messages=True,
    )
    state = StreamEventState()
    router = _PartRouter(context)
    assistant: Optional[AssistantTurn] = None
    result: Optional[ResultTurn] = None
    init: Optional[SystemInit] = None
    finished = False

    yield StreamStart(warnings=context.warnings)

    try:
        messages = host.runtime.query(context.query_prompt, query_options)
        async with aclosing(drain_runtime(messages, abort)) as runtime_messages:
            async for message in runtime_messages:
                if isinstance(message, PartialEvent):
                    parts = translate_stream_event(message.event, state, host.model_id, host.generate_id)
                    for part in router.route(parts):
                        yield part
                elif isinstance(message, AssistantTurn):
                    assistant = message
                elif isinstance(message, ResultTurn):
                    result = message
                elif isinstance(message, SystemInit):
                    init = message

        if not state.response_metadata_emitted:
            state.response_metadata_emitted = True
            yield ResponseMetadata(model_id=host.model_id, timestamp=datetime.now(timezone.utc))

        for part in router.route(close_pending_stream_blocks(state)):
            yield part

        finish_reason = map_finish_reason(result.stop_reason if result is not None else state.latest_stop_reason)
        if context.tool_routing:
            recovery = recover_tool_output(
                RecoverySource(
                    result=result,
                    assistant=assistant,
                    streamed_tool_calls=router.emitted_calls,
                    buffered_text=router.buffered_text or None,
                ),
                host.generate_id,
                LIVE_STREAM_CASCADE,
            )
            if recovery.error is not None:
                # Held-back text still reaches the consumer ahead of the error.
                if router.buffered_text.strip():
                    for part in text_block_parts(router.buffered_text, host.generate_id()):
                        yield part
                yield ErrorPart(error=recovery.error)
            elif recovery.step != "streamed_tool_calls":
                for part in content_to_stream_parts(recovery.content, host.generate_id):
                    yield part
            finish_reason = recovery.finish_reason
        elif result is not None and not result.success:
            yield ErrorPart(error=result.error_text)
            finish_reason = error_finish(result.subtype)

        await persist_query_session_state(
            host.memory,
            options.prompt,
            context.prompt_query_input.serialized_prompt_messages,
            context.incoming_session_key,
            result=result,
            assistant=assistant,
            init=init,
        )

        finished = True
        log.info("streamed", {"model": host.model_id, "finish": finish_reason.unified, "raw": finish_reason.raw})
        yield Finish(
            finish_reason=finish_reason,
            usage=map_usage(result.usage if result is not None else state.latest_usage),
            provider_metadata=build_provider_metadata(result.usage) if result is not None else None,
        )
    except Exception as e:
        if finished:
            raise
        log.error("stream bridge failed", {"model": host.model_id, "error": e})
        for part in router.unrouted_closing_parts(close_pending_stream_blocks(state)):
            yield part
        yield ErrorPart(error=e)
        yield Finish(finish_reason=error_finish(STREAM_BRIDGE_ERROR), usage=map_usage(state.latest_usage))
    finally:
        abort.abort()
        abort.close()


async def run_stream(host: QueryHost, options: CallOptions) -> StreamResult:
    context = await prepare_query_context(host, options)
    return StreamResult(stream=stream_parts(host, options, context), request=context.request_body())
