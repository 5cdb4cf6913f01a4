"""Single-shot generation."""

from datetime import datetime, timezone
from typing import List, Optional

from ..provider.recovery import NO_RESULT_ERROR, RecoverySource, recover_tool_output
from ..provider.result_mapping import build_provider_metadata, error_finish, map_finish_reason, map_usage
from ..provider.stream_events import StreamEventState, close_pending_stream_blocks, translate_stream_event
from ..provider.tool_bridge import from_bridge_tool_name, is_bridge_tool_name, normalize_tool_input_json
from ..provider.tool_input_buffer import PendingBridgeToolInputs
from ..provider.types import (
    CallOptions,
    Content,
    FinishReason,
    GenerateResult,
    StreamPart,
    TextContent,
    ToolCallContent,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
)
from ..runtime.messages import AssistantTurn, PartialEvent, ResultTurn, SystemInit
from ..util.log import Log
from ..util.readers import safe_json_dumps
from .persistence import persist_query_session_state
from .query_context import AbortBridge, QueryContext, QueryHost, drain_runtime, prepare_query_context
from .query_options import build_query_options

log = Log.create({"service": "model.generate"})


class _BridgeCallCollector:
    """Collect bridge tool calls completed in the partial event stream."""

    def __init__(self, provider_executed: bool):
        self.provider_executed = provider_executed
        self.pending = PendingBridgeToolInputs()
        self.calls: List[ToolCallContent] = []

    def feed(self, parts: List[StreamPart]) -> None:
        for part in parts:
            if isinstance(part, ToolInputStart) and is_bridge_tool_name(part.tool_name):
                self.pending.start(part.id, part.tool_name)
            elif isinstance(part, ToolInputDelta):
                self.pending.append(part.id, part.delta)
            elif isinstance(part, ToolInputEnd):
                finished = self.pending.finish(part.id)
                if finished is None:
                    continue
                self.calls.append(ToolCallContent(
                    tool_call_id=part.id,
                    tool_name=from_bridge_tool_name(finished.tool_name),
                    input=normalize_tool_input_json(finished.raw_input),
                    provider_executed=self.provider_executed,
                ))


def _failure(result: ResultTurn) -> tuple[List[Content], FinishReason]:
    return [TextContent(text=result.error_text)], error_finish(result.subtype)


def _native_tools_output(
    result: ResultTurn,
    assistant: Optional[AssistantTurn],
) -> tuple[List[Content], FinishReason]:
    if not result.success:
        return _failure(result)
    text = assistant.text if assistant is not None else ""
    return [TextContent(text=text or result.result)], map_finish_reason(result.stop_reason)


def _plain_output(
    context: QueryContext,
    result: ResultTurn,
    assistant: Optional[AssistantTurn],
) -> tuple[List[Content], FinishReason]:
    if not result.success:
        return _failure(result)
    finish = map_finish_reason(result.stop_reason)
    if context.completion_mode.type == "json" and result.structured_output is not None:
        return [TextContent(text=safe_json_dumps(result.structured_output))], finish
    text = assistant.text if assistant is not None else ""
    return [TextContent(text=text or result.result)], finish


async def run_generate(host: QueryHost, options: CallOptions) -> GenerateResult:
    context = await prepare_query_context(host, options)
    abort = AbortBridge(options.abort_signal)
    tools_mode = context.completion_mode.type == "tools"
    query_options = build_query_options(
        host.model_id,
        host.settings,
        context,
        abort.event,
        include_partial_messages=tools_mode,
    )

    state = StreamEventState()
    collector = _BridgeCallCollector(provider_executed=context.native_tool_execution)
    assistant: Optional[AssistantTurn] = None
    result: Optional[ResultTurn] = None
    init: Optional[SystemInit] = None

    try:
        messages = host.runtime.query(context.query_prompt, query_options)
        async for message in drain_runtime(messages, abort):
            if isinstance(message, PartialEvent):
                parts = translate_stream_event(message.event, state, host.model_id, host.generate_id)
                if context.tool_routing:
                    collector.feed(parts)
            elif isinstance(message, AssistantTurn):
                assistant = message
            elif isinstance(message, ResultTurn):
                result = message
            elif isinstance(message, SystemInit):
                init = message
        if context.tool_routing:
            collector.feed(close_pending_stream_blocks(state))
    finally:
        abort.close()

    await persist_query_session_state(
        host.memory,
        options.prompt,
        context.prompt_query_input.serialized_prompt_messages,
        context.incoming_session_key,
        result=result,
        assistant=assistant,
        init=init,
    )

    if context.tool_routing:
        recovery = recover_tool_output(
            RecoverySource(result=result, assistant=assistant, streamed_tool_calls=collector.calls),
            host.generate_id,
        )
        content, finish_reason = recovery.content, recovery.finish_reason
    elif result is None:
        log.warn("runtime produced no result message", {"model": host.model_id})
        content = [TextContent(text=assistant.text if assistant is not None else "")]
        finish_reason = error_finish(NO_RESULT_ERROR)
    elif tools_mode:
        content, finish_reason = _native_tools_output(result, assistant)
    else:
        content, finish_reason = _plain_output(context, result, assistant)

    log.info("generated", {
        "model": host.model_id,
        "finish": finish_reason.unified,
        "raw": finish_reason.raw,
        "parts": len(content),
    })
    return GenerateResult(
        content=content,
        finish_reason=finish_reason,
        usage=map_usage(result.usage if result is not None else state.latest_usage),
        warnings=context.warnings,
        provider_metadata=build_provider_metadata(result.usage) if result is not None else None,
        request=context.request_body(),
        response={"model_id": host.model_id, "timestamp": datetime.now(timezone.utc)},
    )
