"""Everything resolved before the runtime is invoked."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from ..core.config import ProviderSettings
from ..core.id import IdGenerator
from ..provider.errors import QueryAbortedError
from ..provider.prompt import extract_system_prompt
from ..provider.tool_bridge import ToolBridgeConfig, build_tool_bridge_config
from ..provider.types import CallOptions, CallWarning
from ..provider.warnings import collect_warnings, parse_anthropic_provider_options, partial_tool_executor_warning
from ..runtime.messages import RuntimeMessage, parse_runtime_message
from ..runtime.port import AgentRuntime, QueryPrompt
from ..session.incoming_state import build_prompt_query_input_with_incoming_session
from ..session.prompt_state import PromptQueryInput
from ..session.session_key import read_incoming_session_key
from ..util.log import Log
from .completion_mode import CompletionMode, build_completion_mode
from .multimodal import build_multimodal_query_prompt
from .persistence import SessionMemory

log = Log.create({"service": "model.query_context"})

JSON_MODE_INSTRUCTION = "Return only JSON that matches the required schema."


@dataclass
class QueryHost:
    """What a language model instance lends to each call."""
    model_id: str
    settings: ProviderSettings
    generate_id: IdGenerator
    runtime: AgentRuntime
    memory: SessionMemory
    provider_setting_warnings: List[CallWarning] = field(default_factory=list)


@dataclass
class QueryContext:
    completion_mode: CompletionMode
    warnings: List[CallWarning]
    incoming_session_key: Optional[str]
    prompt_query_input: PromptQueryInput
    prompt: str
    system_prompt: Optional[str]
    output_format: Optional[Dict[str, Any]]
    query_prompt: QueryPrompt
    tool_bridge: Optional[ToolBridgeConfig]
    native_tool_execution: bool
    effort: Optional[str] = None
    thinking: Optional[Dict[str, Any]] = None

    @property
    def tool_routing(self) -> bool:
        """Tools mode where the caller executes the tools itself."""
        return self.completion_mode.type == "tools" and not self.native_tool_execution

    def request_body(self) -> Dict[str, Any]:
        return {
            "body": {
                "prompt": self.prompt,
                "system_prompt": self.system_prompt,
                "completion_mode": self.completion_mode.type,
            }
        }


async def prepare_query_context(host: QueryHost, options: CallOptions) -> QueryContext:
    completion_mode = build_completion_mode(options)
    anthropic_options = parse_anthropic_provider_options(options)
    warnings = [
        *collect_warnings(options, completion_mode.type == "tools"),
        *host.provider_setting_warnings,
    ]

    incoming_session_key = read_incoming_session_key(options)
    if incoming_session_key is not None:
        await host.memory.hydrate(incoming_session_key)

    prompt_query_input = build_prompt_query_input_with_incoming_session(
        options.prompt,
        incoming_session_key,
        host.memory.prompt_states,
        host.memory.incoming_states,
    )

    tool_bridge = None
    if completion_mode.type == "tools":
        tool_bridge = build_tool_bridge_config(completion_mode.tools, host.settings.tool_executors)
    native = tool_bridge is not None and tool_bridge.all_tools_have_executors
    if tool_bridge is not None and tool_bridge.has_any_executor and not native:
        warnings.append(partial_tool_executor_warning(tool_bridge.missing_executor_tool_names))

    prompt = prompt_query_input.prompt
    output_format = None
    if completion_mode.type == "json":
        prompt = f"{JSON_MODE_INSTRUCTION}\n\n{prompt}"
        output_format = {"type": "json_schema", "schema": completion_mode.schema}

    multimodal = await build_multimodal_query_prompt(
        options.prompt,
        prompt_query_input.resume_session_id,
        preamble_text=JSON_MODE_INSTRUCTION if completion_mode.type == "json" else None,
    )

    log.info("prepared", {
        "mode": completion_mode.type,
        "resume": prompt_query_input.resume_session_id,
        "key": incoming_session_key,
        "native_tools": native,
        "multimodal": multimodal is not None,
    })
    return QueryContext(
        completion_mode=completion_mode,
        warnings=warnings,
        incoming_session_key=incoming_session_key,
        prompt_query_input=prompt_query_input,
        prompt=prompt,
        system_prompt=extract_system_prompt(options.prompt),
        output_format=output_format,
        query_prompt=multimodal if multimodal is not None else prompt,
        tool_bridge=tool_bridge,
        native_tool_execution=native,
        effort=anthropic_options.get("effort"),
        thinking=anthropic_options.get("thinking"),
    )


class AbortBridge:
    """Mirror the caller's abort event onto one owned by this query."""

    def __init__(self, external: Optional[asyncio.Event] = None):
        self.event = asyncio.Event()
        self._watcher: Optional[asyncio.Task[None]] = None
        if external is None:
            return
        if external.is_set():
            self.event.set()
        else:
            self._watcher = asyncio.create_task(self._mirror(external))

    async def _mirror(self, external: asyncio.Event) -> None:
        await external.wait()
        self.event.set()

    @property
    def aborted(self) -> bool:
        return self.event.is_set()

    def abort(self) -> None:
        self.event.set()

    def close(self) -> None:
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()
        self._watcher = None


async def _settle(task: "asyncio.Future[Any]") -> None:
    if not task.done():
        task.cancel()
    await asyncio.wait({task})
    if not task.cancelled():
        task.exception()


async def drain_runtime(messages: AsyncIterator[Any], abort: AbortBridge) -> AsyncIterator[RuntimeMessage]:
    """Parse runtime messages until the runtime finishes or the query is aborted.

    Each read races the abort event, so an abort lands even while the runtime
    is silent. The pending read is cancelled and the runtime iterator closed.
    """
    aborted = asyncio.ensure_future(abort.event.wait())
    read: Optional["asyncio.Future[Any]"] = None
    try:
        while not abort.aborted:
            read = asyncio.ensure_future(messages.__anext__())
            await asyncio.wait({read, aborted}, return_when=asyncio.FIRST_COMPLETED)
            if not read.done():
                break
            try:
                message = read.result()
            except StopAsyncIteration:
                break
            finally:
                read = None
            yield parse_runtime_message(message)
        if abort.aborted:
            raise QueryAbortedError()
    finally:
        if read is not None:
            await _settle(read)
        await _settle(aborted)
        aclose = getattr(messages, "aclose", None)
        if aclose is not None:
            await aclose()
