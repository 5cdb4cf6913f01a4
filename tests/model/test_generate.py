import asyncio
import json

import pytest

from agent_sdk_bridge.core.config import ProviderSettings
from agent_sdk_bridge.core.id import sequential
from agent_sdk_bridge.model.language_model import AgentSdkLanguageModel
from agent_sdk_bridge.provider.errors import QueryAbortedError
from agent_sdk_bridge.provider.recovery import EMPTY_TOOL_ROUTING_OUTPUT_ERROR, EMPTY_TOOL_ROUTING_OUTPUT_TEXT
from agent_sdk_bridge.provider.types import TextContent, ToolCallContent
from tests.helpers import (
    FakeRuntime,
    assistant,
    assistant_message,
    bridge_tool_events,
    init_message,
    result_message,
    system,
    user,
)

BASH = {"type": "function", "name": "bash", "input_schema": {"type": "object", "properties": {"cmd": {"type": "string"}}}}


def _model(runtime: FakeRuntime, settings: ProviderSettings) -> AgentSdkLanguageModel:
    return AgentSdkLanguageModel("claude-test", settings=settings, generate_id=sequential("id"), runtime=runtime)


def _reply(session_id: str, text: str) -> list:
    return [
        init_message(session_id),
        assistant_message(session_id, {"type": "text", "text": text}),
        result_message(session_id, result=text, stop_reason="end_turn"),
    ]


@pytest.mark.anyio
async def test_second_turn_resumes_with_only_the_new_message(settings: ProviderSettings) -> None:
    runtime = FakeRuntime(_reply("s1", "반가워요"), _reply("s1", "네"))
    model = _model(runtime, settings)

    first = await model.do_generate({"prompt": [system("be kind"), user("안녕")]})

    assert first.content == [TextContent(text="반가워요")]
    assert first.finish_reason.unified == "stop"
    assert runtime.last_prompt == "안녕"
    assert runtime.last_options.resume is None
    assert runtime.last_options.system_prompt == "be kind"

    await model.do_generate({"prompt": [system("be kind"), user("안녕"), assistant("반가워요"), user("다음")]})

    assert runtime.last_prompt == "다음"
    assert runtime.last_options.resume == "s1"


@pytest.mark.anyio
async def test_plain_call_options(settings: ProviderSettings) -> None:
    runtime = FakeRuntime(_reply("s1", "ok"))

    result = await _model(runtime, settings).do_generate({"prompt": [user("hi")], "temperature": 0.3})

    options = runtime.last_options
    assert options.allowed_tools == []
    assert options.mcp_servers == {}
    assert options.max_turns == 1
    assert options.permission_mode == "dontAsk"
    assert options.include_partial_messages is False
    assert options.cwd == settings.cwd
    assert [w.feature for w in result.warnings] == ["temperature"]
    assert result.usage.input_tokens.total == 10
    assert result.provider_metadata is not None and "anthropic" in result.provider_metadata
    assert result.request["body"]["prompt"] == "hi"
    assert result.response["model_id"] == "claude-test"


@pytest.mark.anyio
async def test_runtime_failure_maps_to_error_finish(settings: ProviderSettings) -> None:
    runtime = FakeRuntime([result_message("s1", subtype="error_during_execution", errors=["boom"])])

    result = await _model(runtime, settings).do_generate({"prompt": [user("hi")]})

    assert result.content == [TextContent(text="boom")]
    assert result.finish_reason.unified == "error"
    assert result.finish_reason.raw == "error_during_execution"


@pytest.mark.anyio
async def test_missing_result_is_an_error(settings: ProviderSettings) -> None:
    runtime = FakeRuntime([assistant_message("s1", {"type": "text", "text": "partial"})])

    result = await _model(runtime, settings).do_generate({"prompt": [user("hi")]})

    assert result.content == [TextContent(text="partial")]
    assert result.finish_reason.raw == "agent-sdk-no-result"


@pytest.mark.anyio
async def test_json_mode(settings: ProviderSettings) -> None:
    schema = {"type": "object", "properties": {"n": {"type": "integer"}}}
    runtime = FakeRuntime([result_message("s1", structured_output={"n": 3}, result='{"n": 3}')])

    result = await _model(runtime, settings).do_generate({
        "prompt": [user("count")],
        "response_format": {"type": "json", "schema": schema},
    })

    assert runtime.last_prompt == "Return only JSON that matches the required schema.\n\ncount"
    assert runtime.last_options.output_format == {"type": "json_schema", "schema": schema}
    assert json.loads(result.content[0].text) == {"n": 3}


@pytest.mark.anyio
async def test_streamed_bridge_call_survives_max_turns(settings: ProviderSettings) -> None:
    runtime = FakeRuntime([
        init_message("s1"),
        *bridge_tool_events("s1", "toolu_1", "bash", ['{"cmd":', ' "ls"}']),
        result_message("s1", subtype="error_max_turns", errors=["Reached maximum number of turns (1)"]),
    ])

    result = await _model(runtime, settings).do_generate({"prompt": [user("list files")], "tools": [BASH]})

    assert result.content == [ToolCallContent(tool_call_id="toolu_1", tool_name="bash", input='{"cmd":"ls"}')]
    assert result.finish_reason.unified == "tool-calls"
    assert result.finish_reason.raw == "tool_use"

    options = runtime.last_options
    assert options.allowed_tools == ["mcp__ai_sdk_tool_bridge__bash"]
    assert list(options.mcp_servers) == ["ai_sdk_tool_bridge"]
    assert options.max_turns == 1
    assert options.include_partial_messages is True
    assert options.output_format is None


@pytest.mark.anyio
async def test_empty_routing_output(settings: ProviderSettings) -> None:
    runtime = FakeRuntime([result_message("s1")])

    result = await _model(runtime, settings).do_generate({"prompt": [user("hi")], "tools": [BASH]})

    assert result.content == [TextContent(text=EMPTY_TOOL_ROUTING_OUTPUT_TEXT)]
    assert result.finish_reason.unified == "error"
    assert result.finish_reason.raw == EMPTY_TOOL_ROUTING_OUTPUT_ERROR


@pytest.mark.anyio
async def test_native_tool_execution_uses_configured_turns(tmp_path) -> None:
    settings = ProviderSettings(
        tool_executors={"bash": lambda args: "file.txt"},
        max_turns=5,
        session_cache_dir=str(tmp_path),
    )
    runtime = FakeRuntime(_reply("s1", "There is one file."))

    result = await _model(runtime, settings).do_generate({"prompt": [user("list files")], "tools": [BASH]})

    assert runtime.last_options.max_turns == 5
    assert result.content == [TextContent(text="There is one file.")]
    assert result.finish_reason.unified == "stop"
    assert result.warnings == []


@pytest.mark.anyio
async def test_partial_executors_warn_and_route(tmp_path) -> None:
    settings = ProviderSettings(tool_executors={"bash": lambda args: "ok"}, session_cache_dir=str(tmp_path))
    runtime = FakeRuntime([result_message("s1", structured_output={"type": "text", "text": "done"})])

    result = await _model(runtime, settings).do_generate({
        "prompt": [user("hi")],
        "tools": [BASH, {"type": "function", "name": "read"}],
    })

    assert runtime.last_options.max_turns == 1
    assert [w.feature for w in result.warnings] == ["toolExecutors.partial"]
    assert result.content == [TextContent(text="done")]


@pytest.mark.anyio
async def test_single_user_message_with_known_key_resumes(settings: ProviderSettings) -> None:
    runtime = FakeRuntime(_reply("sess-1", "first answer"), _reply("sess-1", "second answer"))
    model = _model(runtime, settings)
    headers = {"x-conversation-id": "conv-1"}

    await model.do_generate({"prompt": [user("first")], "headers": headers})
    await model.do_generate({"prompt": [user("second")], "headers": headers})

    assert runtime.last_options.resume == "sess-1"
    assert runtime.last_prompt == "second"


@pytest.mark.anyio
async def test_conversation_key_survives_a_new_model_instance(settings: ProviderSettings) -> None:
    headers = {"x-conversation-id": "conv-1"}
    await _model(FakeRuntime(_reply("sess-1", "a")), settings).do_generate({"prompt": [user("first")], "headers": headers})

    runtime = FakeRuntime(_reply("sess-1", "b"))
    await _model(runtime, settings).do_generate({"prompt": [user("second")], "headers": headers})

    assert runtime.last_options.resume == "sess-1"


@pytest.mark.anyio
async def test_persistence_can_be_disabled(tmp_path) -> None:
    settings = ProviderSettings(persist_sessions=False, session_cache_dir=str(tmp_path))
    headers = {"x-conversation-id": "conv-1"}
    await _model(FakeRuntime(_reply("sess-1", "a")), settings).do_generate({"prompt": [user("first")], "headers": headers})

    runtime = FakeRuntime(_reply("sess-2", "b"))
    await _model(runtime, settings).do_generate({"prompt": [user("second")], "headers": headers})

    assert runtime.last_options.resume is None
    assert not any(tmp_path.iterdir())


@pytest.mark.anyio
async def test_pre_aborted_call_raises_without_starting_the_runtime(settings: ProviderSettings) -> None:
    abort = asyncio.Event()
    abort.set()
    runtime = FakeRuntime(_reply("s1", "never"))

    with pytest.raises(QueryAbortedError):
        await _model(runtime, settings).do_generate({"prompt": [user("hi")], "abort_signal": abort})

    assert runtime.calls == []


@pytest.mark.anyio
async def test_abort_during_a_silent_runtime_raises(settings: ProviderSettings) -> None:
    abort = asyncio.Event()
    runtime = FakeRuntime([init_message("s1")], stall=True)
    asyncio.get_running_loop().call_later(0.05, abort.set)

    with pytest.raises(QueryAbortedError):
        await asyncio.wait_for(
            _model(runtime, settings).do_generate({"prompt": [user("hi")], "abort_signal": abort}),
            timeout=2,
        )

    assert runtime.closed
