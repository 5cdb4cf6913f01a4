import asyncio
import json
from pathlib import Path

import pytest

from agent_sdk_bridge.session.incoming_state import IncomingSessionState
from agent_sdk_bridge.session.store import (
    FileIncomingSessionStore,
    bucket_key,
    build_record,
    encode_path_segment,
    parse_record,
)
from agent_sdk_bridge.util.log import Log


def _state(key: str = "conv-1", session_id: str = "sess-1") -> IncomingSessionState:
    return IncomingSessionState(
        incoming_session_key=key,
        session_id=session_id,
        prompt_message_count=2,
        first_prompt_message_signature="hello",
        last_prompt_message_signature="[assistant]\nhi",
    )


def test_path_segments_are_unpadded_base64url() -> None:
    assert encode_path_segment("a/b") == "YS9i"
    assert encode_path_segment("ab") == "YWI"
    assert bucket_key("YWI") == "YW"
    assert bucket_key("Y") == "Y_"
    assert bucket_key("") == "__"


def test_record_layout() -> None:
    record = build_record(_state())

    assert record["version"] == 1
    assert record["incomingSessionKey"] == "conv-1"
    assert record["sessionId"] == "sess-1"
    assert record["promptMessageCount"] == 2
    assert isinstance(record["updatedAt"], int)
    assert parse_record(record) == _state()


@pytest.mark.parametrize(
    "record",
    [
        None,
        [],
        {"version": 2, "incomingSessionKey": "k", "sessionId": "s", "promptMessageCount": 1},
        {"version": 1, "incomingSessionKey": "k", "sessionId": 3, "promptMessageCount": 1},
        {"version": 1, "incomingSessionKey": "k", "sessionId": "s", "promptMessageCount": -1},
        {"version": 1, "incomingSessionKey": "k", "sessionId": "s", "promptMessageCount": True},
    ],
)
def test_malformed_records_are_rejected(record) -> None:
    assert parse_record(record) is None


@pytest.mark.anyio
async def test_set_then_get_from_a_fresh_store(tmp_path: Path) -> None:
    await FileIncomingSessionStore(tmp_path).set("claude-sonnet", _state())

    loaded = await FileIncomingSessionStore(tmp_path).get("claude-sonnet", "conv-1")

    assert loaded == _state()
    target = FileIncomingSessionStore(tmp_path).path_for("claude-sonnet", "conv-1")
    assert target.parent.parent.name == encode_path_segment("claude-sonnet")
    assert json.loads(target.read_text(encoding="utf-8"))["sessionId"] == "sess-1"
    assert not list(target.parent.glob("*.tmp"))


@pytest.mark.anyio
async def test_models_do_not_share_states(tmp_path: Path) -> None:
    store = FileIncomingSessionStore(tmp_path)
    await store.set("model-a", _state())

    assert await FileIncomingSessionStore(tmp_path).get("model-b", "conv-1") is None


@pytest.mark.anyio
async def test_corrupt_file_reads_as_missing(tmp_path: Path) -> None:
    store = FileIncomingSessionStore(tmp_path)
    target = store.path_for("m", "conv-1")
    target.parent.mkdir(parents=True)
    target.write_text("{not json", encoding="utf-8")

    assert await store.get("m", "conv-1") is None


@pytest.mark.anyio
async def test_record_for_another_key_is_ignored(tmp_path: Path) -> None:
    store = FileIncomingSessionStore(tmp_path)
    target = store.path_for("m", "conv-1")
    target.parent.mkdir(parents=True)
    target.write_text(json.dumps(build_record(_state(key="conv-2"))), encoding="utf-8")

    assert await store.get("m", "conv-1") is None


@pytest.mark.anyio
async def test_delete_removes_file_and_memory(tmp_path: Path) -> None:
    store = FileIncomingSessionStore(tmp_path)
    await store.set("m", _state())
    await store.delete("m", "conv-1")

    assert await store.get("m", "conv-1") is None
    assert not store.path_for("m", "conv-1").exists()


@pytest.mark.anyio
async def test_concurrent_writes_for_one_key_are_serialized(tmp_path: Path) -> None:
    store = FileIncomingSessionStore(tmp_path)
    session_ids = [f"sess-{n}" for n in range(20)]

    await asyncio.gather(*(store.set("m", _state(session_id=session_id)) for session_id in session_ids))

    target = store.path_for("m", "conv-1")
    record = json.loads(target.read_text(encoding="utf-8"))
    assert record["sessionId"] in session_ids
    assert [path.name for path in target.parent.iterdir()] == [target.name]
    assert store._locks == {}
    assert store._waiters == {}


@pytest.mark.anyio
async def test_write_failure_is_logged_once_and_memory_copy_survives(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    Log.configure(console=True)
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    store = FileIncomingSessionStore(blocker)

    await store.set("m", _state())
    await store.set("m", _state(session_id="sess-2"))
    await store.set("m", _state(key="conv-2"))

    assert capsys.readouterr().err.count("session cache write failed") == 1
    # The in-memory copy still serves reads.
    loaded = await store.get("m", "conv-1")
    assert loaded is not None and loaded.session_id == "sess-2"
    assert store._locks == {}
