"""Durable incoming-session cache.

One JSON file per ``(model_id, incoming_session_key)`` pair under the user
cache directory::

    <root>/<b64url(model_id)>/<bucket>/<b64url(key)>.json

where ``bucket`` is the first two characters of the encoded key. Reads go
through a small in-memory LRU. Writes for the same key are serialized and
land through a temp file and an atomic rename. The cache is an optimization:
every I/O failure is logged once per site and then ignored.
"""

import asyncio
import base64
import json
import os
import time
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Protocol

from ..core.global_paths import GlobalPath
from ..util.log import Log
from .incoming_state import IncomingSessionState

log = Log.create({"service": "session.store"})

RECORD_VERSION = 1
MEMORY_CACHE_LIMIT = 100


class IncomingSessionStore(Protocol):
    """Capability the language model uses to persist incoming session states."""

    async def get(self, model_id: str, incoming_session_key: str) -> Optional[IncomingSessionState]: ...

    async def set(self, model_id: str, state: IncomingSessionState) -> None: ...


def encode_path_segment(value: str) -> str:
    """Unpadded base64url encoding of a UTF-8 string."""
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")


def bucket_key(encoded_key: str) -> str:
    if len(encoded_key) >= 2:
        return encoded_key[:2]
    if len(encoded_key) == 1:
        return f"{encoded_key}_"
    return "__"


def _optional_string(record: Mapping[str, Any], key: str) -> Optional[str]:
    value = record.get(key)
    return value if isinstance(value, str) and value else None


def parse_record(value: Any) -> Optional[IncomingSessionState]:
    """Validate a persisted record, returning None for anything malformed."""
    if not isinstance(value, Mapping) or value.get("version") != RECORD_VERSION:
        return None

    key = value.get("incomingSessionKey")
    session_id = value.get("sessionId")
    count = value.get("promptMessageCount")
    if not isinstance(key, str) or not isinstance(session_id, str):
        return None
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        return None

    return IncomingSessionState(
        incoming_session_key=key,
        session_id=session_id,
        prompt_message_count=count,
        first_prompt_message_signature=_optional_string(value, "firstPromptMessageSignature"),
        last_prompt_message_signature=_optional_string(value, "lastPromptMessageSignature"),
    )


def build_record(state: IncomingSessionState) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "version": RECORD_VERSION,
        "incomingSessionKey": state.incoming_session_key,
        "sessionId": state.session_id,
        "promptMessageCount": state.prompt_message_count,
    }
    if state.first_prompt_message_signature is not None:
        record["firstPromptMessageSignature"] = state.first_prompt_message_signature
    if state.last_prompt_message_signature is not None:
        record["lastPromptMessageSignature"] = state.last_prompt_message_signature
    record["updatedAt"] = int(time.time() * 1000)
    return record


class FileIncomingSessionStore:
    """File-backed ``IncomingSessionStore`` with an in-memory LRU in front."""

    def __init__(self, root: Optional[str | os.PathLike[str]] = None):
        self.root = Path(root) if root is not None else Path(GlobalPath.session_cache())
        self._memory: "OrderedDict[str, IncomingSessionState]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}
        self._log = log.clone()

    @staticmethod
    def _cache_key(model_id: str, incoming_session_key: str) -> str:
        return f"{model_id}\0{incoming_session_key}"

    def path_for(self, model_id: str, incoming_session_key: str) -> Path:
        encoded_key = encode_path_segment(incoming_session_key)
        return (
            self.root
            / encode_path_segment(model_id)
            / bucket_key(encoded_key)
            / f"{encoded_key}.json"
        )

    def _remember(self, cache_key: str, state: IncomingSessionState) -> None:
        self._memory.pop(cache_key, None)
        self._memory[cache_key] = state
        while len(self._memory) > MEMORY_CACHE_LIMIT:
            self._memory.popitem(last=False)

    def _recall(self, cache_key: str) -> Optional[IncomingSessionState]:
        state = self._memory.get(cache_key)
        if state is not None:
            self._memory.move_to_end(cache_key)
        return state

    @asynccontextmanager
    async def _serialized(self, cache_key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(cache_key, asyncio.Lock())
        self._waiters[cache_key] = self._waiters.get(cache_key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[cache_key] -= 1
            if self._waiters[cache_key] == 0:
                self._waiters.pop(cache_key, None)
                self._locks.pop(cache_key, None)

    @staticmethod
    def _read_text(target: Path) -> Optional[str]:
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    @staticmethod
    def _write_text(target: Path, body: str) -> None:
        parent = target.parent
        parent.mkdir(parents=True, exist_ok=True)
        tmp = parent / f".{target.name}.{os.getpid()}.{uuid.uuid4().hex}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as file:
                file.write(body)
                file.flush()
            os.replace(tmp, target)
        finally:
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass

    @staticmethod
    def _remove(target: Path) -> None:
        try:
            target.unlink()
        except FileNotFoundError:
            pass

    async def get(self, model_id: str, incoming_session_key: str) -> Optional[IncomingSessionState]:
        cache_key = self._cache_key(model_id, incoming_session_key)
        cached = self._recall(cache_key)
        if cached is not None:
            return cached

        target = self.path_for(model_id, incoming_session_key)
        try:
            async with self._serialized(cache_key):
                text = await asyncio.to_thread(self._read_text, target)
        except (OSError, ValueError) as e:
            self._log.once("read", "session cache read failed", {"path": str(target), "error": e})
            return None
        if text is None:
            return None

        try:
            state = parse_record(json.loads(text))
        except ValueError:
            return None
        if state is None or state.incoming_session_key != incoming_session_key:
            return None

        self._remember(cache_key, state)
        return state

    async def set(self, model_id: str, state: IncomingSessionState) -> None:
        cache_key = self._cache_key(model_id, state.incoming_session_key)
        self._remember(cache_key, state)

        target = self.path_for(model_id, state.incoming_session_key)
        body = json.dumps(build_record(state), ensure_ascii=False, separators=(",", ":")) + "\n"
        try:
            async with self._serialized(cache_key):
                await asyncio.to_thread(self._write_text, target, body)
        except OSError as e:
            self._log.once("write", "session cache write failed", {"path": str(target), "error": e})

    async def delete(self, model_id: str, incoming_session_key: str) -> None:
        cache_key = self._cache_key(model_id, incoming_session_key)
        self._memory.pop(cache_key, None)

        target = self.path_for(model_id, incoming_session_key)
        try:
            async with self._serialized(cache_key):
                await asyncio.to_thread(self._remove, target)
        except OSError as e:
            self._log.once("delete", "session cache delete failed", {"path": str(target), "error": e})
