"""Per-model session memory and post-query persistence."""

from typing import List, Optional, Sequence, Tuple

from ..provider.types import PromptMessage
from ..runtime.messages import AssistantTurn, ResultTurn, SystemInit
from ..session.incoming_state import (
    IncomingSessionState,
    build_incoming_session_state,
    find_incoming_session_state,
    merge_incoming_session_state,
    read_session_id_from_query_messages,
)
from ..session.prompt_state import PromptSessionState, merge_prompt_session_state
from ..session.store import IncomingSessionStore
from ..util.log import Log

log = Log.create({"service": "model.persistence"})


class SessionMemory:
    """The two session caches a language model instance owns.

    ``prompt_states`` backs fingerprint prefix matching. ``incoming_states``
    backs conversation-key matching and is written through to ``store``.
    """

    def __init__(self, model_id: str, store: Optional[IncomingSessionStore] = None):
        self.model_id = model_id
        self.store = store
        self.prompt_states: List[PromptSessionState] = []
        self.incoming_states: List[IncomingSessionState] = []
        self._log = log.clone()

    def remember_prompt(self, state: PromptSessionState) -> None:
        self.prompt_states = merge_prompt_session_state(self.prompt_states, state)

    async def hydrate(self, incoming_session_key: str) -> None:
        """Load a persisted state for ``incoming_session_key`` unless one is already known."""
        if find_incoming_session_state(self.incoming_states, incoming_session_key) is not None:
            return
        if self.store is None:
            return
        try:
            state = await self.store.get(self.model_id, incoming_session_key)
        except Exception as e:
            self._log.once("hydrate", "session store get failed", {"error": e})
            return
        if state is not None:
            self.incoming_states = merge_incoming_session_state(self.incoming_states, state)

    async def remember_incoming(self, state: IncomingSessionState) -> None:
        self.incoming_states = merge_incoming_session_state(self.incoming_states, state)
        if self.store is None:
            return
        try:
            await self.store.set(self.model_id, state)
        except Exception as e:
            self._log.once("persist", "session store set failed", {"error": e})


async def persist_query_session_state(
    memory: SessionMemory,
    prompt: Sequence[PromptMessage],
    serialized_prompt_messages: Optional[Tuple[str, ...]],
    incoming_session_key: Optional[str],
    result: Optional[ResultTurn] = None,
    assistant: Optional[AssistantTurn] = None,
    init: Optional[SystemInit] = None,
) -> Optional[str]:
    """Bind the session the runtime reported to this prompt. Returns the session id."""
    session_id = read_session_id_from_query_messages(result, assistant, init)
    if session_id is None:
        return None

    if serialized_prompt_messages is not None:
        memory.remember_prompt(PromptSessionState(
            session_id=session_id,
            serialized_prompt_messages=tuple(serialized_prompt_messages),
        ))

    if incoming_session_key is not None:
        await memory.remember_incoming(build_incoming_session_state(incoming_session_key, session_id, prompt))

    log.debug("session remembered", {"session_id": session_id, "key": incoming_session_key})
    return session_id
