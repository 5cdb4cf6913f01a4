"""Incoming session states keyed by a caller-supplied conversation key.

Some callers only replay the latest turn, so fingerprint prefixes cannot
match. When they send a stable conversation key, the key is bound to the
remote session along with the message count and the first/last message
fingerprints, which guard against the key being reused for a different
conversation.
"""

from typing import Any, List, Optional, Sequence

from pydantic import BaseModel

from ..provider.prompt import serialize_message
from ..provider.types import PromptMessage, SystemMessage, UserMessage
from ..util.readers import read_non_empty_string
from .prompt_state import (
    PromptQueryInput,
    PromptSessionState,
    build_prompt_query_input,
    build_resume_prompt_query_input,
    full_prompt_query_input,
)

MAX_INCOMING_SESSION_STATES = 100


class IncomingSessionState(BaseModel):
    """A caller conversation key bound to a remote session."""
    incoming_session_key: str
    session_id: str
    prompt_message_count: int
    first_prompt_message_signature: Optional[str] = None
    last_prompt_message_signature: Optional[str] = None


def build_incoming_session_state(
    incoming_session_key: str,
    session_id: str,
    prompt: Sequence[PromptMessage],
) -> IncomingSessionState:
    return IncomingSessionState(
        incoming_session_key=incoming_session_key,
        session_id=session_id,
        prompt_message_count=len(prompt),
        first_prompt_message_signature=serialize_message(prompt[0]) if prompt else None,
        last_prompt_message_signature=serialize_message(prompt[-1]) if prompt else None,
    )


def merge_incoming_session_state(
    previous: Sequence[IncomingSessionState],
    next_state: IncomingSessionState,
) -> List[IncomingSessionState]:
    """Put ``next_state`` first, replacing any state with the same key."""
    kept = [
        state
        for state in previous
        if state.incoming_session_key != next_state.incoming_session_key
    ]
    return [next_state, *kept][:MAX_INCOMING_SESSION_STATES]


def find_incoming_session_state(
    states: Sequence[IncomingSessionState],
    incoming_session_key: str,
) -> Optional[IncomingSessionState]:
    for state in states:
        if state.incoming_session_key == incoming_session_key:
            return state
    return None


def _is_single_user_turn(prompt: Sequence[PromptMessage]) -> bool:
    turns = [message for message in prompt if not isinstance(message, SystemMessage)]
    return len(turns) == 1 and isinstance(turns[0], UserMessage)


def _signatures_match(state: IncomingSessionState, prompt: Sequence[PromptMessage]) -> bool:
    count = state.prompt_message_count
    if count <= 0 or count > len(prompt):
        return False
    if state.first_prompt_message_signature is not None:
        if serialize_message(prompt[0]) != state.first_prompt_message_signature:
            return False
    if state.last_prompt_message_signature is not None:
        if serialize_message(prompt[count - 1]) != state.last_prompt_message_signature:
            return False
    return True


def build_prompt_query_input_with_incoming_session(
    prompt: Sequence[PromptMessage],
    incoming_session_key: Optional[str],
    previous_states: Sequence[PromptSessionState],
    previous_incoming_states: Sequence[IncomingSessionState],
) -> PromptQueryInput:
    """Resolve the query input, preferring the caller's conversation key."""
    if incoming_session_key is None:
        return build_prompt_query_input(prompt, previous_states)

    state = find_incoming_session_state(previous_incoming_states, incoming_session_key)
    if state is None:
        return full_prompt_query_input(prompt)

    if len(prompt) > state.prompt_message_count and _signatures_match(state, prompt):
        appended = list(prompt)[state.prompt_message_count:]
        resumed = build_resume_prompt_query_input(prompt, appended, state.session_id)
        return resumed if resumed is not None else full_prompt_query_input(prompt)

    if _is_single_user_turn(prompt):
        resumed = build_resume_prompt_query_input(prompt, prompt, state.session_id)
        return resumed if resumed is not None else full_prompt_query_input(prompt)

    return build_prompt_query_input(prompt, previous_states)


def read_session_id_from_query_messages(
    result: Any = None,
    assistant: Any = None,
    init: Any = None,
) -> Optional[str]:
    """First non-empty session id of the result, assistant and init messages."""
    for message in (result, assistant, init):
        if message is None:
            continue
        session_id = read_non_empty_string(message, "session_id")
        if session_id is not None:
            return session_id
    return None

