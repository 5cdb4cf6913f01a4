"""Prompt session states and the fingerprint-prefix matcher.

A prompt session state remembers which remote session produced a given
conversation prefix. On the next turn the longest remembered prefix is
resumed and only the appended messages are sent.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..provider.prompt import (
    join_serialized_prompt_messages,
    serialize_prompt_messages,
    serialize_prompt_messages_for_resume,
    serialize_prompt_messages_without_system,
)
from ..provider.types import PromptMessage

MAX_PROMPT_SESSION_STATES = 20


@dataclass(frozen=True)
class PromptSessionState:
    """A previously observed conversation prefix and the session it produced."""
    session_id: str
    serialized_prompt_messages: Tuple[str, ...]


@dataclass(frozen=True)
class PromptQueryInput:
    """What to send to the runtime for one turn."""
    prompt: str
    resume_session_id: Optional[str] = None
    serialized_prompt_messages: Optional[Tuple[str, ...]] = None


def merge_prompt_session_state(
    previous: Sequence[PromptSessionState],
    next_state: PromptSessionState,
) -> List[PromptSessionState]:
    """Put ``next_state`` first, dropping superseded and overflowing states."""
    kept = [
        state
        for state in previous
        if state.session_id != next_state.session_id
        and state.serialized_prompt_messages != next_state.serialized_prompt_messages
    ]
    return [next_state, *kept][:MAX_PROMPT_SESSION_STATES]


def _is_prefix(prefix: Sequence[str], sequence: Sequence[str]) -> bool:
    if len(prefix) > len(sequence):
        return False
    return all(left == right for left, right in zip(prefix, sequence))


def find_longest_prefix_state(
    serialized: Sequence[str],
    states: Sequence[PromptSessionState],
) -> Optional[PromptSessionState]:
    """Return the state whose fingerprints are the longest prefix of ``serialized``."""
    best: Optional[PromptSessionState] = None
    for state in states:
        candidate = state.serialized_prompt_messages
        if not candidate or not _is_prefix(candidate, serialized):
            continue
        if best is None or len(candidate) > len(best.serialized_prompt_messages):
            best = state
    return best


def build_prompt_query_input_without_resume(
    prompt: Sequence[PromptMessage],
) -> Optional[PromptQueryInput]:
    """Full non-system prompt without resume, or None when nothing renders."""
    text = join_serialized_prompt_messages(serialize_prompt_messages_without_system(prompt))
    if not text:
        return None
    return PromptQueryInput(
        prompt=text,
        serialized_prompt_messages=tuple(serialize_prompt_messages(prompt)),
    )


def build_resume_prompt_query_input(
    prompt: Sequence[PromptMessage],
    appended: Sequence[PromptMessage],
    session_id: str,
) -> Optional[PromptQueryInput]:
    """Resume ``session_id`` sending only ``appended``, or None when it renders empty."""
    text = join_serialized_prompt_messages(serialize_prompt_messages_for_resume(appended))
    if not text:
        text = join_serialized_prompt_messages(serialize_prompt_messages_without_system(appended))
    if not text:
        return None
    return PromptQueryInput(
        prompt=text,
        resume_session_id=session_id,
        serialized_prompt_messages=tuple(serialize_prompt_messages(prompt)),
    )


def full_prompt_query_input(prompt: Sequence[PromptMessage]) -> PromptQueryInput:
    """Full non-system prompt without resume, never None."""
    full = build_prompt_query_input_without_resume(prompt)
    if full is not None:
        return full
    return PromptQueryInput(
        prompt="",
        serialized_prompt_messages=tuple(serialize_prompt_messages(prompt)),
    )


def build_prompt_query_input(
    prompt: Sequence[PromptMessage],
    previous_states: Sequence[PromptSessionState],
) -> PromptQueryInput:
    """Decide between resuming a remembered session and sending the full prompt."""
    serialized = serialize_prompt_messages(prompt)
    matched = find_longest_prefix_state(serialized, previous_states)
    if matched is None:
        return full_prompt_query_input(prompt)

    shared = len(matched.serialized_prompt_messages)
    if len(serialized) <= shared:
        return full_prompt_query_input(prompt)

    resumed = build_resume_prompt_query_input(prompt, list(prompt)[shared:], matched.session_id)
    if resumed is None:
        return full_prompt_query_input(prompt)
    return resumed
