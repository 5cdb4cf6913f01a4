"""Session continuity with lazy exports to avoid import cycles."""

from __future__ import annotations

from importlib import import_module
from typing import Dict, Tuple

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "PromptSessionState": (".prompt_state", "PromptSessionState"),
    "PromptQueryInput": (".prompt_state", "PromptQueryInput"),
    "build_prompt_query_input": (".prompt_state", "build_prompt_query_input"),
    "merge_prompt_session_state": (".prompt_state", "merge_prompt_session_state"),
    "IncomingSessionState": (".incoming_state", "IncomingSessionState"),
    "build_prompt_query_input_with_incoming_session": (
        ".incoming_state",
        "build_prompt_query_input_with_incoming_session",
    ),
    "read_incoming_session_key": (".session_key", "read_incoming_session_key"),
    "IncomingSessionStore": (".store", "IncomingSessionStore"),
    "FileIncomingSessionStore": (".store", "FileIncomingSessionStore"),
}


def __getattr__(name: str):
    target = _EXPORTS.get(name)
    if not target:
        raise AttributeError(name)

    module_name, attr_name = target
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = list(_EXPORTS.keys())
