"""Conversation-key discovery.

Callers have historically passed a stable conversation key in several
places. The first non-empty string found wins, in this order: request
headers, telemetry metadata, canonical provider-option namespaces, legacy
namespaces, any other namespace, then the provider-options root.
"""

from typing import Any, Mapping, Optional, Sequence

from ..provider.types import CallOptions
from ..util.readers import read_field

HEADER_NAMES = ("x-conversation-id", "x-opencode-session")

CANONICAL_NAMESPACES = ("agentSdk", "agent_sdk", "agent-sdk")
LEGACY_NAMESPACES = ("opencode", "anthropic")

CONVERSATION_KEYS = ("conversationId", "conversationID", "conversation_id")
SESSION_KEYS = (
    "sessionId",
    "sessionID",
    "session_id",
    "promptCacheKey",
    "prompt_cache_key",
    "opencodeSession",
    "opencode_session",
)
FIELD_NAMES = CONVERSATION_KEYS + SESSION_KEYS


def _non_empty(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _read_header(headers: Any, name: str) -> Optional[str]:
    if headers is None:
        return None

    if isinstance(headers, Mapping):
        direct = _non_empty(headers.get(name))
        if direct is not None:
            return direct
    else:
        getter = getattr(headers, "get", None)
        if callable(getter):
            direct = _non_empty(getter(name))
            if direct is not None:
                return direct

    items = getattr(headers, "items", None)
    if not callable(items):
        return None
    for key, value in items():
        if isinstance(key, str) and key.lower() == name:
            found = _non_empty(value)
            if found is not None:
                return found
    return None


def _read_fields(record: Any, names: Sequence[str] = FIELD_NAMES) -> Optional[str]:
    if not isinstance(record, Mapping):
        return None
    for name in names:
        found = _non_empty(record.get(name))
        if found is not None:
            return found
    return None


def _read_provider_options(provider_options: Any) -> Optional[str]:
    if not isinstance(provider_options, Mapping):
        return None

    for namespace in CANONICAL_NAMESPACES + LEGACY_NAMESPACES:
        found = _read_fields(provider_options.get(namespace))
        if found is not None:
            return found

    known = set(CANONICAL_NAMESPACES + LEGACY_NAMESPACES)
    for namespace, record in provider_options.items():
        if namespace in known:
            continue
        found = _read_fields(record)
        if found is not None:
            return found

    return _read_fields(provider_options)


def read_incoming_session_key(options: CallOptions) -> Optional[str]:
    """Return the caller's conversation key, or None if none was supplied."""
    for name in HEADER_NAMES:
        found = _read_header(options.headers, name)
        if found is not None:
            return found

    metadata = read_field(options.telemetry, "metadata")
    found = _read_fields(metadata)
    if found is not None:
        return found

    return _read_provider_options(options.provider_options)
