"""Map runtime stop reasons and usage onto the unified protocol."""

from typing import Any, Dict, List, Mapping, Optional

from .types import FinishReason, InputTokens, OutputTokens, Usage

_FINISH_REASONS = {
    "tool_use": "tool-calls",
    "max_tokens": "length",
    "model_context_window_exceeded": "length",
    "refusal": "content-filter",
    "pause_turn": "other",
    "compaction": "other",
}


def map_finish_reason(stop_reason: Optional[str]) -> FinishReason:
    """Map a raw stop reason. Unknown and missing reasons map to ``stop``."""
    if stop_reason is None:
        return FinishReason(unified="stop", raw=None)
    return FinishReason(unified=_FINISH_REASONS.get(stop_reason, "stop"), raw=stop_reason)


def tool_calls_finish(raw: Optional[str] = "tool_use") -> FinishReason:
    return FinishReason(unified="tool-calls", raw=raw)


def error_finish(raw: Optional[str]) -> FinishReason:
    return FinishReason(unified="error", raw=raw)


def _count(raw: Mapping[str, Any], key: str) -> Optional[int]:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def map_usage(raw: Optional[Mapping[str, Any]]) -> Usage:
    """Build unified usage from the runtime's raw token counts.

    ``no_cache`` is derived as total input minus cache reads and cache writes.
    Reasoning tokens are not reported separately and stay unset.
    """
    if not raw:
        return Usage()

    input_total = _count(raw, "input_tokens")
    cache_read = _count(raw, "cache_read_input_tokens")
    cache_write = _count(raw, "cache_creation_input_tokens")
    output_total = _count(raw, "output_tokens")

    no_cache = None
    if input_total is not None:
        no_cache = input_total - (cache_read or 0) - (cache_write or 0)

    return Usage(
        input_tokens=InputTokens(
            total=input_total,
            no_cache=no_cache,
            cache_read=cache_read,
            cache_write=cache_write,
        ),
        output_tokens=OutputTokens(total=output_total, text=output_total),
        raw=dict(raw),
    )


def merge_usage_delta(
    previous: Optional[Mapping[str, Any]],
    delta: Optional[Mapping[str, Any]],
) -> Optional[Dict[str, Any]]:
    """Overlay the numeric fields of a ``message_delta`` usage on the last snapshot."""
    if not delta:
        return dict(previous) if previous else None
    merged: Dict[str, Any] = dict(previous or {})
    for key, value in delta.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            merged[key] = value
    return merged


def _iterations(raw: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
    items = raw.get("iterations")
    if not isinstance(items, list):
        return None

    mapped = []
    for item in items:
        if not isinstance(item, Mapping) or item.get("type") not in ("compaction", "message"):
            continue
        mapped.append({
            "type": item["type"],
            "inputTokens": _count(item, "input_tokens") or 0,
            "outputTokens": _count(item, "output_tokens") or 0,
        })
    return mapped or None


def build_provider_metadata(raw_usage: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Provider metadata in the shape callers of the Messages API provider expect."""
    raw = raw_usage or {}
    return {
        "anthropic": {
            "usage": dict(raw),
            "cacheCreationInputTokens": _count(raw, "cache_creation_input_tokens"),
            "stopSequence": None,
            "iterations": _iterations(raw),
            "container": None,
            "contextManagement": None,
        }
    }
