"""Readers for loosely typed payloads.

Runtime events, structured-output blobs and provider options arrive as plain
JSON-like values. These helpers read them without trusting their shape.
"""

import json
from typing import Any, Mapping, Optional

_MISSING = object()


def is_record(value: Any) -> bool:
    return isinstance(value, Mapping)


def read_field(value: Any, key: str, default: Any = None) -> Any:
    """Read ``key`` from a mapping or an object attribute."""
    if isinstance(value, Mapping):
        return value.get(key, default)
    result = getattr(value, key, _MISSING)
    return default if result is _MISSING else result


def read_string(value: Any, key: str) -> Optional[str]:
    result = read_field(value, key)
    return result if isinstance(result, str) else None


def read_non_empty_string(value: Any, key: str) -> Optional[str]:
    result = read_string(value, key)
    return result if result else None


def read_int(value: Any, key: str) -> Optional[int]:
    result = read_field(value, key)
    if isinstance(result, bool):
        return None
    if isinstance(result, int):
        return result
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return None


def read_record(value: Any, key: str) -> Optional[Mapping[str, Any]]:
    result = read_field(value, key)
    return result if isinstance(result, Mapping) else None


def safe_json_dumps(value: Any) -> str:
    """Compact JSON encoding; unserializable values become ``null``."""
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return "null"


def try_parse_json(text: str) -> Any:
    """Parse ``text`` as JSON. Returns ``(ok, value)``."""
    try:
        return True, json.loads(text)
    except ValueError:
        return False, None
