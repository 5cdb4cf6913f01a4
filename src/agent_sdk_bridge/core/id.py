"""Identifier generation.

Short opaque ids for stream blocks, recovered tool calls and envelopes. The
generator is injectable per provider so tests can pin ids.
"""

import secrets
from itertools import count
from typing import Callable

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"

IdGenerator = Callable[[], str]


def _random_base62(length: int) -> str:
    """Generate a random base62 string of specified length."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def generate_id(size: int = 16) -> str:
    """Generate a random base62 id of ``size`` characters."""
    return _random_base62(size)


def sequential(prefix: str = "id") -> IdGenerator:
    """Return a deterministic generator yielding ``prefix-1``, ``prefix-2``, ..."""
    counter = count(1)
    return lambda: f"{prefix}-{next(counter)}"


class Identifier:
    """Namespace class for ID generation functions."""

    generate = staticmethod(generate_id)
    sequential = staticmethod(sequential)
