"""Bridge error taxonomy and runtime failure classification.

Configuration problems raise immediately. Runtime-reported failures are not
exceptions: they arrive as result subtypes and are classified here so the
recovery code can decide whether recovered content may downgrade them.
"""

from typing import Any

STRUCTURED_OUTPUT_RETRIES_EXHAUSTED = "error_max_structured_output_retries"
MAX_TURNS_EXHAUSTED = "error_max_turns"

# Subtypes after which partial output may still be a usable answer.
_RECOVERABLE_SUBTYPES: frozenset[str] = frozenset({
    MAX_TURNS_EXHAUSTED,
    STRUCTURED_OUTPUT_RETRIES_EXHAUSTED,
})


class BridgeError(Exception):
    """Base class for errors raised by the bridge."""


class InvalidArgumentError(BridgeError, ValueError):
    """Raised when provider settings or call options are contradictory."""

    def __init__(self, argument: str, message: str):
        self.argument = argument
        super().__init__(message)


class NoSuchModelError(BridgeError):
    """Raised when a model type the backend cannot serve is requested."""

    def __init__(self, model_id: str, model_type: str):
        self.model_id = model_id
        self.model_type = model_type
        super().__init__(f"No such {model_type}: {model_id}")


class QueryAbortedError(BridgeError):
    """Raised when the caller's abort signal fires during a runtime query."""

    def __init__(self, message: str = "agent runtime query was aborted"):
        super().__init__(message)


class ImageAttachmentError(BridgeError):
    """Raised when an image attachment cannot be turned into a base64 block."""


def recoverable_subtype(subtype: Any) -> bool:
    """Return True if a non-success result subtype may still carry an answer."""
    return isinstance(subtype, str) and subtype in _RECOVERABLE_SUBTYPES


def structured_retries_exhausted(subtype: Any) -> bool:
    """Return True for the structured-output retry exhaustion subtype."""
    return subtype == STRUCTURED_OUTPUT_RETRIES_EXHAUSTED
