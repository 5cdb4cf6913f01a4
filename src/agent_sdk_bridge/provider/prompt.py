"""Prompt serialization.

The agent runtime takes one flat text prompt per invocation. These helpers
render structured prompt messages into deterministic per-message text
fingerprints; the same fingerprints are used to match earlier turns against
remote sessions and, joined, as the prompt body itself.
"""

from typing import Any, List, Optional, Sequence

from .types import (
    AssistantMessage,
    FilePart,
    ImagePart,
    PromptMessage,
    ReasoningPart,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    UserMessage,
)
from ..util.readers import safe_json_dumps

DEFAULT_MEDIA_TYPE = "application/octet-stream"
UNKNOWN_TOOL_NAME = "unknown_tool"


def _tool_tag(kind: str, tool_name: str, tool_call_id: str) -> str:
    name = tool_name or UNKNOWN_TOOL_NAME
    if tool_call_id:
        return f"[{kind}:{name}#{tool_call_id}]"
    return f"[{kind}:{name}]"


def serialize_part(part: Any) -> str:
    """Render one content part. Payloads of files and reasoning never appear."""
    if isinstance(part, TextPart):
        return part.text
    if isinstance(part, FilePart):
        return f"[file:{part.media_type or DEFAULT_MEDIA_TYPE}]"
    if isinstance(part, ImagePart):
        return f"[file:{part.mime_type or DEFAULT_MEDIA_TYPE}]"
    if isinstance(part, ReasoningPart):
        return ""
    if isinstance(part, ToolCallPart):
        tag = _tool_tag("tool-call", part.tool_name, part.tool_call_id)
        return f"{tag} {safe_json_dumps(part.input)}"
    if isinstance(part, ToolResultPart):
        tag = _tool_tag("tool-result", part.tool_name, part.tool_call_id)
        return f"{tag} {safe_json_dumps(part.output)}"
    return ""


def serialize_message(message: PromptMessage) -> str:
    """Render one message into its fingerprint.

    User messages are rendered bare; every other role gets a ``[role]``
    header line. A message with no renderable content yields ``""``.
    """
    if isinstance(message, SystemMessage):
        body = message.content.strip()
    else:
        rendered = (serialize_part(part) for part in message.content)
        body = "\n".join(text for text in rendered if text)

    if not body:
        return ""
    if isinstance(message, UserMessage):
        return body
    return f"[{message.role}]\n{body}"


def serialize_prompt_messages(messages: Sequence[PromptMessage]) -> List[str]:
    """Fingerprint every message, system messages included, for prefix matching."""
    return [serialize_message(message) for message in messages]


def serialize_prompt_messages_without_system(messages: Sequence[PromptMessage]) -> List[str]:
    """Fingerprint the non-system messages that make up the prompt body."""
    rendered = (
        serialize_message(message)
        for message in messages
        if not isinstance(message, SystemMessage)
    )
    return [text for text in rendered if text]


def _has_tool_call(message: AssistantMessage) -> bool:
    return any(isinstance(part, ToolCallPart) for part in message.content)


def serialize_prompt_messages_for_resume(messages: Sequence[PromptMessage]) -> List[str]:
    """Fingerprint a resume delta.

    Plain assistant text is already held by the remote session, so assistant
    messages without tool calls are dropped along with system messages.
    """
    kept = [
        message
        for message in messages
        if not (isinstance(message, AssistantMessage) and not _has_tool_call(message))
    ]
    return serialize_prompt_messages_without_system(kept)


def join_serialized_prompt_messages(serialized: Sequence[str]) -> str:
    return "\n\n".join(serialized)


def extract_system_prompt(messages: Sequence[PromptMessage]) -> Optional[str]:
    """Join all non-blank system messages with a blank line, or None."""
    contents = [
        message.content.strip()
        for message in messages
        if isinstance(message, SystemMessage) and message.content.strip()
    ]
    if not contents:
        return None
    return "\n\n".join(contents)
