"""Image-bearing prompts.

The runtime only accepts images inside a streaming user message, so when the
latest user message carries an image the whole prompt is sent as one such
message: an optional preamble, the earlier conversation rendered as text
(unless resuming), then the user's text and base64 image blocks.
"""

import base64
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import httpx

from ..provider.errors import ImageAttachmentError
from ..provider.prompt import join_serialized_prompt_messages, serialize_prompt_messages_without_system
from ..provider.types import FilePart, ImagePart, PromptMessage, TextPart, UserMessage
from ..util.log import Log

log = Log.create({"service": "model.multimodal"})

DOWNLOAD_TIMEOUT = 30.0

ContentBlock = Dict[str, Any]


def normalize_media_type(media_type: Optional[str]) -> Optional[str]:
    if media_type is None:
        return None
    normalized = media_type.split(";")[0].strip().lower()
    return normalized or None


def is_image_media_type(media_type: Optional[str]) -> bool:
    return isinstance(media_type, str) and media_type.startswith("image/")


def _part_is_image(part: Any) -> bool:
    if isinstance(part, ImagePart):
        return True
    return isinstance(part, FilePart) and is_image_media_type(normalize_media_type(part.media_type))


def _last_user_index(prompt: Sequence[PromptMessage]) -> Optional[int]:
    for index in range(len(prompt) - 1, -1, -1):
        if isinstance(prompt[index], UserMessage):
            return index
    return None


def read_image_data_url(value: str) -> Optional[Tuple[str, str]]:
    """``(media_type, base64 data)`` of a base64 image data URL."""
    if not value.startswith("data:"):
        return None
    comma = value.find(",")
    if comma <= 5:
        return None
    metadata, data = value[5:comma], value[comma + 1:]
    if ";base64" not in metadata.lower() or not data:
        return None
    media_type = normalize_media_type(metadata.split(";")[0])
    if not is_image_media_type(media_type):
        return None
    return media_type, data


def _http_url(value: Any) -> Optional[str]:
    if isinstance(value, httpx.URL):
        value = str(value)
    if not isinstance(value, str):
        return None
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError):
        return None
    return str(url) if url.scheme in ("http", "https") and url.host else None


async def download_image(url: str, client: Optional[httpx.AsyncClient] = None) -> Tuple[Optional[str], str]:
    """Fetch ``url`` and return its media type and base64 body."""
    try:
        if client is not None:
            response = await client.get(url)
        else:
            async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True) as owned:
                response = await owned.get(url)
    except httpx.HTTPError as e:
        raise ImageAttachmentError(f"failed to download image attachment: {url}") from e

    if not response.is_success:
        raise ImageAttachmentError(f"failed to download image attachment: {url}")

    media_type = normalize_media_type(response.headers.get("content-type"))
    if media_type is not None and not is_image_media_type(media_type):
        raise ImageAttachmentError(f"unsupported image media type from URL: {media_type}")

    return media_type, base64.b64encode(response.content).decode("ascii")


async def normalize_image_attachment(
    data: Any,
    media_type_hint: Optional[str],
    client: Optional[httpx.AsyncClient] = None,
) -> Tuple[str, str]:
    """Resolve an attachment to ``(media_type, base64 data)``."""
    hint = normalize_media_type(media_type_hint)
    if hint is not None and not is_image_media_type(hint):
        raise ImageAttachmentError(f"unsupported image media type: {hint}")

    if isinstance(data, str):
        parsed = read_image_data_url(data)
        if parsed is not None:
            return parsed

    url = _http_url(data)
    if url is not None:
        downloaded_type, encoded = await download_image(url, client)
        media_type = downloaded_type or hint
        if not is_image_media_type(media_type):
            raise ImageAttachmentError("missing media type for image URL attachment")
        return media_type, encoded

    if isinstance(data, str):
        if not is_image_media_type(hint):
            raise ImageAttachmentError("missing media type for image base64 attachment")
        return hint, data

    if isinstance(data, (bytes, bytearray, memoryview)):
        if not is_image_media_type(hint):
            raise ImageAttachmentError("missing media type for image binary attachment")
        return hint, base64.b64encode(bytes(data)).decode("ascii")

    raise ImageAttachmentError("unsupported image attachment data type")


async def _part_blocks(part: Any, client: Optional[httpx.AsyncClient]) -> List[ContentBlock]:
    if isinstance(part, TextPart):
        return [{"type": "text", "text": part.text}] if part.text else []
    if not _part_is_image(part):
        return []

    if isinstance(part, ImagePart):
        data, hint = part.image, part.mime_type
    else:
        data, hint = part.data, part.media_type
    media_type, encoded = await normalize_image_attachment(data, hint, client)
    return [{"type": "image", "source": {"type": "base64", "media_type": media_type, "data": encoded}}]


async def _single_message(message: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
    yield message


async def build_multimodal_query_prompt(
    prompt: Sequence[PromptMessage],
    resume_session_id: Optional[str],
    preamble_text: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[AsyncIterator[Dict[str, Any]]]:
    """Streaming prompt for an image-bearing last user message, else None."""
    index = _last_user_index(prompt)
    if index is None:
        return None
    parts = list(prompt[index].content)
    if not any(_part_is_image(part) for part in parts):
        return None

    blocks: List[ContentBlock] = []
    if preamble_text:
        blocks.append({"type": "text", "text": preamble_text})

    if resume_session_id is None:
        previous = join_serialized_prompt_messages(serialize_prompt_messages_without_system(prompt[:index]))
        if previous:
            blocks.append({"type": "text", "text": f"Previous conversation context:\n\n{previous}"})

    for part in parts:
        blocks.extend(await _part_blocks(part, client))

    if not blocks:
        return None

    log.info("multimodal prompt", {
        "images": sum(1 for block in blocks if block["type"] == "image"),
        "resume": resume_session_id,
    })
    return _single_message({
        "type": "user",
        "session_id": resume_session_id or "default",
        "parent_tool_use_id": None,
        "message": {"role": "user", "content": blocks},
    })
