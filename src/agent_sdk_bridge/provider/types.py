"""Unified language-model protocol types.

Defines the prompt the caller hands in, the content and stream parts the
bridge hands back, and the usage/finish-reason records attached to both.
"""

import asyncio
from datetime import datetime
from dataclasses import dataclass, field
from typing import Annotated, Any, AsyncIterator, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Prompt content parts


class TextPart(BaseModel):
    """Text content part."""
    type: Literal["text"] = "text"
    text: str
    provider_options: Optional[Dict[str, Any]] = None


class FilePart(BaseModel):
    """File attachment part. ``data`` may be bytes, base64, a data URL or an http URL."""
    type: Literal["file"] = "file"
    media_type: Optional[str] = None
    data: Any = None
    filename: Optional[str] = None
    provider_options: Optional[Dict[str, Any]] = None


class ImagePart(BaseModel):
    """Legacy image part."""
    type: Literal["image"] = "image"
    image: Any = None
    mime_type: Optional[str] = None
    provider_options: Optional[Dict[str, Any]] = None


class ReasoningPart(BaseModel):
    """Reasoning/thinking content part."""
    type: Literal["reasoning"] = "reasoning"
    text: str = ""
    provider_options: Optional[Dict[str, Any]] = None


class ToolCallPart(BaseModel):
    """A tool call issued by the assistant in an earlier turn."""
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str = ""
    tool_name: str = ""
    input: Any = None
    provider_executed: Optional[bool] = None
    provider_options: Optional[Dict[str, Any]] = None


class ToolResultPart(BaseModel):
    """The result of a tool call, fed back by the caller."""
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str = ""
    tool_name: str = ""
    output: Any = None
    provider_options: Optional[Dict[str, Any]] = None


UserContentPart = Annotated[
    Union[TextPart, FilePart, ImagePart],
    Field(discriminator="type"),
]
AssistantContentPart = Annotated[
    Union[TextPart, FilePart, ReasoningPart, ToolCallPart, ToolResultPart],
    Field(discriminator="type"),
]


def _text_content(value: Any) -> Any:
    if isinstance(value, str):
        return [{"type": "text", "text": value}] if value else []
    return value


# Prompt messages


class SystemMessage(BaseModel):
    """System instructions."""
    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    """A user turn."""
    role: Literal["user"] = "user"
    content: List[UserContentPart] = Field(default_factory=list)

    @field_validator("content", mode="before")
    @classmethod
    def _wrap_text(cls, value: Any) -> Any:
        return _text_content(value)


class AssistantMessage(BaseModel):
    """An assistant turn, possibly carrying tool calls."""
    role: Literal["assistant"] = "assistant"
    content: List[AssistantContentPart] = Field(default_factory=list)

    @field_validator("content", mode="before")
    @classmethod
    def _wrap_text(cls, value: Any) -> Any:
        return _text_content(value)


class ToolMessage(BaseModel):
    """Tool results returned by the caller."""
    role: Literal["tool"] = "tool"
    content: List[ToolResultPart] = Field(default_factory=list)


PromptMessage = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]


# Tools and call options


class FunctionTool(BaseModel):
    """A caller-declared callable tool."""
    type: Literal["function"] = "function"
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ProviderTool(BaseModel):
    """A provider-defined tool. Not supported by this backend."""
    type: Literal["provider"] = "provider"
    id: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


Tool = Annotated[Union[FunctionTool, ProviderTool], Field(discriminator="type")]


class ToolChoice(BaseModel):
    """How the model may use tools."""
    type: Literal["auto", "none", "required", "tool"] = "auto"
    tool_name: Optional[str] = None


class ResponseFormat(BaseModel):
    """Requested response format."""
    type: Literal["text", "json"] = "text"
    json_schema: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
    name: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class Telemetry(BaseModel):
    """Telemetry settings forwarded by the caller."""
    is_enabled: Optional[bool] = None
    function_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="allow")


class CallOptions(BaseModel):
    """Options for a single generate or stream call."""
    prompt: List[PromptMessage]
    tools: Optional[List[Tool]] = None
    tool_choice: Optional[ToolChoice] = None
    response_format: Optional[ResponseFormat] = None
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    seed: Optional[int] = None
    stop_sequences: Optional[List[str]] = None
    headers: Optional[Any] = None
    provider_options: Optional[Dict[str, Any]] = None
    telemetry: Optional[Telemetry] = None
    abort_signal: Optional[asyncio.Event] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


# Result content


class TextContent(BaseModel):
    """Generated text."""
    type: Literal["text"] = "text"
    text: str


class ReasoningContent(BaseModel):
    """Generated reasoning."""
    type: Literal["reasoning"] = "reasoning"
    text: str


class ToolCallContent(BaseModel):
    """A completed tool call. ``input`` is a JSON string."""
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: str
    provider_executed: bool = False
    dynamic: Optional[bool] = None


Content = Union[TextContent, ReasoningContent, ToolCallContent]


class InputTokens(BaseModel):
    """Input token counts."""
    total: Optional[int] = None
    no_cache: Optional[int] = None
    cache_read: Optional[int] = None
    cache_write: Optional[int] = None


class OutputTokens(BaseModel):
    """Output token counts. Reasoning tokens are not reported separately."""
    total: Optional[int] = None
    text: Optional[int] = None
    reasoning: Optional[int] = None


class Usage(BaseModel):
    """Token usage for one call."""
    input_tokens: InputTokens = Field(default_factory=InputTokens)
    output_tokens: OutputTokens = Field(default_factory=OutputTokens)
    raw: Optional[Dict[str, Any]] = None


UnifiedFinishReason = Literal["stop", "length", "content-filter", "tool-calls", "error", "other"]


class FinishReason(BaseModel):
    """Unified finish reason plus the raw runtime value."""
    unified: UnifiedFinishReason
    raw: Optional[str] = None


class CallWarning(BaseModel):
    """A non-fatal degradation notice attached to a result."""
    type: Literal["unsupported", "compatibility", "other"]
    feature: Optional[str] = None
    details: Optional[str] = None
    message: Optional[str] = None


# Stream parts


class StreamStart(BaseModel):
    type: Literal["stream-start"] = "stream-start"
    warnings: List[CallWarning] = Field(default_factory=list)


class ResponseMetadata(BaseModel):
    type: Literal["response-metadata"] = "response-metadata"
    id: Optional[str] = None
    model_id: Optional[str] = None
    timestamp: Optional[datetime] = None


class TextStart(BaseModel):
    type: Literal["text-start"] = "text-start"
    id: str


class TextDelta(BaseModel):
    type: Literal["text-delta"] = "text-delta"
    id: str
    delta: str


class TextEnd(BaseModel):
    type: Literal["text-end"] = "text-end"
    id: str


class ReasoningStart(BaseModel):
    type: Literal["reasoning-start"] = "reasoning-start"
    id: str


class ReasoningDelta(BaseModel):
    type: Literal["reasoning-delta"] = "reasoning-delta"
    id: str
    delta: str


class ReasoningEnd(BaseModel):
    type: Literal["reasoning-end"] = "reasoning-end"
    id: str


class ToolInputStart(BaseModel):
    type: Literal["tool-input-start"] = "tool-input-start"
    id: str
    tool_name: str
    provider_executed: Optional[bool] = None
    dynamic: Optional[bool] = None


class ToolInputDelta(BaseModel):
    type: Literal["tool-input-delta"] = "tool-input-delta"
    id: str
    delta: str


class ToolInputEnd(BaseModel):
    type: Literal["tool-input-end"] = "tool-input-end"
    id: str


class ErrorPart(BaseModel):
    type: Literal["error"] = "error"
    error: Any


class Finish(BaseModel):
    type: Literal["finish"] = "finish"
    finish_reason: FinishReason
    usage: Usage = Field(default_factory=Usage)
    provider_metadata: Optional[Dict[str, Any]] = None


StreamPart = Union[
    StreamStart,
    ResponseMetadata,
    TextStart,
    TextDelta,
    TextEnd,
    ReasoningStart,
    ReasoningDelta,
    ReasoningEnd,
    ToolInputStart,
    ToolInputDelta,
    ToolInputEnd,
    ToolCallContent,
    ErrorPart,
    Finish,
]


# Call results


class GenerateResult(BaseModel):
    """Result of a single-shot generate call."""
    content: List[Content] = Field(default_factory=list)
    finish_reason: FinishReason
    usage: Usage = Field(default_factory=Usage)
    warnings: List[CallWarning] = Field(default_factory=list)
    provider_metadata: Optional[Dict[str, Any]] = None
    request: Dict[str, Any] = Field(default_factory=dict)
    response: Dict[str, Any] = Field(default_factory=dict)


@dataclass
class StreamResult:
    """Result of a stream call. ``stream`` yields parts until one ``finish``."""
    stream: AsyncIterator[StreamPart]
    request: Dict[str, Any] = field(default_factory=dict)
