"""The runtime invocation port."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Protocol, Union, runtime_checkable

QueryPrompt = Union[str, AsyncIterable[Dict[str, Any]]]


@dataclass
class QueryOptions:
    """Options for one runtime invocation.

    ``abort`` is set by the bridge when the caller cancels; runtimes stop
    yielding once it is set.
    """
    model: str
    allowed_tools: List[str] = field(default_factory=list)
    resume: Optional[str] = None
    system_prompt: Optional[str] = None
    permission_mode: str = "dontAsk"
    max_turns: Optional[int] = None
    env: Dict[str, str] = field(default_factory=dict)
    mcp_servers: Dict[str, Any] = field(default_factory=dict)
    output_format: Optional[Dict[str, Any]] = None
    effort: Optional[str] = None
    thinking: Optional[Dict[str, Any]] = None
    cwd: Optional[str] = None
    include_partial_messages: bool = False
    abort: Optional[asyncio.Event] = None


@runtime_checkable
class AgentRuntime(Protocol):
    """Anything that runs one agent query and yields its raw messages."""

    def query(self, prompt: QueryPrompt, options: QueryOptions) -> AsyncIterator[Any]: ...
