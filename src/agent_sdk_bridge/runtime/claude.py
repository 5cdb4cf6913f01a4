"""``AgentRuntime`` backed by ``claude_agent_sdk.query``."""

import dataclasses
from typing import Any, AsyncIterator, Callable, Dict, Optional

from claude_agent_sdk import ClaudeAgentOptions, query as sdk_query

from ..util.log import Log
from .port import QueryOptions, QueryPrompt

log = Log.create({"service": "runtime.claude"})

SdkQuery = Callable[..., AsyncIterator[Any]]


def supported_option_names() -> frozenset[str]:
    return frozenset(f.name for f in dataclasses.fields(ClaudeAgentOptions))


def build_sdk_options_kwargs(options: QueryOptions, supported: frozenset[str]) -> Dict[str, Any]:
    """Keyword arguments for ``ClaudeAgentOptions``, limited to fields the installed SDK has."""
    wanted: Dict[str, Any] = {
        "model": options.model,
        "tools": [],
        "allowed_tools": list(options.allowed_tools),
        "resume": options.resume,
        "system_prompt": options.system_prompt,
        "permission_mode": options.permission_mode,
        "setting_sources": [],
        "max_turns": options.max_turns,
        "env": dict(options.env),
        "mcp_servers": dict(options.mcp_servers),
        "output_format": options.output_format,
        "effort": options.effort,
        "thinking": options.thinking,
        "cwd": options.cwd,
        "include_partial_messages": options.include_partial_messages,
    }

    thinking = options.thinking or {}
    if "thinking" not in supported and "max_thinking_tokens" in supported:
        budget = thinking.get("budget_tokens")
        if thinking.get("type") == "enabled" and isinstance(budget, int):
            wanted["max_thinking_tokens"] = budget

    kwargs: Dict[str, Any] = {}
    for name, value in wanted.items():
        if value is None:
            continue
        if name not in supported:
            log.debug("claude-agent-sdk option not supported, skipped", {"option": name})
            continue
        kwargs[name] = value
    return kwargs


async def single_user_message(text: str, session_id: Optional[str] = None) -> AsyncIterator[Dict[str, Any]]:
    """Streaming-input form of a plain string prompt."""
    yield {
        "type": "user",
        "message": {"role": "user", "content": [{"type": "text", "text": text}]},
        "parent_tool_use_id": None,
        "session_id": session_id or "",
    }


class ClaudeAgentRuntime:
    """Runs queries through the Claude agent SDK."""

    def __init__(self, query: Optional[SdkQuery] = None):
        self._query = query or sdk_query
        self._supported = supported_option_names()

    def build_options(self, options: QueryOptions) -> ClaudeAgentOptions:
        return ClaudeAgentOptions(**build_sdk_options_kwargs(options, self._supported))

    async def query(self, prompt: QueryPrompt, options: QueryOptions) -> AsyncIterator[Any]:
        # SDK MCP servers are only reachable in streaming-input mode.
        if isinstance(prompt, str) and options.mcp_servers:
            prompt = single_user_message(prompt, options.resume)

        log.info("query", {
            "model": options.model,
            "resume": options.resume,
            "max_turns": options.max_turns,
            "tools": len(options.allowed_tools),
        })
        messages = self._query(prompt=prompt, options=self.build_options(options))
        try:
            async for message in messages:
                if options.abort is not None and options.abort.is_set():
                    log.info("query aborted", {"model": options.model})
                    break
                yield message
        finally:
            aclose = getattr(messages, "aclose", None)
            if aclose is not None:
                await aclose()
