"""Runtime invocation options for one call."""

import asyncio
import os
from typing import Dict, Mapping, Optional

from ..core.config import ENV_API_KEY, ENV_AUTH_TOKEN, ENV_BASE_URL, ProviderSettings
from ..runtime.port import QueryOptions
from .query_context import QueryContext


def build_query_env(settings: ProviderSettings, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """The process environment with the provider's credentials laid over it."""
    env = dict(os.environ if environ is None else environ)
    if settings.api_key:
        env[ENV_API_KEY] = settings.api_key
    if settings.auth_token:
        env[ENV_AUTH_TOKEN] = settings.auth_token
    if settings.base_url:
        base_url = settings.base_url.rstrip("/")
        if base_url:
            env[ENV_BASE_URL] = base_url
    return env


def build_query_options(
    model_id: str,
    settings: ProviderSettings,
    context: QueryContext,
    abort: asyncio.Event,
    include_partial_messages: bool,
) -> QueryOptions:
    bridge = context.tool_bridge
    return QueryOptions(
        model=model_id,
        allowed_tools=list(bridge.allowed_tools) if bridge is not None else [],
        resume=context.prompt_query_input.resume_session_id,
        system_prompt=context.system_prompt,
        max_turns=settings.max_turns if context.native_tool_execution else 1,
        env=build_query_env(settings),
        mcp_servers=dict(bridge.mcp_servers) if bridge is not None else {},
        output_format=context.output_format,
        effort=context.effort,
        thinking=context.thinking,
        cwd=settings.cwd or os.getcwd(),
        include_partial_messages=include_partial_messages,
        abort=abort,
    )
