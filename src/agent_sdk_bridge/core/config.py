"""Provider settings."""

import os
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROVIDER_NAME = "anthropic.messages"

ENV_API_KEY = "ANTHROPIC_API_KEY"
ENV_AUTH_TOKEN = "ANTHROPIC_AUTH_TOKEN"
ENV_BASE_URL = "ANTHROPIC_BASE_URL"


class ProviderSettings(BaseModel):
    """Settings accepted by ``create_anthropic``.

    ``headers`` and ``http_client`` are accepted for compatibility with the
    Messages API provider but cannot be forwarded to the agent runtime; they
    only produce warnings.
    """
    api_key: Optional[str] = Field(None, alias="apiKey")
    auth_token: Optional[str] = Field(None, alias="authToken")
    base_url: Optional[str] = Field(None, alias="baseURL")
    headers: Optional[Dict[str, str]] = None
    http_client: Any = None
    name: Optional[str] = None
    generate_id: Optional[Callable[[], str]] = Field(None, alias="generateId")
    tool_executors: Optional[Dict[str, Callable[..., Any]]] = Field(None, alias="toolExecutors")
    max_turns: Optional[int] = Field(None, alias="maxTurns")
    session_cache_dir: Optional[str] = None
    persist_sessions: bool = True
    cwd: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    @property
    def provider_name(self) -> str:
        return self.name or DEFAULT_PROVIDER_NAME

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "ProviderSettings":
        """Settings seeded from ``ANTHROPIC_*`` variables; ``overrides`` win."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {
            "api_key": env.get(ENV_API_KEY) or None,
            "auth_token": env.get(ENV_AUTH_TOKEN) or None,
            "base_url": env.get(ENV_BASE_URL) or None,
        }
        values.update(overrides)
        return cls(**values)
