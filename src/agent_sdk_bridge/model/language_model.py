"""The language model exposed to callers."""

import re
from typing import Any, Dict, List, Mapping, Optional, Pattern, Union

from ..core.config import DEFAULT_PROVIDER_NAME, ProviderSettings
from ..core.id import IdGenerator, generate_id as default_generate_id
from ..provider.types import CallOptions, GenerateResult, StreamResult
from ..provider.warnings import collect_provider_setting_warnings
from ..runtime.claude import ClaudeAgentRuntime
from ..runtime.port import AgentRuntime
from ..session.store import FileIncomingSessionStore, IncomingSessionStore
from ..util.log import Log
from .generate import run_generate
from .persistence import SessionMemory
from .query_context import QueryHost
from .stream import run_stream

log = Log.create({"service": "model"})

_HTTP_URL = re.compile(r"^https?://.*")

DEFAULT_SUPPORTED_URLS: Dict[str, List[Pattern[str]]] = {
    "image/*": [_HTTP_URL],
    "application/pdf": [_HTTP_URL],
}

CallOptionsInput = Union[CallOptions, Mapping[str, Any]]


class AgentSdkLanguageModel:
    """A turn-based language model backed by the Claude agent runtime.

    Each instance owns its session memory, so separate instances never
    resume each other's sessions except through the durable store.
    """

    specification_version = "v3"

    def __init__(
        self,
        model_id: str,
        provider: str = DEFAULT_PROVIDER_NAME,
        settings: Optional[ProviderSettings] = None,
        generate_id: Optional[IdGenerator] = None,
        runtime: Optional[AgentRuntime] = None,
        session_store: Optional[IncomingSessionStore] = None,
    ):
        self.model_id = model_id
        self.provider = provider
        self.settings = settings or ProviderSettings()
        self.supported_urls = DEFAULT_SUPPORTED_URLS

        if session_store is None and self.settings.persist_sessions:
            session_store = FileIncomingSessionStore(self.settings.session_cache_dir)

        self.memory = SessionMemory(model_id, session_store)
        self._host = QueryHost(
            model_id=model_id,
            settings=self.settings,
            generate_id=generate_id or self.settings.generate_id or default_generate_id,
            runtime=runtime or ClaudeAgentRuntime(),
            memory=self.memory,
            provider_setting_warnings=collect_provider_setting_warnings(
                self.settings.headers,
                self.settings.http_client,
            ),
        )

    @staticmethod
    def _options(options: CallOptionsInput) -> CallOptions:
        if isinstance(options, CallOptions):
            return options
        return CallOptions.model_validate(options)

    async def do_generate(self, options: CallOptionsInput) -> GenerateResult:
        return await run_generate(self._host, self._options(options))

    async def do_stream(self, options: CallOptionsInput) -> StreamResult:
        return await run_stream(self._host, self._options(options))

    def __repr__(self) -> str:
        return f"AgentSdkLanguageModel(provider={self.provider!r}, model_id={self.model_id!r})"
