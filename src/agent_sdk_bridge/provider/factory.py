"""``create_anthropic``: a Messages API style provider over the agent runtime."""

from typing import Any, Mapping, Optional, Union

from ..core.config import ProviderSettings
from ..runtime.port import AgentRuntime
from ..session.store import IncomingSessionStore
from ..util.log import Log
from .errors import InvalidArgumentError, NoSuchModelError

log = Log.create({"service": "provider"})

SettingsInput = Union[ProviderSettings, Mapping[str, Any], None]


class AgentSdkProvider:
    """Callable provider: ``provider("claude-sonnet-4-5")`` returns a language model."""

    specification_version = "v3"

    def __init__(
        self,
        settings: ProviderSettings,
        runtime: Optional[AgentRuntime] = None,
        session_store: Optional[IncomingSessionStore] = None,
    ):
        self.settings = settings
        self.name = settings.provider_name
        self._runtime = runtime
        self._session_store = session_store

    def language_model(self, model_id: str):
        from ..model.language_model import AgentSdkLanguageModel

        return AgentSdkLanguageModel(
            model_id,
            provider=self.name,
            settings=self.settings,
            runtime=self._runtime,
            session_store=self._session_store,
        )

    def __call__(self, model_id: str):
        return self.language_model(model_id)

    def chat(self, model_id: str):
        return self.language_model(model_id)

    def messages(self, model_id: str):
        return self.language_model(model_id)

    def embedding_model(self, model_id: str):
        raise NoSuchModelError(model_id, "embeddingModel")

    def text_embedding_model(self, model_id: str):
        raise NoSuchModelError(model_id, "embeddingModel")

    def image_model(self, model_id: str):
        raise NoSuchModelError(model_id, "imageModel")


def create_anthropic(
    settings: SettingsInput = None,
    runtime: Optional[AgentRuntime] = None,
    session_store: Optional[IncomingSessionStore] = None,
    **kwargs: Any,
) -> AgentSdkProvider:
    """Build a provider. Settings may be a ``ProviderSettings``, a mapping, or keywords."""
    if settings is None:
        resolved = ProviderSettings(**kwargs)
    elif isinstance(settings, ProviderSettings):
        resolved = settings.model_copy(update=kwargs) if kwargs else settings
    else:
        resolved = ProviderSettings.model_validate({**settings, **kwargs})

    if resolved.api_key and resolved.auth_token:
        raise InvalidArgumentError(
            "api_key/auth_token",
            "Both api_key and auth_token were provided. Please use only one authentication method.",
        )

    log.debug("provider created", {"name": resolved.provider_name})
    return AgentSdkProvider(resolved, runtime=runtime, session_store=session_store)
