"""Language model built on the agent runtime."""

from .language_model import AgentSdkLanguageModel

__all__ = ["AgentSdkLanguageModel"]
