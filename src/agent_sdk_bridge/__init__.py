"""agent-sdk-bridge - a turn-based language model interface over the Claude agent runtime.

Independent runtime invocations are joined into one conversation by resuming
remote sessions, raw runtime events are translated into start/delta/end
stream parts, and caller-declared tools are bridged through an in-process MCP
server.
"""

from __future__ import annotations

from importlib import import_module
from typing import Dict, Tuple

__version__ = "0.1.0"

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "create_anthropic": (".provider.factory", "create_anthropic"),
    "AgentSdkProvider": (".provider.factory", "AgentSdkProvider"),
    "AgentSdkLanguageModel": (".model.language_model", "AgentSdkLanguageModel"),
    "ProviderSettings": (".core.config", "ProviderSettings"),
    "CallOptions": (".provider.types", "CallOptions"),
    "GenerateResult": (".provider.types", "GenerateResult"),
    "StreamResult": (".provider.types", "StreamResult"),
    "FileIncomingSessionStore": (".session.store", "FileIncomingSessionStore"),
    "ClaudeAgentRuntime": (".runtime.claude", "ClaudeAgentRuntime"),
    "BridgeError": (".provider.errors", "BridgeError"),
    "InvalidArgumentError": (".provider.errors", "InvalidArgumentError"),
    "NoSuchModelError": (".provider.errors", "NoSuchModelError"),
    "QueryAbortedError": (".provider.errors", "QueryAbortedError"),
    "Log": (".util.log", "Log"),
}


def __getattr__(name: str):
    """Lazy import package components."""
    target = _EXPORTS.get(name)
    if not target:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attr_name = target
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = ["__version__", *_EXPORTS.keys()]
