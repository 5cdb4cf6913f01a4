"""Provider surface: unified types, translation, tool bridging and recovery."""

from __future__ import annotations

from importlib import import_module
from typing import Dict, Tuple

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "create_anthropic": (".factory", "create_anthropic"),
    "AgentSdkProvider": (".factory", "AgentSdkProvider"),
    "BridgeError": (".errors", "BridgeError"),
    "InvalidArgumentError": (".errors", "InvalidArgumentError"),
    "NoSuchModelError": (".errors", "NoSuchModelError"),
    "QueryAbortedError": (".errors", "QueryAbortedError"),
    "ImageAttachmentError": (".errors", "ImageAttachmentError"),
    "CallOptions": (".types", "CallOptions"),
    "GenerateResult": (".types", "GenerateResult"),
    "StreamResult": (".types", "StreamResult"),
    "build_tool_bridge_config": (".tool_bridge", "build_tool_bridge_config"),
    "recover_tool_output": (".recovery", "recover_tool_output"),
}


def __getattr__(name: str):
    target = _EXPORTS.get(name)
    if not target:
        raise AttributeError(name)

    module_name, attr_name = target
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = list(_EXPORTS.keys())
