"""Warnings for call options and settings the agent runtime cannot honour."""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .types import CallOptions, CallWarning, ProviderTool

_SAMPLING_DETAILS = {
    "temperature": ("temperature", "direct temperature control"),
    "top_p": ("topP", "direct topP control"),
    "top_k": ("topK", "direct topK control"),
    "presence_penalty": ("presencePenalty", "direct presence penalty control"),
    "frequency_penalty": ("frequencyPenalty", "direct frequency penalty control"),
    "seed": ("seed", "deterministic seed control"),
}

MAPPED_ANTHROPIC_OPTIONS = frozenset({"effort", "thinking"})

DEGRADE_ONLY_ANTHROPIC_OPTIONS = frozenset({
    "sendReasoning",
    "structuredOutputMode",
    "disableParallelToolUse",
    "toolStreaming",
})

_NOT_SUPPORTED = "This option is not supported on the Agent SDK backend."

UNSUPPORTED_ANTHROPIC_OPTIONS = {
    "cacheControl": (
        "This option is not supported on the Agent SDK backend. Prompt cache TTL "
        "(including 1h cache) cannot be configured via claude-agent-sdk options."
    ),
    "mcpServers": _NOT_SUPPORTED,
    "container": _NOT_SUPPORTED,
    "speed": _NOT_SUPPORTED,
    "contextManagement": _NOT_SUPPORTED,
}

EFFORT_LEVELS = ("low", "medium", "high", "max")


def _anthropic_options(options: CallOptions) -> Optional[Mapping[str, Any]]:
    provider_options = options.provider_options
    if not isinstance(provider_options, Mapping):
        return None
    anthropic = provider_options.get("anthropic")
    return anthropic if isinstance(anthropic, Mapping) else None


def collect_anthropic_option_warnings(options: CallOptions) -> List[CallWarning]:
    anthropic = _anthropic_options(options)
    if anthropic is None:
        return []

    warnings: List[CallWarning] = []
    for name in anthropic:
        if name in MAPPED_ANTHROPIC_OPTIONS:
            continue
        feature = f"providerOptions.anthropic.{name}"
        if name in DEGRADE_ONLY_ANTHROPIC_OPTIONS:
            warnings.append(CallWarning(
                type="compatibility",
                feature=feature,
                details="This option is accepted but behavior may differ on the Agent SDK backend.",
            ))
        elif name in UNSUPPORTED_ANTHROPIC_OPTIONS:
            warnings.append(CallWarning(
                type="unsupported",
                feature=feature,
                details=UNSUPPORTED_ANTHROPIC_OPTIONS[name],
            ))
        else:
            warnings.append(CallWarning(
                type="other",
                message=f"Unknown anthropic provider option '{name}' is ignored by this backend.",
            ))
    return warnings


def collect_warnings(options: CallOptions, tools_mode: bool) -> List[CallWarning]:
    """Warnings for sampling knobs, token limits and provider-defined tools."""
    warnings = collect_anthropic_option_warnings(options)

    for attr, (feature, control) in _SAMPLING_DETAILS.items():
        if getattr(options, attr) is not None:
            warnings.append(CallWarning(
                type="unsupported",
                feature=feature,
                details=f"claude-agent-sdk backend does not expose {control}.",
            ))

    if options.max_output_tokens is not None:
        warnings.append(CallWarning(
            type="compatibility",
            feature="maxOutputTokens",
            details=(
                "maxOutputTokens is best-effort only because claude-agent-sdk "
                "controls decoding internally."
            ),
        ))

    if tools_mode and any(isinstance(tool, ProviderTool) for tool in options.tools or []):
        warnings.append(CallWarning(
            type="unsupported",
            feature="provider-defined tools",
            details="provider-defined tools are ignored when using claude-agent-sdk compatibility backend.",
        ))

    return warnings


def collect_provider_setting_warnings(headers: Any, http_client: Any) -> List[CallWarning]:
    warnings: List[CallWarning] = []
    if headers:
        warnings.append(CallWarning(
            type="unsupported",
            feature="providerSettings.headers",
            details="create_anthropic(headers=...) is not forwarded on claude-agent-sdk backend.",
        ))
    if http_client is not None:
        warnings.append(CallWarning(
            type="unsupported",
            feature="providerSettings.http_client",
            details="create_anthropic(http_client=...) is not forwarded on claude-agent-sdk backend.",
        ))
    return warnings


def partial_tool_executor_warning(missing_tool_names: Sequence[str]) -> CallWarning:
    return CallWarning(
        type="compatibility",
        feature="toolExecutors.partial",
        details=(
            f"tool_executors is missing handlers for: {', '.join(missing_tool_names)}. "
            "Falling back to the caller's tool loop with max_turns=1."
        ),
    )


def parse_anthropic_provider_options(options: CallOptions) -> Dict[str, Any]:
    """Read the ``effort`` and ``thinking`` options the runtime understands."""
    anthropic = _anthropic_options(options)
    if anthropic is None:
        return {}

    parsed: Dict[str, Any] = {}
    effort = anthropic.get("effort")
    if effort in EFFORT_LEVELS:
        parsed["effort"] = effort

    thinking = anthropic.get("thinking")
    if isinstance(thinking, Mapping):
        kind = thinking.get("type")
        if kind in ("adaptive", "disabled"):
            parsed["thinking"] = {"type": kind}
        elif kind == "enabled":
            budget = thinking.get("budgetTokens")
            if isinstance(budget, (int, float)) and not isinstance(budget, bool):
                parsed["thinking"] = {"type": "enabled", "budget_tokens": int(budget)}
            else:
                parsed["thinking"] = {"type": "enabled"}
    return parsed
