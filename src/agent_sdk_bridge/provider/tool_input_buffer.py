"""Buffer streamed tool-input fragments for bridge tools until their block ends."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class PendingBridgeToolInput:
    tool_name: str
    deltas: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FinishedBridgeToolInput:
    tool_name: str
    raw_input: str


class PendingBridgeToolInputs:
    """Pending bridge tool inputs keyed by block id."""

    def __init__(self) -> None:
        self._pending: Dict[str, PendingBridgeToolInput] = {}

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def start(self, block_id: str, tool_name: str) -> None:
        self._pending[block_id] = PendingBridgeToolInput(tool_name=tool_name)

    def append(self, block_id: str, delta: str) -> bool:
        """Record a fragment. Returns False when ``block_id`` is not a bridge block."""
        pending = self._pending.get(block_id)
        if pending is None:
            return False
        pending.deltas.append(delta)
        return True

    def finish(self, block_id: str) -> Optional[FinishedBridgeToolInput]:
        pending = self._pending.pop(block_id, None)
        if pending is None:
            return None
        return FinishedBridgeToolInput(tool_name=pending.tool_name, raw_input="".join(pending.deltas))
