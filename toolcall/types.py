"""Shared dataclasses for decoded tool results and tool arguments."""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class ExecMetadata:
    exit_code: int
    duration_seconds: float

    @classmethod
    def coerce(cls, value: Any) -> "ExecMetadata":
        """Build metadata from a loosely shaped mapping.

        Used when a payload was recovered from a larger malformed body and only
        its shape was checked. Missing or mistyped fields fall back to a failed
        exit code and a zero duration.
        """

        if not isinstance(value, Mapping):
            return cls(exit_code=1, duration_seconds=0.0)
        exit_code = value.get("exit_code")
        if isinstance(exit_code, bool) or not isinstance(exit_code, (int, float)):
            exit_code = 1
        elif isinstance(exit_code, float):
            exit_code = int(exit_code) if math.isfinite(exit_code) and exit_code.is_integer() else 1
        duration = value.get("duration_seconds")
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or not math.isfinite(duration):
            duration = 0.0
        return cls(exit_code=int(exit_code), duration_seconds=float(duration))


@dataclass(frozen=True)
class ToolResult:
    output: str
    metadata: ExecMetadata

    def with_note(self, note: str) -> "ToolResult":
        return ToolResult(output=self.output + note, metadata=self.metadata)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass(frozen=True)
class CommandDescriptor:
    cmd: List[str] = field(default_factory=list)
    workdir: Optional[str] = None
    timeout_ms: Optional[int] = None


@dataclass(frozen=True)
class CommandReview:
    """Command tokens for execution plus the text shown to the user for approval."""

    cmd: List[str]
    cmd_readable_text: str


__all__ = ["ExecMetadata", "ToolResult", "CommandDescriptor", "CommandReview"]
