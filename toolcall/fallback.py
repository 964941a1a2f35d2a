"""Build the terminal tool result returned when no recovery stage succeeds."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from toolcall.structure import CLOSE_BRACE, OPEN_BRACE
from toolcall.types import ExecMetadata, ToolResult

TRUNCATED_MESSAGE = (
    "Response appears to be truncated due to token limits. "
    "Try a smaller command output or check logs for details."
)
PARSE_FAILURE_MESSAGE = "Failed to parse JSON result. Check logs for details."

FAILURE_METADATA = ExecMetadata(exit_code=1, duration_seconds=0.0)


@dataclass(frozen=True)
class TruncationGuess:
    possible_truncation: bool
    length: int
    first_open: int
    last_close: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def guess_truncation(raw: str) -> TruncationGuess:
    """Suspect truncation when an object starts but the payload does not end with ``}``."""

    return TruncationGuess(
        possible_truncation=bool(raw) and not raw.endswith(CLOSE_BRACE) and OPEN_BRACE in raw,
        length=len(raw),
        first_open=raw.find(OPEN_BRACE),
        last_close=raw.rfind(CLOSE_BRACE),
    )


def build_fallback(raw: str, anomaly: Optional[TruncationGuess] = None) -> ToolResult:
    guess = anomaly if anomaly is not None else guess_truncation(raw)
    message = TRUNCATED_MESSAGE if guess.possible_truncation else PARSE_FAILURE_MESSAGE
    return ToolResult(output=message, metadata=FAILURE_METADATA)


__all__ = [
    "TRUNCATED_MESSAGE",
    "PARSE_FAILURE_MESSAGE",
    "FAILURE_METADATA",
    "TruncationGuess",
    "guess_truncation",
    "build_fallback",
]
