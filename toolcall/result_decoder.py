"""Decode tool-result payloads returned by the model, recovering truncated ones.

A model that runs out of generation budget can stop in the middle of the
``{"output": ..., "metadata": ...}`` object it was asked to echo back. Rather
than failing the whole turn, the decoder walks a fixed recovery chain:

1. decode the payload as-is;
2. if the outermost object never closed, append a single ``}`` and retry;
3. if a complete object is embedded in a longer body, decode just that object;
4. otherwise return a fixed failure result.

``decode_result`` is total: whatever it is given, it returns a ``ToolResult``.
Every stage is reported to the diagnostic recorder.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from toolcall.diagnostics import DiagnosticRecorder, get_recorder
from toolcall.errors import MalformedPayload, PayloadError, TruncatedPayload, UnrecoverablePayload
from toolcall.fallback import build_fallback, guess_truncation
from toolcall.payload_schema import parse_tool_result
from toolcall.structure import CLOSE_BRACE, embedded_object_start, last_close, missing_close
from toolcall.types import ExecMetadata, ToolResult

logger = logging.getLogger(__name__)

TRUNCATION_FIXED_NOTE = "\n[Note: Response was truncated and automatically fixed]"
PARTIAL_RECOVERY_NOTE = "\n[Note: Response was truncated but a valid portion was recovered]"


class RecoveryStage(str, Enum):
    DIRECT = "direct"
    PATCHED_CLOSE = "patched_close"
    EXTRACTED_OBJECT = "extracted_object"
    EXHAUSTED = "exhausted"


_NOTES: Dict[RecoveryStage, str] = {
    RecoveryStage.PATCHED_CLOSE: TRUNCATION_FIXED_NOTE,
    RecoveryStage.EXTRACTED_OBJECT: PARTIAL_RECOVERY_NOTE,
}

_CONDITIONS: Dict[RecoveryStage, str] = {
    RecoveryStage.DIRECT: "ok",
    RecoveryStage.PATCHED_CLOSE: TruncatedPayload.condition,
    RecoveryStage.EXTRACTED_OBJECT: "partially_recovered",
    RecoveryStage.EXHAUSTED: UnrecoverablePayload.condition,
}


@dataclass(frozen=True)
class RecoveryOutcome:
    """Which stage produced a result, and the unannotated result itself."""

    stage: RecoveryStage
    result: Optional[ToolResult] = None
    error: Optional[PayloadError] = None

    @property
    def condition(self) -> str:
        return _CONDITIONS[self.stage]

    @property
    def recovered(self) -> bool:
        return self.stage is not RecoveryStage.EXHAUSTED


def decode_result(raw: Any, *, recorder: Optional[DiagnosticRecorder] = None) -> ToolResult:
    """Return the tool result encoded in ``raw``; never raises."""

    result, _ = decode_with_outcome(raw, recorder=recorder)
    return result


def decode_with_outcome(
    raw: Any, *, recorder: Optional[DiagnosticRecorder] = None
) -> Tuple[ToolResult, RecoveryOutcome]:
    """Like ``decode_result`` but also return the recovery outcome behind the result."""

    recorder = recorder if recorder is not None else get_recorder()
    text = _as_text(raw)
    outcome = recover(text, recorder=recorder)

    if outcome.result is not None:
        note = _NOTES.get(outcome.stage)
        return (outcome.result.with_note(note) if note else outcome.result), outcome

    guess = guess_truncation(text)
    logger.warning(
        "Failed to decode tool result (%d chars)%s",
        len(text),
        ": possible truncation, JSON starts but doesn't properly end" if guess.possible_truncation else "",
    )
    _report(recorder, text, stage="fallback", success=False, error=outcome.error, context=guess.to_dict())
    return build_fallback(text, guess), outcome


def recover(raw: Any, *, recorder: Optional[DiagnosticRecorder] = None) -> RecoveryOutcome:
    """Run the recovery chain on ``raw`` and report which stage succeeded."""

    recorder = recorder if recorder is not None else get_recorder()
    text = _as_text(raw)

    try:
        result = parse_tool_result(text)
    except MalformedPayload as exc:
        _report(recorder, text, stage=RecoveryStage.DIRECT.value, success=False, error=exc)
        first_error: PayloadError = exc
    else:
        _report(recorder, text, stage=RecoveryStage.DIRECT.value, success=True)
        return RecoveryOutcome(RecoveryStage.DIRECT, result)

    if not text:
        return RecoveryOutcome(RecoveryStage.EXHAUSTED, error=_exhausted(first_error))

    logger.debug("Standard JSON parsing failed, attempting recovery")
    outcome = _patch_close(text, recorder)
    if outcome is not None:
        return outcome
    outcome = _extract_object(text, recorder)
    if outcome is not None:
        return outcome
    return RecoveryOutcome(RecoveryStage.EXHAUSTED, error=_exhausted(first_error))


def _patch_close(text: str, recorder: DiagnosticRecorder) -> Optional[RecoveryOutcome]:
    if not missing_close(text):
        return None
    logger.debug("Detected potentially truncated JSON without closing brace")
    candidate = text + CLOSE_BRACE
    try:
        result = parse_tool_result(candidate)
    except MalformedPayload as exc:
        error = TruncatedPayload("Appending a closing brace did not produce a valid tool result")
        error.__cause__ = exc.__cause__ or exc
        _report(recorder, candidate, stage=RecoveryStage.PATCHED_CLOSE.value, success=False, error=error)
        return None
    logger.info("Recovered truncated tool result by adding a closing brace")
    _report(recorder, candidate, stage=RecoveryStage.PATCHED_CLOSE.value, success=True)
    return RecoveryOutcome(RecoveryStage.PATCHED_CLOSE, result)


def _extract_object(text: str, recorder: DiagnosticRecorder) -> Optional[RecoveryOutcome]:
    start = embedded_object_start(text)
    if start == -1:
        return None
    candidate = text[start : last_close(text) + 1]
    logger.debug("Attempting to extract complete JSON object from position %d", start)
    try:
        result = _shape_checked(candidate)
    except MalformedPayload as exc:
        _report(
            recorder,
            candidate,
            stage=RecoveryStage.EXTRACTED_OBJECT.value,
            success=False,
            error=exc,
            context={"start": start},
        )
        return None
    logger.info("Extracted a valid JSON object from truncated response")
    _report(recorder, candidate, stage=RecoveryStage.EXTRACTED_OBJECT.value, success=True, context={"start": start})
    return RecoveryOutcome(RecoveryStage.EXTRACTED_OBJECT, result)


def _shape_checked(candidate: str) -> ToolResult:
    """Decode ``candidate`` requiring only the ``output`` and ``metadata`` keys."""

    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError) as exc:
        raise MalformedPayload("Embedded object is not valid JSON") from exc
    if not isinstance(parsed, Mapping) or "output" not in parsed or "metadata" not in parsed:
        raise MalformedPayload("Embedded object lacks 'output' and 'metadata' keys")
    output = parsed["output"]
    return ToolResult(
        output=output if isinstance(output, str) else json.dumps(output, ensure_ascii=False),
        metadata=ExecMetadata.coerce(parsed["metadata"]),
    )


def _exhausted(first_error: PayloadError) -> UnrecoverablePayload:
    error = UnrecoverablePayload("All recovery stages failed")
    error.__cause__ = first_error.__cause__ or first_error
    return error


def _report(recorder: DiagnosticRecorder, candidate: str, **attempt: Any) -> None:
    try:
        recorder.record_parse_attempt(candidate, **attempt)
    except Exception as exc:  # noqa: BLE001 - recorder is caller-supplied
        logger.warning("Diagnostic recorder failed: %s", exc)


def _as_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return raw
    return str(raw)


__all__ = [
    "TRUNCATION_FIXED_NOTE",
    "PARTIAL_RECOVERY_NOTE",
    "RecoveryStage",
    "RecoveryOutcome",
    "decode_result",
    "decode_with_outcome",
    "recover",
]
