"""Best-effort diagnostic capture for payload decoding.

Every decode attempt, command execution and suspicious tool output can be
written to a directory of timestamped JSON records so truncated or corrupted
model responses can be triaged after the fact. Capture is gated by the
process-wide ``DEBUG`` switch (see ``app.config``) and never affects the
caller: writes happen on a background worker, and any failure to write is
reduced to a single warning line.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Set

from app.config import get_diagnostics_dir, is_diagnostics_enabled
from toolcall.errors import describe_error
from toolcall.structure import (
    StructureSignature,
    closes_before_last_open,
    count_control_chars,
    size_info,
)

logger = logging.getLogger(__name__)

EXCERPT_THRESHOLD = 1000
EXCERPT_EDGE = 500
SIZE_LIMIT_CHARS = 100_000


def _utc_now() -> str:
    """WHAT: produce ISO-8601 UTC timestamps for diagnostic records.

    WHY: timestamps double as file-name keys, so every record must use the
    same format and precision.
    HOW: wrap ``datetime.now(tz=UTC).isoformat`` at millisecond precision.
    """

    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def _file_stamp(timestamp: str) -> str:
    return timestamp.replace(":", "-")


def excerpt(text: str) -> Any:
    """Return ``text`` unchanged, or its head and tail when it is long."""

    if len(text) > EXCERPT_THRESHOLD:
        return {"start": text[:EXCERPT_EDGE], "end": text[-EXCERPT_EDGE:]}
    return text


@dataclass
class ParseAttemptRecord:
    timestamp: str
    stage: str
    success: bool
    input_size: int
    structural_signature: Dict[str, int]
    sample: Any
    error_detail: Optional[Dict[str, Any]] = None
    context: Optional[Dict[str, Any]] = None

    @classmethod
    def new(
        cls,
        candidate: str,
        *,
        stage: str,
        success: bool,
        error: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> "ParseAttemptRecord":
        return cls(
            timestamp=_utc_now(),
            stage=stage,
            success=success,
            input_size=len(candidate),
            structural_signature=StructureSignature.of(candidate).to_dict(),
            sample=excerpt(candidate),
            error_detail=describe_error(error),
            context=dict(context) if context else None,
        )


@dataclass
class CommandExecutionRecord:
    timestamp: str
    command: str
    output_length: int
    exit_code: int
    duration_seconds: float
    output_preview: Any

    @classmethod
    def new(cls, command: Sequence[str], output: str, exit_code: int, duration_seconds: float) -> "CommandExecutionRecord":
        return cls(
            timestamp=_utc_now(),
            command=" ".join(command),
            output_length=len(output),
            exit_code=exit_code,
            duration_seconds=duration_seconds,
            output_preview=excerpt(output),
        )


@dataclass
class OutputAnalysisRecord:
    """Size and structure findings for one tool call's arguments and output."""

    timestamp: str
    function_name: str
    arguments_length: int
    output_length: int
    size_analysis: Dict[str, Dict[str, float]]
    potential_issues: List[str] = field(default_factory=list)

    @classmethod
    def analyze(cls, name: str, args_text: str, output_text: str) -> "OutputAnalysisRecord":
        record = cls(
            timestamp=_utc_now(),
            function_name=name,
            arguments_length=len(args_text),
            output_length=len(output_text),
            size_analysis={
                "arguments": size_info(args_text),
                "output": size_info(output_text),
            },
        )
        record.potential_issues.extend(find_output_issues(output_text))
        return record


def find_output_issues(output: str) -> List[str]:
    """List the human-readable problems found in a tool output."""

    issues: List[str] = []
    if len(output) > SIZE_LIMIT_CHARS:
        issues.append("Output exceeds 100KB - may hit size limits")
    if closes_before_last_open(output):
        issues.append("JSON appears to be truncated - missing closing braces")
    signature = StructureSignature.of(output)
    if not signature.balanced:
        issues.append(
            f"Unbalanced JSON structure: {signature.open_braces} open braces "
            f"vs {signature.close_braces} close braces"
        )
    control_chars = count_control_chars(output)
    if control_chars:
        issues.append(f"Contains {control_chars} control characters that may corrupt JSON")
    return issues


class DiagnosticRecorder(Protocol):
    def record_parse_attempt(
        self,
        candidate: str,
        *,
        stage: str,
        success: bool,
        error: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ...

    def record_command_execution(
        self,
        command: Sequence[str],
        output: str,
        exit_code: int,
        duration_seconds: float,
    ) -> None:
        ...

    def record_output_anomalies(self, name: str, args_text: str, output_text: str) -> None:
        ...


class NullDiagnosticRecorder:
    """Recorder that drops everything; used when capture is not wanted at all."""

    def record_parse_attempt(self, candidate, *, stage, success, error=None, context=None) -> None:
        return None

    def record_command_execution(self, command, output, exit_code, duration_seconds) -> None:
        return None

    def record_output_anomalies(self, name, args_text, output_text) -> None:
        return None


class FileDiagnosticRecorder:
    """WHAT: write diagnostic records as JSON files under a log directory.

    WHY: decode failures caused by truncated responses are only reproducible
    from the exact text the model produced, so it has to be kept somewhere.
    HOW: check the diagnostic switch on every call, build a record dataclass,
    and hand the file write to a single background worker. Raw payloads go to
    separate ``.txt`` artifacts without excerpting.
    """

    def __init__(
        self,
        log_dir: Path | None = None,
        *,
        enabled: Callable[[], bool] | None = None,
        background: bool = True,
    ) -> None:
        self._log_dir = log_dir
        self._enabled = enabled or is_diagnostics_enabled
        self._background = background
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self._enabled())

    @property
    def log_dir(self) -> Path:
        return self._log_dir if self._log_dir is not None else get_diagnostics_dir()

    # --- Entry points -------------------------------------------------------
    def record_parse_attempt(
        self,
        candidate: str,
        *,
        stage: str,
        success: bool,
        error: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        if not self.enabled:
            return
        record = ParseAttemptRecord.new(candidate, stage=stage, success=success, error=error, context=context)
        logger.debug(
            "JSON parse %s at stage %s (%d chars), structure %s",
            "succeeded" if success else "failed",
            stage,
            record.input_size,
            record.structural_signature,
        )
        if error is not None and not success:
            logger.debug("Parse error: %s", error)

        self._submit(self._write_record, "json-parse-success" if success else "json-parse-error", asdict(record))
        if not success:
            self._submit(self._write_raw, "failed-json-raw", candidate)

    def record_command_execution(
        self,
        command: Sequence[str],
        output: str,
        exit_code: int,
        duration_seconds: float,
    ) -> None:
        if not self.enabled:
            return
        record = CommandExecutionRecord.new(command, output, exit_code, duration_seconds)
        logger.debug("Command executed: %s", record.command)
        logger.debug(
            "Exit code: %s, Duration: %ss, Output length: %d chars",
            exit_code,
            duration_seconds,
            record.output_length,
        )
        self._submit(self._write_record, "command-output", asdict(record))

    def record_output_anomalies(self, name: str, args_text: str, output_text: str) -> None:
        if not self.enabled:
            return
        record = OutputAnalysisRecord.analyze(name, args_text, output_text)
        logger.debug(
            "Tool call analysis for %s: arguments %d chars, output %d chars",
            name,
            record.arguments_length,
            record.output_length,
        )
        for issue in record.potential_issues:
            logger.debug("Potential issue: %s", issue)

        self._submit(self._write_record, "tool-call-analysis", asdict(record))
        if record.potential_issues:
            self._submit(self._write_raw, "problematic-tool-output", output_text)

    def flush(self, timeout: float | None = None) -> None:
        """Block until every queued write has finished (or ``timeout`` elapses)."""

        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        self.flush()
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    # --- Persistence --------------------------------------------------------
    def _submit(self, writer: Callable[[str, Any], None], category: str, payload: Any) -> None:
        if not self._background:
            writer(category, payload)
            return
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="diagnostics")
            executor = self._executor
        try:
            future = executor.submit(writer, category, payload)
        except RuntimeError as exc:
            # Interpreter shutdown; the record is lost.
            logger.warning("Failed to queue diagnostic %s: %s", category, exc)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _target(self, category: str, suffix: str, timestamp: str) -> Path:
        directory = self.log_dir
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"{category}-{_file_stamp(timestamp)}{suffix}"

    def _write_record(self, category: str, payload: Dict[str, Any]) -> None:
        try:
            path = self._target(category, ".json", payload.get("timestamp") or _utc_now())
            content = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
            path.write_text(content, encoding="utf-8", errors="backslashreplace")
        except (OSError, ValueError) as exc:
            logger.warning("Failed to write diagnostic log %s: %s", category, exc)
            return
        logger.debug("Log written to %s", path)

    def _write_raw(self, category: str, content: str) -> None:
        try:
            path = self._target(category, ".txt", _utc_now())
            path.write_text(content, encoding="utf-8", errors="backslashreplace")
        except (OSError, ValueError) as exc:
            logger.warning("Failed to write raw diagnostic content %s: %s", category, exc)
            return
        logger.debug("Raw content written to %s", path)


_default_recorder: Optional[DiagnosticRecorder] = None


def get_recorder() -> DiagnosticRecorder:
    """Return the process-wide recorder, creating a file recorder on first use."""

    global _default_recorder
    if _default_recorder is None:
        _default_recorder = FileDiagnosticRecorder()
    return _default_recorder


def set_recorder(recorder: Optional[DiagnosticRecorder]) -> None:
    """Replace the process-wide recorder (``None`` restores the lazy default)."""

    global _default_recorder
    _default_recorder = recorder


__all__ = [
    "ParseAttemptRecord",
    "CommandExecutionRecord",
    "OutputAnalysisRecord",
    "DiagnosticRecorder",
    "NullDiagnosticRecorder",
    "FileDiagnosticRecorder",
    "excerpt",
    "find_output_issues",
    "get_recorder",
    "set_recorder",
]
