import json
import logging
import threading
import time
from itertools import count
from pathlib import Path

import pytest

from toolcall import diagnostics
from toolcall.diagnostics import FileDiagnosticRecorder, NullDiagnosticRecorder, excerpt, find_output_issues
from toolcall.errors import MalformedPayload
from toolcall.result_decoder import decode_result

TRUNCATED_PAYLOAD = '{"output":"hello","metadata":{"exit_code":0,"duration_seconds":1.5}'


def _files(directory: Path, prefix: str):
    return sorted(directory.glob(f"{prefix}-*"))


def _load(directory: Path, prefix: str):
    matches = _files(directory, prefix)
    assert matches, f"no {prefix} record in {directory}"
    return json.loads(matches[-1].read_text(encoding="utf-8"))


def _exercise(recorder) -> None:
    recorder.record_parse_attempt("{", stage="direct", success=False, error=ValueError("boom"))
    recorder.record_command_execution(["ls"], "out", 0, 0.1)
    recorder.record_output_anomalies("shell", "{}", "{\n")


@pytest.fixture
def sync_recorder(tmp_path):
    return FileDiagnosticRecorder(tmp_path / "debug-logs", enabled=lambda: True, background=False)


def test_disabled_recorder_performs_no_io(tmp_path):
    log_dir = tmp_path / "debug-logs"
    recorder = FileDiagnosticRecorder(log_dir, enabled=lambda: False, background=False)

    for _ in range(3):
        _exercise(recorder)

    assert not log_dir.exists()


def test_switch_is_read_from_environment_on_every_call(tmp_path, monkeypatch):
    log_dir = tmp_path / "env-logs"
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.setenv("DEBUG_LOG_DIR", str(log_dir))
    recorder = FileDiagnosticRecorder(background=False)

    _exercise(recorder)
    assert not log_dir.exists()

    monkeypatch.setenv("DEBUG", "1")
    recorder.record_command_execution(["pwd"], "/tmp", 0, 0.0)
    assert _files(log_dir, "command-output")


def test_default_recorder_is_silent_without_switch(tmp_path, monkeypatch):
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.setenv("DEBUG_LOG_DIR", str(tmp_path / "logs"))
    diagnostics.set_recorder(None)
    try:
        decode_result(TRUNCATED_PAYLOAD)
        decode_result("garbage")
        diagnostics.get_recorder().record_output_anomalies("shell", "{}", "{")
        diagnostics.get_recorder().flush()
    finally:
        diagnostics.set_recorder(None)

    assert not (tmp_path / "logs").exists()


def test_null_recorder_accepts_all_entry_points():
    _exercise(NullDiagnosticRecorder())


def test_successful_parse_attempt_is_written(sync_recorder):
    sync_recorder.record_parse_attempt('{"a": [1]}', stage="direct", success=True)

    record = _load(sync_recorder.log_dir, "json-parse-success")
    assert record["stage"] == "direct"
    assert record["success"] is True
    assert record["input_size"] == 10
    assert record["sample"] == '{"a": [1]}'
    assert record["error_detail"] is None
    assert record["structural_signature"]["open_brackets"] == 1
    assert not _files(sync_recorder.log_dir, "failed-json-raw")


def test_failed_parse_attempt_keeps_full_raw_body(sync_recorder):
    body = "{" + "x" * 5_000
    try:
        raise MalformedPayload("Payload is not a valid tool result") from ValueError("Expecting value")
    except MalformedPayload as exc:
        error = exc

    sync_recorder.record_parse_attempt(body, stage="patched_close", success=False, error=error, context={"start": 0})

    record = _load(sync_recorder.log_dir, "json-parse-error")
    assert record["sample"] == {"start": body[:500], "end": body[-500:]}
    assert record["error_detail"]["name"] == "MalformedPayload"
    assert record["error_detail"]["cause"]["name"] == "ValueError"
    assert record["context"] == {"start": 0}
    raw = _files(sync_recorder.log_dir, "failed-json-raw")
    assert raw and raw[-1].suffix == ".txt"
    assert raw[-1].read_text(encoding="utf-8") == body


def test_record_names_have_no_colons(sync_recorder):
    sync_recorder.record_command_execution(["echo", "hi"], "hi\n", 0, 0.01)

    (path,) = _files(sync_recorder.log_dir, "command-output")
    assert ":" not in path.name
    assert path.name.endswith(".json")


def test_command_execution_record(sync_recorder):
    output = "y" * 1_500

    sync_recorder.record_command_execution(["ls", "-la"], output, 2, 0.5)

    record = _load(sync_recorder.log_dir, "command-output")
    assert record["command"] == "ls -la"
    assert record["output_length"] == 1_500
    assert record["exit_code"] == 2
    assert record["duration_seconds"] == 0.5
    assert record["output_preview"] == {"start": "y" * 500, "end": "y" * 500}


def test_clean_output_writes_analysis_only(sync_recorder):
    sync_recorder.record_output_anomalies("shell", '{"cmd": ["ls"]}', '{"output": "ok"}')

    record = _load(sync_recorder.log_dir, "tool-call-analysis")
    assert record["function_name"] == "shell"
    assert record["potential_issues"] == []
    assert record["size_analysis"]["arguments"]["tokens"] == 4
    assert not _files(sync_recorder.log_dir, "problematic-tool-output")


def test_problematic_output_is_flagged_and_saved(sync_recorder):
    output = '{"output": {"nested": 1}\n{'

    sync_recorder.record_output_anomalies("shell", "{}", output)

    record = _load(sync_recorder.log_dir, "tool-call-analysis")
    issues = record["potential_issues"]
    assert "JSON appears to be truncated - missing closing braces" in issues
    assert "Unbalanced JSON structure: 3 open braces vs 1 close braces" in issues
    assert "Contains 1 control characters that may corrupt JSON" in issues
    (raw,) = _files(sync_recorder.log_dir, "problematic-tool-output")
    assert raw.read_text(encoding="utf-8") == output


def test_large_output_is_flagged():
    issues = find_output_issues("x" * 100_001)

    assert issues == ["Output exceeds 100KB - may hit size limits"]
    assert find_output_issues("x" * 100_000) == []


def test_excerpt_threshold():
    assert excerpt("a" * 1_000) == "a" * 1_000
    assert excerpt("a" * 1_001) == {"start": "a" * 500, "end": "a" * 500}


def test_unwritable_log_dir_is_reported_not_raised(tmp_path, caplog):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied", encoding="utf-8")
    recorder = FileDiagnosticRecorder(blocker, enabled=lambda: True, background=False)

    with caplog.at_level(logging.WARNING, logger="toolcall.diagnostics"):
        _exercise(recorder)
        result = decode_result(TRUNCATED_PAYLOAD, recorder=recorder)

    assert result.output.startswith("hello")
    assert "Failed to write diagnostic log" in caplog.text
    assert "Failed to write raw diagnostic content" in caplog.text


def test_background_writes_complete_after_flush(tmp_path):
    recorder = FileDiagnosticRecorder(tmp_path / "bg", enabled=lambda: True)
    try:
        decode_result(TRUNCATED_PAYLOAD, recorder=recorder)
        recorder.flush(timeout=10)
    finally:
        recorder.close()

    assert _files(tmp_path / "bg", "json-parse-error")
    assert _files(tmp_path / "bg", "failed-json-raw")
    assert _files(tmp_path / "bg", "json-parse-success")


def test_record_file_name_matches_record_timestamp(sync_recorder, monkeypatch):
    ticks = count()
    monkeypatch.setattr(diagnostics, "_utc_now", lambda: f"2024-01-01T00:00:{next(ticks):02d}.000+00:00")

    sync_recorder.record_parse_attempt("{", stage="direct", success=False)

    record_path = _files(sync_recorder.log_dir, "json-parse-error")[-1]
    record = json.loads(record_path.read_text(encoding="utf-8"))
    assert record["timestamp"] == "2024-01-01T00:00:00.000+00:00"
    assert record_path.name == "json-parse-error-2024-01-01T00-00-00.000+00-00.json"
    (raw,) = _files(sync_recorder.log_dir, "failed-json-raw")
    assert raw.name == "failed-json-raw-2024-01-01T00-00-01.000+00-00.txt"


def test_concurrent_first_writes_share_one_worker_pool(tmp_path, monkeypatch):
    created = []

    class SlowExecutor(diagnostics.ThreadPoolExecutor):
        def __init__(self, *args, **kwargs):
            created.append(self)
            time.sleep(0.05)
            super().__init__(*args, **kwargs)

    monkeypatch.setattr(diagnostics, "ThreadPoolExecutor", SlowExecutor)
    recorder = FileDiagnosticRecorder(tmp_path / "bg", enabled=lambda: True)
    barrier = threading.Barrier(8)

    def write(index):
        barrier.wait()
        recorder.record_command_execution(["echo", str(index)], "out", 0, 0.0)

    threads = [threading.Thread(target=write, args=(index,)) for index in range(8)]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
    finally:
        recorder.close()

    assert len(created) == 1
    assert created[0]._shutdown
