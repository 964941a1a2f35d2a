from pathlib import Path

import pytest

from app.config import get_diagnostics_dir, get_log_level, get_probe_output_dir, is_diagnostics_enabled


@pytest.mark.parametrize(
    ("env", "expected"),
    [
        ({}, False),
        ({"DEBUG": ""}, False),
        ({"DEBUG": "0"}, False),
        ({"DEBUG": "False"}, False),
        ({"DEBUG": " off "}, False),
        ({"DEBUG": "1"}, True),
        ({"DEBUG": "true"}, True),
        ({"DEBUG": "verbose"}, True),
    ],
)
def test_diagnostics_switch(env, expected):
    assert is_diagnostics_enabled(env) is expected


def test_diagnostics_dir_defaults_and_override():
    assert get_diagnostics_dir({}) == Path("debug-logs")
    assert get_diagnostics_dir({"DEBUG_LOG_DIR": "/var/tmp/diag"}) == Path("/var/tmp/diag")


def test_probe_output_dir_follows_diagnostics_dir():
    assert get_probe_output_dir({"DEBUG_LOG_DIR": "diag"}) == Path("diag")
    assert get_probe_output_dir({"DEBUG_LOG_DIR": "diag", "PROBE_OUTPUT_DIR": "out"}) == Path("out")


def test_log_level_is_validated():
    assert get_log_level({}) == "INFO"
    assert get_log_level({"LOG_LEVEL": "debug"}) == "DEBUG"
    assert get_log_level({"LOG_LEVEL": "chatty"}) == "INFO"
