import pytest

from toolcall.fallback import (
    PARSE_FAILURE_MESSAGE,
    TRUNCATED_MESSAGE,
    TruncationGuess,
    build_fallback,
    guess_truncation,
)
from toolcall.types import ExecMetadata


def test_failure_literals_are_stable():
    assert TRUNCATED_MESSAGE == (
        "Response appears to be truncated due to token limits. "
        "Try a smaller command output or check logs for details."
    )
    assert PARSE_FAILURE_MESSAGE == "Failed to parse JSON result. Check logs for details."


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('{"output": "partial', True),
        ('{"output": "x"} and more', True),
        ('{"output": "x"}', False),
        ("", False),
        ("no braces here", False),
        ("ends with }", False),
    ],
)
def test_guess_truncation(raw, expected):
    assert guess_truncation(raw).possible_truncation is expected


def test_guess_records_brace_positions():
    guess = guess_truncation('ab{"x": 1}c')

    assert guess == TruncationGuess(possible_truncation=True, length=11, first_open=2, last_close=9)
    assert guess.to_dict()["first_open"] == 2


def test_build_fallback_picks_message_from_guess():
    truncated = build_fallback('{"output": "cut')
    generic = build_fallback("garbage")

    assert truncated.output == TRUNCATED_MESSAGE
    assert generic.output == PARSE_FAILURE_MESSAGE
    assert truncated.metadata == generic.metadata == ExecMetadata(exit_code=1, duration_seconds=0)


def test_build_fallback_trusts_supplied_guess():
    guess = TruncationGuess(possible_truncation=False, length=3, first_open=0, last_close=-1)

    assert build_fallback('{"a', guess).output == PARSE_FAILURE_MESSAGE
