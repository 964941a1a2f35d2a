from toolcall.structure import (
    StructureSignature,
    closes_before_last_open,
    count_control_chars,
    embedded_object_start,
    match_braces,
    missing_close,
    size_info,
)


def test_signature_counts_delimiters():
    signature = StructureSignature.of('{"a": [1, {"b": "c"}]')

    assert signature.to_dict() == {
        "open_braces": 2,
        "close_braces": 1,
        "open_brackets": 1,
        "close_brackets": 1,
        "quotes": 6,
    }
    assert signature.balanced is False


def test_match_braces_pairs_nested_objects():
    assert match_braces("{a{b}c}") == {0: 6, 2: 4}
    assert match_braces("}{") == {}
    assert match_braces("{{}") == {1: 2}


def test_embedded_object_start_prefers_earliest_closed_object():
    text = 'xx{"a": {"b": 1}} {"c": 2}'

    assert embedded_object_start(text) == 2
    assert embedded_object_start("{{}") == 1
    assert embedded_object_start("no objects") == -1
    assert embedded_object_start("} {") == -1


def test_missing_close_detects_unclosed_outer_object():
    assert missing_close('{"a": {"b": 1}') is True
    assert missing_close('{"a": 1} {') is True
    assert missing_close('{"a": 1}') is False
    assert missing_close("plain") is False


def test_closes_before_last_open():
    assert closes_before_last_open('{"a": 1} {') is True
    assert closes_before_last_open('{"a": {"b": 1}') is False
    assert closes_before_last_open("}") is False


def test_control_characters_are_counted():
    assert count_control_chars("a\nb\tc\x00\x7f\x9f") == 5
    assert count_control_chars("clean") == 0


def test_size_info_estimates_tokens():
    info = size_info("héllo")

    assert info["bytes"] == 6
    assert info["tokens"] == 2
    assert info["kb"] == 0.01
