"""Delimiter analysis shared by the decoder, the fallback builder and diagnostics.

Everything here works on raw characters and deliberately ignores JSON string
quoting: a brace inside a string literal counts like any other. The payloads
being inspected are, by definition, not valid JSON, so a tokenizer would not
be able to tell us more.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass
from typing import Dict, List

OPEN_BRACE = "{"
CLOSE_BRACE = "}"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


@dataclass(frozen=True)
class StructureSignature:
    """Counts of structural characters, kept for postmortem triage."""

    open_braces: int
    close_braces: int
    open_brackets: int
    close_brackets: int
    quotes: int

    @classmethod
    def of(cls, text: str) -> "StructureSignature":
        return cls(
            open_braces=text.count("{"),
            close_braces=text.count("}"),
            open_brackets=text.count("["),
            close_brackets=text.count("]"),
            quotes=text.count('"'),
        )

    @property
    def balanced(self) -> bool:
        return self.open_braces == self.close_braces

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def last_open(text: str) -> int:
    return text.rfind(OPEN_BRACE)


def last_close(text: str) -> int:
    return text.rfind(CLOSE_BRACE)


def closes_before_last_open(text: str) -> bool:
    """Return True when an object was opened after the last closing brace."""

    opened = last_open(text)
    return opened != -1 and last_close(text) < opened


def missing_close(text: str) -> bool:
    """Return True when ``text`` looks cut off before its outermost object closed."""

    if OPEN_BRACE not in text:
        return False
    if closes_before_last_open(text):
        return True
    return text.count(OPEN_BRACE) > text.count(CLOSE_BRACE)


def match_braces(text: str) -> Dict[int, int]:
    """Map each opening brace index to the index where its depth returns to zero.

    Unmatched closing braces are skipped; unmatched opening braces are left out
    of the result.
    """

    matches: Dict[int, int] = {}
    stack: List[int] = []
    for index, char in enumerate(text):
        if char == OPEN_BRACE:
            stack.append(index)
        elif char == CLOSE_BRACE and stack:
            matches[stack.pop()] = index
    return matches


def embedded_object_start(text: str) -> int:
    """Return the earliest ``{`` that closes at or before the last ``}``, or -1."""

    closing = last_close(text)
    if closing == -1:
        return -1
    matches = match_braces(text[: closing + 1])
    if not matches:
        return -1
    return min(matches)


def count_control_chars(text: str) -> int:
    return len(_CONTROL_CHARS.findall(text))


def size_info(text: str) -> Dict[str, float]:
    """Return byte size, kilobytes and a rough token estimate (4 chars per token)."""

    size = len(text.encode("utf-8", errors="surrogatepass"))
    return {
        "bytes": size,
        "kb": round(size / 1024, 2),
        "tokens": math.ceil(len(text) / 4),
    }


__all__ = [
    "OPEN_BRACE",
    "CLOSE_BRACE",
    "StructureSignature",
    "last_open",
    "last_close",
    "closes_before_last_open",
    "missing_close",
    "match_braces",
    "embedded_object_start",
    "count_control_chars",
    "size_info",
]
