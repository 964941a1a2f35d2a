"""Exercise the tool-result decoder with large and truncated payloads.

Generates synthetic command output of several sizes, wraps it in the tool
result wire shape, and runs it (intact or cut at typical truncation points)
through ``decode_result`` with diagnostics switched on. Decoded results are
written next to the diagnostic records so both can be compared side by side.
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import string
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from app.config import get_diagnostics_dir, get_log_level, get_probe_output_dir
from toolcall.argument_decoder import parse_tool_call
from toolcall.diagnostics import FileDiagnosticRecorder
from toolcall.result_decoder import decode_result, decode_with_outcome
from toolcall.types import ToolResult

PROBE_SIZES: Tuple[Tuple[str, int], ...] = (
    ("small", 1_000),
    ("medium", 50_000),
    ("large", 100_000),
    ("very-large", 200_000),
)
_ALPHABET = string.ascii_letters + string.digits
_LINE_WIDTH = 80


def generate_test_output(length: int, *, rng: Optional[random.Random] = None) -> str:
    """Return a tool result JSON string whose ``output`` is roughly ``length`` chars."""

    rng = rng or random.Random()
    lines: List[str] = []
    produced = 0
    while produced < length - 100:
        line = "".join(rng.choice(_ALPHABET) for _ in range(_LINE_WIDTH))
        lines.append(line + "\n")
        produced += _LINE_WIDTH + 1
    return json.dumps(
        {
            "output": "".join(lines),
            "metadata": {"exit_code": 0, "duration_seconds": 1.234},
        }
    )


def truncation_variants(payload: str) -> List[str]:
    """Cut ``payload`` at the points a budget-limited response usually stops."""

    return [
        payload[:-1],
        payload[:-5],
        payload[: payload.rfind("}")],
        payload[: payload.rfind('"') + 1],
    ]


def _write_result(output_dir: Path, name: str, result: ToolResult) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{name}-result.json"
    path.write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def run_size_probes(
    output_dir: Path,
    recorder: FileDiagnosticRecorder,
    *,
    sizes: Sequence[Tuple[str, int]] = PROBE_SIZES,
    seed: Optional[int] = None,
) -> Dict[str, str]:
    """Decode an intact payload per size; return the recovery condition per size."""

    rng = random.Random(seed)
    summary: Dict[str, str] = {}
    for label, length in sizes:
        payload = generate_test_output(length, rng=rng)
        result, outcome = decode_with_outcome(payload, recorder=recorder)
        _write_result(output_dir, f"test-{label}", result)
        summary[label] = outcome.condition
        print(f"{label} ({len(payload)} chars): {outcome.condition}")
    return summary


def run_truncation_probes(
    output_dir: Path,
    recorder: FileDiagnosticRecorder,
    *,
    length: int = 10_000,
    seed: Optional[int] = None,
) -> Dict[str, str]:
    """Decode the truncated variants of one payload; return the condition per variant."""

    payload = generate_test_output(length, rng=random.Random(seed))
    summary: Dict[str, str] = {}
    for index, truncated in enumerate(truncation_variants(payload), start=1):
        name = f"test-truncated-{index}"
        output_dir.mkdir(parents=True, exist_ok=True)
        (output_dir / f"{name}-raw.json").write_text(truncated, encoding="utf-8")
        result, outcome = decode_with_outcome(truncated, recorder=recorder)
        _write_result(output_dir, name, result)
        summary[name] = outcome.condition
        print(f"truncation type {index}: {outcome.condition}")
    return summary


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Probe the tool result and argument decoders")
    parser.add_argument("--output-dir", type=Path, default=None, help="Where decoded results are written.")
    parser.add_argument("--log-dir", type=Path, default=None, help="Where diagnostic records are written.")
    parser.add_argument("--seed", type=int, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sizes", help="Decode intact payloads of increasing size.")
    trunc_parser = sub.add_parser("truncations", help="Decode a payload cut at common truncation points.")
    trunc_parser.add_argument("--length", type=int, default=10_000)
    decode_parser = sub.add_parser("decode", help="Decode a tool result payload read from a file.")
    decode_parser.add_argument("input", type=Path)
    args_parser = sub.add_parser("args", help="Decode tool call arguments read from a file.")
    args_parser.add_argument("input", type=Path)

    args = parser.parse_args(argv)
    logging.basicConfig(level=get_log_level(), format="%(levelname)s %(name)s: %(message)s")

    log_dir = args.log_dir or get_diagnostics_dir()
    output_dir = args.output_dir or get_probe_output_dir()
    recorder = FileDiagnosticRecorder(log_dir, enabled=lambda: True)
    print(f"Debug logs will be saved to {log_dir}")

    try:
        if args.command == "sizes":
            run_size_probes(output_dir, recorder, seed=args.seed)
        elif args.command == "truncations":
            run_truncation_probes(output_dir, recorder, length=args.length, seed=args.seed)
        elif args.command == "decode":
            result = decode_result(args.input.read_bytes(), recorder=recorder)
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        elif args.command == "args":
            review = parse_tool_call(args.input.read_text(encoding="utf-8"))
            if review is None:
                print("No actionable command in arguments.")
                return 1
            print(review.cmd_readable_text)
        else:  # pragma: no cover - safeguarded by argparse
            parser.error("Unknown command")
    finally:
        recorder.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
