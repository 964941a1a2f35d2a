"""Extract the command a model asked to run from its tool-call arguments."""

from __future__ import annotations

import json
import logging
import math
import shlex
from typing import Any, List, Mapping, Optional

from toolcall.errors import InvalidArgumentShape
from toolcall.types import CommandDescriptor, CommandReview

logger = logging.getLogger(__name__)

_SHELL_WRAPPERS = {"bash", "sh", "zsh"}
_SHELL_SCRIPT_FLAGS = {"-c", "-lc"}


def decode_arguments(raw: Any) -> Optional[CommandDescriptor]:
    """Return the command described by ``raw`` or ``None`` when it carries none.

    ``raw`` must be a JSON object with a ``cmd`` (preferred) or ``command``
    array of strings. ``workdir`` is kept only when it is a string and
    ``timeout`` (milliseconds) only when it is a non-negative number.
    Malformed input is never repaired.
    """

    try:
        data = json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        logger.info("Failed to parse tool call arguments: %.200r", raw)
        return None
    if not isinstance(data, dict):
        return None

    try:
        cmd = _command_tokens(data)
    except InvalidArgumentShape as exc:
        logger.info("Ignoring tool call arguments: %s", exc)
        return None

    workdir = data.get("workdir")
    return CommandDescriptor(
        cmd=cmd,
        workdir=workdir if isinstance(workdir, str) else None,
        timeout_ms=_timeout_ms(data.get("timeout")),
    )


def parse_tool_call(tool_call: Any) -> Optional[CommandReview]:
    """Decode a function call into the command to run and its display text.

    ``tool_call`` may be the raw arguments string, a mapping with an
    ``arguments`` key, or any object with an ``arguments`` attribute.
    """

    if isinstance(tool_call, (str, bytes, bytearray)):
        arguments = tool_call
    elif isinstance(tool_call, Mapping):
        arguments = tool_call.get("arguments")
    else:
        arguments = getattr(tool_call, "arguments", None)

    descriptor = decode_arguments(arguments)
    if descriptor is None:
        return None
    return CommandReview(cmd=descriptor.cmd, cmd_readable_text=format_command_for_display(descriptor.cmd))


def format_command_for_display(cmd: List[str]) -> str:
    """Render ``cmd`` for an approval prompt.

    A ``bash -lc <script>`` style wrapper is shown as the inner script; any
    other command is shell-quoted and joined.
    """

    if len(cmd) == 3 and cmd[0].rsplit("/", 1)[-1] in _SHELL_WRAPPERS and cmd[1] in _SHELL_SCRIPT_FLAGS:
        return cmd[2]
    return shlex.join(cmd)


def _command_tokens(data: Mapping[str, Any]) -> List[str]:
    for key in ("cmd", "command"):
        tokens = _string_list(data.get(key))
        if tokens is not None:
            return tokens
    raise InvalidArgumentShape("neither 'cmd' nor 'command' is an array of strings")


def _string_list(value: Any) -> Optional[List[str]]:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    return None


def _timeout_ms(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value < 0:
        return None
    return int(value)


__all__ = ["decode_arguments", "parse_tool_call", "format_command_for_display"]
