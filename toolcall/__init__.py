"""Decode model-issued tool results and tool arguments without ever raising.

The public surface is re-exported here so callers can depend on the package
rather than its module layout.
"""

from toolcall.argument_decoder import decode_arguments, format_command_for_display, parse_tool_call  # noqa: F401
from toolcall.diagnostics import (  # noqa: F401
    DiagnosticRecorder,
    FileDiagnosticRecorder,
    NullDiagnosticRecorder,
    get_recorder,
    set_recorder,
)
from toolcall.fallback import build_fallback, guess_truncation  # noqa: F401
from toolcall.result_decoder import RecoveryOutcome, RecoveryStage, decode_result, decode_with_outcome, recover  # noqa: F401
from toolcall.types import CommandDescriptor, CommandReview, ExecMetadata, ToolResult  # noqa: F401
