"""Wire schema for tool-result payloads."""

from __future__ import annotations

import json

from pydantic import BaseModel, StrictFloat, StrictInt, StrictStr

from toolcall.errors import MalformedPayload
from toolcall.types import ExecMetadata, ToolResult


class ExecMetadataPayload(BaseModel):
    exit_code: StrictInt
    duration_seconds: StrictFloat


class ToolResultPayload(BaseModel):
    output: StrictStr
    metadata: ExecMetadataPayload

    def to_result(self) -> ToolResult:
        return ToolResult(
            output=self.output,
            metadata=ExecMetadata(
                exit_code=self.metadata.exit_code,
                duration_seconds=float(self.metadata.duration_seconds),
            ),
        )


def parse_tool_result(text: str) -> ToolResult:
    """Validate ``text`` as a complete tool result or raise ``MalformedPayload``."""

    # json.loads accepts lone-surrogate escapes such as "\udcff"; pydantic's
    # JSON parser does not.
    try:
        parsed = json.loads(text)
        payload = ToolResultPayload.model_validate(parsed)
    except (ValueError, RecursionError) as exc:
        # pydantic's ValidationError is a ValueError.
        raise MalformedPayload("Payload is not a valid tool result") from exc
    return payload.to_result()


__all__ = ["ExecMetadataPayload", "ToolResultPayload", "parse_tool_result"]
