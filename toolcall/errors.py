"""Error taxonomy for payload decoding.

The decoders never let these escape their public functions. They are raised
inside the individual recovery stages, caught at the decoder boundary and
handed to the diagnostic recorder as the ``error_detail`` of an attempt.
"""

from __future__ import annotations

from typing import Any, Dict


class PayloadError(ValueError):
    """Base class for payloads that could not be turned into a typed value."""

    condition = "payload_error"

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"name": type(self).__name__, "message": str(self)}
        cause = self.__cause__
        if cause is not None:
            detail["cause"] = {"name": type(cause).__name__, "message": str(cause)}
        return detail


class MalformedPayload(PayloadError):
    """Raised when a payload does not decode into the expected structure."""

    condition = "malformed"


class TruncatedPayload(MalformedPayload):
    """Raised when a payload opens an object that never closes."""

    condition = "truncated"


class UnrecoverablePayload(PayloadError):
    """Raised once every recovery stage has been exhausted."""

    condition = "unrecoverable"


class InvalidArgumentShape(PayloadError):
    """Raised when tool arguments do not carry a usable command array."""

    condition = "invalid_argument_shape"


def describe_error(error: BaseException | None) -> Dict[str, Any] | None:
    """Return a JSON-friendly description of ``error`` for diagnostic records."""

    if error is None:
        return None
    if isinstance(error, PayloadError):
        return error.to_detail()
    return {"name": type(error).__name__, "message": str(error)}


__all__ = [
    "PayloadError",
    "MalformedPayload",
    "TruncatedPayload",
    "UnrecoverablePayload",
    "InvalidArgumentShape",
    "describe_error",
]
