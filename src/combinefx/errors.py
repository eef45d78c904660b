"""Error taxonomy for combinefx.

Failures travel through streams as ``Failed(error)`` events. The error is
always a CombineError subclass so subscribers can tell a misused stream
(InvalidState, raised synchronously) apart from a failure that arrived
through the pipeline (UpstreamFailed, ProducerError).
"""

from __future__ import annotations


class CombineError(Exception):
    """Base class for every error raised or delivered by combinefx."""


class InvalidState(CombineError):
    """A subject was asked to emit after it already terminated."""


class UpstreamFailed(CombineError):
    """A source failed; wraps the original cause."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.__cause__ = cause

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.cause!r})"


class ProducerError(UpstreamFailed):
    """A Future's producer reported (or raised) a failure."""


class HttpError(CombineError):
    """HTTP fetch collaborator: transport error or non-2xx status."""

    def __init__(self, url: str, status: int | None = None, reason: str = "") -> None:
        detail = f"HTTP {status}" if status is not None else "transport error"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(f"{detail} ({url})")
        self.url = url
        self.status = status
        self.reason = reason


class DecodeError(CombineError):
    """Decode collaborator: payload could not be turned into the target type."""


def as_upstream_failure(error: BaseException) -> CombineError:
    """Wrap a foreign exception as UpstreamFailed; CombineErrors pass through."""
    if isinstance(error, CombineError):
        return error
    return UpstreamFailed(error)
