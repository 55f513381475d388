"""
Replay Error Taxonomy

Every failure the replay core can surface is one of these exceptions.
Each exception carries an ErrorCode and can be turned into an immutable
Error record, so the same failure can be raised at the boundary where it
happens and stored or serialized where it is reported.

PROPAGATION:
============
- Event log and reconstruction raise loudly (no masking, no clamping)
- Playback controller clamps positions and reports refused operations
  as data instead of raising
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Dict, Optional

from .base import Error, ErrorCode


class ReplayError(Exception):
    """Base class for all replay core failures."""

    code: ErrorCode = ErrorCode.INVALID_STATE_TRANSITION

    def __init__(self, message: str, context: Optional[Dict[str, object]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, str] = {
            k: str(v) for k, v in (context or {}).items()
        }

    def to_error(self) -> Error:
        """Convert to the immutable error record."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=datetime.now(timezone.utc),
            context=tuple(sorted(self.context.items())),
        )


class OutOfOrderError(ReplayError):
    """
    Ingestion violated sequence or timestamp monotonicity.

    Fatal to that append only; the log is left untouched.
    """
    code = ErrorCode.OUT_OF_ORDER


class RangeError(ReplayError, IndexError):
    """Invalid log slice request. Recoverable by re-requesting."""
    code = ErrorCode.INVALID_RANGE


class InvalidIndexError(ReplayError, ValueError):
    """Negative reconstruction index. Indicates a caller bug."""
    code = ErrorCode.INVALID_INDEX


class CorruptHistoryError(ReplayError):
    """
    Recorded history is internally inconsistent.

    Raised when a cumulative word count would go negative or a content
    delta addresses text that does not exist. Never repaired silently.
    """
    code = ErrorCode.CORRUPT_HISTORY

    def __init__(
        self,
        message: str,
        at_index: Optional[int] = None,
        context: Optional[Dict[str, object]] = None,
    ):
        merged = dict(context or {})
        if at_index is not None:
            merged["at_index"] = at_index
        super().__init__(message, merged)
        self.at_index = at_index


class EmptyTimelineError(ReplayError):
    """Playback requested on a timeline with no events."""
    code = ErrorCode.EMPTY_TIMELINE


class LoadError(ReplayError):
    """Remote fetch of a timeline or snapshot failed."""
    code = ErrorCode.LOAD_FAILED

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = True,
        context: Optional[Dict[str, object]] = None,
    ):
        merged = dict(context or {})
        if status_code is not None:
            merged["status_code"] = status_code
        super().__init__(message, merged)
        self.status_code = status_code
        self.retryable = retryable


class FileNotFoundInRepositoryError(ReplayError, KeyError):
    """No tracked document is registered under the requested file id."""
    code = ErrorCode.FILE_NOT_FOUND

    def __str__(self) -> str:
        return self.message


class SessionNotFoundError(ReplayError, KeyError):
    """No work session of the document has the requested id."""
    code = ErrorCode.SESSION_NOT_FOUND

    def __str__(self) -> str:
        return self.message
