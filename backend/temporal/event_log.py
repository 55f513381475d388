"""
Immutable Event Log
===================

Append-only edit event storage for one tracked document.

INVARIANTS:
- No updates or deletes - append only
- sequence_index of the next event is exactly count()
- timestamps are non-decreasing (ties allowed, reordering not)
- Hash chain for integrity verification

This is the SOURCE OF TRUTH for all document state.
Keyframes and reconstructions are DERIVED from this log, never the reverse.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple
from datetime import datetime, timezone
import logging

from ..contracts.base import Timestamp, Error, ErrorCode
from ..contracts.delta import ContentDelta
from ..contracts.errors import OutOfOrderError, RangeError
from ..contracts.events import ActionType, PositionHint, TimelineEvent
from ..contracts.temporal import LogEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogState:
    """
    Immutable snapshot of log state.

    WHY THIS TYPE:
    - Captures log state at a point in time
    - Lets readers detect appends between two calls
    """
    entry_count: int
    head_hash: str
    last_timestamp: Optional[Timestamp]

    @staticmethod
    def empty() -> 'LogState':
        return LogState(entry_count=0, head_hash="", last_timestamp=None)


class EventLog:
    """
    Append-only event log.

    GUARANTEES:
    ===========
    1. NO updates - entries are immutable once written
    2. NO deletes - log only grows
    3. Ordered - sequence and timestamp monotonicity enforced on append
    4. Verifiable - hash chain ensures integrity
    5. Snapshot reads - range() never aliases internal storage

    EXPLICIT FAILURE STATES:
    - OutOfOrderError: sequence gap/duplicate or timestamp regression
    - RangeError: invalid slice bounds
    """

    def __init__(self, document_id: str = ""):
        self._document_id = document_id
        # Internal storage (append-only list)
        self._entries: List[LogEntry] = []
        self._head_hash = ""

    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def state(self) -> LogState:
        """Get current log state (immutable snapshot)."""
        return LogState(
            entry_count=len(self._entries),
            head_hash=self._head_hash,
            last_timestamp=self._entries[-1].event.timestamp if self._entries else None,
        )

    def count(self) -> int:
        """Total number of events."""
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def last_index(self) -> Optional[int]:
        return len(self._entries) - 1 if self._entries else None

    # =========================================================================
    # WRITE
    # =========================================================================

    def append(self, event: TimelineEvent) -> LogEntry:
        """
        Append event to log.

        This is the ONLY write operation.
        Raises OutOfOrderError without touching the log if the event's
        sequence_index is not exactly count() or its timestamp precedes
        the last appended event.
        """
        expected = len(self._entries)
        if event.sequence_index != expected:
            raise OutOfOrderError(
                f"Expected sequence_index {expected}, got {event.sequence_index}",
                {"expected": expected, "actual": event.sequence_index,
                 "document_id": self._document_id},
            )

        if self._entries:
            last = self._entries[-1].event.timestamp
            if event.timestamp < last:
                raise OutOfOrderError(
                    f"Event {event.sequence_index} timestamp {event.timestamp.to_iso()} "
                    f"precedes last appended {last.to_iso()}",
                    {"sequence_index": event.sequence_index,
                     "document_id": self._document_id},
                )

        entry = LogEntry.create(event=event, previous_hash=self._head_hash)

        # Append to log (this is the only mutation)
        self._entries.append(entry)
        self._head_hash = entry.entry_hash

        logger.debug("Appended event %d to %s", event.sequence_index, self._document_id or "log")
        return entry

    def record(
        self,
        timestamp: Timestamp,
        author_id: str,
        action_type: ActionType,
        content_delta: Optional[ContentDelta] = None,
        word_count_delta: int = 0,
        position_hint: Optional[PositionHint] = None,
        description: Optional[str] = None,
    ) -> LogEntry:
        """Build an event with the next sequence index and append it."""
        event = TimelineEvent(
            sequence_index=len(self._entries),
            timestamp=timestamp,
            author_id=author_id,
            action_type=action_type,
            content_delta=content_delta or ContentDelta.empty(),
            word_count_delta=word_count_delta,
            position_hint=position_hint,
            description=description,
        )
        return self.append(event)

    # =========================================================================
    # READ
    # =========================================================================

    def range(self, from_index: int, to_index: int) -> Tuple[TimelineEvent, ...]:
        """
        Events in [from_index, to_index], inclusive.

        Returns a tuple, so later appends can never change a slice a
        caller is still holding.
        """
        count = len(self._entries)
        if from_index < 0 or to_index < from_index or to_index >= count:
            raise RangeError(
                f"Invalid range [{from_index}, {to_index}] for log of {count} events",
                {"from_index": from_index, "to_index": to_index, "count": count},
            )
        return tuple(entry.event for entry in self._entries[from_index:to_index + 1])

    def get(self, index: int) -> TimelineEvent:
        """Single event by sequence index."""
        return self.range(index, index)[0]

    def events(self) -> Tuple[TimelineEvent, ...]:
        """Snapshot of every event."""
        return tuple(entry.event for entry in self._entries)

    def replay(self, from_index: int = 0, until_index: Optional[int] = None) -> Iterator[TimelineEvent]:
        """
        Iterate events in sequence order over a snapshot of the bounds.

        Args:
            from_index: Start from this index (inclusive)
            until_index: Stop at this index (inclusive), None = end
        """
        if not self._entries:
            return iter(())
        end = self.last_index if until_index is None else until_index
        return iter(self.range(from_index, end))

    @property
    def first_timestamp(self) -> Optional[Timestamp]:
        return self._entries[0].event.timestamp if self._entries else None

    def seconds_from_start(self, index: int) -> float:
        """Elapsed recorded time between the first event and `index`."""
        event = self.get(index)
        return event.timestamp.seconds_since(self._entries[0].event.timestamp)

    # =========================================================================
    # INTEGRITY
    # =========================================================================

    def verify_integrity(self) -> Tuple[bool, Optional[Error]]:
        """
        Verify hash chain integrity.

        Returns (is_valid, error) tuple.
        Error contains details if integrity check fails.
        """
        expected_previous = ""

        for entry in self._entries:
            if entry.previous_hash != expected_previous:
                return (False, Error(
                    code=ErrorCode.CORRUPT_HISTORY,
                    message=f"Hash chain broken at sequence {entry.sequence_index}",
                    timestamp=datetime.now(timezone.utc),
                    context=(
                        ("expected_hash", expected_previous),
                        ("actual_hash", entry.previous_hash),
                    )
                ))
            recomputed = LogEntry.compute_hash(entry.event, entry.previous_hash)
            if recomputed != entry.entry_hash:
                return (False, Error(
                    code=ErrorCode.CORRUPT_HISTORY,
                    message=f"Entry hash mismatch at sequence {entry.sequence_index}",
                    timestamp=datetime.now(timezone.utc),
                ))
            expected_previous = entry.entry_hash

        return (True, None)
