"""
Work Sessions and Timeline Windows
==================================

Sessions are derived from event timestamps: a pause longer than the
session gap closes one session and the next event opens another.
Nothing about sessions is stored; the same log always yields the same
sessions.

A TimelineWindow narrows a timeline listing to one session, a time
range and/or a maximum number of events. Windows select events; they
never renumber them, so a windowed listing keeps the sequence indices
that snapshots and playback use.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from ..contracts.base import Timestamp
from ..contracts.errors import RangeError, SessionNotFoundError
from ..contracts.events import TimelineEvent


DEFAULT_SESSION_GAP_SECONDS = 30 * 60


@dataclass(frozen=True)
class WorkSession:
    """A run of events with no pause longer than the session gap."""
    session_id: str
    start_index: int
    end_index: int
    start_time: Timestamp
    end_time: Timestamp
    author_ids: Tuple[str, ...] = ()

    @property
    def event_count(self) -> int:
        return self.end_index - self.start_index + 1

    @property
    def duration_seconds(self) -> float:
        return self.end_time.seconds_since(self.start_time)

    def contains(self, index: int) -> bool:
        return self.start_index <= index <= self.end_index


def session_id_for(ordinal: int) -> str:
    return f"s{ordinal + 1}"


def derive_sessions(
    events: Sequence[TimelineEvent],
    gap_seconds: float = DEFAULT_SESSION_GAP_SECONDS,
) -> Tuple[WorkSession, ...]:
    """Split an ordered event sequence into work sessions."""
    if gap_seconds <= 0:
        raise ValueError("Session gap must be positive")

    sessions: List[WorkSession] = []
    run: List[TimelineEvent] = []

    def close_run() -> None:
        authors = tuple(dict.fromkeys(e.author_id for e in run))
        sessions.append(WorkSession(
            session_id=session_id_for(len(sessions)),
            start_index=run[0].sequence_index,
            end_index=run[-1].sequence_index,
            start_time=run[0].timestamp,
            end_time=run[-1].timestamp,
            author_ids=authors,
        ))

    for event in events:
        if run and event.timestamp.seconds_since(run[-1].timestamp) > gap_seconds:
            close_run()
            run = []
        run.append(event)
    if run:
        close_run()
    return tuple(sessions)


@dataclass(frozen=True)
class TimelineWindow:
    """
    Selection over a timeline listing.

    All bounds are optional and combine: session, then time range
    (inclusive), then the first `limit` events of what remains.
    """
    session_id: Optional[str] = None
    start_time: Optional[Timestamp] = None
    end_time: Optional[Timestamp] = None
    limit: Optional[int] = None

    def __post_init__(self):
        if self.limit is not None and self.limit < 1:
            raise RangeError(f"Window limit must be at least 1, got {self.limit}", {"limit": self.limit})
        if self.start_time is not None and self.end_time is not None and self.end_time < self.start_time:
            raise RangeError(
                "Window end_time precedes start_time",
                {"start_time": self.start_time.to_iso(), "end_time": self.end_time.to_iso()},
            )

    @property
    def is_unbounded(self) -> bool:
        return (
            self.session_id is None and self.start_time is None
            and self.end_time is None and self.limit is None
        )

    def select(
        self,
        events: Sequence[TimelineEvent],
        sessions: Iterable[WorkSession] = (),
    ) -> Tuple[TimelineEvent, ...]:
        """
        Events inside the window, in sequence order.

        Raises SessionNotFoundError when session_id names no session.
        """
        selected: Sequence[TimelineEvent] = events
        if self.session_id is not None:
            session = next((s for s in sessions if s.session_id == self.session_id), None)
            if session is None:
                raise SessionNotFoundError(
                    f"No work session with id {self.session_id!r}", {"session_id": self.session_id},
                )
            selected = [e for e in selected if session.contains(e.sequence_index)]
        if self.start_time is not None:
            selected = [e for e in selected if self.start_time <= e.timestamp]
        if self.end_time is not None:
            selected = [e for e in selected if e.timestamp <= self.end_time]
        if self.limit is not None:
            selected = selected[:self.limit]
        return tuple(selected)
