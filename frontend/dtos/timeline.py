"""
Timeline DTOs

Read-only views of the replay API payloads.

CONTENT BOUNDARY:
=================
TimelineDTO carries event metadata only. Document content exists on the
frontend solely as SnapshotDTO, one per requested event index.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from .core import DTOVersion


@dataclass(frozen=True)
class AuthorDTO:
    author_id: str
    display_name: str
    color_token: str


@dataclass(frozen=True)
class TimelineEventDTO:
    """One event of the timeline listing. No content delta."""
    sequence_index: int
    timestamp: datetime
    author_id: str
    action_type: str
    word_count_delta: int
    description: str
    seconds_from_start: float = 0.0
    is_keyframe: bool = False
    position_hint: Optional[Tuple[int, int]] = None
    flag_types: Tuple[int, ...] = ()

    @property
    def has_flags(self) -> bool:
        return bool(self.flag_types)


@dataclass(frozen=True)
class TimelineDTO:
    dto_version: DTOVersion
    file_id: str
    file_name: str
    project_name: str
    authors: Tuple[AuthorDTO, ...]
    events: Tuple[TimelineEventDTO, ...]
    total_events: int
    keyframe_count: int = 0
    keyframe_interval: int = 0
    document_events: int = 0
    session_id: Optional[str] = None
    corrupt_at: Optional[int] = None

    def __post_init__(self):
        if self.dto_version != DTOVersion.current():
            raise ValueError(f"Unknown DTO version: {self.dto_version}")

    def author(self, author_id: str) -> Optional[AuthorDTO]:
        for author in self.authors:
            if author.author_id == author_id:
                return author
        return None

    @property
    def is_empty(self) -> bool:
        return self.total_events == 0

    @property
    def is_windowed(self) -> bool:
        return self.total_events != self.document_events


@dataclass(frozen=True)
class FlagDTO:
    """A flagged passage of the snapshot content."""
    flag_type: int
    label: str
    confidence: float
    start: int
    end: int
    flagged_text: str = ""
    flag_id: Optional[int] = None


@dataclass(frozen=True)
class SnapshotDTO:
    """Reconstructed document at one event index."""
    dto_version: DTOVersion
    event_index: Optional[int]
    content: str
    word_counts: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)
    total_word_count: int = 0
    state_hash: str = ""
    flags: Tuple[FlagDTO, ...] = ()

    @property
    def word_counts_by_author(self) -> Dict[str, int]:
        return dict(self.word_counts)


@dataclass(frozen=True)
class DiffSpanDTO:
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class DiffDTO:
    from_index: int
    to_index: int
    added: Tuple[DiffSpanDTO, ...]
    removed: Tuple[DiffSpanDTO, ...]


@dataclass(frozen=True)
class SessionDTO:
    session_id: str
    start_index: int
    end_index: int
    start_time: datetime
    end_time: datetime
    duration_seconds: float
    event_count: int
    author_ids: Tuple[str, ...] = ()
