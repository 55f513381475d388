"""
Timeline Contracts

These contracts define the data every layer of the replay core exchanges:
recorded edit events, the authors they reference, keyframe checkpoints and
reconstructed document states.

OWNERSHIP:
==========
- Events reference authors by id; events never own authors
- Keyframes are produced by the keyframe store and never altered
- Reconstructed states are values, computed on demand and discarded
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple
from enum import Enum
import base64
import binascii
import gzip
import hashlib
import zlib

from .base import Timestamp
from .delta import ContentDelta, DocumentContent
from .errors import CorruptHistoryError


# =============================================================================
# AUTHORS
# =============================================================================

# Visual tokens resolved once per author at creation time
AUTHOR_PALETTE: Tuple[str, ...] = (
    "author-blue",
    "author-emerald",
    "author-purple",
    "author-orange",
    "author-rose",
    "author-cyan",
    "author-amber",
    "author-indigo",
)


@dataclass(frozen=True)
class Author:
    """A contributor to the tracked document. May have no events yet."""
    id: str
    display_name: str
    color_token: str

    @staticmethod
    def create(author_id: str, display_name: str, ordinal: int = 0,
               color_token: Optional[str] = None) -> Author:
        """Create an author, assigning a palette color if none is given."""
        if not author_id:
            raise ValueError("Author id must be a non-empty string")
        token = color_token or AUTHOR_PALETTE[ordinal % len(AUTHOR_PALETTE)]
        return Author(id=author_id, display_name=display_name or author_id, color_token=token)

    @property
    def initials(self) -> str:
        parts = [p for p in self.display_name.split() if p]
        return "".join(p[0].upper() for p in parts[:2]) or self.id[:2].upper()


# =============================================================================
# EVENTS
# =============================================================================

class ActionType(Enum):
    """Kind of recorded change."""
    ADDED = "added"
    DELETED = "deleted"
    EDITED = "edited"
    FORMATTED = "formatted"
    COMMENT = "comment"


@dataclass(frozen=True)
class PositionHint:
    """UI highlighting locator. Never used for reconstruction."""
    start: int
    end: int

    def to_dict(self) -> Dict[str, int]:
        return {"start": self.start, "end": self.end}


class FlagType(Enum):
    """Kind of review flag. Values are the wire codes."""
    AI_GENERATED = 0
    PLAGIARISM = 1
    OTHER = 2

    @property
    def label(self) -> str:
        return FLAG_LABELS[self]


FLAG_LABELS: Dict[FlagType, str] = {
    FlagType.AI_GENERATED: "AI Generated",
    FlagType.PLAGIARISM: "Plagiarism",
    FlagType.OTHER: "Flagged",
}


@dataclass(frozen=True)
class ReplayFlag:
    """
    A passage flagged for review as of one event.

    start/end address the document content after the flagged event.
    Flags are display data: reconstruction never reads them.
    """
    flag_type: FlagType
    confidence: float  # 0.0 to 1.0
    start: int
    end: int
    flagged_text: str = ""
    flag_id: Optional[int] = None

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("ReplayFlag confidence must be between 0.0 and 1.0")
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid flag range [{self.start}, {self.end})")

    def to_dict(self) -> Dict[str, object]:
        return {
            "flagId": self.flag_id,
            "flagType": self.flag_type.value,
            "confidence": self.confidence,
            "start": self.start,
            "end": self.end,
            "flaggedText": self.flagged_text,
        }


@dataclass(frozen=True)
class TimelineEvent:
    """
    One atomic recorded change.

    INVARIANTS:
    - sequence_index is zero-based and assigned at ingestion
    - timestamps never decrease with sequence_index
    - once appended, an event is never mutated or deleted
    """
    sequence_index: int
    timestamp: Timestamp
    author_id: str
    action_type: ActionType
    content_delta: ContentDelta = field(default_factory=ContentDelta.empty)
    word_count_delta: int = 0
    position_hint: Optional[PositionHint] = None
    description: Optional[str] = None
    flags: Tuple[ReplayFlag, ...] = ()

    def __post_init__(self):
        if not self.author_id:
            raise ValueError("TimelineEvent author_id must be a non-empty string")
        object.__setattr__(self, 'flags', tuple(self.flags))

    @property
    def flag_types(self) -> Tuple[int, ...]:
        """Distinct flag type codes, ascending."""
        return tuple(sorted({f.flag_type.value for f in self.flags}))

    @property
    def summary(self) -> str:
        """Human readable description, derived when none was recorded."""
        if self.description:
            return self.description
        words = abs(self.word_count_delta)
        if self.action_type == ActionType.ADDED:
            return f"Added {words} words"
        if self.action_type == ActionType.DELETED:
            return f"Deleted {words} words"
        if self.action_type == ActionType.EDITED:
            sign = "+" if self.word_count_delta >= 0 else "-"
            return f"Edited text ({sign}{words} words)"
        if self.action_type == ActionType.FORMATTED:
            return "Applied formatting"
        return "Added a comment"

    def fingerprint(self) -> str:
        """Deterministic digest of the event's recorded content."""
        ops = "|".join(repr(sorted(op.to_dict().items())) for op in self.content_delta.ops)
        content = (
            f"{self.sequence_index}|"
            f"{self.timestamp.to_iso()}|"
            f"{self.author_id}|"
            f"{self.action_type.value}|"
            f"{self.word_count_delta}|"
            f"{ops}"
        )
        if self.flags:
            # Flags contribute only when present
            content += "|" + "|".join(repr(sorted(f.to_dict().items())) for f in self.flags)
        return hashlib.sha256(content.encode('utf-8')).hexdigest()


# =============================================================================
# KEYFRAMES
# =============================================================================

def _freeze_counts(counts: Mapping[str, int]) -> Tuple[Tuple[str, int], ...]:
    return tuple(sorted(counts.items()))


def compress_content(text: str) -> str:
    """Gzip then base64 encode, the wire format of stored snapshots."""
    raw = gzip.compress(text.encode('utf-8'), mtime=0)
    return base64.b64encode(raw).decode('ascii')


def decompress_content(encoded: str) -> str:
    """Inverse of compress_content. Undecodable input is corrupt history."""
    if not encoded:
        raise CorruptHistoryError("Keyframe snapshot is empty")
    try:
        raw = base64.b64decode(encoded.encode('ascii'), validate=True)
        return gzip.decompress(raw).decode('utf-8')
    except (binascii.Error, OSError, EOFError, zlib.error, UnicodeError, ValueError) as e:
        raise CorruptHistoryError(f"Keyframe snapshot could not be decoded: {e}") from e


@dataclass(frozen=True)
class Keyframe:
    """
    A checkpoint of full content as of at_index.

    INVARIANT:
    Replaying events (previous.at_index, at_index] onto the previous
    keyframe (or the empty document) yields exactly this content.
    """
    at_index: int
    content: DocumentContent
    word_counts: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)

    @staticmethod
    def empty() -> Keyframe:
        """Synthetic keyframe before the first event."""
        return Keyframe(at_index=-1, content=DocumentContent.empty())

    @staticmethod
    def create(at_index: int, content: DocumentContent,
               word_counts: Mapping[str, int]) -> Keyframe:
        return Keyframe(at_index=at_index, content=content,
                        word_counts=_freeze_counts(word_counts))

    @property
    def is_synthetic(self) -> bool:
        return self.at_index < 0

    @property
    def word_counts_by_author(self) -> Dict[str, int]:
        return dict(self.word_counts)

    @property
    def original_size(self) -> int:
        return len(self.content.text.encode('utf-8'))

    @property
    def compressed_size(self) -> int:
        return len(base64.b64decode(self.compressed_content()))

    def compressed_content(self) -> str:
        return compress_content(self.content.text)


# =============================================================================
# RECONSTRUCTION OUTPUT
# =============================================================================

@dataclass(frozen=True)
class ReconstructedState:
    """
    Full document state at one event index.

    at_index is None only for an empty timeline. flags are those recorded
    on the event at at_index; they do not enter the state hash.
    """
    at_index: Optional[int]
    content: DocumentContent
    word_counts: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)
    keyframe_index: int = -1
    events_replayed: int = 0
    flags: Tuple[ReplayFlag, ...] = ()

    @property
    def word_counts_by_author(self) -> Dict[str, int]:
        return dict(self.word_counts)

    @property
    def total_word_count(self) -> int:
        return sum(count for _, count in self.word_counts)

    @property
    def state_hash(self) -> str:
        """Depends only on index, content and counts."""
        counts = ",".join(f"{a}={c}" for a, c in self.word_counts)
        payload = f"{self.at_index}|{self.content.content_hash}|{counts}"
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()[:16]

    def same_document(self, other: ReconstructedState) -> bool:
        """Compare content and counts, ignoring how the state was reached."""
        return (
            self.at_index == other.at_index
            and self.content == other.content
            and self.word_counts == other.word_counts
        )


@dataclass(frozen=True)
class AuthorStats:
    """Per-author cumulative activity up to an index."""
    author_id: str
    word_count: int
    event_count: int
    last_event_index: Optional[int] = None

    def share_of(self, total_words: int) -> float:
        if total_words <= 0:
            return 0.0
        return self.word_count / total_words
