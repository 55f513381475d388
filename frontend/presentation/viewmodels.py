"""
Presentation Contracts

Responsibility:
Define ViewModel contracts for pure UI components.
Strictly decoupled from playback logic; built from DTOs and view state.
"""

from dataclasses import dataclass
from typing import AbstractSet, Optional, Tuple

from frontend.dtos import SnapshotDTO, TimelineDTO, TimelineEventDTO
from frontend.state import StatusIndicator, ViewState
from frontend.visualization.timeline import FALLBACK_COLOR_TOKEN, flag_color_token


@dataclass(frozen=True)
class AuthorBadgeViewModel:
    """ViewModel for one author in the contribution legend."""
    author_id: str
    display_name: str
    initials: str
    color_token: str
    word_count: int
    share_percent: float
    is_dimmed: bool


@dataclass(frozen=True)
class CaptionViewModel:
    """Author caption shown over the document for the current event."""
    author_name: str
    color_token: str
    text: str


@dataclass(frozen=True)
class FlagHighlightViewModel:
    """A flagged span of the displayed content."""
    start: int
    end: int
    label: str
    color_token: str
    confidence_percent: int


@dataclass(frozen=True)
class LoadingStateViewModel:
    """Unified loading state."""
    message: str
    progress: Optional[float]
    is_blocking: bool
    can_retry: bool = False


def _initials(name: str, fallback: str) -> str:
    parts = [p for p in name.split() if p]
    return "".join(p[0].upper() for p in parts[:2]) or fallback[:2].upper()


def author_badges(
    timeline: TimelineDTO,
    snapshot: SnapshotDTO,
    author_filter: AbstractSet[str] = frozenset(),
) -> Tuple[AuthorBadgeViewModel, ...]:
    counts = snapshot.word_counts_by_author
    total = sum(counts.values())
    return tuple(
        AuthorBadgeViewModel(
            author_id=a.author_id,
            display_name=a.display_name,
            initials=_initials(a.display_name, a.author_id),
            color_token=a.color_token,
            word_count=counts.get(a.author_id, 0),
            share_percent=(counts.get(a.author_id, 0) / total * 100.0) if total else 0.0,
            is_dimmed=bool(author_filter) and a.author_id not in author_filter,
        )
        for a in timeline.authors
    )


def caption_for(
    timeline: TimelineDTO,
    event: Optional[TimelineEventDTO],
    view: ViewState,
) -> Optional[CaptionViewModel]:
    """None when captions are hidden or nothing has been played yet."""
    if not view.captions_visible or event is None:
        return None
    author = timeline.author(event.author_id)
    return CaptionViewModel(
        author_name=author.display_name if author else event.author_id,
        color_token=author.color_token if author else FALLBACK_COLOR_TOKEN,
        text=event.description,
    )


def flag_highlights(snapshot: SnapshotDTO) -> Tuple[FlagHighlightViewModel, ...]:
    """Flag spans clipped to the snapshot content, in document order."""
    length = len(snapshot.content)
    highlights = [
        FlagHighlightViewModel(
            start=min(f.start, length),
            end=min(f.end, length),
            label=f.label,
            color_token=flag_color_token(f.flag_type),
            confidence_percent=round(f.confidence * 100),
        )
        for f in snapshot.flags
    ]
    return tuple(sorted(
        (h for h in highlights if h.end > h.start),
        key=lambda h: (h.start, h.end),
    ))


def loading_state(view: ViewState) -> Optional[LoadingStateViewModel]:
    if view.status == StatusIndicator.LOADING:
        return LoadingStateViewModel(message="Loading timeline…", progress=None, is_blocking=False)
    if view.retry_available:
        return LoadingStateViewModel(
            message=view.status_message or "Failed to load timeline",
            progress=None,
            is_blocking=False,
            can_retry=True,
        )
    return None
