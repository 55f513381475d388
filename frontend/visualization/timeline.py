"""
Timeline Visualization Contracts

Responsibility:
Deterministic transformation of a TimelineDTO and playback position into
a renderable scrubber.
Input: TimelineDTO + PlaybackState -> Output: RenderedTimeline
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from typing import AbstractSet, Dict, Optional, Tuple

from backend.contracts.events import FlagType
from backend.temporal.playback import PlaybackState
from frontend.dtos import TimelineDTO

FALLBACK_COLOR_TOKEN = "author-gray"

FLAG_COLOR_TOKENS: Dict[int, str] = {
    FlagType.AI_GENERATED.value: "flag-violet",
    FlagType.PLAGIARISM.value: "flag-red",
    FlagType.OTHER.value: "flag-amber",
}


def marker_position(index: int, total_events: int) -> float:
    """Percent offset of an event along the scrubber: index / max(1, n-1) * 100."""
    return index / max(1, total_events - 1) * 100.0


@dataclass(frozen=True)
class TimelineMarker:
    """One event tick on the scrubber."""
    index: int
    position: float         # 0-100 percent
    is_keyframe: bool
    author_id: str
    color_token: str
    emphasized: bool        # False when dimmed by the author filter
    label: str
    has_flags: bool = False
    flag_types: Tuple[int, ...] = ()


@dataclass(frozen=True)
class RenderedTimeline:
    """
    Fully calculated scrubber.

    DETERMINISTIC:
    Same timeline + same playback state = identical view.
    """
    markers: Tuple[TimelineMarker, ...]
    current_index: Optional[int]
    playhead_position: float
    elapsed_seconds: float
    total_seconds: float


def build_markers(
    timeline: TimelineDTO,
    author_filter: AbstractSet[str] = frozenset(),
) -> Tuple[TimelineMarker, ...]:
    """
    Markers for every event of the listing.

    An empty filter emphasizes every author; otherwise authors outside
    the filter are dimmed. The set of markers never depends on the filter.
    Positions follow the order within the listing, so a windowed listing
    spans the whole scrubber while markers keep their sequence indices.
    """
    colors = {a.author_id: a.color_token for a in timeline.authors}
    n = len(timeline.events)
    return tuple(
        TimelineMarker(
            index=event.sequence_index,
            position=marker_position(ordinal, n),
            is_keyframe=event.is_keyframe,
            author_id=event.author_id,
            color_token=colors.get(event.author_id, FALLBACK_COLOR_TOKEN),
            emphasized=not author_filter or event.author_id in author_filter,
            label=event.description,
            has_flags=event.has_flags,
            flag_types=event.flag_types,
        )
        for ordinal, event in enumerate(timeline.events)
    )


def listing_ordinal(timeline: TimelineDTO, index: int) -> int:
    """Position in the listing of the last event at or before index (0 if none)."""
    indices = [event.sequence_index for event in timeline.events]
    return max(0, bisect_right(indices, index) - 1)


def render_timeline(timeline: TimelineDTO, state: PlaybackState) -> RenderedTimeline:
    markers = build_markers(timeline, state.active_author_filter)
    if state.current_index is None or not timeline.events:
        return RenderedTimeline(
            markers=markers, current_index=None, playhead_position=0.0,
            elapsed_seconds=0.0, total_seconds=0.0,
        )
    events = timeline.events
    ordinal = listing_ordinal(timeline, state.current_index)
    origin = events[0].seconds_from_start
    return RenderedTimeline(
        markers=markers,
        current_index=events[ordinal].sequence_index,
        playhead_position=marker_position(ordinal, len(events)),
        elapsed_seconds=events[ordinal].seconds_from_start - origin,
        total_seconds=events[-1].seconds_from_start - origin,
    )


def flag_color_token(flag_type: int) -> str:
    return FLAG_COLOR_TOKENS.get(flag_type, FLAG_COLOR_TOKENS[FlagType.OTHER.value])


def format_elapsed(seconds: float) -> str:
    """m:ss, or h:mm:ss past an hour."""
    total = int(max(0.0, seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
