"""
State Derivation
================

Pure functions that fold edit events onto a base document state.

INVARIANT: fold_events(base, events) is a PURE FUNCTION
Same base + same events -> identical content and counts.

This module DOES NOT store state. Both the keyframe store and the
reconstructor go through it, so a keyframe and a reconstruction of the
same index can never disagree about how an event is applied.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Tuple

from ..contracts.delta import DeltaError, DocumentContent
from ..contracts.errors import CorruptHistoryError
from ..contracts.events import TimelineEvent


@dataclass(frozen=True)
class FoldResult:
    content: DocumentContent
    word_counts: Tuple[Tuple[str, int], ...]
    events_applied: int


def apply_event(
    content: DocumentContent,
    counts: Dict[str, int],
    event: TimelineEvent,
) -> DocumentContent:
    """
    Apply one event. Mutates `counts` in place, returns the new content.

    Raises CorruptHistoryError if the delta does not fit the document or
    the author's cumulative word count would drop below zero.
    """
    try:
        content = event.content_delta.apply(content)
    except DeltaError as e:
        raise CorruptHistoryError(
            f"Event {event.sequence_index} delta does not apply: {e}",
            at_index=event.sequence_index,
            context={"author_id": event.author_id},
        ) from e

    updated = counts.get(event.author_id, 0) + event.word_count_delta
    if updated < 0:
        raise CorruptHistoryError(
            f"Word count for author {event.author_id} would become {updated} "
            f"at event {event.sequence_index}",
            at_index=event.sequence_index,
            context={"author_id": event.author_id, "word_count": updated},
        )
    counts[event.author_id] = updated
    return content


def fold_events(
    content: DocumentContent,
    counts: Mapping[str, int],
    events: Iterable[TimelineEvent],
) -> FoldResult:
    """Apply events in order onto a copy of the base state."""
    working = dict(counts)
    applied = 0
    for event in events:
        content = apply_event(content, working, event)
        applied += 1
    return FoldResult(
        content=content,
        word_counts=tuple(sorted(working.items())),
        events_applied=applied,
    )
