"""
Timeline Reconstructor
======================

Maps an event index to full document content and per-author word counts.

ALGORITHM:
1. Find the nearest keyframe at or before the index
2. Read events (keyframe.at_index, index] from the log
3. Fold them, in sequence order, onto the keyframe's content and counts

GUARANTEES:
===========
- Pure: no state is kept between calls beyond what log and store hold
- Idempotent: repeated calls with no appends give byte-identical output
- Keyframe-independent: the result equals a full replay from index 0
- Loud: inconsistent history raises CorruptHistoryError, never clamps
"""

from __future__ import annotations
from typing import Callable, Iterable, Optional, Tuple
import logging

from ..contracts.delta import DocumentContent, TextDiff, compute_diff
from ..contracts.errors import InvalidIndexError
from ..contracts.events import ReconstructedState
from .derivation import fold_events
from .event_log import EventLog
from .keyframes import KeyframeStore

logger = logging.getLogger(__name__)


AuthorIdsProvider = Callable[[], Iterable[str]]


class TimelineReconstructor:
    """
    Stateless reconstruction over a log and its keyframe store.

    Any number of reconstructors (or controllers using one) may read the
    same log and store concurrently; none of them write.
    """

    def __init__(
        self,
        log: EventLog,
        store: KeyframeStore,
        known_author_ids: Optional[AuthorIdsProvider] = None,
    ):
        self._log = log
        self._store = store
        self._known_author_ids = known_author_ids or (lambda: ())

    @property
    def log(self) -> EventLog:
        return self._log

    def _seed_counts(self, counts: dict) -> dict:
        for author_id in self._known_author_ids():
            counts.setdefault(author_id, 0)
        return counts

    def _empty_state(self) -> ReconstructedState:
        counts = self._seed_counts({})
        return ReconstructedState(
            at_index=None,
            content=DocumentContent.empty(),
            word_counts=tuple(sorted(counts.items())),
        )

    def resolve_index(self, index: int) -> Optional[int]:
        """
        Validate and clamp an index against the current log.

        Negative indices are rejected; indices past the end clamp to the
        last event. Returns None for an empty log.
        """
        if index < 0:
            raise InvalidIndexError(
                f"Reconstruction index must be non-negative, got {index}",
                {"index": index},
            )
        count = self._log.count()
        if count == 0:
            return None
        return min(index, count - 1)

    def reconstruct(self, index: int) -> ReconstructedState:
        """Document state after applying events [0..index]."""
        target = self.resolve_index(index)
        if target is None:
            return self._empty_state()

        keyframe = self._store.nearest_keyframe_at_or_before(target)
        if keyframe.at_index < target:
            events = self._log.range(keyframe.at_index + 1, target)
        else:
            events = ()

        result = fold_events(
            keyframe.content,
            self._seed_counts(keyframe.word_counts_by_author),
            events,
        )

        logger.debug(
            "Reconstructed %d from keyframe %d (+%d events)",
            target, keyframe.at_index, result.events_applied,
        )
        return ReconstructedState(
            at_index=target,
            content=result.content,
            word_counts=result.word_counts,
            keyframe_index=keyframe.at_index,
            events_replayed=result.events_applied,
            flags=self._log.get(target).flags,
        )

    def full_replay(self, index: int) -> ReconstructedState:
        """
        Reconstruct by folding every event from the empty document.

        Ignores keyframes entirely; used to check keyframe consistency.
        """
        target = self.resolve_index(index)
        if target is None:
            return self._empty_state()

        result = fold_events(
            DocumentContent.empty(),
            self._seed_counts({}),
            self._log.range(0, target),
        )
        return ReconstructedState(
            at_index=target,
            content=result.content,
            word_counts=result.word_counts,
            keyframe_index=-1,
            events_replayed=result.events_applied,
            flags=self._log.get(target).flags,
        )

    def diff_between(self, from_index: int, to_index: int) -> TextDiff:
        """Added/removed spans between two reconstructed indices."""
        before = self.reconstruct(from_index).content.text
        after = self.reconstruct(to_index).content.text
        return compute_diff(before, after)

    def verify_determinism(self, index: int) -> Tuple[bool, Optional[str]]:
        """
        Verify that reconstruction is repeatable and keyframe-independent.

        Returns (is_consistent, difference_description).
        """
        first = self.reconstruct(index)
        second = self.reconstruct(index)
        if first.state_hash != second.state_hash:
            return (False, f"Repeated reconstruction differs: {first.state_hash} != {second.state_hash}")

        baseline = self.full_replay(index)
        if not first.same_document(baseline):
            return (False, f"Keyframe path differs from full replay at {first.at_index}")
        return (True, None)
