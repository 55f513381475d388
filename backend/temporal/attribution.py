"""
Author Attribution Index
========================

Per-author statistics and a display-only author filter.

BOUNDARY:
- Word counts come from the reconstructor, never from separate
  bookkeeping, so statistics cannot drift from reconstructed content
- The filter only decides which authors' events are emphasized and which
  are dimmed. It NEVER changes what content is reconstructed.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import logging

from ..contracts.events import Author, AuthorStats, TimelineEvent
from .event_log import EventLog
from .reconstruction import TimelineReconstructor

logger = logging.getLogger(__name__)


class Emphasis(Enum):
    HIGHLIGHTED = "highlighted"
    DIMMED = "dimmed"


@dataclass(frozen=True)
class AuthorFilter:
    """
    Active attribution filter.

    An empty selection means "all authors": nothing is dimmed.
    """
    author_ids: FrozenSet[str] = field(default_factory=frozenset)

    @staticmethod
    def all_authors() -> AuthorFilter:
        return AuthorFilter()

    @property
    def is_active(self) -> bool:
        return bool(self.author_ids)

    def emphasis_for(self, author_id: str) -> Emphasis:
        if not self.author_ids or author_id in self.author_ids:
            return Emphasis.HIGHLIGHTED
        return Emphasis.DIMMED

    def is_emphasized(self, author_id: str) -> bool:
        return self.emphasis_for(author_id) == Emphasis.HIGHLIGHTED


class AuthorIndex:
    """Author registry plus statistics derived from the log and reconstructor."""

    def __init__(
        self,
        log: EventLog,
        reconstructor: TimelineReconstructor,
        authors: Iterable[Author] = (),
    ):
        self._log = log
        self._reconstructor = reconstructor
        self._authors: Dict[str, Author] = {}
        for author in authors:
            self.register(author)

    # =========================================================================
    # REGISTRY
    # =========================================================================

    def register(self, author: Author) -> Author:
        """Register an author. Re-registering the same id keeps the first entry."""
        existing = self._authors.get(author.id)
        if existing is not None:
            return existing
        self._authors[author.id] = author
        return author

    @property
    def authors(self) -> Tuple[Author, ...]:
        return tuple(self._authors.values())

    def author_ids(self) -> Tuple[str, ...]:
        return tuple(self._authors)

    def author(self, author_id: str) -> Author:
        """Registered author, or a placeholder for an id seen only in events."""
        found = self._authors.get(author_id)
        if found is not None:
            return found
        return Author.create(author_id, author_id, ordinal=len(self._authors))

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def stats_as_of(self, index: int) -> Dict[str, AuthorStats]:
        """
        Cumulative word count and event count per author up to index.

        Index handling follows reconstruct(): negative raises
        InvalidIndexError, past-the-end clamps.
        """
        state = self._reconstructor.reconstruct(index)
        word_counts = state.word_counts_by_author

        event_counts: Dict[str, int] = {}
        last_seen: Dict[str, int] = {}
        if state.at_index is not None:
            for event in self._log.range(0, state.at_index):
                event_counts[event.author_id] = event_counts.get(event.author_id, 0) + 1
                last_seen[event.author_id] = event.sequence_index

        ids: List[str] = list(self._authors)
        for author_id in sorted(set(word_counts) | set(event_counts)):
            if author_id not in self._authors:
                ids.append(author_id)

        return {
            author_id: AuthorStats(
                author_id=author_id,
                word_count=word_counts.get(author_id, 0),
                event_count=event_counts.get(author_id, 0),
                last_event_index=last_seen.get(author_id),
            )
            for author_id in ids
        }

    def contribution_shares(self, index: int) -> Dict[str, float]:
        """Fraction of the total word count owned by each author."""
        stats = self.stats_as_of(index)
        total = sum(s.word_count for s in stats.values())
        return {author_id: s.share_of(total) for author_id, s in stats.items()}

    # =========================================================================
    # FILTER (display only)
    # =========================================================================

    def make_filter(self, author_ids: Optional[Iterable[str]]) -> AuthorFilter:
        """
        Build a filter emphasizing the given authors. None or empty selects everyone.

        Nothing is stored here: each playback controller owns its filter,
        so viewers of the same document never see each other's selection.
        """
        selected = frozenset(author_ids or ())
        unknown = selected - set(self._authors)
        if unknown:
            logger.warning("Filter references unregistered authors: %s", sorted(unknown))
        return AuthorFilter(author_ids=selected)

    @staticmethod
    def emphasis_for(event: TimelineEvent, author_filter: AuthorFilter) -> Emphasis:
        return author_filter.emphasis_for(event.author_id)
