"""
Test Fixtures

Deterministic histories and factories shared by every test package.
All timestamps are fixed - no wall-clock reads.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from backend.contracts.base import Timestamp
from backend.contracts.delta import ContentDelta, DocumentContent, count_words
from backend.contracts.errors import CorruptHistoryError
from backend.contracts.events import ActionType, Author, TimelineEvent
from backend.engine import DocumentReplayBackend, ReplayConfig
from backend.storage import FileStorageBackend
from backend.temporal.event_log import EventLog
from backend.temporal.keyframes import FixedIntervalPolicy, KeyframeStore
from backend.temporal.reconstruction import TimelineReconstructor


# =============================================================================
# FIXED TIMESTAMPS (deterministic)
# =============================================================================

EPOCH = datetime(2026, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


def ts(seconds: float) -> Timestamp:
    return Timestamp(value=EPOCH + timedelta(seconds=seconds))


ALICE = Author.create("alice", "Alice Chen", ordinal=0)
BOB = Author.create("bob", "Bob Rivera", ordinal=1)
CAROL = Author.create("carol", "Carol Singh", ordinal=2)


# =============================================================================
# HISTORY BUILDER
# =============================================================================

class HistoryBuilder:
    """
    Builds a valid event history while tracking the expected document.

    Word count deltas are derived from the text before and after each
    edit, so histories built here always reconstruct cleanly.
    """

    def __init__(self, start_seconds: float = 0.0, spacing: float = 30.0):
        self.events: List[TimelineEvent] = []
        self.content = DocumentContent.empty()
        self.counts: Dict[str, int] = {}
        self._seconds = start_seconds
        self._spacing = spacing

    def _emit(self, author_id: str, action: ActionType, delta: ContentDelta) -> TimelineEvent:
        after = delta.apply(self.content)
        word_delta = count_words(after.text) - count_words(self.content.text)
        event = TimelineEvent(
            sequence_index=len(self.events),
            timestamp=ts(self._seconds),
            author_id=author_id,
            action_type=action,
            content_delta=delta,
            word_count_delta=word_delta,
        )
        self.events.append(event)
        self.content = after
        self.counts[author_id] = self.counts.get(author_id, 0) + word_delta
        self._seconds += self._spacing
        return event

    def add(self, author_id: str, words: str) -> TimelineEvent:
        """Append words at the end of the document."""
        text = words if not self.content.text else " " + words
        return self._emit(author_id, ActionType.ADDED, ContentDelta.insert(len(self.content.text), text))

    def insert(self, author_id: str, position: int, text: str) -> TimelineEvent:
        return self._emit(author_id, ActionType.EDITED, ContentDelta.insert(position, text))

    def delete_tail(self, author_id: str, length: int) -> TimelineEvent:
        start = len(self.content.text) - length
        return self._emit(author_id, ActionType.DELETED, ContentDelta.delete(start, length))

    def format(self, author_id: str, start: int, end: int, style: str = "bold") -> TimelineEvent:
        return self._emit(author_id, ActionType.FORMATTED, ContentDelta.format(start, end, style))

    def comment(self, author_id: str) -> TimelineEvent:
        return self._emit(author_id, ActionType.COMMENT, ContentDelta.empty())


def build_replay(
    events: List[TimelineEvent],
    interval: int = 5,
    authors: Tuple[Author, ...] = (),
) -> Tuple[EventLog, KeyframeStore, TimelineReconstructor]:
    """Log + keyframe store + reconstructor fed with `events` in order."""
    log = EventLog(document_id="doc-test")
    store = KeyframeStore(log, FixedIntervalPolicy(interval))
    ids = tuple(a.id for a in authors)
    reconstructor = TimelineReconstructor(log, store, known_author_ids=lambda: ids)
    for event in events:
        log.append(event)
        store.record_keyframe_if_due(event)
    return log, store, reconstructor


def seven_event_history() -> HistoryBuilder:
    """Three events by alice, four by bob."""
    h = HistoryBuilder()
    h.add("alice", "The river")          # 0 A
    h.add("bob", "ran quietly")          # 1 B
    h.add("alice", "through town")       # 2 A
    h.add("bob", "every spring")         # 3 B
    h.format("bob", 0, 9, "bold")        # 4 B  (keyframe at interval 5)
    h.add("alice", "and summer")         # 5 A
    h.add("bob", "too")                  # 6 B
    return h


def make_event(
    index: int,
    seconds: float,
    author_id: str = "alice",
    delta: Optional[ContentDelta] = None,
    word_count_delta: int = 0,
    action: ActionType = ActionType.EDITED,
) -> TimelineEvent:
    return TimelineEvent(
        sequence_index=index,
        timestamp=ts(seconds),
        author_id=author_id,
        action_type=action,
        content_delta=delta or ContentDelta.empty(),
        word_count_delta=word_count_delta,
    )


def write_corrupt_histories(storage_dir: str, interval: int = 2) -> None:
    """
    Persist two JSONL histories: "essay" (valid) and "bad".

    Event 1 of "bad" drops bob's word count below zero, so every read at
    index 1 or later fails while index 0 still reconstructs.
    """
    writer = DocumentReplayBackend(
        ReplayConfig(keyframe_interval=interval), storage=FileStorageBackend(storage_dir),
    )
    writer.create_document("essay", "Essay.docx", "Rivers", authors=(ALICE, BOB))
    for event in seven_event_history().events:
        writer.append_event("essay", event)

    writer.create_document("bad", "Bad.docx", authors=(ALICE, BOB))
    writer.append_event("bad", make_event(0, 0, "alice", ContentDelta.insert(0, "one"), 1, ActionType.ADDED))
    try:
        writer.append_event("bad", make_event(1, 30, "bob", word_count_delta=-3))
    except CorruptHistoryError:
        # Persisted before the keyframe fold rejected it
        pass
    writer.append_event("bad", make_event(2, 60, "alice"))
