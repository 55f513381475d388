"""
Engine Orchestration Module

This module provides the unified interface for recording, storing and
replaying tracked documents while keeping each layer behind its contract.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. The event log is the only written state; keyframes, reconstructions
   and statistics are derived from it
3. Storage is append-only and replayed through the same path as live
   ingestion, so a reloaded document is identical to the recorded one
4. Playback controllers only read; any number may share one document
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import os

from .contracts.base import Error, Timestamp
from .contracts.delta import ContentDelta, DeleteOp, DocumentContent, TextDiff, count_words
from .contracts.errors import CorruptHistoryError, FileNotFoundInRepositoryError
from .contracts.events import (
    ActionType, Author, AuthorStats, Keyframe, PositionHint,
    ReconstructedState, ReplayFlag, TimelineEvent,
)
from .domain.serialization import author_to_dict, event_to_dict, keyframe_to_dict
from .storage import DocumentHeader, StorageBackend, StorageConfig, create_backend
from .temporal.attribution import AuthorIndex
from .temporal.clock import TickScheduler
from .temporal.event_log import EventLog
from .temporal.keyframes import DEFAULT_KEYFRAME_INTERVAL, FixedIntervalPolicy, KeyframeStore
from .temporal.playback import (
    DEFAULT_BASE_INTERVAL_MS, DEFAULT_SPEED_LADDER, PlaybackConfig, PlaybackController,
)
from .temporal.reconstruction import TimelineReconstructor
from .temporal.sessions import (
    DEFAULT_SESSION_GAP_SECONDS, TimelineWindow, WorkSession, derive_sessions,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class DeploymentProfile:
    """Seek granularity and clock speed of one replay view."""
    name: str
    seek_step: int
    large_seek_step: int
    base_interval_ms: float = DEFAULT_BASE_INTERVAL_MS

    def __post_init__(self):
        if self.seek_step < 1 or self.large_seek_step < 1:
            raise ValueError("Seek steps must be at least 1 event")


STUDENT_PROFILE = DeploymentProfile("student", seek_step=1, large_seek_step=3, base_interval_ms=1000.0)
TEACHER_PROFILE = DeploymentProfile("teacher", seek_step=5, large_seek_step=10, base_interval_ms=500.0)

PROFILES: Dict[str, DeploymentProfile] = {
    STUDENT_PROFILE.name: STUDENT_PROFILE,
    TEACHER_PROFILE.name: TEACHER_PROFILE,
}


@dataclass
class ReplayConfig:
    """Unified configuration for the replay backend."""
    keyframe_interval: int = DEFAULT_KEYFRAME_INTERVAL
    profile: DeploymentProfile = None
    speed_ladder: Tuple[float, ...] = DEFAULT_SPEED_LADDER
    default_speed: float = 1.0
    snapshot_cache_size: int = 64
    session_gap_seconds: float = DEFAULT_SESSION_GAP_SECONDS
    storage: StorageConfig = None

    def __post_init__(self):
        self.profile = self.profile or STUDENT_PROFILE
        self.storage = self.storage or StorageConfig()
        if self.keyframe_interval < 1:
            raise ValueError("keyframe_interval must be at least 1")
        if self.snapshot_cache_size < 0:
            raise ValueError("snapshot_cache_size must not be negative")
        if self.session_gap_seconds <= 0:
            raise ValueError("session_gap_seconds must be positive")

    def playback_config(self, profile: Optional[DeploymentProfile] = None) -> PlaybackConfig:
        profile = profile or self.profile
        return PlaybackConfig(
            base_interval_ms=profile.base_interval_ms,
            speed_ladder=tuple(self.speed_ladder),
            default_speed=self.default_speed,
        )

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> 'ReplayConfig':
        """
        Build a config from environment variables.

        REPLAY_KEYFRAME_INTERVAL  keyframe interval (events)
        REPLAY_DATA_DIR           directory of JSONL histories (file storage)
        REPLAY_PROFILE            "student" or "teacher"
        REPLAY_SESSION_GAP        seconds of inactivity that end a work session
        """
        env = os.environ if environ is None else environ
        interval = int(env.get("REPLAY_KEYFRAME_INTERVAL", DEFAULT_KEYFRAME_INTERVAL))
        data_dir = env.get("REPLAY_DATA_DIR")
        profile_name = env.get("REPLAY_PROFILE", STUDENT_PROFILE.name)
        session_gap = float(env.get("REPLAY_SESSION_GAP", DEFAULT_SESSION_GAP_SECONDS))
        if profile_name not in PROFILES:
            raise ValueError(f"Unknown replay profile: {profile_name!r}")
        storage = StorageConfig(backend_type="file", storage_dir=data_dir) if data_dir else StorageConfig()
        return ReplayConfig(
            keyframe_interval=interval,
            profile=PROFILES[profile_name],
            session_gap_seconds=session_gap,
            storage=storage,
        )


# =============================================================================
# TRACKED DOCUMENT
# =============================================================================

class TrackedDocument:
    """
    One document's log, keyframe store and derived views.

    The keyframe interval is fixed here, at creation, and never changes
    for the lifetime of the document.
    """

    def __init__(self, header: DocumentHeader, keyframe_interval: int = DEFAULT_KEYFRAME_INTERVAL):
        self.header = header
        self.keyframe_interval = keyframe_interval
        self.log = EventLog(document_id=header.file_id)
        self.store = KeyframeStore(self.log, FixedIntervalPolicy(keyframe_interval))
        self.reconstructor = TimelineReconstructor(
            self.log, self.store, known_author_ids=lambda: self.author_index.author_ids(),
        )
        self.author_index = AuthorIndex(self.log, self.reconstructor, header.authors)
        self._corruption: Optional[CorruptHistoryError] = None

    @property
    def file_id(self) -> str:
        return self.header.file_id

    @property
    def corruption(self) -> Optional[Error]:
        """First keyframe materialization failure, if the history is inconsistent."""
        return self._corruption.to_error() if self._corruption is not None else None

    @property
    def corrupt_at(self) -> Optional[int]:
        """Index of the first event that could not be applied."""
        return self._corruption.at_index if self._corruption is not None else None

    def append(
        self,
        event: TimelineEvent,
        persist: Optional[Callable[[TimelineEvent], None]] = None,
    ) -> Optional[Keyframe]:
        """
        Append to the log, then let the keyframe store observe it.

        The log validates ordering before anything is persisted; the event
        is persisted before keyframe materialization, so a
        CorruptHistoryError from the store leaves log and storage agreeing.
        The first such failure is kept on the document.
        """
        self.log.append(event)
        if persist is not None:
            persist(event)
        if event.author_id not in self.author_index.author_ids():
            # Authors seen only in events get a stable palette slot
            self.author_index.register(Author.create(
                event.author_id, event.author_id, ordinal=len(self.author_index.authors),
            ))
        try:
            return self.store.record_keyframe_if_due(event)
        except CorruptHistoryError as e:
            if self._corruption is None:
                self._corruption = e
                logger.error("Corrupt history in %s: %s", self.file_id, e.message)
            raise


@dataclass(frozen=True)
class TimelineEntry:
    event: TimelineEvent
    seconds_from_start: float
    is_keyframe: bool


@dataclass(frozen=True)
class TimelineView:
    """
    Timeline metadata for one document: everything except content.

    entries may be a window of the log; document_events always counts
    the whole log.
    """
    file_id: str
    file_name: str
    project_name: str
    authors: Tuple[Author, ...]
    entries: Tuple[TimelineEntry, ...]
    keyframe_count: int
    keyframe_interval: int
    document_events: int = 0
    session_id: Optional[str] = None
    corrupt_at: Optional[int] = None

    @property
    def total_events(self) -> int:
        return len(self.entries)

    @property
    def is_windowed(self) -> bool:
        return self.total_events != self.document_events


# =============================================================================
# BACKEND
# =============================================================================

class DocumentReplayBackend:
    """
    Registry of tracked documents and entry point for every read API.

    FLOW:
    =====
    1. create_document / load_all register a document
    2. append_event / record_edit / record_snapshot append to its log,
       persist the event and let the keyframe store observe it
    3. timeline / snapshot / stats / diff / open_player only read
    """

    def __init__(self, config: Optional[ReplayConfig] = None, storage: Optional[StorageBackend] = None):
        self._config = config or ReplayConfig()
        self._storage = storage or create_backend(self._config.storage)
        self._documents: Dict[str, TrackedDocument] = {}

    @property
    def config(self) -> ReplayConfig:
        return self._config

    # =========================================================================
    # REGISTRY
    # =========================================================================

    def load_all(self) -> int:
        """
        Replay every stored history into memory. Returns documents loaded.

        A history whose deltas cannot be applied is still loaded in full:
        indices before the bad event reconstruct normally, indices at or
        past it raise CorruptHistoryError when read.
        """
        loaded = 0
        for file_id in self._storage.list_file_ids():
            if file_id in self._documents:
                continue
            header = self._storage.load_header(file_id)
            if header is None:
                logger.warning("Skipping %s: no document header", file_id)
                continue
            document = TrackedDocument(header, self._config.keyframe_interval)
            for event in self._storage.load_events(file_id):
                try:
                    document.append(event)
                except CorruptHistoryError:
                    # Recorded on the document; the remaining events still load
                    continue
            self._documents[file_id] = document
            loaded += 1
            if document.corruption is not None:
                logger.error(
                    "Loaded %s with corrupt history from event %s (%d events)",
                    file_id, document.corrupt_at, document.log.count(),
                )
            else:
                logger.info(
                    "Loaded %s (%d events, %d keyframes)",
                    file_id, document.log.count(), document.store.keyframe_count,
                )
        return loaded

    def create_document(
        self,
        file_id: str,
        file_name: str,
        project_name: str = "",
        authors: Iterable[Author] = (),
    ) -> TrackedDocument:
        if file_id in self._documents:
            raise ValueError(f"Document {file_id} already exists")
        header = DocumentHeader(
            file_id=file_id,
            file_name=file_name,
            project_name=project_name,
            authors=tuple(authors),
        )
        self._storage.create_document(header)
        document = TrackedDocument(header, self._config.keyframe_interval)
        self._documents[file_id] = document
        logger.info("Tracking document %s (%s)", file_id, file_name)
        return document

    def document(self, file_id: str) -> TrackedDocument:
        try:
            return self._documents[file_id]
        except KeyError:
            raise FileNotFoundInRepositoryError(
                f"No tracked document with id {file_id!r}", {"file_id": file_id},
            ) from None

    def file_ids(self) -> List[str]:
        return sorted(self._documents)

    # =========================================================================
    # RECORDING
    # =========================================================================

    def append_event(self, file_id: str, event: TimelineEvent) -> Optional[Keyframe]:
        """Append and persist one recorded event. Returns a new keyframe, if any."""
        document = self.document(file_id)
        return document.append(
            event, persist=lambda e: self._storage.append_event(file_id, e),
        )

    def record_edit(
        self,
        file_id: str,
        timestamp: Timestamp,
        author_id: str,
        action_type: ActionType,
        content_delta: Optional[ContentDelta] = None,
        word_count_delta: Optional[int] = None,
        position_hint: Optional[PositionHint] = None,
        description: Optional[str] = None,
        flags: Sequence[ReplayFlag] = (),
    ) -> TimelineEvent:
        """
        Record an edit with the next sequence index.

        When word_count_delta is None it is derived from the document text
        before and after applying the delta.
        flags mark passages of the content after this edit for review.
        """
        document = self.document(file_id)
        delta = content_delta or ContentDelta.empty()
        if word_count_delta is None:
            before = self._latest_content(document)
            word_count_delta = count_words(delta.apply(before).text) - count_words(before.text)

        event = TimelineEvent(
            sequence_index=document.log.count(),
            timestamp=timestamp,
            author_id=author_id,
            action_type=action_type,
            content_delta=delta,
            word_count_delta=word_count_delta,
            position_hint=position_hint,
            description=description,
            flags=tuple(flags),
        )
        self.append_event(file_id, event)
        return event

    def record_snapshot(
        self,
        file_id: str,
        timestamp: Timestamp,
        author_id: str,
        text: str,
        flags: Sequence[ReplayFlag] = (),
    ) -> Optional[TimelineEvent]:
        """
        Record a full-text save as an edit event.

        The delta is the prefix/suffix difference from the current text.
        Returns None when the text did not change.
        """
        document = self.document(file_id)
        before = self._latest_content(document).text
        if before == text:
            return None

        delta = ContentDelta.from_texts(before, text)
        word_delta = count_words(text) - count_words(before)
        removes = any(op.kind == DeleteOp.kind for op in delta.ops)
        if word_delta > 0 and not removes:
            action = ActionType.ADDED
        elif word_delta < 0:
            action = ActionType.DELETED
        else:
            action = ActionType.EDITED

        return self.record_edit(
            file_id, timestamp, author_id, action,
            content_delta=delta, word_count_delta=word_delta,
            flags=flags,
        )

    def _latest_content(self, document: TrackedDocument) -> DocumentContent:
        if document.log.count() == 0:
            return DocumentContent.empty()
        return document.reconstructor.reconstruct(document.log.last_index).content

    # =========================================================================
    # READ INTERFACE
    # =========================================================================

    def timeline(self, file_id: str, window: Optional[TimelineWindow] = None) -> TimelineView:
        """
        Timeline listing of a document, optionally narrowed to a window.

        seconds_from_start stays relative to the document's first event, so
        windowed entries line up with the full listing.
        """
        document = self.document(file_id)
        events = document.log.events()
        first = events[0].timestamp if events else None
        selected: Sequence[TimelineEvent] = events
        if window is not None and not window.is_unbounded:
            selected = window.select(events, derive_sessions(events, self._config.session_gap_seconds))
        entries = tuple(
            TimelineEntry(
                event=event,
                seconds_from_start=event.timestamp.seconds_since(first),
                is_keyframe=document.store.is_keyframe_index(event.sequence_index),
            )
            for event in selected
        )
        return TimelineView(
            file_id=file_id,
            file_name=document.header.file_name,
            project_name=document.header.project_name,
            authors=document.author_index.authors,
            entries=entries,
            keyframe_count=document.store.keyframe_count,
            keyframe_interval=document.keyframe_interval,
            document_events=len(events),
            session_id=window.session_id if window is not None else None,
            corrupt_at=document.corrupt_at,
        )

    def sessions(self, file_id: str) -> Tuple[WorkSession, ...]:
        """Work sessions of a document, split on pauses longer than the session gap."""
        events = self.document(file_id).log.events()
        return derive_sessions(events, self._config.session_gap_seconds)

    def snapshot(self, file_id: str, event_index: int) -> ReconstructedState:
        return self.document(file_id).reconstructor.reconstruct(event_index)

    def stats(self, file_id: str, event_index: int) -> Dict[str, AuthorStats]:
        return self.document(file_id).author_index.stats_as_of(event_index)

    def diff(self, file_id: str, from_index: int, to_index: int) -> TextDiff:
        return self.document(file_id).reconstructor.diff_between(from_index, to_index)

    def keyframes(self, file_id: str) -> Tuple[Keyframe, ...]:
        return self.document(file_id).store.keyframes

    def verify(self, file_id: str) -> Tuple[bool, Optional[Error]]:
        """Hash chain integrity plus keyframe/full-replay agreement at the head."""
        document = self.document(file_id)
        ok, error = document.log.verify_integrity()
        if not ok:
            return (ok, error)
        if document.corruption is not None:
            return (False, document.corruption)
        if document.log.count():
            consistent, detail = document.reconstructor.verify_determinism(document.log.last_index)
            if not consistent:
                logger.error("Determinism check failed for %s: %s", file_id, detail)
                return (False, CorruptHistoryError(detail, context={"file_id": file_id}).to_error())
        return (True, None)

    def export_timeline(self, file_id: str) -> Dict[str, object]:
        """Full recorded history of a document: header, events and keyframes."""
        document = self.document(file_id)
        return {
            "fileId": file_id,
            "fileName": document.header.file_name,
            "projectName": document.header.project_name,
            "authors": [author_to_dict(a) for a in document.author_index.authors],
            "keyframeInterval": document.keyframe_interval,
            "events": [event_to_dict(e) for e in document.log.events()],
            "keyframes": [keyframe_to_dict(k) for k in document.store.keyframes],
            "headHash": document.log.state.head_hash,
        }

    # =========================================================================
    # PLAYBACK
    # =========================================================================

    def open_player(
        self,
        file_id: str,
        scheduler: Optional[TickScheduler] = None,
        profile: Optional[DeploymentProfile] = None,
    ) -> PlaybackController:
        """A controller loaded with the document's current events."""
        document = self.document(file_id)
        controller = PlaybackController(
            scheduler=scheduler,
            config=self._config.playback_config(profile),
            reconstructor=document.reconstructor,
            author_index=document.author_index,
        )
        controller.load(document.log.events())
        return controller
