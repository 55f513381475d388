"""
Temporal Replay Core
====================

Event-sourced reconstruction and playback of document edit histories.

INVARIANTS:
- All document state is derived from the append-only event log
- No mutation of appended events or materialized keyframes
- Same log -> same reconstructed state (deterministic)
- Keyframe placement never changes reconstructed content

Modules:
- event_log: Append-only event storage with hash chain
- derivation: Pure event folding shared by keyframes and reconstruction
- keyframes: Periodic full-content checkpoints
- reconstruction: Index -> document content and word counts
- attribution: Per-author statistics and display-only filter
- clock: Injectable tick schedulers
- playback: Playback controller state machine
- sessions: Work sessions and timeline windows
"""

from .event_log import EventLog, LogState
from .keyframes import (
    DEFAULT_KEYFRAME_INTERVAL, AdaptivePolicy, FixedIntervalPolicy,
    KeyframePolicy, KeyframeStore,
)
from .reconstruction import TimelineReconstructor
from .attribution import AuthorFilter, AuthorIndex, Emphasis
from .clock import AsyncioScheduler, ManualScheduler, TickHandle, TickScheduler
from .playback import (
    FilterChanged, PlaybackConfig, PlaybackController, PlaybackError,
    PlaybackState, PlaybackStatus, PositionChanged, SeekPerformed,
    SpeedChanged, StatusChanged,
)
from .sessions import DEFAULT_SESSION_GAP_SECONDS, TimelineWindow, WorkSession, derive_sessions

__all__ = [
    'EventLog',
    'LogState',
    'DEFAULT_KEYFRAME_INTERVAL',
    'AdaptivePolicy',
    'FixedIntervalPolicy',
    'KeyframePolicy',
    'KeyframeStore',
    'TimelineReconstructor',
    'AuthorFilter',
    'AuthorIndex',
    'Emphasis',
    'AsyncioScheduler',
    'ManualScheduler',
    'TickHandle',
    'TickScheduler',
    'FilterChanged',
    'PlaybackConfig',
    'PlaybackController',
    'PlaybackError',
    'PlaybackState',
    'PlaybackStatus',
    'PositionChanged',
    'SeekPerformed',
    'SpeedChanged',
    'StatusChanged',
    'DEFAULT_SESSION_GAP_SECONDS',
    'TimelineWindow',
    'WorkSession',
    'derive_sessions',
]
