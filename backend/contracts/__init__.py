"""
Contracts Module

This module defines the explicit interfaces and data transfer objects
that form the contracts between layers. All inter-layer communication
MUST use these contracts. No layer may import implementation details
from another layer.

DESIGN PRINCIPLES:
==================
1. All contract types are immutable (frozen dataclasses)
2. All failures are enumerated (ErrorCode) and raised as ReplayError
3. Content changes are explicit, composable ContentDelta values
4. All timestamps use UTC and are never mutated
5. Hash-based identity for integrity verification
"""

from .base import Error, ErrorCode, Timestamp
from .delta import (
    ContentDelta, DeleteOp, DeltaError, DocumentContent, FormatMark,
    FormatOp, InsertOp, TextDiff, compute_diff, count_words,
)
from .errors import (
    CorruptHistoryError, EmptyTimelineError, FileNotFoundInRepositoryError,
    InvalidIndexError, LoadError, OutOfOrderError, RangeError, ReplayError,
    SessionNotFoundError,
)
from .events import (
    ActionType, Author, AuthorStats, FlagType, Keyframe, PositionHint,
    ReconstructedState, ReplayFlag, TimelineEvent,
)

__all__ = [
    'Error', 'ErrorCode', 'Timestamp',
    'ContentDelta', 'DeleteOp', 'DeltaError', 'DocumentContent', 'FormatMark',
    'FormatOp', 'InsertOp', 'TextDiff', 'compute_diff', 'count_words',
    'CorruptHistoryError', 'EmptyTimelineError', 'FileNotFoundInRepositoryError',
    'InvalidIndexError', 'LoadError', 'OutOfOrderError', 'RangeError', 'ReplayError',
    'SessionNotFoundError',
    'ActionType', 'Author', 'AuthorStats', 'FlagType', 'Keyframe', 'PositionHint',
    'ReconstructedState', 'ReplayFlag', 'TimelineEvent',
]
