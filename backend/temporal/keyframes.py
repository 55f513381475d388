"""
Keyframe Store
==============

Periodic full-content checkpoints over the event log.

INVARIANTS:
- Keyframes are immutable and never retroactively altered
- The interval policy is fixed when the store is created
- A keyframe at index i equals folding events (prev.at_index, i] onto
  the previous keyframe (or the empty document)

POLICY TRADE-OFF:
Small intervals bound the events replayed per seek at the cost of
storage; large intervals save storage at the cost of seek latency.
Keyframe placement never changes reconstructed content.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple
import bisect
import logging

from ..contracts.errors import OutOfOrderError
from ..contracts.events import Keyframe, TimelineEvent
from .derivation import fold_events
from .event_log import EventLog

logger = logging.getLogger(__name__)


DEFAULT_KEYFRAME_INTERVAL = 20


# =============================================================================
# POLICIES
# =============================================================================

@dataclass(frozen=True)
class KeyframePolicy:
    """Decides whether the event just appended closes a keyframe."""

    def is_due(self, event: TimelineEvent, pending: Tuple[TimelineEvent, ...]) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class FixedIntervalPolicy(KeyframePolicy):
    """Keyframe after every `interval` events (indices interval-1, 2*interval-1, ...)."""
    interval: int = DEFAULT_KEYFRAME_INTERVAL

    def __post_init__(self):
        if self.interval < 1:
            raise ValueError("Keyframe interval must be at least 1")

    def is_due(self, event: TimelineEvent, pending: Tuple[TimelineEvent, ...]) -> bool:
        return (event.sequence_index + 1) % self.interval == 0


@dataclass(frozen=True)
class AdaptivePolicy(KeyframePolicy):
    """
    Keyframe when pending edits grow large, or after max_events regardless.

    Edit volume is the number of characters inserted or deleted by the
    pending deltas, so bursts of heavy editing are checkpointed sooner.
    """
    max_events: int = DEFAULT_KEYFRAME_INTERVAL
    max_edit_chars: int = 2000

    def __post_init__(self):
        if self.max_events < 1 or self.max_edit_chars < 1:
            raise ValueError("Adaptive keyframe thresholds must be positive")

    def is_due(self, event: TimelineEvent, pending: Tuple[TimelineEvent, ...]) -> bool:
        if len(pending) >= self.max_events:
            return True
        volume = 0
        for pending_event in pending:
            for op in pending_event.content_delta.ops:
                volume += len(getattr(op, "text", "")) + getattr(op, "length", 0)
        return volume >= self.max_edit_chars


# =============================================================================
# STORE
# =============================================================================

class KeyframeStore:
    """
    Keyframes for one event log.

    record_keyframe_if_due() must be called once per appended event, in
    sequence order. Reads never mutate the store.
    """

    def __init__(self, log: EventLog, policy: Optional[KeyframePolicy] = None):
        self._log = log
        self._policy = policy or FixedIntervalPolicy()
        self._keyframes: List[Keyframe] = []
        # Parallel index for bisect lookups
        self._indices: List[int] = []
        self._next_index = 0

    @property
    def policy(self) -> KeyframePolicy:
        return self._policy

    @property
    def keyframe_count(self) -> int:
        return len(self._keyframes)

    @property
    def keyframes(self) -> Tuple[Keyframe, ...]:
        return tuple(self._keyframes)

    @property
    def latest(self) -> Keyframe:
        return self._keyframes[-1] if self._keyframes else Keyframe.empty()

    def is_keyframe_index(self, index: int) -> bool:
        position = bisect.bisect_left(self._indices, index)
        return position < len(self._indices) and self._indices[position] == index

    def record_keyframe_if_due(self, event: TimelineEvent) -> Optional[Keyframe]:
        """
        Observe one appended event; materialize a keyframe if the policy says so.

        Returns the new keyframe, or None. Raises CorruptHistoryError if the
        pending events cannot be applied; no keyframe is added in that case.
        """
        if event.sequence_index != self._next_index:
            raise OutOfOrderError(
                f"Keyframe store expected event {self._next_index}, got {event.sequence_index}",
                {"expected": self._next_index, "actual": event.sequence_index},
            )

        base = self.latest
        pending = self._log.range(base.at_index + 1, event.sequence_index)
        self._next_index += 1

        if not self._policy.is_due(event, pending):
            return None

        result = fold_events(base.content, base.word_counts_by_author, pending)
        keyframe = Keyframe(
            at_index=event.sequence_index,
            content=result.content,
            word_counts=result.word_counts,
        )
        self._keyframes.append(keyframe)
        self._indices.append(keyframe.at_index)

        logger.info(
            "Keyframe at %d (%d events folded, %d bytes)",
            keyframe.at_index, result.events_applied, keyframe.original_size,
        )
        return keyframe

    def nearest_keyframe_at_or_before(self, index: int) -> Keyframe:
        """Keyframe with the greatest at_index <= index, else the synthetic empty one."""
        position = bisect.bisect_right(self._indices, index)
        if position == 0:
            return Keyframe.empty()
        return self._keyframes[position - 1]
