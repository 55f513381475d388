"""
Playback Controller
===================

State machine owning the replay cursor and the playback clock.

STATES:
    IDLE    - no timeline loaded (or an empty one)
    PAUSED  - timeline loaded, not advancing
    PLAYING - advancing one event per tick
    SEEKING - transient while a seek is applied; always resolves to PAUSED
    ENDED   - reached the last event; left only by seek or reset

TRANSITIONS:
    load      IDLE -> PAUSED (stays IDLE for an empty timeline)
    play      PAUSED -> PLAYING, schedules a tick at base_interval / speed
    pause     PLAYING -> PAUSED, cancels the pending tick
    tick      PLAYING: index += 1; reaching the last index -> ENDED
    seek      any -> SEEKING -> PAUSED, clamps the target, cancels the tick
    step      PAUSED only; relative seek
    set_speed any state; applies from the next scheduled tick
    set_author_filter any state; metadata only

CONCURRENCY:
Exactly one tick handle is live per controller. pause(), seek(), reset()
and close() cancel it before returning. All calls and ticks run on the
scheduler owner's thread, so PlaybackState is never mutated concurrently.

Position problems are clamped, never raised. Refused operations are
returned as False and recorded as data (last_error, PlaybackError events).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union
import logging
import math

from ..contracts.base import Error, ErrorCode
from ..contracts.errors import EmptyTimelineError
from ..contracts.events import ReconstructedState, TimelineEvent
from .attribution import AuthorIndex
from .clock import AsyncioScheduler, TickHandle, TickScheduler
from .reconstruction import TimelineReconstructor

logger = logging.getLogger(__name__)


DEFAULT_BASE_INTERVAL_MS = 1000.0
DEFAULT_SPEED_LADDER: Tuple[float, ...] = (0.5, 1.0, 2.0, 4.0)


class PlaybackStatus(Enum):
    IDLE = "idle"
    PAUSED = "paused"
    PLAYING = "playing"
    SEEKING = "seeking"
    ENDED = "ended"


@dataclass(frozen=True)
class PlaybackConfig:
    """Clock and speed settings for one controller."""
    base_interval_ms: float = DEFAULT_BASE_INTERVAL_MS
    speed_ladder: Tuple[float, ...] = DEFAULT_SPEED_LADDER
    default_speed: float = 1.0

    def __post_init__(self):
        if self.base_interval_ms <= 0:
            raise ValueError("base_interval_ms must be positive")
        if not self.speed_ladder or any(s <= 0 for s in self.speed_ladder):
            raise ValueError("speed_ladder must contain positive multipliers")
        if tuple(sorted(self.speed_ladder)) != tuple(self.speed_ladder):
            raise ValueError("speed_ladder must be ascending")
        if self.default_speed <= 0:
            raise ValueError("default_speed must be positive")


@dataclass(frozen=True)
class PlaybackState:
    """Observable controller state. Holds no authoritative data."""
    current_index: Optional[int]
    status: PlaybackStatus
    speed_multiplier: float
    active_author_filter: FrozenSet[str] = field(default_factory=frozenset)
    total_events: int = 0

    @property
    def last_index(self) -> Optional[int]:
        return self.total_events - 1 if self.total_events else None

    @property
    def progress_percent(self) -> float:
        if self.current_index is None or self.total_events <= 1:
            return 0.0
        return self.current_index / (self.total_events - 1) * 100.0


# =============================================================================
# CONTROLLER EVENTS
# =============================================================================

@dataclass(frozen=True)
class StatusChanged:
    previous: PlaybackStatus
    current: PlaybackStatus


@dataclass(frozen=True)
class PositionChanged:
    index: int


@dataclass(frozen=True)
class SeekPerformed:
    direction: str  # "forward" | "backward" | "none"
    amount: int
    target: int


@dataclass(frozen=True)
class SpeedChanged:
    value: float


@dataclass(frozen=True)
class FilterChanged:
    author_ids: FrozenSet[str]


@dataclass(frozen=True)
class PlaybackError:
    error: Error


ControllerEvent = Union[
    StatusChanged, PositionChanged, SeekPerformed,
    SpeedChanged, FilterChanged, PlaybackError,
]
Listener = Callable[[ControllerEvent], None]


# =============================================================================
# CONTROLLER
# =============================================================================

class PlaybackController:
    """
    Drives reconstruction over a loaded timeline.

    The reconstructor and author index are optional collaborators:
    without them the controller is a pure cursor state machine.
    """

    def __init__(
        self,
        scheduler: Optional[TickScheduler] = None,
        config: Optional[PlaybackConfig] = None,
        reconstructor: Optional[TimelineReconstructor] = None,
        author_index: Optional[AuthorIndex] = None,
    ):
        self._scheduler = scheduler or AsyncioScheduler()
        self._config = config or PlaybackConfig()
        self._reconstructor = reconstructor
        self._author_index = author_index

        self._events: Tuple[TimelineEvent, ...] = ()
        self._current_index: Optional[int] = None
        self._status = PlaybackStatus.IDLE
        self._speed = self._config.default_speed
        self._filter: FrozenSet[str] = frozenset()

        self._tick: Optional[TickHandle] = None
        self._listeners: List[Listener] = []
        self._last_error: Optional[Error] = None

    # =========================================================================
    # OBSERVATION
    # =========================================================================

    @property
    def state(self) -> PlaybackState:
        return PlaybackState(
            current_index=self._current_index,
            status=self._status,
            speed_multiplier=self._speed,
            active_author_filter=self._filter,
            total_events=len(self._events),
        )

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    @property
    def current_index(self) -> Optional[int]:
        return self._current_index

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def config(self) -> PlaybackConfig:
        return self._config

    @property
    def last_error(self) -> Optional[Error]:
        return self._last_error

    @property
    def total_events(self) -> int:
        return len(self._events)

    @property
    def last_index(self) -> Optional[int]:
        return len(self._events) - 1 if self._events else None

    @property
    def has_pending_tick(self) -> bool:
        return self._tick is not None and not self._tick.cancelled

    @property
    def tick_interval_ms(self) -> float:
        return self._config.base_interval_ms / self._speed

    @property
    def current_event(self) -> Optional[TimelineEvent]:
        if self._current_index is None:
            return None
        return self._events[self._current_index]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> Optional[ReconstructedState]:
        """Reconstructed document at the current position, if a reconstructor is attached."""
        if self._reconstructor is None:
            return None
        if self._current_index is None:
            return self._reconstructor.reconstruct(0)
        return self._reconstructor.reconstruct(self._current_index)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def load(self, events: Sequence[TimelineEvent]) -> bool:
        """
        Load a timeline. Any running playback is cancelled first.

        Returns False (and stays IDLE) for an empty timeline.
        """
        self._cancel_tick()
        self._events = tuple(events)
        self._last_error = None

        if not self._events:
            self._current_index = None
            self._set_status(PlaybackStatus.IDLE)
            logger.info("Loaded empty timeline; controller stays idle")
            return False

        self._current_index = 0
        self._set_status(PlaybackStatus.PAUSED)
        self._emit(PositionChanged(index=0))
        logger.info("Loaded timeline with %d events", len(self._events))
        return True

    def reset(self) -> bool:
        """Return to the first event, paused."""
        if not self._events:
            return False
        self._cancel_tick()
        self._move_to(0)
        self._set_status(PlaybackStatus.PAUSED)
        return True

    def close(self) -> None:
        """Tear down: cancel the tick and drop the timeline."""
        self._cancel_tick()
        self._events = ()
        self._current_index = None
        self._set_status(PlaybackStatus.IDLE)

    # =========================================================================
    # PLAYBACK
    # =========================================================================

    def play(self) -> bool:
        """Start advancing. Returns True if the controller is now playing."""
        if self._status == PlaybackStatus.PLAYING:
            return True

        if not self._events:
            self._report(EmptyTimelineError("Cannot play an empty timeline").to_error())
            return False

        if self._status == PlaybackStatus.ENDED:
            self._refuse("play", "Playback has ended; seek or reset to play again")
            return False

        if self._current_index == self.last_index:
            # Nothing left to advance through
            self._set_status(PlaybackStatus.ENDED)
            return False

        self._set_status(PlaybackStatus.PLAYING)
        self._schedule_tick()
        logger.info("Playing from %d at %sx", self._current_index, self._speed)
        return True

    def pause(self) -> bool:
        """Stop advancing. Returns False if the controller was not playing."""
        if self._status != PlaybackStatus.PLAYING:
            return False
        self._cancel_tick()
        self._set_status(PlaybackStatus.PAUSED)
        logger.info("Paused at %d", self._current_index)
        return True

    def toggle(self) -> bool:
        """Play/pause. Returns True if now playing."""
        if self._status == PlaybackStatus.PLAYING:
            self.pause()
            return False
        return self.play()

    def _schedule_tick(self) -> None:
        self._cancel_tick()
        self._tick = self._scheduler.schedule(self.tick_interval_ms, self._on_tick)

    def _cancel_tick(self) -> None:
        if self._tick is not None:
            self._tick.cancel()
            self._tick = None

    def _on_tick(self) -> None:
        self._tick = None
        if self._status != PlaybackStatus.PLAYING or self._current_index is None:
            return

        last = self.last_index
        if self._current_index < last:
            self._move_to(self._current_index + 1)
            logger.debug("Tick -> %d", self._current_index)

        if self._current_index >= last:
            self._set_status(PlaybackStatus.ENDED)
            logger.info("Playback reached end at %d", self._current_index)
            return

        self._schedule_tick()

    # =========================================================================
    # POSITIONING
    # =========================================================================

    def seek(self, target_index: int) -> bool:
        """
        Jump to target_index, clamped to the timeline. Always ends PAUSED.

        Returns False only when there is no timeline to seek in.
        """
        if not self._events:
            return False

        self._cancel_tick()
        previous = self._current_index if self._current_index is not None else 0
        target = max(0, min(int(target_index), self.last_index))

        # SEEKING is visible to listeners while the position moves
        status_before = self._status
        self._status = PlaybackStatus.SEEKING
        self._move_to(target)
        self._set_status(PlaybackStatus.PAUSED, previous=status_before)

        if target > previous:
            direction = "forward"
        elif target < previous:
            direction = "backward"
        else:
            direction = "none"
        self._emit(SeekPerformed(direction=direction, amount=abs(target - previous), target=target))
        return True

    def seek_relative(self, delta: int) -> bool:
        if self._current_index is None:
            return False
        return self.seek(self._current_index + delta)

    def seek_start(self) -> bool:
        return self.seek(0)

    def seek_end(self) -> bool:
        if not self._events:
            return False
        return self.seek(self.last_index)

    def seek_percent(self, percent: float) -> bool:
        """Seek to floor(percent% of the timeline), clamped."""
        if not self._events:
            return False
        percent = max(0.0, min(100.0, percent))
        return self.seek(math.floor(percent / 100.0 * len(self._events)))

    def step(self, delta: int) -> bool:
        """Relative seek, permitted only while PAUSED."""
        if self._status != PlaybackStatus.PAUSED:
            self._refuse("step", f"Step is only permitted while paused (status {self._status.value})")
            return False
        return self.seek_relative(delta)

    # =========================================================================
    # SPEED & FILTER
    # =========================================================================

    def set_speed(self, multiplier: float) -> float:
        """
        Change speed. The pending tick keeps its delay; the next one uses
        the new speed.
        """
        if multiplier <= 0:
            raise ValueError(f"Speed multiplier must be positive, got {multiplier}")
        if multiplier != self._speed:
            self._speed = float(multiplier)
            self._emit(SpeedChanged(value=self._speed))
            logger.info("Speed set to %sx", self._speed)
        return self._speed

    def speed_up(self) -> float:
        """Next faster rung of the speed ladder, saturating at the top."""
        faster = [s for s in self._config.speed_ladder if s > self._speed]
        return self.set_speed(faster[0] if faster else self._config.speed_ladder[-1])

    def speed_down(self) -> float:
        """Next slower rung of the speed ladder, saturating at the bottom."""
        slower = [s for s in self._config.speed_ladder if s < self._speed]
        return self.set_speed(slower[-1] if slower else self._config.speed_ladder[0])

    def set_author_filter(self, author_ids: Optional[Iterable[str]]) -> FrozenSet[str]:
        """Change attribution emphasis. Never touches position or status."""
        selected = frozenset(author_ids or ())
        if self._author_index is not None:
            selected = self._author_index.make_filter(selected).author_ids
        if selected != self._filter:
            self._filter = selected
            self._emit(FilterChanged(author_ids=selected))
        return self._filter

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _move_to(self, index: int) -> None:
        if index != self._current_index:
            self._current_index = index
            self._emit(PositionChanged(index=index))

    def _set_status(self, status: PlaybackStatus, previous: Optional[PlaybackStatus] = None) -> None:
        before = previous if previous is not None else self._status
        self._status = status
        if before != status:
            self._emit(StatusChanged(previous=before, current=status))

    def _refuse(self, operation: str, message: str) -> None:
        logger.warning("Refused %s: %s", operation, message)
        self._report(Error(
            code=ErrorCode.INVALID_STATE_TRANSITION,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=(("operation", operation), ("status", self._status.value)),
        ))

    def _report(self, error: Error) -> None:
        if error.code == ErrorCode.EMPTY_TIMELINE:
            logger.warning("%s", error.message)
        self._last_error = error
        self._emit(PlaybackError(error=error))

    def _emit(self, event: ControllerEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
