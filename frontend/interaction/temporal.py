"""
Interaction Contracts

Responsibility:
Define valid user actions and their intent.
No execution logic - just pure intent modeling.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

from backend.temporal.playback import PlaybackState, PlaybackStatus


class IntentType(Enum):
    """Types of user interaction."""
    # Temporal
    PLAY_PAUSE = "play_pause"
    SEEK_RELATIVE = "seek_relative"
    SEEK_PERCENT = "seek_percent"
    SEEK_START = "seek_start"
    SEEK_END = "seek_end"
    STEP = "step"
    SPEED_UP = "speed_up"
    SPEED_DOWN = "speed_down"

    # Display
    TOGGLE_CAPTIONS = "toggle_captions"
    TOGGLE_FULLSCREEN = "toggle_fullscreen"
    SHOW_HELP = "show_help"
    DISMISS = "dismiss"


@dataclass(frozen=True)
class InteractionRequest:
    """
    A specific user intent.

    amount is the signed event offset for SEEK_RELATIVE and STEP, the
    percentage for SEEK_PERCENT, and unused otherwise.
    """
    intent: IntentType
    amount: int = 0


@dataclass(frozen=True)
class TemporalControlState:
    """
    State of the time control UI.
    Separate from the rendered timeline.
    """
    current_index: int
    total_events: int
    is_playing: bool
    is_ended: bool
    playback_speed: float
    progress_percent: float
    can_step: bool

    @staticmethod
    def from_playback(state: PlaybackState) -> 'TemporalControlState':
        return TemporalControlState(
            current_index=state.current_index if state.current_index is not None else 0,
            total_events=state.total_events,
            is_playing=state.status == PlaybackStatus.PLAYING,
            is_ended=state.status == PlaybackStatus.ENDED,
            playback_speed=state.speed_multiplier,
            progress_percent=state.progress_percent,
            can_step=state.status == PlaybackStatus.PAUSED,
        )
