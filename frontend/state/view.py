"""
Presentation View State

Display-only state of a replay view, driven by controller events.

PRINCIPLES:
1. Immutable snapshots (ViewState is frozen; every change replaces it)
2. Never reaches into controller internals: only subscribed events
3. Playback refusals are non-blocking status messages
4. Load failures expose a retry affordance, never a dialog
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional

from backend.contracts.base import ErrorCode
from backend.contracts.errors import LoadError
from backend.temporal.playback import (
    ControllerEvent, PlaybackController, PlaybackError, PlaybackStatus,
    SeekPerformed, SpeedChanged, StatusChanged,
)


class StatusIndicator(Enum):
    IDLE = "idle"
    LOADING = "loading"
    PAUSED = "paused"
    PLAYING = "playing"
    ENDED = "ended"
    ERROR = "error"


_INDICATOR_BY_STATUS = {
    PlaybackStatus.IDLE: StatusIndicator.IDLE,
    PlaybackStatus.PAUSED: StatusIndicator.PAUSED,
    PlaybackStatus.SEEKING: StatusIndicator.PAUSED,
    PlaybackStatus.PLAYING: StatusIndicator.PLAYING,
    PlaybackStatus.ENDED: StatusIndicator.ENDED,
}


@dataclass(frozen=True)
class ViewState:
    """Everything the view renders besides the document itself."""
    status: StatusIndicator = StatusIndicator.IDLE
    status_message: Optional[str] = None
    captions_visible: bool = True
    fullscreen: bool = False
    help_visible: bool = False
    retry_available: bool = False
    toast: Optional[str] = None

    @property
    def has_overlay(self) -> bool:
        return self.help_visible or self.fullscreen


class PresentationState:
    """
    Holds the current ViewState and replaces it on every change.

    Listeners registered with on_change() receive the new ViewState.
    """

    def __init__(self, initial: Optional[ViewState] = None):
        self._view = initial or ViewState()
        self._listeners: List[Callable[[ViewState], None]] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def view(self) -> ViewState:
        return self._view

    def on_change(self, listener: Callable[[ViewState], None]) -> None:
        self._listeners.append(listener)

    def _update(self, **changes) -> ViewState:
        updated = replace(self._view, **changes)
        if updated != self._view:
            self._view = updated
            for listener in list(self._listeners):
                listener(updated)
        return self._view

    # =========================================================================
    # CONTROLLER BINDING
    # =========================================================================

    def attach(self, controller: PlaybackController) -> Callable[[], None]:
        """Follow a controller's events. Returns a detach callable."""
        self.detach()
        self._unsubscribe = controller.subscribe(self.handle_event)
        self._update(status=_INDICATOR_BY_STATUS[controller.status])
        return self.detach

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle_event(self, event: ControllerEvent) -> None:
        if isinstance(event, StatusChanged):
            self._update(status=_INDICATOR_BY_STATUS[event.current], status_message=None)
        elif isinstance(event, SeekPerformed):
            if event.direction == "none":
                return
            unit = "event" if event.amount == 1 else "events"
            verb = "Skipped forward" if event.direction == "forward" else "Rewound"
            self._update(toast=f"{verb} {event.amount} {unit}")
        elif isinstance(event, SpeedChanged):
            self._update(toast=f"Speed {event.value:g}x")
        elif isinstance(event, PlaybackError):
            # Refusals keep the current indicator; only the message changes
            message = event.error.message
            if event.error.code == ErrorCode.EMPTY_TIMELINE:
                message = "Nothing to play: this file has no recorded edits"
            self._update(status_message=message)

    # =========================================================================
    # LOADING
    # =========================================================================

    def loading_started(self) -> None:
        self._update(status=StatusIndicator.LOADING, status_message=None, retry_available=False)

    def load_failed(self, error: LoadError) -> None:
        self._update(
            status=StatusIndicator.ERROR,
            status_message=error.message,
            retry_available=error.retryable,
        )

    def load_succeeded(self, status: PlaybackStatus = PlaybackStatus.PAUSED) -> None:
        self._update(status=_INDICATOR_BY_STATUS[status], status_message=None, retry_available=False)

    # =========================================================================
    # DISPLAY TOGGLES
    # =========================================================================

    def toggle_captions(self) -> bool:
        return self._update(captions_visible=not self._view.captions_visible).captions_visible

    def toggle_fullscreen(self) -> bool:
        return self._update(fullscreen=not self._view.fullscreen).fullscreen

    def show_help(self) -> None:
        self._update(help_visible=True)

    def toggle_help(self) -> bool:
        return self._update(help_visible=not self._view.help_visible).help_visible

    def dismiss_overlays(self) -> bool:
        """Close help, leave fullscreen, clear the toast. Returns True if anything closed."""
        had_overlay = self._view.has_overlay or self._view.toast is not None
        self._update(help_visible=False, fullscreen=False, toast=None)
        return had_overlay

    def clear_toast(self) -> None:
        self._update(toast=None)
