"""
Keyboard Shortcuts

Translates key presses into InteractionRequests and executes them
against a PlaybackController and a PresentationState.

BINDINGS:
    Space / K        play-pause
    Left / Right     seek -/+ seek_step events
    J / L            seek -/+ large_seek_step events
    Up / Down        speed up / down along the ladder
    0 - 9            seek to 0% - 90% of the timeline
    Home / End       first / last event
    , / .            step back / forward one event (paused only)
    C                toggle captions
    F                toggle fullscreen
    ?                shortcut help
    Escape           dismiss overlays

Seek step sizes come from the DeploymentProfile, never from the view.
"""

from __future__ import annotations
from typing import Dict, Optional, Tuple
import logging

from backend.engine import STUDENT_PROFILE, DeploymentProfile
from backend.temporal.playback import PlaybackController
from frontend.interaction.temporal import IntentType, InteractionRequest
from frontend.state import PresentationState

logger = logging.getLogger(__name__)


# Key names follow KeyboardEvent.key
_KEY_ALIASES = {
    "Spacebar": " ",
    "Space": " ",
    "Left": "ArrowLeft",
    "Right": "ArrowRight",
    "Up": "ArrowUp",
    "Down": "ArrowDown",
    "Esc": "Escape",
}


def normalize_key(key: str) -> str:
    key = _KEY_ALIASES.get(key, key)
    if len(key) == 1 and key.isalpha():
        return key.lower()
    return key


def build_bindings(profile: DeploymentProfile = STUDENT_PROFILE) -> Dict[str, InteractionRequest]:
    """Key -> request table for one deployment profile."""
    step = profile.seek_step
    large = profile.large_seek_step
    bindings = {
        " ": InteractionRequest(IntentType.PLAY_PAUSE),
        "k": InteractionRequest(IntentType.PLAY_PAUSE),
        "ArrowLeft": InteractionRequest(IntentType.SEEK_RELATIVE, -step),
        "ArrowRight": InteractionRequest(IntentType.SEEK_RELATIVE, step),
        "j": InteractionRequest(IntentType.SEEK_RELATIVE, -large),
        "l": InteractionRequest(IntentType.SEEK_RELATIVE, large),
        "ArrowUp": InteractionRequest(IntentType.SPEED_UP),
        "ArrowDown": InteractionRequest(IntentType.SPEED_DOWN),
        "Home": InteractionRequest(IntentType.SEEK_START),
        "End": InteractionRequest(IntentType.SEEK_END),
        ",": InteractionRequest(IntentType.STEP, -1),
        ".": InteractionRequest(IntentType.STEP, 1),
        "c": InteractionRequest(IntentType.TOGGLE_CAPTIONS),
        "f": InteractionRequest(IntentType.TOGGLE_FULLSCREEN),
        "?": InteractionRequest(IntentType.SHOW_HELP),
        "Escape": InteractionRequest(IntentType.DISMISS),
    }
    for digit in range(10):
        bindings[str(digit)] = InteractionRequest(IntentType.SEEK_PERCENT, digit * 10)
    return bindings


def shortcut_help(profile: DeploymentProfile = STUDENT_PROFILE) -> Tuple[Tuple[str, str], ...]:
    """(keys, description) rows for the help overlay."""
    step = profile.seek_step
    large = profile.large_seek_step
    noun = "event" if step == 1 else "events"
    return (
        ("Space / K", "Play / pause"),
        ("← / →", f"Back / forward {step} {noun}"),
        ("J / L", f"Back / forward {large} events"),
        ("↑ / ↓", "Faster / slower"),
        ("0-9", "Jump to 0%-90%"),
        ("Home / End", "First / last event"),
        (", / .", "Previous / next event (while paused)"),
        ("C", "Show / hide author captions"),
        ("F", "Fullscreen"),
        ("?", "Show shortcuts"),
        ("Esc", "Close overlays"),
    )


class ShortcutDispatcher:
    """Routes key presses to the controller and the view state."""

    def __init__(
        self,
        controller: PlaybackController,
        view: Optional[PresentationState] = None,
        profile: DeploymentProfile = STUDENT_PROFILE,
    ):
        self._controller = controller
        self._view = view or PresentationState()
        self._profile = profile
        self._bindings = build_bindings(profile)

    @property
    def profile(self) -> DeploymentProfile:
        return self._profile

    @property
    def bindings(self) -> Dict[str, InteractionRequest]:
        return dict(self._bindings)

    def resolve(self, key: str) -> Optional[InteractionRequest]:
        return self._bindings.get(normalize_key(key))

    def handle_key(self, key: str) -> bool:
        """
        Handle one key press.

        Returns True if the key is bound and its action was performed,
        False for unbound keys and refused actions.
        """
        request = self.resolve(key)
        if request is None:
            return False
        return self.dispatch(request)

    def dispatch(self, request: InteractionRequest) -> bool:
        intent = request.intent
        controller = self._controller
        logger.debug("Dispatching %s(%d)", intent.value, request.amount)

        if intent == IntentType.PLAY_PAUSE:
            controller.toggle()
            return True
        if intent == IntentType.SEEK_RELATIVE:
            return controller.seek_relative(request.amount)
        if intent == IntentType.SEEK_PERCENT:
            return controller.seek_percent(request.amount)
        if intent == IntentType.SEEK_START:
            return controller.seek_start()
        if intent == IntentType.SEEK_END:
            return controller.seek_end()
        if intent == IntentType.STEP:
            return controller.step(request.amount)
        if intent == IntentType.SPEED_UP:
            before = controller.speed
            return controller.speed_up() != before
        if intent == IntentType.SPEED_DOWN:
            before = controller.speed
            return controller.speed_down() != before
        if intent == IntentType.TOGGLE_CAPTIONS:
            self._view.toggle_captions()
            return True
        if intent == IntentType.TOGGLE_FULLSCREEN:
            self._view.toggle_fullscreen()
            return True
        if intent == IntentType.SHOW_HELP:
            self._view.show_help()
            return True
        if intent == IntentType.DISMISS:
            return self._view.dismiss_overlays()
        raise ValueError(f"Unhandled intent: {intent}")
