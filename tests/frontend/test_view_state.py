"""
Presentation State Tests

INVARIANTS TESTED:
1. View state follows controller events only
2. Refusals are non-blocking status messages, never status changes
3. Load failures expose retry exactly when the error is retryable
"""

from backend.contracts.errors import LoadError
from backend.temporal.clock import ManualScheduler
from backend.temporal.playback import PlaybackController, PlaybackStatus
from frontend.presentation.viewmodels import loading_state
from frontend.state import PresentationState, StatusIndicator, ViewState
from tests.fixtures import make_event


def attached(events=10):
    controller = PlaybackController(scheduler=ManualScheduler())
    view = PresentationState()
    view.attach(controller)
    controller.load([make_event(i, i) for i in range(events)])
    return controller, view


class TestControllerBinding:

    def test_status_follows_controller(self):
        controller, view = attached()
        assert view.view.status == StatusIndicator.PAUSED
        controller.play()
        assert view.view.status == StatusIndicator.PLAYING
        controller.seek_end()
        assert view.view.status == StatusIndicator.PAUSED

    def test_seek_toasts(self):
        controller, view = attached()
        controller.seek(4)
        assert view.view.toast == "Skipped forward 4 events"
        controller.seek(3)
        assert view.view.toast == "Rewound 1 event"
        view.clear_toast()
        controller.seek(3)
        assert view.view.toast is None

    def test_speed_toast(self):
        controller, view = attached()
        controller.speed_down()
        assert view.view.toast == "Speed 0.5x"

    def test_empty_timeline_message(self):
        controller, view = attached(events=0)
        controller.play()
        assert view.view.status == StatusIndicator.IDLE
        assert view.view.status_message == "Nothing to play: this file has no recorded edits"

    def test_refusal_keeps_status(self):
        controller, view = attached()
        controller.play()
        controller.step(1)
        assert view.view.status == StatusIndicator.PLAYING
        assert view.view.status_message

    def test_detach_stops_updates(self):
        controller, view = attached()
        view.detach()
        controller.play()
        assert view.view.status == StatusIndicator.PAUSED

    def test_listeners_get_new_snapshots(self):
        controller, view = attached()
        seen = []
        view.on_change(seen.append)
        controller.play()
        assert seen[-1].status == StatusIndicator.PLAYING
        assert all(isinstance(s, ViewState) for s in seen)


class TestLoading:

    def test_loading_then_failure_offers_retry(self):
        view = PresentationState()
        view.loading_started()
        assert loading_state(view.view).message == "Loading timeline…"
        view.load_failed(LoadError("HTTP 503 fetching /files/essay/timeline", status_code=503))
        assert view.view.status == StatusIndicator.ERROR
        model = loading_state(view.view)
        assert model.can_retry
        assert "503" in model.message

    def test_non_retryable_failure(self):
        view = PresentationState()
        view.load_failed(LoadError("Malformed timeline payload", retryable=False))
        assert not view.view.retry_available
        assert loading_state(view.view) is None

    def test_success_clears_error(self):
        view = PresentationState()
        view.load_failed(LoadError("timeout"))
        view.load_succeeded()
        assert view.view.status == StatusIndicator.PAUSED
        assert view.view.status_message is None
        assert not view.view.retry_available
        view.load_succeeded(PlaybackStatus.IDLE)
        assert view.view.status == StatusIndicator.IDLE


class TestToggles:

    def test_toggles_return_new_value(self):
        view = PresentationState()
        assert view.toggle_captions() is False
        assert view.toggle_fullscreen() is True
        assert view.toggle_help() is True
        assert view.dismiss_overlays()
        assert view.view == ViewState(captions_visible=False)
