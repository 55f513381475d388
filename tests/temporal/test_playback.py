"""
Playback Controller Tests
=========================

All timing runs on ManualScheduler: no wall-clock reads, no sleeps.

INVARIANTS TESTED:
1. Ticks advance one event per base_interval / speed
2. Pause cancels the pending tick; resume continues from the paused index
3. Playback terminates in ENDED at the last index
4. Seek clamps, is idempotent, and always lands PAUSED
5. Step is refused unless PAUSED
6. Empty timelines never play
7. Filters never move the cursor
8. Seek, termination and filter isolation hold for any log length and speed
"""

import pytest
from hypothesis import given, settings, strategies as st

from backend.contracts.base import ErrorCode
from backend.temporal.attribution import AuthorIndex
from backend.temporal.clock import ManualScheduler
from backend.temporal.playback import (
    DEFAULT_SPEED_LADDER, FilterChanged, PlaybackConfig, PlaybackController, PlaybackError,
    PlaybackStatus, PositionChanged, SeekPerformed, SpeedChanged, StatusChanged,
)
from tests.fixtures import ALICE, BOB, build_replay, make_event, seven_event_history


def ten_events():
    return [make_event(i, i * 60) for i in range(10)]


def controller_with(events=None, **config):
    scheduler = ManualScheduler()
    controller = PlaybackController(scheduler=scheduler, config=PlaybackConfig(**config))
    if events is not None:
        controller.load(events)
    return controller, scheduler


class TestLoad:

    def test_load_pauses_at_start(self):
        controller, _ = controller_with(ten_events())
        assert controller.status == PlaybackStatus.PAUSED
        assert controller.current_index == 0
        assert controller.state.total_events == 10

    def test_empty_timeline_stays_idle(self):
        controller, _ = controller_with([])
        assert controller.status == PlaybackStatus.IDLE
        assert controller.current_index is None

    def test_reload_cancels_running_playback(self):
        controller, scheduler = controller_with(ten_events())
        controller.play()
        controller.load(ten_events()[:3])
        assert controller.status == PlaybackStatus.PAUSED
        assert not controller.has_pending_tick
        scheduler.advance(10_000)
        assert controller.current_index == 0


class TestTicking:

    def test_speed_two_pause_and_resume(self):
        controller, scheduler = controller_with(ten_events(), base_interval_ms=1000.0)
        controller.set_speed(2.0)
        assert controller.play()
        assert controller.tick_interval_ms == 500.0

        scheduler.advance(1500)
        assert controller.current_index == 3

        assert controller.pause()
        assert not controller.has_pending_tick
        scheduler.advance(5000)
        assert controller.current_index == 3

        controller.play()
        scheduler.advance(499)
        assert controller.current_index == 3
        scheduler.advance(1)
        assert controller.current_index == 4

    def test_terminates_at_end(self):
        controller, scheduler = controller_with(ten_events())
        controller.play()
        scheduler.run_until_idle()
        assert controller.status == PlaybackStatus.ENDED
        assert controller.current_index == 9
        assert not controller.has_pending_tick
        assert scheduler.fired_count == 9

    def test_play_after_end_refused(self):
        controller, scheduler = controller_with(ten_events())
        controller.play()
        scheduler.run_until_idle()
        assert not controller.play()
        assert controller.last_error.code == ErrorCode.INVALID_STATE_TRANSITION
        assert controller.seek_start()
        assert controller.play()

    def test_play_at_last_index_ends(self):
        controller, _ = controller_with(ten_events())
        controller.seek_end()
        assert not controller.play()
        assert controller.status == PlaybackStatus.ENDED

    def test_play_is_idempotent(self):
        controller, scheduler = controller_with(ten_events())
        controller.play()
        controller.play()
        scheduler.advance(1000)
        assert controller.current_index == 1

    def test_speed_change_applies_to_next_tick(self):
        controller, scheduler = controller_with(ten_events(), base_interval_ms=1000.0)
        controller.play()
        scheduler.advance(200)
        controller.set_speed(4.0)
        scheduler.advance(800)
        assert controller.current_index == 1
        scheduler.advance(250)
        assert controller.current_index == 2

    def test_toggle(self):
        controller, _ = controller_with(ten_events())
        assert controller.toggle() is True
        assert controller.toggle() is False
        assert controller.status == PlaybackStatus.PAUSED


class TestSeek:

    def test_clamps(self):
        controller, _ = controller_with(ten_events())
        controller.seek(500)
        assert controller.current_index == 9
        controller.seek(-20)
        assert controller.current_index == 0

    def test_lands_paused_and_cancels_tick(self):
        controller, scheduler = controller_with(ten_events())
        controller.play()
        controller.seek(5)
        assert controller.status == PlaybackStatus.PAUSED
        assert not controller.has_pending_tick
        scheduler.advance(10_000)
        assert controller.current_index == 5

    def test_idempotent(self):
        controller, _ = controller_with(ten_events())
        controller.seek(4)
        first = controller.state
        controller.seek(4)
        assert controller.state == first

    def test_relative_and_percent(self):
        controller, _ = controller_with(ten_events())
        controller.seek_relative(3)
        assert controller.current_index == 3
        controller.seek_relative(-10)
        assert controller.current_index == 0
        controller.seek_percent(50)
        assert controller.current_index == 5
        controller.seek_percent(100)
        assert controller.current_index == 9

    def test_seek_on_empty_timeline(self):
        controller, _ = controller_with([])
        assert not controller.seek(3)
        assert not controller.seek_end()
        assert not controller.seek_percent(40)

    def test_seek_events(self):
        controller, _ = controller_with(ten_events())
        seen = []
        controller.subscribe(seen.append)
        controller.seek(7)
        seeks = [e for e in seen if isinstance(e, SeekPerformed)]
        assert seeks == [SeekPerformed(direction="forward", amount=7, target=7)]
        assert PositionChanged(index=7) in seen


class TestStep:

    def test_step_while_paused(self):
        controller, _ = controller_with(ten_events())
        assert controller.step(1)
        assert controller.step(1)
        assert controller.step(-1)
        assert controller.current_index == 1

    def test_step_refused_while_playing(self):
        controller, _ = controller_with(ten_events())
        controller.play()
        assert not controller.step(1)
        assert controller.current_index == 0
        assert controller.status == PlaybackStatus.PLAYING
        assert controller.last_error.code == ErrorCode.INVALID_STATE_TRANSITION


class TestEmptyTimeline:

    def test_play_reports_empty_timeline(self):
        controller, scheduler = controller_with([])
        seen = []
        controller.subscribe(seen.append)
        assert not controller.play()
        assert controller.status == PlaybackStatus.IDLE
        errors = [e for e in seen if isinstance(e, PlaybackError)]
        assert errors[0].error.code == ErrorCode.EMPTY_TIMELINE
        assert scheduler.pending_count == 0


class TestSpeed:

    def test_ladder_saturates(self):
        controller, _ = controller_with(ten_events())
        assert controller.speed_up() == 2.0
        assert controller.speed_up() == 4.0
        assert controller.speed_up() == 4.0
        for _ in range(5):
            controller.speed_down()
        assert controller.speed == 0.5

    def test_invalid_speed(self):
        controller, _ = controller_with(ten_events())
        with pytest.raises(ValueError):
            controller.set_speed(0)

    def test_speed_event_only_on_change(self):
        controller, _ = controller_with(ten_events())
        seen = []
        controller.subscribe(seen.append)
        controller.set_speed(1.0)
        controller.set_speed(2.0)
        assert [e for e in seen if isinstance(e, SpeedChanged)] == [SpeedChanged(value=2.0)]

    @pytest.mark.parametrize("config", [
        {"base_interval_ms": 0},
        {"speed_ladder": ()},
        {"speed_ladder": (2.0, 1.0)},
        {"default_speed": -1},
    ])
    def test_invalid_config(self, config):
        with pytest.raises(ValueError):
            PlaybackConfig(**config)


class TestFilterAndSnapshot:

    def test_filter_does_not_move_cursor(self):
        history = seven_event_history()
        log, _, reconstructor = build_replay(history.events, authors=(ALICE, BOB))
        index = AuthorIndex(log, reconstructor, (ALICE, BOB))
        controller = PlaybackController(
            scheduler=ManualScheduler(), reconstructor=reconstructor, author_index=index,
        )
        controller.load(log.events())
        controller.seek(3)
        before = controller.snapshot().state_hash

        seen = []
        controller.subscribe(seen.append)
        assert controller.set_author_filter(["bob"]) == frozenset({"bob"})
        assert controller.current_index == 3
        assert controller.status == PlaybackStatus.PAUSED
        assert controller.snapshot().state_hash == before
        assert seen == [FilterChanged(author_ids=frozenset({"bob"}))]
        assert controller.state.active_author_filter == frozenset({"bob"})

    def test_controllers_sharing_an_index_keep_their_own_filters(self):
        log, _, reconstructor = build_replay(seven_event_history().events, authors=(ALICE, BOB))
        index = AuthorIndex(log, reconstructor, (ALICE, BOB))
        first = PlaybackController(scheduler=ManualScheduler(), reconstructor=reconstructor, author_index=index)
        second = PlaybackController(scheduler=ManualScheduler(), reconstructor=reconstructor, author_index=index)
        first.load(log.events())
        second.load(log.events())

        second.set_author_filter(["bob"])
        first.set_author_filter(["alice"])
        assert second.state.active_author_filter == frozenset({"bob"})
        assert first.state.active_author_filter == frozenset({"alice"})

    def test_snapshot_follows_cursor(self):
        history = seven_event_history()
        log, _, reconstructor = build_replay(history.events)
        controller = PlaybackController(scheduler=ManualScheduler(), reconstructor=reconstructor)
        controller.load(log.events())
        controller.seek_end()
        assert controller.snapshot().content.text == history.content.text


class TestListenersAndTeardown:

    def test_status_events(self):
        controller, _ = controller_with()
        seen = []
        controller.subscribe(seen.append)
        controller.load(ten_events())
        controller.play()
        statuses = [(e.previous, e.current) for e in seen if isinstance(e, StatusChanged)]
        assert statuses == [
            (PlaybackStatus.IDLE, PlaybackStatus.PAUSED),
            (PlaybackStatus.PAUSED, PlaybackStatus.PLAYING),
        ]

    def test_unsubscribe(self):
        controller, _ = controller_with(ten_events())
        seen = []
        unsubscribe = controller.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        controller.seek(2)
        assert seen == []

    def test_close_cancels_tick(self):
        controller, scheduler = controller_with(ten_events())
        controller.play()
        controller.close()
        assert controller.status == PlaybackStatus.IDLE
        assert scheduler.advance(10_000) == 0
        assert controller.current_index is None

    def test_reset(self):
        controller, _ = controller_with(ten_events())
        controller.seek(6)
        assert controller.reset()
        assert controller.current_index == 0
        assert controller.status == PlaybackStatus.PAUSED


# =============================================================================
# PROPERTIES
# =============================================================================

class TestPlaybackProperties:

    @given(st.integers(min_value=1, max_value=40), st.integers(min_value=-50, max_value=100))
    @settings(max_examples=60, deadline=None)
    def test_seek_is_idempotent(self, n, target):
        controller, _ = controller_with([make_event(i, i * 10) for i in range(n)])
        controller.seek(target)
        first = controller.state
        controller.seek(target)
        assert controller.state == first
        assert controller.current_index == max(0, min(target, n - 1))
        assert controller.status == PlaybackStatus.PAUSED

    @given(
        st.integers(min_value=1, max_value=40),
        st.sampled_from(DEFAULT_SPEED_LADDER),
        st.integers(min_value=0, max_value=39),
    )
    @settings(max_examples=60, deadline=None)
    def test_playback_terminates_at_last_index(self, n, speed, start):
        controller, scheduler = controller_with([make_event(i, i * 10) for i in range(n)])
        controller.set_speed(speed)
        controller.seek(start)
        positions = []
        controller.subscribe(lambda e: positions.append(e.index) if isinstance(e, PositionChanged) else None)
        controller.play()
        scheduler.run_until_idle()
        assert controller.status == PlaybackStatus.ENDED
        assert controller.current_index == n - 1
        assert not controller.has_pending_tick
        assert all(index <= n - 1 for index in positions)
        assert positions == sorted(positions)

    @given(
        st.frozensets(st.sampled_from(["alice", "bob", "carol", "dana"])),
        st.integers(min_value=0, max_value=6),
    )
    @settings(max_examples=40, deadline=None)
    def test_filters_never_change_position_or_content(self, authors, target):
        log, _, reconstructor = build_replay(seven_event_history().events, authors=(ALICE, BOB))
        index = AuthorIndex(log, reconstructor, (ALICE, BOB))
        controller = PlaybackController(scheduler=ManualScheduler(), reconstructor=reconstructor, author_index=index)
        other = PlaybackController(scheduler=ManualScheduler(), reconstructor=reconstructor, author_index=index)
        controller.load(log.events())
        other.load(log.events())
        controller.seek(target)
        before = (controller.current_index, controller.status, controller.snapshot().state_hash)

        assert controller.set_author_filter(authors) == authors
        assert (controller.current_index, controller.status, controller.snapshot().state_hash) == before
        assert other.state.active_author_filter == frozenset()
