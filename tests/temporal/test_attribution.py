"""
Attribution Tests
=================

INVARIANTS TESTED:
1. Statistics agree with reconstructed word counts
2. Shares sum to 1 when any words exist
3. The author filter never changes reconstructed content
"""

import pytest

from backend.contracts.errors import InvalidIndexError
from backend.temporal.attribution import AuthorFilter, AuthorIndex, Emphasis
from tests.fixtures import ALICE, BOB, CAROL, build_replay, make_event, seven_event_history


def seven_event_index(authors=(ALICE, BOB)):
    log, _, reconstructor = build_replay(seven_event_history().events, interval=5, authors=authors)
    return log, reconstructor, AuthorIndex(log, reconstructor, authors)


class TestRegistry:

    def test_first_registration_wins(self):
        _, _, index = seven_event_index()
        renamed = ALICE.__class__("alice", "Someone Else", "author-teal")
        assert index.register(renamed) is ALICE
        assert index.author("alice").display_name == "Alice Chen"

    def test_unknown_author_placeholder(self):
        _, _, index = seven_event_index()
        placeholder = index.author("zed")
        assert placeholder.display_name == "zed"
        assert placeholder.color_token


class TestStatistics:

    def test_stats_at_end(self):
        _, _, index = seven_event_index()
        stats = index.stats_as_of(6)
        assert stats["alice"].word_count == 6
        assert stats["alice"].event_count == 3
        assert stats["alice"].last_event_index == 5
        assert stats["bob"].word_count == 5
        assert stats["bob"].event_count == 4
        assert stats["bob"].last_event_index == 6

    def test_stats_match_reconstruction(self):
        _, reconstructor, index = seven_event_index()
        for i in range(7):
            counts = reconstructor.reconstruct(i).word_counts_by_author
            assert {a: s.word_count for a, s in index.stats_as_of(i).items()} == counts

    def test_registered_author_without_events_listed(self):
        _, _, index = seven_event_index(authors=(ALICE, BOB, CAROL))
        stats = index.stats_as_of(6)
        assert stats["carol"].word_count == 0
        assert stats["carol"].event_count == 0
        assert stats["carol"].last_event_index is None

    def test_unregistered_event_author_included(self):
        events = [make_event(0, 0, author_id="ghost")]
        log, _, reconstructor = build_replay(events)
        index = AuthorIndex(log, reconstructor, (ALICE,))
        assert set(index.stats_as_of(0)) == {"alice", "ghost"}

    def test_shares(self):
        _, _, index = seven_event_index()
        shares = index.contribution_shares(6)
        assert shares["alice"] == pytest.approx(6 / 11)
        assert sum(shares.values()) == pytest.approx(1.0)

    def test_shares_of_empty_document(self):
        log, _, reconstructor = build_replay([make_event(0, 0)])
        index = AuthorIndex(log, reconstructor, (ALICE,))
        assert index.contribution_shares(0) == {"alice": 0.0}

    def test_negative_index_raises(self):
        _, _, index = seven_event_index()
        with pytest.raises(InvalidIndexError):
            index.stats_as_of(-3)


class TestFilter:

    def test_empty_filter_emphasizes_everyone(self):
        author_filter = AuthorFilter.all_authors()
        assert not author_filter.is_active
        assert author_filter.emphasis_for("anyone") == Emphasis.HIGHLIGHTED

    def test_selected_authors_highlighted(self):
        _, _, index = seven_event_index()
        only_bob = index.make_filter(["bob"])
        events = seven_event_history().events
        assert index.emphasis_for(events[0], only_bob) == Emphasis.DIMMED
        assert index.emphasis_for(events[1], only_bob) == Emphasis.HIGHLIGHTED

    def test_filter_does_not_change_content(self):
        _, reconstructor, index = seven_event_index()
        before = [reconstructor.reconstruct(i).state_hash for i in range(7)]
        index.make_filter(["alice"])
        after = [reconstructor.reconstruct(i).state_hash for i in range(7)]
        assert before == after
        assert index.stats_as_of(6)["bob"].word_count == 5

    def test_none_selects_everyone(self):
        _, _, index = seven_event_index()
        assert not index.make_filter(None).is_active
        assert not index.make_filter([]).is_active

    def test_filters_are_independent_values(self):
        _, _, index = seven_event_index()
        only_bob = index.make_filter(["bob"])
        only_alice = index.make_filter(["alice"])
        bob_event = seven_event_history().events[1]
        assert index.emphasis_for(bob_event, only_bob) == Emphasis.HIGHLIGHTED
        assert index.emphasis_for(bob_event, only_alice) == Emphasis.DIMMED

    def test_unknown_author_warns(self, caplog):
        _, _, index = seven_event_index()
        with caplog.at_level("WARNING", logger="backend.temporal.attribution"):
            author_filter = index.make_filter(["zed"])
        assert author_filter.author_ids == frozenset({"zed"})
        assert "zed" in caplog.text
