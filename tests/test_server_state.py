"""Tests for roster diffing and the per-server state store."""

import pytest

from server_state import (
    RosterDiff,
    ServerRuntimeState,
    ServerStateStore,
    diff_rosters,
)


class TestDiffRosters:
    def test_join_and_leave(self):
        diff = diff_rosters(["Alice", "Bob"], ["Bob", "Carol"])
        assert diff.joined == ("Carol",)
        assert diff.left == ("Alice",)
        assert diff.changed

    def test_identical_rosters(self):
        diff = diff_rosters(["Alice", "Bob"], ["Bob", "Alice"])
        assert diff == RosterDiff()
        assert not diff.changed

    def test_empty_previous_everyone_joins(self):
        diff = diff_rosters([], ["Zed", "Amy"])
        assert diff.joined == ("Zed", "Amy")
        assert diff.left == ()

    def test_everyone_leaves(self):
        diff = diff_rosters(["Zed", "Amy"], [])
        assert diff.joined == ()
        assert diff.left == ("Zed", "Amy")

    def test_order_follows_source_roster(self):
        diff = diff_rosters(["d", "c", "b", "a"], ["z", "b", "y"])
        assert diff.joined == ("z", "y")
        assert diff.left == ("d", "c", "a")

    def test_names_are_case_sensitive(self):
        diff = diff_rosters(["steve"], ["Steve"])
        assert diff.joined == ("Steve",)
        assert diff.left == ("steve",)

    def test_accepts_generators(self):
        diff = diff_rosters((n for n in ["a"]), (n for n in ["a", "b"]))
        assert diff.joined == ("b",)


class TestServerStateStore:
    def test_get_creates_default(self):
        store = ServerStateStore()
        assert "A" not in store

        state = store.get("A")

        assert state == ServerRuntimeState()
        assert state.last_players == ()
        assert state.unreachable is False
        assert state.baseline_established is False
        assert "A" in store
        assert len(store) == 1

    def test_update_replaces_roster_and_flag_together(self):
        store = ServerStateStore()
        store.mark_unreachable("A")

        state = store.update("A", ["Bob"], unreachable=False)

        assert state.last_players == ("Bob",)
        assert state.unreachable is False
        assert state.baseline_established is True
        assert store.get("A") is state

    def test_mark_unreachable_keeps_roster(self):
        store = ServerStateStore()
        store.update("A", ["Bob", "Carol"], unreachable=False)

        state = store.mark_unreachable("A")

        assert state.unreachable is True
        assert state.last_players == ("Bob", "Carol")
        assert state.baseline_established is True

    def test_states_are_independent(self):
        store = ServerStateStore()
        store.update("A", ["Bob"], unreachable=False)
        store.mark_unreachable("B")

        assert store.get("A").unreachable is False
        assert store.get("B").last_players == ()

    def test_states_are_immutable(self):
        state = ServerStateStore().get("A")
        with pytest.raises(Exception):
            state.unreachable = True  # type: ignore[misc]

    def test_snapshot_is_a_copy(self):
        store = ServerStateStore()
        store.get("A")
        snap = store.snapshot()
        snap.clear()
        assert "A" in store
