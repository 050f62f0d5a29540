"""
Tests for the introducer's room registry.
"""

import threading

import pytest

from natchat.introducer.registry import RoomRegistry
from natchat.network.endpoint import Endpoint


def ep(text: str) -> Endpoint:
    return Endpoint.parse(text)


class TestJoin:
    """Tests for joining rooms."""

    def test_first_join_creates_room(self):
        registry = RoomRegistry()
        others = registry.join("r1", ep("10.0.0.1:1000"))
        assert others == []
        assert "r1" in registry
        assert registry.rooms() == {"r1": 1}

    def test_snapshot_excludes_joiner_and_is_sorted(self):
        """Each JOIN sees exactly the earlier members, sorted, without itself."""
        registry = RoomRegistry()
        joiners = ["10.0.0.3:1", "10.0.0.1:1", "10.0.0.2:1", "9.0.0.1:1"]
        seen = []
        for token in joiners:
            others = registry.join("r1", ep(token))
            assert [o.key for o in others] == sorted(seen)
            seen.append(token)

    def test_rejoin_overwrites(self):
        """Re-JOIN from the same endpoint does not duplicate it."""
        registry = RoomRegistry()
        registry.join("r1", ep("10.0.0.1:1000"))
        registry.join("r1", ep("10.0.0.2:1000"))
        others = registry.join("r1", ep("10.0.0.1:1000"))

        assert [o.key for o in others] == ["10.0.0.2:1000"]
        assert registry.rooms() == {"r1": 2}

    def test_rooms_are_independent(self):
        registry = RoomRegistry()
        registry.join("r1", ep("10.0.0.1:1"))
        others = registry.join("r2", ep("10.0.0.2:1"))
        assert others == []
        assert registry.rooms() == {"r1": 1, "r2": 1}

    def test_members_exclude(self):
        registry = RoomRegistry()
        for token in ["10.0.0.2:1", "10.0.0.1:1"]:
            registry.join("r1", ep(token))

        assert [m.key for m in registry.members("r1")] == ["10.0.0.1:1", "10.0.0.2:1"]
        assert [m.key for m in registry.members("r1", exclude=ep("10.0.0.1:1"))] == ["10.0.0.2:1"]
        assert registry.members("missing") == []


class TestLeave:
    """Tests for leaving rooms."""

    def test_last_leave_removes_room(self):
        """LEAVE of the only member drops the room."""
        registry = RoomRegistry()
        registry.join("r1", ep("10.0.0.1:1000"))

        assert registry.leave("r1", ep("10.0.0.1:1000")) is True
        assert "r1" not in registry
        assert len(registry) == 0

    def test_rejoin_after_removal_starts_fresh(self):
        registry = RoomRegistry()
        registry.join("r1", ep("10.0.0.1:1000"))
        registry.leave("r1", ep("10.0.0.1:1000"))

        others = registry.join("r1", ep("10.0.0.2:1000"))
        assert others == []
        assert registry.rooms() == {"r1": 1}

    def test_leave_keeps_other_members(self):
        registry = RoomRegistry()
        registry.join("r1", ep("10.0.0.1:1"))
        registry.join("r1", ep("10.0.0.2:1"))

        registry.leave("r1", ep("10.0.0.1:1"))
        assert [m.key for m in registry.members("r1")] == ["10.0.0.2:1"]

    def test_leave_unknown(self):
        registry = RoomRegistry()
        assert registry.leave("nope", ep("10.0.0.1:1")) is False

        registry.join("r1", ep("10.0.0.1:1"))
        assert registry.leave("r1", ep("10.0.0.9:1")) is False
        assert registry.rooms() == {"r1": 1}


class TestConcurrency:
    """Tests for concurrent mutation."""

    def test_parallel_joins(self):
        registry = RoomRegistry()

        def join_many(base):
            for i in range(100):
                registry.join("r1", Endpoint("10.0.0.1", base + i))

        threads = [threading.Thread(target=join_many, args=(n * 100,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert registry.rooms() == {"r1": 500}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
