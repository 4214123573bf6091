import pytest

from taskhub.realtime.exceptions import InvalidPayload
from taskhub.realtime.exceptions import NotFound
from taskhub.realtime.exceptions import RoomClosed
from taskhub.realtime.exceptions import StaleRoomDelivery
from taskhub.realtime.rooms import RoomMultiplexer


class TestRoomMultiplexer:
    def setup_method(self):
        self.rooms = RoomMultiplexer()

    def test_join_is_idempotent(self):
        assert self.rooms.join("sid-a", "t1") is True
        assert self.rooms.join("sid-a", "t1") is False
        assert self.rooms.subscribers("t1") == frozenset({"sid-a"})

    def test_join_accepts_mapping_payload(self):
        self.rooms.join("sid-a", {"taskId": "t1"})
        assert self.rooms.rooms_of("sid-a") == frozenset({"t1"})

    def test_leave_removes_membership_and_empty_room(self):
        self.rooms.join("sid-a", "t1")
        self.rooms.leave("sid-a", "t1")

        assert self.rooms.subscribers("t1") == frozenset()
        assert len(self.rooms) == 0

    def test_leave_without_membership_is_not_found(self):
        with pytest.raises(NotFound):
            self.rooms.leave("sid-a", "t1")

    def test_drop_connection_leaves_every_room(self):
        self.rooms.join("sid-a", "t1")
        self.rooms.join("sid-a", "t2")
        self.rooms.join("sid-b", "t2")

        left = self.rooms.drop_connection("sid-a")

        assert left == frozenset({"t1", "t2"})
        assert self.rooms.subscribers("t2") == frozenset({"sid-b"})
        assert self.rooms.rooms_of("sid-a") == frozenset()
        assert self.rooms.drop_connection("sid-a") == frozenset()

    def test_close_returns_members_and_tombstones(self):
        self.rooms.join("sid-a", "t1")
        self.rooms.join("sid-b", "t1")

        members = self.rooms.close("t1")

        assert members == frozenset({"sid-a", "sid-b"})
        assert self.rooms.subscribers("t1") == frozenset()
        assert self.rooms.rooms_of("sid-a") == frozenset()
        assert self.rooms.is_closed("t1")
        with pytest.raises(RoomClosed):
            self.rooms.join("sid-c", "t1")
        with pytest.raises(StaleRoomDelivery):
            self.rooms.require_open("t1")

    def test_tombstones_are_bounded(self):
        rooms = RoomMultiplexer(tombstone_limit=2)
        for task_id in ("t1", "t2", "t3"):
            rooms.close(task_id)

        assert not rooms.is_closed("t1")
        assert rooms.is_closed("t2")
        assert rooms.is_closed("t3")

    def test_zero_limit_disables_tombstones(self):
        rooms = RoomMultiplexer(tombstone_limit=0)
        rooms.close("t1")
        assert rooms.join("sid-a", "t1") is True

    @pytest.mark.parametrize("bad", [None, "", "   ", True, {"other": 1}])
    def test_rejects_blank_task_ids(self, bad):
        with pytest.raises(InvalidPayload):
            self.rooms.join("sid-a", bad)
