"""
Room membership and signaling relay, driven against bare channel-layer
connections (no sockets, no database).
"""
import pytest
from channels.exceptions import ChannelFull

from consultation.registry import PATIENT, Identity
from consultation.relay import ICE_CANDIDATE, OFFER

from .helpers import next_signal, no_signal


@pytest.mark.asyncio
class TestRooms:

    async def test_personal_room_evicts_stale_patient_room(self, hub, make_connection):
        conn = await make_connection()

        await hub.rooms.join_personal_room(conn, "P1")
        room, stale = await hub.rooms.join_personal_room(conn, "P2")

        assert room == "patient_P2"
        assert stale == ["patient_P1"]
        assert hub.registry.rooms_of(conn) == {"patient_P2"}
        assert not hub.registry.room_exists("patient_P1")

    async def test_rejoining_same_personal_room_keeps_it(self, hub, make_connection):
        conn = await make_connection()
        await hub.rooms.join_personal_room(conn, "P1")

        room, stale = await hub.rooms.join_personal_room(conn, "P1")

        assert stale == []
        assert hub.registry.members(room) == [conn]

    async def test_personal_room_eviction_leaves_call_rooms_alone(self, hub, make_connection):
        conn = await make_connection()
        await hub.rooms.join_personal_room(conn, "P1")
        await hub.rooms.join(conn, "R1")

        await hub.rooms.join_personal_room(conn, "P2")

        assert hub.registry.rooms_of(conn) == {"patient_P2", "R1"}

    async def test_broadcast_reaches_members(self, hub, make_connection):
        a, b = await make_connection(), await make_connection()
        await hub.rooms.join(a, "R1")
        await hub.rooms.join(b, "R1")

        count = await hub.rooms.broadcast("R1", "call-ended", {"roomId": "R1"}, exclude=a)

        assert count == 1
        event, payload, exclude = await next_signal(hub, b)
        assert (event, payload, exclude) == ("call-ended", {"roomId": "R1"}, a)

    async def test_broadcast_to_empty_room_is_dropped(self, hub):
        assert await hub.rooms.broadcast("nowhere", "call-ended", {}) == 0

    async def test_send_to_gone_connection_is_dropped(self, hub):
        assert await hub.rooms.send("gone", "webrtc-offer", {}) is False

    async def test_send_to_backed_up_connection_is_dropped(self, hub, make_connection, monkeypatch):
        conn = await make_connection()

        async def full(channel, message):
            raise ChannelFull()

        monkeypatch.setattr(hub.channel_layer, "send", full)

        assert await hub.rooms.send(conn, "webrtc-offer", {}) is False

    async def test_leave_personal_rooms(self, hub, make_connection):
        conn = await make_connection()
        await hub.rooms.join_personal_room(conn, "P1")
        await hub.rooms.join(conn, "R1")

        left = await hub.rooms.leave_personal_rooms(conn)

        assert left == ["patient_P1"]
        assert hub.registry.rooms_of(conn) == {"R1"}
        assert not hub.registry.room_exists("patient_P1")

    async def test_enter_call_room_announces_and_reports_size(self, hub, make_connection):
        a, b = await make_connection(), await make_connection()
        await hub.rooms.enter_call_room(a, "R1")
        assert await next_signal(hub, a) == ("room-size-update", {"roomId": "R1", "size": 1}, None)

        size = await hub.rooms.enter_call_room(b, "R1")

        assert size == 2
        assert await next_signal(hub, a) == ("user-joined", {"userId": b}, b)
        assert await next_signal(hub, a) == ("room-size-update", {"roomId": "R1", "size": 2}, None)

    async def test_exit_call_room_notifies_remaining(self, hub, make_connection):
        a, b = await make_connection(), await make_connection()
        await hub.rooms.join(a, "R1")
        await hub.rooms.join(b, "R1")

        assert await hub.rooms.exit_call_room(b, "R1") is True

        assert await next_signal(hub, a) == ("user-left", {"userId": b}, None)
        assert await hub.rooms.exit_call_room(b, "R1") is False

    async def test_drop_connection_cascades(self, hub, make_connection):
        a, b = await make_connection(), await make_connection()
        await hub.rooms.join(a, "R1")
        await hub.rooms.join(b, "R1")
        await hub.rooms.join(b, "solo")

        populated = await hub.rooms.drop_connection(b)

        assert populated == ["R1"]
        assert await next_signal(hub, a) == ("user-left", {"userId": b}, None)
        assert not hub.registry.room_exists("solo")
        assert not hub.registry.is_connected(b)

    async def test_clear_room(self, hub, make_connection):
        a, b = await make_connection(), await make_connection()
        await hub.rooms.join(a, "R1")
        await hub.rooms.join(b, "R1")

        assert await hub.rooms.clear("R1") == sorted([a, b])
        assert await hub.rooms.broadcast("R1", "call-ended", {}) == 0


@pytest.mark.asyncio
class TestRelay:

    async def test_offer_to_connection(self, hub, make_connection):
        a, b = await make_connection(), await make_connection()

        delivered = await hub.relay.relay(OFFER, a, b, {"offer": {"sdp": "v=0", "type": "offer"}})

        assert delivered == 1
        event, payload, _ = await next_signal(hub, b)
        assert event == "webrtc-offer"
        assert payload["from"] == a
        assert payload["offer"] == {"sdp": "v=0", "type": "offer"}
        assert "timestamp" in payload

    async def test_absent_target_is_silently_dropped(self, hub, make_connection):
        a = await make_connection()

        assert await hub.relay.relay(OFFER, a, "nobody-here", {"offer": {}}) == 0

    async def test_backed_up_target_does_not_fail_the_sender(self, hub, make_connection, monkeypatch):
        a, b = await make_connection(), await make_connection()

        async def full(channel, message):
            raise ChannelFull()

        monkeypatch.setattr(hub.channel_layer, "send", full)

        assert await hub.relay.relay(OFFER, a, b, {"offer": {}}) == 0

    async def test_never_echoes_to_sender(self, hub, make_connection):
        a = await make_connection()

        assert await hub.relay.relay(ICE_CANDIDATE, a, a, {"candidate": {}}) == 0
        await no_signal(hub, a)

    async def test_room_target_excludes_sender(self, hub, make_connection):
        a, b, c = await make_connection(), await make_connection(), await make_connection()
        for conn in (a, b, c):
            await hub.rooms.join(conn, "R1")

        delivered = await hub.relay.relay(ICE_CANDIDATE, a, "R1", {"candidate": {"candidate": "x"}})

        assert delivered == 2
        for conn in (b, c):
            event, payload, exclude = await next_signal(hub, conn)
            assert event == "ice-candidate"
            assert payload["roomId"] == "R1"
            assert exclude == a

    async def test_connection_wins_over_room_of_same_name(self, hub, make_connection):
        a, b, c = await make_connection(), await make_connection(), await make_connection()
        await hub.rooms.join(c, b)

        assert await hub.relay.relay(OFFER, a, b, {"offer": {}}) == 1
        await no_signal(hub, c)

    async def test_media_state_goes_to_the_call_room(self, hub, make_connection):
        a, b = await make_connection(), await make_connection()
        hub.registry.bind(a, Identity(PATIENT, "P1"))
        await hub.rooms.join(a, "R1")
        await hub.rooms.join(b, "R1")

        count = await hub.relay.relay_media_state(a, "R1", {"audio": False, "video": True})

        assert count == 1
        event, payload, _ = await next_signal(hub, b)
        assert event == "media-state-changed"
        assert payload == {"audio": False, "video": True, "from": a, "roomId": "R1"}
