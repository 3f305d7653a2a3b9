"""
consultation/rooms.py

Room membership on top of the connection registry.

Every room is mirrored onto a channel-layer group so the transport can fan out
broadcasts; the registry keeps the authoritative member list (room sizes,
exclusion of the sender, stale-room eviction).  A room exists only while it has
members.

Outbound frames reach the consumer as channel-layer messages of type
"signal.event" and are written to the socket as {"type": <event>, ...payload}.
"""

import hashlib
import logging
import re

from channels.exceptions import ChannelFull
from django.utils import timezone

from .registry import is_personal_room, personal_room

logger = logging.getLogger(__name__)

_GROUP_SAFE = re.compile(r"^[A-Za-z0-9_.\-]{1,80}$")


def group_name(room):
    """Channel-layer group for a room (group names are restricted to ASCII)."""
    if _GROUP_SAFE.match(room):
        return f"room.{room}"
    return "roomh." + hashlib.sha1(room.encode("utf-8")).hexdigest()


def signal_message(event, payload, exclude=None):
    return {
        "type"   : "signal.event",
        "event"  : event,
        "payload": payload,
        "exclude": exclude,
    }


def now_iso():
    return timezone.now().isoformat()


class RoomManager:

    def __init__(self, registry, channel_layer):
        self.registry      = registry
        self.channel_layer = channel_layer

    # ── Membership ────────────────────────────────────────────────────────────

    async def join(self, connection_id, room):
        added = self.registry.add_member(room, connection_id)
        if added:
            await self.channel_layer.group_add(group_name(room), connection_id)
        return added

    async def leave(self, connection_id, room):
        removed = self.registry.remove_member(room, connection_id)
        if removed:
            await self.channel_layer.group_discard(group_name(room), connection_id)
        return removed

    async def join_personal_room(self, connection_id, patient_id):
        """
        Put the connection in ``patient_<patient_id>`` after leaving any other
        personal room it still holds, so a client that re-joins under another
        patient id stops receiving the old patient's invitations.
        """
        room  = personal_room(patient_id)
        stale = await self.leave_personal_rooms(connection_id, keep=room)
        await self.join(connection_id, room)
        return room, stale

    async def leave_personal_rooms(self, connection_id, keep=None):
        """Leave every ``patient_*`` room except ``keep``; returns the rooms left."""
        stale = [r for r in self.registry.rooms_of(connection_id) if is_personal_room(r) and r != keep]
        for old in stale:
            await self.leave(connection_id, old)
            logger.info("[Rooms] %s left stale room %s", connection_id, old)
        return stale

    async def clear(self, room):
        members = self.registry.clear_room(room)
        for connection_id in members:
            await self.channel_layer.group_discard(group_name(room), connection_id)
        if members:
            logger.info("[Rooms] cleared %s (%d members)", room, len(members))
        return members

    def room_size(self, room):
        return self.registry.room_size(room)

    # ── Delivery ──────────────────────────────────────────────────────────────

    async def send(self, connection_id, event, payload):
        """Deliver to one connection; unknown or backed-up connections are dropped."""
        if not self.registry.is_connected(connection_id):
            logger.debug("[Rooms] drop %s for gone connection %s", event, connection_id)
            return False
        try:
            await self.channel_layer.send(connection_id, signal_message(event, payload))
        except ChannelFull:
            logger.warning("[Rooms] channel %s is full, dropping %s", connection_id, event)
            return False
        return True

    async def broadcast(self, room, event, payload, exclude=None):
        """Deliver to every member of ``room`` except ``exclude``; returns the recipient count."""
        recipients = [cid for cid in self.registry.members(room) if cid != exclude]
        if not recipients:
            logger.debug("[Rooms] drop %s for empty room %s", event, room)
            return 0
        await self.channel_layer.group_send(group_name(room), signal_message(event, payload, exclude))
        return len(recipients)

    # ── Call rooms ────────────────────────────────────────────────────────────

    async def enter_call_room(self, connection_id, room):
        await self.join(connection_id, room)
        await self.broadcast(room, "user-joined", {"userId": connection_id}, exclude=connection_id)
        size = self.room_size(room)
        await self.broadcast(room, "room-size-update", {"roomId": room, "size": size})
        logger.info("[Rooms] %s joined call room %s  size=%d", connection_id, room, size)
        return size

    async def exit_call_room(self, connection_id, room):
        removed = await self.leave(connection_id, room)
        if removed:
            await self.broadcast(room, "user-left", {"userId": connection_id})
            logger.info("[Rooms] %s left call room %s", connection_id, room)
        return removed

    async def drop_connection(self, connection_id):
        """Disconnect cascade: leave every room, tell the rooms that remain."""
        rooms     = self.registry.rooms_of(connection_id)
        populated = self.registry.unregister(connection_id)
        for room in rooms:
            await self.channel_layer.group_discard(group_name(room), connection_id)
        for room in populated:
            await self.broadcast(room, "user-left", {"userId": connection_id})
        return populated
