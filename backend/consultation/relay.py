"""
consultation/relay.py

Best-effort forwarding of WebRTC signaling between connections.  The relay
never looks inside SDP offers/answers or ICE candidates; it only resolves the
target, stamps the sender, and hands the frame to the transport.  A target
with no live connection is not an error: the frame is dropped.
"""

import logging

from .rooms import now_iso

logger = logging.getLogger(__name__)

OFFER         = "offer"
ANSWER        = "answer"
ICE_CANDIDATE = "ice-candidate"

# inbound kind → outbound event
KINDS = {
    OFFER        : "webrtc-offer",
    ANSWER       : "webrtc-answer",
    ICE_CANDIDATE: "ice-candidate",
}


class SignalingRelay:

    def __init__(self, registry, rooms):
        self.registry = registry
        self.rooms    = rooms

    def _resolve(self, target):
        """A live connection id wins over a room of the same name."""
        if self.registry.is_connected(target):
            return "connection"
        if self.registry.room_exists(target):
            return "room"
        return None

    async def relay(self, kind, from_connection, target, payload):
        """
        Forward ``payload`` (the opaque offer / answer / candidate plus any
        extra client fields) to ``target``.  Returns the number of connections
        the frame was handed to; the sender never receives its own frame.
        """
        event = KINDS[kind]
        frame = dict(payload)
        frame["from"]      = from_connection
        frame["timestamp"] = now_iso()

        resolved = self._resolve(target)
        if resolved == "connection":
            if target == from_connection:
                return 0
            delivered = 1 if await self.rooms.send(target, event, frame) else 0
        elif resolved == "room":
            frame.setdefault("roomId", target)
            delivered = await self.rooms.broadcast(target, event, frame, exclude=from_connection)
        else:
            delivered = 0

        if delivered:
            logger.debug("[Relay] %s %s → %s (%d)", event, from_connection, target, delivered)
        else:
            logger.debug("[Relay] %s from %s dropped, no target %s", event, from_connection, target)
        return delivered

    async def relay_media_state(self, from_connection, room, payload):
        """Mute/camera toggles go to the other members of the call room."""
        frame = dict(payload)
        frame["from"]   = from_connection
        frame["roomId"] = room
        return await self.rooms.broadcast(room, "media-state-changed", frame, exclude=from_connection)
