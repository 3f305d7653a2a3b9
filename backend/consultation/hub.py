"""
consultation/hub.py

One SignalingHub per server process.  It owns the connection registry and
wires the room manager, relay and call-session service around it; the
consultation AppConfig builds it at startup and the WebSocket consumer
receives it through ``SignalingConsumer.as_asgi(hub=...)``.
"""

from channels.layers import get_channel_layer

from .registry import ConnectionRegistry
from .relay import SignalingRelay
from .rooms import RoomManager
from .sessions import CallSessionService


class SignalingHub:

    def __init__(self, channel_layer=None, ring_timeout=None):
        self.channel_layer = channel_layer or get_channel_layer()
        self.registry      = ConnectionRegistry()
        self.rooms         = RoomManager(self.registry, self.channel_layer)
        self.relay         = SignalingRelay(self.registry, self.rooms)
        self.sessions      = CallSessionService(self.registry, self.rooms, ring_timeout=ring_timeout)

    def summary(self):
        data = self.registry.summary()
        data["ringingCalls"] = self.sessions.pending_timers()
        return data
