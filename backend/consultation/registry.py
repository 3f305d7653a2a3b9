"""
consultation/registry.py

In-memory registry of live signaling connections.

    connection id  →  Connection(identity, rooms, connected_at)
    room name      →  { connection ids }

One registry exists per server process (owned by the SignalingHub).  Every
mutation goes through a lock: consumers run on the event loop, but store calls
made via database_sync_to_async finish on worker threads and may touch the
registry from there.
"""

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime

from core.exceptions import NotFound

PATIENT = "patient"
DOCTOR  = "doctor"

PERSONAL_ROOM_PREFIX = "patient_"


def personal_room(patient_id):
    return f"{PERSONAL_ROOM_PREFIX}{patient_id}"


def is_personal_room(room):
    return room.startswith(PERSONAL_ROOM_PREFIX)


@dataclass(frozen=True)
class Identity:
    kind: str
    id: str

    def __str__(self):
        return f"{self.kind}:{self.id}"


@dataclass
class Connection:
    connection_id: str
    identity: Identity = None
    display_name: str = ""
    rooms: set = field(default_factory=set)
    connected_at: str = field(default_factory=lambda: datetime.now().isoformat())
    bound_at: str = ""
    bind_order: int = 0


class ConnectionRegistry:

    def __init__(self):
        self._lock        = threading.Lock()
        self._connections = {}
        self._rooms       = {}
        self._sequence    = itertools.count(1)

    # ── Connections ───────────────────────────────────────────────────────────

    def register(self, connection_id, identity=None, display_name=""):
        with self._lock:
            conn = self._connections.get(connection_id)
            if conn is None:
                conn = Connection(connection_id)
                self._connections[connection_id] = conn
            if identity is not None:
                conn.identity     = identity
                conn.display_name = display_name or conn.display_name
                conn.bound_at     = datetime.now().isoformat()
                conn.bind_order   = next(self._sequence)
            return conn

    def bind(self, connection_id, identity, display_name=""):
        """Bind (or rebind) the identity of a live connection."""
        with self._lock:
            conn = self._connections.get(connection_id)
            if conn is None:
                raise NotFound(f"Connection {connection_id} is not registered")
            previous          = conn.identity
            conn.identity     = identity
            conn.display_name = display_name or conn.display_name
            conn.bound_at     = datetime.now().isoformat()
            conn.bind_order   = next(self._sequence)
            return previous

    def unregister(self, connection_id):
        """
        Forget a connection and drop it from every room.
        Returns the rooms it was in that still have members, so the caller
        can tell the remaining participants.
        """
        with self._lock:
            conn = self._connections.pop(connection_id, None)
            if conn is None:
                return []
            still_populated = []
            for room in sorted(conn.rooms):
                if self._discard_member(room, connection_id):
                    still_populated.append(room)
            return still_populated

    def is_connected(self, connection_id):
        with self._lock:
            return connection_id in self._connections

    def identity_of(self, connection_id):
        with self._lock:
            conn = self._connections.get(connection_id)
            return conn.identity if conn else None

    def find_by_identity(self, identity):
        """Connection most recently bound to ``identity``."""
        with self._lock:
            matches = [c for c in self._connections.values() if c.identity == identity]
        if not matches:
            raise NotFound(f"No live connection for {identity}")
        return max(matches, key=lambda c: c.bind_order).connection_id

    def connections_for(self, identity):
        with self._lock:
            return [cid for cid, c in self._connections.items() if c.identity == identity]

    # ── Rooms ─────────────────────────────────────────────────────────────────

    def add_member(self, room, connection_id):
        """Returns True when the connection was not already in the room."""
        with self._lock:
            conn = self._connections.get(connection_id)
            if conn is None:
                raise NotFound(f"Connection {connection_id} is not registered")
            members = self._rooms.setdefault(room, set())
            added   = connection_id not in members
            members.add(connection_id)
            conn.rooms.add(room)
            return added

    def remove_member(self, room, connection_id):
        """Returns True when the connection was a member."""
        with self._lock:
            if connection_id not in self._rooms.get(room, ()):
                return False
            self._discard_member(room, connection_id)
            conn = self._connections.get(connection_id)
            if conn is not None:
                conn.rooms.discard(room)
            return True

    def clear_room(self, room):
        """Remove every member of ``room``; returns the former members."""
        with self._lock:
            members = self._rooms.pop(room, set())
            for connection_id in members:
                conn = self._connections.get(connection_id)
                if conn is not None:
                    conn.rooms.discard(room)
            return sorted(members)

    def _discard_member(self, room, connection_id):
        # caller holds the lock
        members = self._rooms.get(room)
        if members is None:
            return False
        members.discard(connection_id)
        if not members:
            del self._rooms[room]
            return False
        return True

    def members(self, room):
        with self._lock:
            return sorted(self._rooms.get(room, ()))

    def room_size(self, room):
        with self._lock:
            return len(self._rooms.get(room, ()))

    def rooms_of(self, connection_id):
        with self._lock:
            conn = self._connections.get(connection_id)
            return set(conn.rooms) if conn else set()

    def room_exists(self, room):
        with self._lock:
            return room in self._rooms

    # ── Monitoring ────────────────────────────────────────────────────────────

    def summary(self):
        with self._lock:
            patient_rooms = [r for r in self._rooms if is_personal_room(r)]
            call_rooms    = {r: len(m) for r, m in self._rooms.items() if not is_personal_room(r)}
            by_kind = {}
            for conn in self._connections.values():
                kind = conn.identity.kind if conn.identity else "anonymous"
                by_kind[kind] = by_kind.get(kind, 0) + 1
            return {
                "totalConnections"  : len(self._connections),
                "connectionsByKind" : by_kind,
                "activePatientRooms": len(patient_rooms),
                "activeCallRooms"   : len(call_rooms),
                "callRooms"         : call_rooms,
                "timestamp"         : datetime.now().isoformat(),
            }
