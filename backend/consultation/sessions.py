"""
consultation/sessions.py

Call lifecycle:   connecting  →  connected  →  ended

Every transition is written to the database first and only then announced on
the socket, so a crash in between loses a live event but never the record.
Database work runs through database_sync_to_async; the ring timer is an
asyncio task per call room.
"""

import asyncio
import logging

from channels.db import database_sync_to_async
from django.conf import settings
from django.db import IntegrityError
from django.utils import timezone

from core.exceptions import InvalidState, NotFound, SessionAlreadyActive
from core.store import atomic_write

from .models import CallSession
from .registry import DOCTOR, Identity, personal_room
from .rooms import now_iso

logger = logging.getLogger(__name__)


# =============================================================================
# Store operations (synchronous, run in a worker thread)
# =============================================================================

ENDED_FIELDS = ["status", "ended_by", "end_reason", "ended_at", "duration_seconds", "updated_at"]


def _latest(room_id, lock=False):
    qs = CallSession.objects.select_for_update() if lock else CallSession.objects
    return qs.filter(room_id=room_id).order_by("-started_at", "-created_at").first()


def _create(room_id, doctor_id, doctor_name, patient_id, patient_name, consultation_type):
    if CallSession.objects.select_for_update().filter(room_id=room_id).exclude(
        status=CallSession.STATUS_ENDED
    ).exists():
        raise SessionAlreadyActive(f"A call is already active in room {room_id}")
    return CallSession.objects.create(
        room_id           = room_id,
        doctor_id         = doctor_id,
        doctor_name       = doctor_name,
        patient_id        = patient_id,
        patient_name      = patient_name,
        consultation_type = consultation_type,
        status            = CallSession.STATUS_CONNECTING,
        doctor_joined     = True,
        patient_joined    = False,
        started_at        = timezone.now(),
    )


def _mark_connected(room_id):
    session = _latest(room_id, lock=True)
    if session is None:
        raise NotFound(f"No call session for room {room_id}")
    if not session.is_live:
        raise InvalidState("This call has already ended")
    if session.status == CallSession.STATUS_CONNECTED:
        return session, False
    session.status         = CallSession.STATUS_CONNECTED
    session.patient_joined = True
    session.connected_at   = timezone.now()
    session.save(update_fields=["status", "patient_joined", "connected_at", "updated_at"])
    return session, True


def _mark_ended(room_id, ended_by, reason=""):
    session = _latest(room_id, lock=True)
    if session is None:
        raise NotFound(f"No call session for room {room_id}")
    if not session.is_live:
        raise InvalidState("This call has already ended")
    session.close(ended_by, reason)
    session.save(update_fields=ENDED_FIELDS)
    return session


def _expire(call_id):
    """End a call that is still ringing; returns None if it moved on meanwhile."""
    session = CallSession.objects.select_for_update().filter(pk=call_id).first()
    if session is None or session.status != CallSession.STATUS_CONNECTING:
        return None
    session.close(CallSession.ENDED_BY_TIMEOUT, "No answer")
    session.save(update_fields=ENDED_FIELDS)
    return session


def _create_session(room_id, doctor_id, doctor_name, patient_id, patient_name, consultation_type):
    try:
        return atomic_write(
            _create, room_id, doctor_id, doctor_name, patient_id, patient_name, consultation_type,
            label=f"create call {room_id}",
        )
    except IntegrityError:
        # Lost the race against another initiate on the same room.
        raise SessionAlreadyActive(f"A call is already active in room {room_id}")


def get_session(room_id):
    session = _latest(room_id)
    if session is None:
        raise NotFound("Call session not found")
    return session


# =============================================================================
# CallSessionService
# =============================================================================

class CallSessionService:

    def __init__(self, registry, rooms, ring_timeout=None):
        self.registry     = registry
        self.rooms        = rooms
        self.ring_timeout = settings.CALL_RING_TIMEOUT_SECONDS if ring_timeout is None else ring_timeout
        self._timers      = {}

    # ── Transitions ───────────────────────────────────────────────────────────

    async def initiate(self, doctor_id, patient_id, room_id, consultation_type=CallSession.TYPE_VIDEO,
                       doctor_name="", doctor_connection=None, offer=None, patient_name=""):
        """
        Open a call: persist a 'connecting' session, put the doctor in the call
        room and ring the patient's personal room once.
        Raises SessionAlreadyActive when the room already has a live call.
        """
        session = await database_sync_to_async(_create_session)(
            room_id, doctor_id, doctor_name, patient_id, patient_name, consultation_type,
        )
        logger.info("[Call] %s call %s: Dr.%s → patient %s", consultation_type, room_id, doctor_id, patient_id)

        if doctor_connection:
            await self.rooms.join(doctor_connection, room_id)

        invitation = {
            "doctorName"      : doctor_name,
            "doctorId"        : doctor_id,
            "roomId"          : room_id,
            "callType"        : consultation_type,
            "consultationType": consultation_type,
            "callId"          : str(session.call_id),
            "timestamp"       : now_iso(),
        }
        if doctor_connection:
            invitation["from"] = doctor_connection
        if offer is not None:
            invitation["offer"] = offer

        delivered = await self.rooms.broadcast(
            personal_room(patient_id), "incoming-call-from-doctor", invitation, exclude=doctor_connection,
        )
        if not delivered:
            logger.info("[Call] patient %s has no live connection, call %s keeps ringing", patient_id, room_id)

        self._arm_timer(session)
        return session

    async def patient_join(self, room_id, patient_connection=None):
        """connecting → connected.  Joining an already connected call is a no-op."""
        session, changed = await database_sync_to_async(_mark_connected)(room_id)
        if changed:
            self._cancel_timer(room_id)
            logger.info("[Call] %s connected", room_id)
        if patient_connection:
            await self.rooms.join(patient_connection, room_id)
        return session

    async def answer(self, room_id, patient_connection, answer=None):
        session = await self.patient_join(room_id, patient_connection)
        payload = {"from": patient_connection, "roomId": room_id, "timestamp": now_iso()}
        if answer is not None:
            payload["answer"] = answer
        await self.rooms.broadcast(room_id, "call-answered-by-patient", payload, exclude=patient_connection)
        return session

    async def reject(self, room_id, reason="", patient_connection=None):
        session = await database_sync_to_async(_mark_ended)(
            room_id, CallSession.ENDED_BY_PATIENT, reason,
        )
        self._cancel_timer(room_id)
        logger.info("[Call] %s rejected by patient (%s)", room_id, reason or "no reason")

        payload = {"from": patient_connection, "reason": reason, "roomId": room_id, "timestamp": now_iso()}
        doctor_connections = set(self.registry.members(room_id))
        doctor_connections.update(self.registry.connections_for(Identity(DOCTOR, session.doctor_id)))
        doctor_connections.discard(patient_connection)
        for connection_id in sorted(doctor_connections):
            await self.rooms.send(connection_id, "call-rejected-by-patient", payload)

        await self.rooms.clear(room_id)
        return session

    async def end(self, room_id, ended_by):
        """Any live state → ended.  Everyone in the call room is told, then the room is cleared."""
        session = await database_sync_to_async(_mark_ended)(room_id, ended_by)
        self._cancel_timer(room_id)
        logger.info("[Call] %s ended by %s", room_id, ended_by)

        await self.rooms.broadcast(room_id, "call-ended", {
            "roomId"   : room_id,
            "endedBy"  : ended_by,
            "timestamp": now_iso(),
        })
        await self.rooms.clear(room_id)
        return session

    # ── Ring timer ────────────────────────────────────────────────────────────

    def _arm_timer(self, session):
        if not self.ring_timeout or self.ring_timeout <= 0:
            return
        self._cancel_timer(session.room_id)
        self._timers[session.room_id] = asyncio.ensure_future(
            self._ring(session.room_id, session.call_id, session.patient_id)
        )

    def _cancel_timer(self, room_id):
        task = self._timers.pop(room_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _ring(self, room_id, call_id, patient_id):
        try:
            await asyncio.sleep(self.ring_timeout)
        except asyncio.CancelledError:
            return

        self._timers.pop(room_id, None)
        session = await database_sync_to_async(
            lambda: atomic_write(_expire, call_id, label=f"expire call {room_id}")
        )()
        if session is None:
            return

        logger.info("[Call] %s not answered within %ss, ending", room_id, self.ring_timeout)
        payload = {
            "roomId"   : room_id,
            "endedBy"  : CallSession.ENDED_BY_TIMEOUT,
            "reason"   : session.end_reason,
            "timestamp": now_iso(),
        }
        await self.rooms.broadcast(room_id, "call-ended", payload)
        await self.rooms.broadcast(personal_room(patient_id), "call-ended", payload)
        await self.rooms.clear(room_id)

    def pending_timers(self):
        return sorted(room for room, task in self._timers.items() if not task.done())
