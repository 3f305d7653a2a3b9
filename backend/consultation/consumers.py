"""
consultation/consumers.py

SignalingConsumer  –  ws/signaling/

One socket per browser tab.  Frames are JSON objects {"type": <event>, ...};
an event whose payload is just an id may also be sent as
{"type": <event>, "data": "<id>"}.  Every inbound payload is validated by a
serializer from consultation/serializers.py and then handed to the hub.

Outbound frames arrive on the channel layer as "signal.event" messages
(see consultation/rooms.py) and are written straight to the socket unless the
message excludes this connection.
"""

import json
import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer
from rest_framework.exceptions import APIException

from core.exceptions import ValidationError
from core.responses import flatten_detail

from . import serializers as messages
from .registry import DOCTOR, PATIENT, Identity
from .relay import ANSWER, ICE_CANDIDATE, OFFER

logger = logging.getLogger(__name__)


class SignalingConsumer(AsyncJsonWebsocketConsumer):

    hub = None

    # inbound event → handler
    HANDLERS = {
        "patient-join"       : "on_patient_join",
        "doctor-join"        : "on_doctor_join",
        "doctor-start-call"  : "on_doctor_start_call",
        "patient-answer-call": "on_patient_answer_call",
        "patient-reject-call": "on_patient_reject_call",
        "webrtc-offer"       : "on_webrtc_offer",
        "webrtc-answer"      : "on_webrtc_answer",
        "ice-candidate"      : "on_ice_candidate",
        "join-call-room"     : "on_join_call_room",
        "leave-call-room"    : "on_leave_call_room",
        "end-call"           : "on_end_call",
        "media-state-changed": "on_media_state_changed",
    }

    def __init__(self, *args, hub=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.hub = hub

    # ── Socket lifecycle ──────────────────────────────────────────────────────

    async def connect(self):
        self.hub.registry.register(self.channel_name)
        await self.accept()
        logger.info("[Signaling] %s connected", self.channel_name)

    async def disconnect(self, close_code):
        rooms = await self.hub.rooms.drop_connection(self.channel_name)
        logger.info(
            "[Signaling] %s disconnected  code=%s  notified=%s",
            self.channel_name, close_code, ",".join(rooms) or "-",
        )

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        if text_data is None:
            await self.send_error(None, "Binary frames are not supported")
            return
        try:
            content = json.loads(text_data)
        except ValueError:
            await self.send_error(None, "Malformed JSON frame")
            return
        await self.receive_json(content)

    async def receive_json(self, content, **kwargs):
        if not isinstance(content, dict) or not isinstance(content.get("type"), str):
            await self.send_error(None, "Frame must be an object with a 'type'")
            return

        event   = content["type"]
        handler = self.HANDLERS.get(event)
        if handler is None:
            logger.debug("[Signaling] ignoring unknown event %r from %s", event, self.channel_name)
            return

        if "data" in content:
            data = content["data"]
        else:
            data = {k: v for k, v in content.items() if k != "type"}

        try:
            await getattr(self, handler)(data)
        except APIException as exc:
            message = flatten_detail(exc.detail)
            logger.info("[Signaling] %s from %s failed: %s", event, self.channel_name, message)
            await self.send_error(event, message)

    # ── Outbound ──────────────────────────────────────────────────────────────

    async def signal_event(self, message):
        """Channel-layer handler for every hub-originated frame."""
        if message.get("exclude") and message["exclude"] == self.channel_name:
            return
        await self.send_json({"type": message["event"], **message["payload"]})

    async def send_event(self, event, payload):
        await self.send_json({"type": event, **payload})

    async def send_error(self, event, message):
        body = {"error": message}
        if event:
            body["event"] = event
        await self.send_event("call-error", body)

    # ── Helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    def parse(serializer_class, data):
        serializer = serializer_class(data=data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    def identity(self):
        return self.hub.registry.identity_of(self.channel_name)

    async def bind_doctor(self, doctor_id, doctor_name=""):
        """A connection that becomes a doctor stops listening for patient invitations."""
        self.hub.registry.bind(self.channel_name, Identity(DOCTOR, doctor_id), doctor_name)
        left = await self.hub.rooms.leave_personal_rooms(self.channel_name)
        if left:
            logger.info("[Signaling] %s rebound as doctor %s, left %s", self.channel_name, doctor_id, left)

    # ── Identity ──────────────────────────────────────────────────────────────

    async def on_patient_join(self, data):
        msg        = self.parse(messages.PatientJoinMessage, data)
        patient_id = msg["patientId"]

        self.hub.registry.bind(self.channel_name, Identity(PATIENT, patient_id), msg["userName"])
        room, stale = await self.hub.rooms.join_personal_room(self.channel_name, patient_id)
        logger.info("[Signaling] patient %s listening on %s", patient_id, room)

        await self.send_event("patient-room-joined", {
            "patientId": patient_id,
            "roomId"   : room,
            "leftRooms": stale,
        })

    async def on_doctor_join(self, data):
        msg = self.parse(messages.DoctorJoinMessage, data)
        await self.bind_doctor(msg["doctorId"], msg["doctorName"])
        logger.info("[Signaling] doctor %s registered on %s", msg["doctorId"], self.channel_name)

        await self.send_event("doctor-registered", {
            "doctorId"    : msg["doctorId"],
            "connectionId": self.channel_name,
        })

    # ── Call lifecycle ────────────────────────────────────────────────────────

    async def on_doctor_start_call(self, data):
        msg       = self.parse(messages.DoctorStartCallMessage, data)
        doctor_id = msg["doctor_id"]
        if not doctor_id:
            bound = self.identity()
            if bound is None or bound.kind != DOCTOR:
                raise ValidationError("callerId (or doctorId) is required")
            doctor_id = bound.id

        await self.bind_doctor(doctor_id, msg["doctor_name"])
        await self.hub.sessions.initiate(
            doctor_id,
            msg["patient_id"],
            msg["room_id"],
            consultation_type=msg["consultation_type"],
            doctor_name=msg["doctor_name"],
            doctor_connection=self.channel_name,
            offer=msg["offer"],
        )

    async def on_patient_answer_call(self, data):
        msg = self.parse(messages.PatientAnswerMessage, data)
        await self.hub.sessions.answer(msg["roomId"], self.channel_name, msg.get("answer"))

    async def on_patient_reject_call(self, data):
        msg = self.parse(messages.PatientRejectMessage, data)
        await self.hub.sessions.reject(msg["roomId"], msg["reason"], patient_connection=self.channel_name)

    async def on_end_call(self, data):
        msg      = self.parse(messages.EndCallMessage, data)
        ended_by = msg.get("endedBy")
        if not ended_by:
            bound    = self.identity()
            ended_by = bound.kind if bound else self.channel_name
        await self.hub.sessions.end(msg["roomId"], ended_by)

    # ── Call rooms ────────────────────────────────────────────────────────────

    async def on_join_call_room(self, data):
        msg = self.parse(messages.RoomMessage, data)
        await self.hub.rooms.enter_call_room(self.channel_name, msg["roomId"])

    async def on_leave_call_room(self, data):
        msg = self.parse(messages.RoomMessage, data)
        await self.hub.rooms.exit_call_room(self.channel_name, msg["roomId"])

    # ── Relayed signaling ─────────────────────────────────────────────────────

    async def _relay(self, kind, serializer_class, field, data):
        msg     = self.parse(serializer_class, data)
        payload = dict(msg["extra"])
        payload[field] = msg[field]
        await self.hub.relay.relay(kind, self.channel_name, msg["to"], payload)

    async def on_webrtc_offer(self, data):
        await self._relay(OFFER, messages.OfferMessage, "offer", data)

    async def on_webrtc_answer(self, data):
        await self._relay(ANSWER, messages.AnswerMessage, "answer", data)

    async def on_ice_candidate(self, data):
        await self._relay(ICE_CANDIDATE, messages.IceCandidateMessage, "candidate", data)

    async def on_media_state_changed(self, data):
        msg = self.parse(messages.MediaStateMessage, data)
        await self.hub.relay.relay_media_state(self.channel_name, msg["roomId"], msg["extra"])
