# consultation/serializers.py
#
# Inbound socket events and the call REST bodies.
#
# Socket clients are loose about shapes: 'patient-join' may carry just the
# patient id as a string, 'join-call-room' just the room name.  Every event is
# normalized here into an explicit dict before it reaches the hub, so the
# consumer never pokes at raw frames.

from rest_framework import serializers

from .models import CallSession


class SocketMessage(serializers.Serializer):
    """
    Base for inbound events.

    bare_field     – a plain string frame is read as {bare_field: <string>}
    pass_through   – keep unknown client fields under "extra" (relayed verbatim)
    """
    bare_field   = None
    pass_through = False

    RESERVED = ("type",)

    def to_internal_value(self, data):
        if self.bare_field and isinstance(data, (str, int)) and not isinstance(data, bool):
            data = {self.bare_field: data}
        value = super().to_internal_value(data)
        if self.pass_through:
            value["extra"] = {
                k: v for k, v in data.items()
                if k not in self.fields and k not in self.RESERVED and k != "to"
            }
        return value


# ── Identity ──────────────────────────────────────────────────────────────────

class PatientJoinMessage(SocketMessage):
    bare_field = "patientId"

    patientId = serializers.CharField(max_length=64)
    userName  = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")


class DoctorJoinMessage(SocketMessage):
    bare_field = "doctorId"

    doctorId   = serializers.CharField(max_length=64)
    doctorName = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")


# ── Call lifecycle ────────────────────────────────────────────────────────────

class DoctorStartCallMessage(SocketMessage):
    roomId       = serializers.CharField(max_length=120)
    targetUserId = serializers.CharField(max_length=64, required=False)
    patientId    = serializers.CharField(max_length=64, required=False)
    callerId     = serializers.CharField(max_length=64, required=False)
    doctorId     = serializers.CharField(max_length=64, required=False)
    callerName   = serializers.CharField(max_length=150, required=False, allow_blank=True)
    doctorName   = serializers.CharField(max_length=150, required=False, allow_blank=True)
    callType     = serializers.ChoiceField(choices=CallSession.TYPE_CHOICES, default=CallSession.TYPE_VIDEO)
    offer        = serializers.JSONField(required=False)

    def validate(self, attrs):
        patient_id = attrs.get("targetUserId") or attrs.get("patientId")
        if not patient_id:
            raise serializers.ValidationError("targetUserId (or patientId) is required")
        return {
            "room_id"          : attrs["roomId"],
            "patient_id"       : patient_id,
            "doctor_id"        : attrs.get("callerId") or attrs.get("doctorId"),
            "doctor_name"      : attrs.get("callerName") or attrs.get("doctorName") or "",
            "consultation_type": attrs["callType"],
            "offer"            : attrs.get("offer"),
        }


class PatientAnswerMessage(SocketMessage):
    roomId = serializers.CharField(max_length=120)
    answer = serializers.JSONField(required=False)


class PatientRejectMessage(SocketMessage):
    roomId = serializers.CharField(max_length=120)
    reason = serializers.CharField(max_length=300, required=False, allow_blank=True, default="")


class EndCallMessage(SocketMessage):
    bare_field = "roomId"

    roomId  = serializers.CharField(max_length=120)
    endedBy = serializers.CharField(max_length=64, required=False, allow_blank=True)


class RoomMessage(SocketMessage):
    """join-call-room / leave-call-room"""
    bare_field = "roomId"

    roomId = serializers.CharField(max_length=120)


# ── Relayed signaling ─────────────────────────────────────────────────────────

class OfferMessage(SocketMessage):
    pass_through = True

    to    = serializers.CharField(max_length=120)
    offer = serializers.JSONField()


class AnswerMessage(SocketMessage):
    pass_through = True

    to     = serializers.CharField(max_length=120)
    answer = serializers.JSONField()


class IceCandidateMessage(SocketMessage):
    pass_through = True

    to        = serializers.CharField(max_length=120)
    candidate = serializers.JSONField(allow_null=True)


class MediaStateMessage(SocketMessage):
    pass_through = True

    roomId = serializers.CharField(max_length=120)


# ── REST ──────────────────────────────────────────────────────────────────────

class EndCallRequestSerializer(serializers.Serializer):
    roomId  = serializers.CharField(max_length=120)
    endedBy = serializers.CharField(max_length=64, required=False, default=CallSession.ENDED_BY_DOCTOR)


class StartCallRequestSerializer(serializers.Serializer):
    """The appointment id doubles as the call room when no roomId is given."""
    appointmentId = serializers.CharField(max_length=120, required=False)
    roomId        = serializers.CharField(max_length=120, required=False)
    patientId     = serializers.CharField(max_length=64)
    doctorId      = serializers.CharField(max_length=64)
    patientName   = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    doctorName    = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    callType      = serializers.ChoiceField(choices=CallSession.TYPE_CHOICES, default=CallSession.TYPE_VIDEO)

    def validate(self, attrs):
        room_id = attrs.get("roomId") or attrs.get("appointmentId")
        if not room_id:
            raise serializers.ValidationError("appointmentId (or roomId) is required")
        attrs["roomId"] = room_id
        return attrs
