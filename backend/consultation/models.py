# consultation/models.py
#
# CallSession: the durable record of one attempted video/audio consultation.
#
# Flow:
#   Doctor starts the call     →  status = 'connecting'  (doctor_joined = True)
#   Patient answers            →  status = 'connected'   (patient_joined = True)
#   Either side ends / rejects →  status = 'ended'       (ended_by, ended_at, duration_seconds)
#   Nobody answers in time     →  status = 'ended'       (ended_by = 'timeout')
#
# Status only moves forward and 'ended' is terminal.  Rows are never deleted so
# every attempt stays in the audit trail; a room can therefore have many ended
# sessions but at most one that is still live.

import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone


class CallSession(models.Model):

    STATUS_CONNECTING = "connecting"
    STATUS_CONNECTED  = "connected"
    STATUS_ENDED      = "ended"

    STATUS_CHOICES = [
        (STATUS_CONNECTING, "Connecting"),
        (STATUS_CONNECTED,  "Connected"),
        (STATUS_ENDED,      "Ended"),
    ]

    TYPE_VIDEO = "video"
    TYPE_AUDIO = "audio"

    TYPE_CHOICES = [
        (TYPE_VIDEO, "Video"),
        (TYPE_AUDIO, "Audio"),
    ]

    ENDED_BY_PATIENT = "patient"
    ENDED_BY_DOCTOR  = "doctor"
    ENDED_BY_TIMEOUT = "timeout"

    call_id           = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Call room name; the appointment id when the call belongs to an appointment
    room_id           = models.CharField(max_length=120, db_index=True)

    doctor_id         = models.CharField(max_length=64)
    doctor_name       = models.CharField(max_length=150, blank=True)
    patient_id        = models.CharField(max_length=64, db_index=True)
    patient_name      = models.CharField(max_length=150, blank=True)
    consultation_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_VIDEO)

    status            = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_CONNECTING)
    doctor_joined     = models.BooleanField(default=False)
    patient_joined    = models.BooleanField(default=False)

    started_at        = models.DateTimeField()
    connected_at      = models.DateTimeField(null=True, blank=True)
    ended_at          = models.DateTimeField(null=True, blank=True)
    ended_by          = models.CharField(max_length=64, blank=True)
    end_reason        = models.CharField(max_length=300, blank=True)
    # Seconds from connected to ended; empty for calls that never connected
    duration_seconds  = models.PositiveIntegerField(null=True, blank=True)

    created_at        = models.DateTimeField(auto_now_add=True)
    updated_at        = models.DateTimeField(auto_now=True)

    class Meta:
        ordering    = ["-started_at"]
        constraints = [
            # The atomic guard against two concurrent "start call" requests.
            models.UniqueConstraint(
                fields=["room_id"],
                condition=~Q(status="ended"),
                name="one_live_call_per_room",
            ),
        ]

    @property
    def is_live(self):
        return self.status != self.STATUS_ENDED

    def close(self, ended_by, reason="", when=None):
        """Mark the call ended and record how long it was connected."""
        self.status     = self.STATUS_ENDED
        self.ended_by   = ended_by
        self.end_reason = reason or ""
        self.ended_at   = when or timezone.now()
        if self.connected_at:
            self.duration_seconds = max(0, int((self.ended_at - self.connected_at).total_seconds()))

    def to_dict(self):
        return {
            "callId"          : str(self.call_id),
            "roomId"          : self.room_id,
            "doctorId"        : self.doctor_id,
            "doctorName"      : self.doctor_name,
            "patientId"       : self.patient_id,
            "patientName"     : self.patient_name,
            "consultationType": self.consultation_type,
            "status"          : self.status,
            "doctorJoined"    : self.doctor_joined,
            "patientJoined"   : self.patient_joined,
            "startedAt"       : self.started_at.isoformat() if self.started_at else None,
            "connectedAt"     : self.connected_at.isoformat() if self.connected_at else None,
            "endedAt"         : self.ended_at.isoformat() if self.ended_at else None,
            "endedBy"         : self.ended_by or None,
            "endReason"       : self.end_reason or None,
            "duration"        : self.duration_seconds,
        }

    def __str__(self):
        return f"Call {self.room_id}: Dr.{self.doctor_name or self.doctor_id} → {self.patient_id} ({self.status})"
