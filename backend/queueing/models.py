# queueing/models.py
#
# Tables behind the walk-in queue.
#
#   1. Schedule     : a dated slot of a doctor's availability at a medical centre.
#                     Owned by the scheduling side; the queue engine only flips its
#                     status / current_token / queue_id.
#   2. Appointment  : one booking against a schedule.  The queue engine writes the
#                     token and queue-status fields.
#   3. Queue        : the walk-in queue started for a schedule.  `patients` is a
#                     denormalized snapshot of every queue entry.

import uuid

from django.db import models


def new_schedule_id():
    return f"sched-{uuid.uuid4().hex[:12]}"


# =============================================================================
# 1. SCHEDULE
# =============================================================================

class Schedule(models.Model):

    STATUS_SCHEDULED   = "scheduled"
    STATUS_IN_PROGRESS = "in-progress"
    STATUS_COMPLETED   = "completed"
    STATUS_CANCELLED   = "cancelled"

    STATUS_CHOICES = [
        (STATUS_SCHEDULED,   "Scheduled"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_COMPLETED,   "Completed"),
        (STATUS_CANCELLED,   "Cancelled"),
    ]

    schedule_id         = models.CharField(max_length=64, primary_key=True, default=new_schedule_id)

    doctor_id           = models.CharField(max_length=64)
    doctor_name         = models.CharField(max_length=150, blank=True)
    medical_center_id   = models.CharField(max_length=64, blank=True)
    medical_center_name = models.CharField(max_length=150, blank=True)

    date                = models.DateField(null=True, blank=True)
    start_time          = models.TimeField(null=True, blank=True)
    end_time            = models.TimeField(null=True, blank=True)

    status              = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)

    # ── Queue side effects ────────────────────────────────────────────────────
    queue_started       = models.BooleanField(default=False)
    queue_start_time    = models.DateTimeField(null=True, blank=True)
    queue_id            = models.CharField(max_length=120, blank=True)
    current_token       = models.PositiveIntegerField(default=0)
    total_patients      = models.PositiveIntegerField(default=0)

    created_at          = models.DateTimeField(auto_now_add=True)
    updated_at          = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "start_time", "schedule_id"]

    def __str__(self):
        return f"Schedule {self.schedule_id}: Dr.{self.doctor_name or self.doctor_id} ({self.status})"


# =============================================================================
# 2. APPOINTMENT
# =============================================================================

class Appointment(models.Model):
    """
    A patient's booking against a schedule.

    Booking status is what the patient sees (scheduled → confirmed → completed).
    Queue status only exists once a queue has been started for the schedule:
      waiting → checked-in → in-consultation → completed
    """

    TYPE_PHYSICAL = "physical"
    TYPE_VIDEO    = "video"
    TYPE_AUDIO    = "audio"

    TYPE_CHOICES = [
        (TYPE_PHYSICAL, "Physical visit"),
        (TYPE_VIDEO,    "Video consultation"),
        (TYPE_AUDIO,    "Audio consultation"),
    ]

    STATUS_SCHEDULED = "scheduled"
    STATUS_CONFIRMED = "confirmed"
    STATUS_WAITING   = "waiting"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, "Scheduled"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_WAITING,   "Waiting"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # Booking statuses that still count as "coming to the clinic"
    OPEN_STATUSES = (STATUS_CONFIRMED, STATUS_SCHEDULED, STATUS_WAITING)

    QUEUE_WAITING         = "waiting"
    QUEUE_CHECKED_IN      = "checked-in"
    QUEUE_IN_CONSULTATION = "in-consultation"
    QUEUE_COMPLETED       = "completed"

    QUEUE_STATUS_CHOICES = [
        (QUEUE_WAITING,         "Waiting"),
        (QUEUE_CHECKED_IN,      "Checked in"),
        (QUEUE_IN_CONSULTATION, "In consultation"),
        (QUEUE_COMPLETED,       "Completed"),
    ]

    schedule         = models.ForeignKey(Schedule, on_delete=models.CASCADE, related_name="appointments")

    patient_id       = models.CharField(max_length=64, db_index=True)
    patient_name     = models.CharField(max_length=150, blank=True)
    patient_age      = models.PositiveIntegerField(null=True, blank=True)
    patient_gender   = models.CharField(max_length=20, blank=True)
    patient_phone    = models.CharField(max_length=20, blank=True)

    appointment_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_PHYSICAL)
    status           = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)
    date             = models.DateField(null=True, blank=True)
    time             = models.TimeField(null=True, blank=True)

    # ── Written by the queue engine ───────────────────────────────────────────
    token_number            = models.PositiveIntegerField(null=True, blank=True)
    queue_status            = models.CharField(max_length=20, choices=QUEUE_STATUS_CHOICES, blank=True)
    current_position        = models.PositiveIntegerField(null=True, blank=True)
    checked_in              = models.BooleanField(default=False)
    check_in_time           = models.DateTimeField(null=True, blank=True)
    consultation_start_time = models.DateTimeField(null=True, blank=True)
    consultation_end_time   = models.DateTimeField(null=True, blank=True)

    created_at       = models.DateTimeField(auto_now_add=True)
    updated_at       = models.DateTimeField(auto_now=True)

    class Meta:
        # Token assignment follows this order, so it must be stable.
        ordering = ["created_at", "id"]
        indexes  = [
            models.Index(fields=["schedule", "appointment_type", "token_number"], name="appt_schedule_type_token_idx"),
        ]

    def __str__(self):
        token = f" #{self.token_number}" if self.token_number else ""
        return f"{self.patient_name or self.patient_id} @ {self.schedule_id}{token}"


# =============================================================================
# 3. QUEUE
# =============================================================================

class Queue(models.Model):
    """
    The walk-in queue of one schedule.

    Tokens run 1..total_patients.  current_token only grows; once it passes
    total_patients the queue is completed and is_active is cleared.  Rows are
    never deleted so finished queues remain as history.
    """

    STATUS_IN_PROGRESS = "in-progress"
    STATUS_COMPLETED   = "completed"

    STATUS_CHOICES = [
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_COMPLETED,   "Completed"),
    ]

    queue_id            = models.CharField(max_length=120, primary_key=True)
    schedule            = models.ForeignKey(Schedule, on_delete=models.CASCADE, related_name="queues")

    doctor_id           = models.CharField(max_length=64, blank=True)
    doctor_name         = models.CharField(max_length=150, blank=True)
    medical_center_id   = models.CharField(max_length=64, blank=True, db_index=True)
    medical_center_name = models.CharField(max_length=150, blank=True)

    status              = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_IN_PROGRESS)
    start_time          = models.DateTimeField()
    current_token       = models.PositiveIntegerField(default=1)
    total_patients      = models.PositiveIntegerField(default=0)

    # Example entry:
    # {"appointmentId": 7, "patientId": "p-1", "patientName": "Asha", "tokenNumber": 1,
    #  "status": "waiting", "checkedIn": false, "appointmentType": "physical", ...}
    patients            = models.JSONField(default=list)

    is_active           = models.BooleanField(default=True)

    created_at          = models.DateTimeField(auto_now_add=True)
    updated_at          = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-start_time"]

    def __str__(self):
        state = "active" if self.is_active else "closed"
        return f"{self.queue_id} ({state}, token {self.current_token}/{self.total_patients})"
