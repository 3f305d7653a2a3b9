"""
queueing/engine.py

Walk-in queue state machine for one schedule:

    start_queue  →  tokens 1..N handed out, schedule in-progress, current_token = 1
    check_in     →  patient marked as physically present
    advance      →  current token completed, next token called (or queue closed)

All multi-row writes go through core.store.atomic_write so a queue is never
half-started or half-advanced.  advance() locks the schedule row, which makes
concurrent "next patient" calls for the same schedule run one after another;
check_in() takes the same locks in the same order.
"""

import logging

from django.conf import settings
from django.utils import timezone

from core.exceptions import InvalidState, NoEligibleAppointments, NotFound
from core.store import atomic_write

from .models import Appointment, Queue, Schedule

logger = logging.getLogger(__name__)


def _iso(value):
    return value.isoformat() if value else None


class QueueEngine:

    def __init__(self, appointment_type=None, service_minutes=None):
        self.appointment_type = appointment_type or settings.QUEUE_ELIGIBLE_APPOINTMENT_TYPE
        if service_minutes is None:
            service_minutes = settings.QUEUE_SERVICE_MINUTES_PER_PATIENT
        self.service_minutes = service_minutes

    # ── Wait estimate ─────────────────────────────────────────────────────────

    @staticmethod
    def patients_ahead(patient_token, current_token):
        return max(0, patient_token - current_token)

    def estimated_wait_minutes(self, patients_ahead):
        return patients_ahead * self.service_minutes

    # ── Lookups ───────────────────────────────────────────────────────────────

    def eligible_appointments(self, schedule_id):
        """Appointments that take part in the schedule's queue, in token order."""
        return (
            Appointment.objects
            .filter(schedule_id=schedule_id, appointment_type=self.appointment_type)
            .exclude(status=Appointment.STATUS_CANCELLED)
            .order_by("created_at", "id")
        )

    def _get_schedule(self, schedule_id, lock=False):
        qs = Schedule.objects.select_for_update() if lock else Schedule.objects
        try:
            return qs.get(pk=schedule_id)
        except Schedule.DoesNotExist:
            raise NotFound("Schedule not found")

    def _active_queue(self, schedule_id, lock=False):
        qs = Queue.objects.select_for_update() if lock else Queue.objects
        return qs.filter(schedule_id=schedule_id, is_active=True).order_by("-start_time").first()

    def _token_appointment(self, schedule_id, token):
        return self.eligible_appointments(schedule_id).filter(token_number=token).first()

    # ── Snapshots ─────────────────────────────────────────────────────────────

    @staticmethod
    def _entry(appointment):
        return {
            "appointmentId"  : appointment.pk,
            "patientId"      : appointment.patient_id,
            "patientName"    : appointment.patient_name,
            "patientAge"     : appointment.patient_age,
            "patientGender"  : appointment.patient_gender,
            "patientPhone"   : appointment.patient_phone,
            "appointmentType": appointment.appointment_type,
            "tokenNumber"    : appointment.token_number,
            "status"         : appointment.queue_status or Appointment.QUEUE_WAITING,
            "checkedIn"      : appointment.checked_in,
        }

    @staticmethod
    def _queue_snapshot(queue):
        return {
            "queueId"          : queue.queue_id,
            "scheduleId"       : queue.schedule_id,
            "doctorId"         : queue.doctor_id,
            "doctorName"       : queue.doctor_name,
            "medicalCenterId"  : queue.medical_center_id,
            "medicalCenterName": queue.medical_center_name,
            "queueStarted"     : True,
            "queueStartTime"   : _iso(queue.start_time),
            "currentToken"     : queue.current_token,
            "totalPatients"    : queue.total_patients,
            "isActive"         : queue.is_active,
            "patients"         : list(queue.patients),
        }

    @staticmethod
    def _mirror_entries(queue, changes):
        """Copy appointment status changes into the queue's patient snapshot."""
        if queue is None or not changes:
            return
        for entry in queue.patients:
            fields = changes.get(entry.get("appointmentId"))
            if fields:
                entry.update(fields)

    # ── start ─────────────────────────────────────────────────────────────────

    def start_queue(self, schedule_id, doctor_id=None, doctor_name=None,
                    medical_center_id=None, medical_center_name=None):
        return atomic_write(
            self._start_queue, schedule_id,
            doctor_id=doctor_id, doctor_name=doctor_name,
            medical_center_id=medical_center_id, medical_center_name=medical_center_name,
            label=f"start queue {schedule_id}",
        )

    def _start_queue(self, schedule_id, doctor_id, doctor_name, medical_center_id, medical_center_name):
        schedule = self._get_schedule(schedule_id, lock=True)

        if schedule.status != Schedule.STATUS_SCHEDULED:
            raise InvalidState(f"Queue cannot be started: schedule is {schedule.status}")

        appointments = list(self.eligible_appointments(schedule_id))
        if not appointments:
            raise NoEligibleAppointments(
                f"No {self.appointment_type} appointments found for this schedule"
            )

        now     = timezone.now()
        entries = []
        for token, appointment in enumerate(appointments, start=1):
            # Early arrivals keep their check-in.
            appointment.token_number            = token
            appointment.queue_status            = (
                Appointment.QUEUE_CHECKED_IN if appointment.checked_in else Appointment.QUEUE_WAITING
            )
            appointment.current_position        = token
            if not appointment.checked_in:
                appointment.check_in_time       = None
            appointment.consultation_start_time = None
            appointment.consultation_end_time   = None
            appointment.status                  = Appointment.STATUS_CONFIRMED
            appointment.updated_at              = now
            entries.append(self._entry(appointment))

        Appointment.objects.bulk_update(appointments, [
            "token_number", "queue_status", "current_position", "checked_in",
            "check_in_time", "consultation_start_time", "consultation_end_time",
            "status", "updated_at",
        ])

        total = len(appointments)
        queue = Queue.objects.create(
            queue_id            = f"queue_{schedule_id}_{int(now.timestamp() * 1000)}",
            schedule            = schedule,
            doctor_id           = doctor_id or schedule.doctor_id,
            doctor_name         = doctor_name or schedule.doctor_name,
            medical_center_id   = medical_center_id or schedule.medical_center_id,
            medical_center_name = medical_center_name or schedule.medical_center_name,
            status              = Queue.STATUS_IN_PROGRESS,
            start_time          = now,
            current_token       = 1,
            total_patients      = total,
            patients            = entries,
            is_active           = True,
        )

        schedule.status           = Schedule.STATUS_IN_PROGRESS
        schedule.queue_started    = True
        schedule.queue_start_time = now
        schedule.current_token    = 1
        schedule.total_patients   = total
        schedule.queue_id         = queue.queue_id
        schedule.save(update_fields=[
            "status", "queue_started", "queue_start_time", "current_token",
            "total_patients", "queue_id", "updated_at",
        ])

        logger.info("[Queue] started %s for schedule=%s  patients=%d", queue.queue_id, schedule_id, total)
        return self._queue_snapshot(queue)

    # ── check-in ──────────────────────────────────────────────────────────────

    def check_in(self, schedule_id, patient_id):
        return atomic_write(self._check_in, schedule_id, patient_id, label=f"check-in {schedule_id}")

    def _check_in(self, schedule_id, patient_id):
        # Same lock order as advance: schedule, queue, then the appointment.
        self._get_schedule(schedule_id, lock=True)
        queue = self._active_queue(schedule_id, lock=True)

        appointment = (
            self.eligible_appointments(schedule_id)
            .filter(patient_id=patient_id)
            .select_for_update()
            .first()
        )
        if appointment is None:
            raise NotFound(
                f"{self.appointment_type.capitalize()} appointment not found for this patient and schedule"
            )

        now = timezone.now()
        appointment.checked_in    = True
        appointment.check_in_time = now
        # A patient already called in (or seen) keeps that status.
        if appointment.queue_status in ("", Appointment.QUEUE_WAITING, Appointment.QUEUE_CHECKED_IN):
            appointment.queue_status = Appointment.QUEUE_CHECKED_IN
        appointment.save(update_fields=["checked_in", "check_in_time", "queue_status", "updated_at"])

        if queue is not None:
            self._mirror_entries(queue, {
                appointment.pk: {"status": appointment.queue_status, "checkedIn": True},
            })
            queue.save(update_fields=["patients", "updated_at"])

        logger.info("[Queue] patient=%s checked in  schedule=%s  token=%s",
                    patient_id, schedule_id, appointment.token_number)
        return {
            "appointmentId": appointment.pk,
            "patientName"  : appointment.patient_name,
            "tokenNumber"  : appointment.token_number,
            "queueStatus"  : appointment.queue_status,
            "checkInTime"  : _iso(now),
        }

    # ── advance ───────────────────────────────────────────────────────────────

    def advance(self, schedule_id):
        return atomic_write(self._advance, schedule_id, label=f"advance {schedule_id}")

    def _advance(self, schedule_id):
        schedule = self._get_schedule(schedule_id, lock=True)
        if schedule.status != Schedule.STATUS_IN_PROGRESS:
            raise InvalidState("No active queue found")

        queue   = self._active_queue(schedule_id, lock=True)
        current = schedule.current_token or 1
        total   = schedule.total_patients or (queue.total_patients if queue else 0)
        now     = timezone.now()
        changes = {}

        finished = self._token_appointment(schedule_id, current)
        if finished is not None:
            finished.queue_status          = Appointment.QUEUE_COMPLETED
            finished.consultation_end_time = now
            finished.save(update_fields=["queue_status", "consultation_end_time", "updated_at"])
            changes[finished.pk] = {"status": Appointment.QUEUE_COMPLETED}
        else:
            # Empty slot (appointment cancelled or removed after the start):
            # nothing to complete, the token still moves on by one.
            logger.info("[Queue] schedule=%s token=%d has no appointment, skipping", schedule_id, current)

        next_token = current + 1

        if next_token > total:
            schedule.status        = Schedule.STATUS_COMPLETED
            schedule.queue_started = False
            schedule.current_token = next_token
            schedule.save(update_fields=["status", "queue_started", "current_token", "updated_at"])

            if queue is not None:
                self._mirror_entries(queue, changes)
                queue.current_token = next_token
                queue.status        = Queue.STATUS_COMPLETED
                queue.is_active     = False
                queue.save(update_fields=["patients", "current_token", "status", "is_active", "updated_at"])

            logger.info("[Queue] schedule=%s completed after %d patients", schedule_id, total)
            return {"queueActive": False, "currentToken": current}

        called = self._token_appointment(schedule_id, next_token)
        if called is not None:
            called.queue_status            = Appointment.QUEUE_IN_CONSULTATION
            called.consultation_start_time = now
            called.save(update_fields=["queue_status", "consultation_start_time", "updated_at"])
            changes[called.pk] = {"status": Appointment.QUEUE_IN_CONSULTATION}

        schedule.current_token = next_token
        schedule.save(update_fields=["current_token", "updated_at"])

        if queue is not None:
            self._mirror_entries(queue, changes)
            queue.current_token = next_token
            queue.save(update_fields=["patients", "current_token", "updated_at"])

        logger.info("[Queue] schedule=%s now serving token %d/%d", schedule_id, next_token, total)
        return {"queueActive": True, "currentToken": next_token}

    # ── reads ─────────────────────────────────────────────────────────────────

    def get_queue_for_schedule(self, schedule_id):
        queue = self._active_queue(schedule_id)
        if queue is None:
            raise NotFound("No active queue found for this schedule")
        return self._queue_snapshot(queue)

    def get_queue_for_patient(self, patient_id):
        appointments = list(
            Appointment.objects
            .filter(
                patient_id=patient_id,
                appointment_type=self.appointment_type,
                status__in=Appointment.OPEN_STATUSES,
            )
            .select_related("schedule")
            .order_by("created_at", "id")
        )
        if not appointments:
            raise NotFound("No active appointments found for patient")

        for appointment in appointments:
            schedule = appointment.schedule
            if schedule.status != Schedule.STATUS_IN_PROGRESS:
                continue

            all_patients = [
                {
                    "appointmentId": other.pk,
                    "patientId"    : other.patient_id,
                    "patientName"  : other.patient_name,
                    "tokenNumber"  : other.token_number,
                    "queueStatus"  : other.queue_status,
                    "checkedIn"    : other.checked_in,
                }
                for other in self.eligible_appointments(schedule.pk)
                .filter(token_number__isnull=False)
                .order_by("token_number")
            ]

            current_token  = schedule.current_token or 1
            patient_token  = appointment.token_number or 0
            patients_ahead = self.patients_ahead(patient_token, current_token)

            return {
                "queueId"          : schedule.queue_id or f"queue_{schedule.pk}",
                "scheduleId"       : schedule.pk,
                "doctorName"       : schedule.doctor_name,
                "medicalCenterName": schedule.medical_center_name,
                "appointmentDate"  : _iso(appointment.date),
                "appointmentTime"  : _iso(appointment.time),
                "currentToken"     : current_token,
                "patientToken"     : patient_token,
                "patientsAhead"    : patients_ahead,
                "estimatedWaitTime": self.estimated_wait_minutes(patients_ahead),
                "totalPatients"    : len(all_patients),
                "allPatients"      : all_patients,
                "queueStartTime"   : _iso(schedule.queue_start_time),
                "patientInfo"      : {
                    "patientName" : appointment.patient_name,
                    "patientId"   : appointment.patient_id,
                    "tokenNumber" : patient_token,
                    "queueStatus" : appointment.queue_status,
                    "checkedIn"   : appointment.checked_in,
                },
            }

        raise NotFound("No active queues found for patient")

    def active_queues_for_medical_center(self, medical_center_id):
        return [
            {
                "queueId"          : queue.queue_id,
                "scheduleId"       : queue.schedule_id,
                "doctorId"         : queue.doctor_id,
                "doctorName"       : queue.doctor_name,
                "medicalCenterName": queue.medical_center_name,
                "currentToken"     : queue.current_token,
                "totalPatients"    : len(queue.patients),
                "startTime"        : _iso(queue.start_time),
                "isActive"         : queue.is_active,
            }
            for queue in Queue.objects.filter(medical_center_id=medical_center_id, is_active=True)
        ]
