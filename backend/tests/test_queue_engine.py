"""
Queue engine: token assignment, advancement, check-in and the patient view.
"""
import threading

import pytest
from django.db import OperationalError, connection

from core.exceptions import InvalidState, NoEligibleAppointments, NotFound, TransientStoreError
from core.store import atomic_write
from queueing.engine import QueueEngine
from queueing.models import Appointment, Queue, Schedule


@pytest.fixture
def engine():
    return QueueEngine(appointment_type=Appointment.TYPE_PHYSICAL, service_minutes=15)


def tokens(schedule_id):
    return {
        a.patient_id: a.token_number
        for a in Appointment.objects.filter(schedule_id=schedule_id)
    }


# ============================================================================
# start
# ============================================================================

@pytest.mark.django_db
class TestStartQueue:

    def test_assigns_tokens_in_booking_order(self, engine, clinic_day):
        snapshot = engine.start_queue("S1")

        assert tokens("S1") == {"P1": 1, "P2": 2, "P3": 3, "V1": None}
        assert snapshot["currentToken"] == 1
        assert snapshot["totalPatients"] == 3
        assert [p["patientId"] for p in snapshot["patients"]] == ["P1", "P2", "P3"]
        assert all(p["status"] == Appointment.QUEUE_WAITING for p in snapshot["patients"])

    def test_updates_schedule_and_creates_queue(self, engine, clinic_day):
        snapshot = engine.start_queue("S1")

        schedule = Schedule.objects.get(pk="S1")
        assert schedule.status == Schedule.STATUS_IN_PROGRESS
        assert schedule.queue_started is True
        assert schedule.current_token == 1
        assert schedule.total_patients == 3
        assert schedule.queue_id == snapshot["queueId"]
        assert snapshot["queueId"].startswith("queue_S1_")

        queue = Queue.objects.get(pk=snapshot["queueId"])
        assert queue.is_active
        assert queue.doctor_name == "Dr. Rao"
        assert queue.medical_center_id == "MC1"

    def test_request_fields_override_schedule(self, engine, clinic_day):
        snapshot = engine.start_queue("S1", doctor_name="Dr. Menon", medical_center_name="Annex")
        assert snapshot["doctorName"] == "Dr. Menon"
        assert snapshot["medicalCenterName"] == "Annex"
        assert snapshot["doctorId"] == "D1"

    def test_cancelled_bookings_get_no_token(self, engine, make_schedule, make_appointment):
        schedule = make_schedule("S2")
        make_appointment(schedule, "A")
        make_appointment(schedule, "B", status=Appointment.STATUS_CANCELLED)
        make_appointment(schedule, "C")

        engine.start_queue("S2")

        assert tokens("S2") == {"A": 1, "B": None, "C": 2}

    def test_unknown_schedule(self, engine, db):
        with pytest.raises(NotFound, match="Schedule not found"):
            engine.start_queue("missing")

    def test_no_eligible_appointments(self, engine, make_schedule, make_appointment):
        schedule = make_schedule("S3")
        make_appointment(schedule, "V", appointment_type=Appointment.TYPE_VIDEO)

        with pytest.raises(NoEligibleAppointments):
            engine.start_queue("S3")
        assert Schedule.objects.get(pk="S3").status == Schedule.STATUS_SCHEDULED
        assert not Queue.objects.exists()

    def test_cannot_start_twice(self, engine, clinic_day):
        engine.start_queue("S1")
        with pytest.raises(InvalidState):
            engine.start_queue("S1")
        assert Queue.objects.count() == 1


# ============================================================================
# advance
# ============================================================================

@pytest.mark.django_db
class TestAdvance:

    def test_walks_the_queue_to_completion(self, engine, clinic_day):
        engine.start_queue("S1")

        assert engine.advance("S1") == {"queueActive": True, "currentToken": 2}
        assert engine.advance("S1") == {"queueActive": True, "currentToken": 3}
        assert engine.advance("S1") == {"queueActive": False, "currentToken": 3}

        schedule = Schedule.objects.get(pk="S1")
        assert schedule.status == Schedule.STATUS_COMPLETED
        assert schedule.queue_started is False
        assert not Queue.objects.get(schedule_id="S1").is_active

        statuses = set(
            Appointment.objects.filter(schedule_id="S1", appointment_type=Appointment.TYPE_PHYSICAL)
            .values_list("queue_status", flat=True)
        )
        assert statuses == {Appointment.QUEUE_COMPLETED}

    def test_advance_after_completion_fails(self, engine, clinic_day):
        engine.start_queue("S1")
        for _ in range(3):
            engine.advance("S1")

        with pytest.raises(InvalidState, match="No active queue found"):
            engine.advance("S1")

    def test_advance_before_start_fails(self, engine, clinic_day):
        with pytest.raises(InvalidState):
            engine.advance("S1")

    def test_marks_completed_and_called_patients(self, engine, clinic_day):
        engine.start_queue("S1")
        engine.advance("S1")

        p1 = Appointment.objects.get(schedule_id="S1", patient_id="P1")
        p2 = Appointment.objects.get(schedule_id="S1", patient_id="P2")
        assert p1.queue_status == Appointment.QUEUE_COMPLETED
        assert p1.consultation_end_time is not None
        assert p2.queue_status == Appointment.QUEUE_IN_CONSULTATION
        assert p2.consultation_start_time is not None

        entries = {e["patientId"]: e["status"] for e in Queue.objects.get(schedule_id="S1").patients}
        assert entries["P1"] == Appointment.QUEUE_COMPLETED
        assert entries["P2"] == Appointment.QUEUE_IN_CONSULTATION
        assert entries["P3"] == Appointment.QUEUE_WAITING

    def test_empty_token_slot_is_skipped_by_one(self, engine, clinic_day):
        engine.start_queue("S1")
        Appointment.objects.filter(schedule_id="S1", patient_id="P2").update(
            status=Appointment.STATUS_CANCELLED
        )

        assert engine.advance("S1") == {"queueActive": True, "currentToken": 2}
        assert engine.advance("S1") == {"queueActive": True, "currentToken": 3}
        assert Appointment.objects.get(schedule_id="S1", patient_id="P3").queue_status == (
            Appointment.QUEUE_IN_CONSULTATION
        )

    def test_total_is_frozen_at_start(self, engine, clinic_day, make_appointment):
        engine.start_queue("S1")
        make_appointment(clinic_day, "LATE")

        results = [engine.advance("S1") for _ in range(3)]
        assert results[-1]["queueActive"] is False
        assert Appointment.objects.get(patient_id="LATE").token_number is None


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(
    not connection.features.has_select_for_update,
    reason="database backend has no row locks",
)
class TestConcurrentAdvance:

    def test_two_doctors_pressing_next_together(self, engine, clinic_day):
        engine.start_queue("S1")
        barrier = threading.Barrier(2)
        results, errors = [], []

        def press_next():
            try:
                barrier.wait()
                results.append(engine.advance("S1"))
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=press_next) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert sorted(r["currentToken"] for r in results) == [2, 3]
        assert Schedule.objects.get(pk="S1").current_token == 3

        statuses = {
            a.patient_id: a.queue_status
            for a in Appointment.objects.filter(schedule_id="S1", appointment_type=Appointment.TYPE_PHYSICAL)
        }
        assert statuses == {
            "P1": Appointment.QUEUE_COMPLETED,
            "P2": Appointment.QUEUE_COMPLETED,
            "P3": Appointment.QUEUE_IN_CONSULTATION,
        }


# ============================================================================
# check-in
# ============================================================================

@pytest.mark.django_db
class TestCheckIn:

    def test_marks_patient_present(self, engine, clinic_day):
        engine.start_queue("S1")

        result = engine.check_in("S1", "P2")

        assert result["tokenNumber"] == 2
        assert result["queueStatus"] == Appointment.QUEUE_CHECKED_IN
        p2 = Appointment.objects.get(schedule_id="S1", patient_id="P2")
        assert p2.checked_in and p2.check_in_time is not None

        entry = next(e for e in Queue.objects.get(schedule_id="S1").patients if e["patientId"] == "P2")
        assert entry["checkedIn"] is True
        assert entry["status"] == Appointment.QUEUE_CHECKED_IN

    def test_unknown_patient(self, engine, clinic_day):
        with pytest.raises(NotFound):
            engine.check_in("S1", "Pat2")

    def test_video_patient_is_not_in_the_physical_queue(self, engine, clinic_day):
        with pytest.raises(NotFound):
            engine.check_in("S1", "V1")

    def test_does_not_regress_patient_in_consultation(self, engine, clinic_day):
        engine.start_queue("S1")
        engine.advance("S1")

        result = engine.check_in("S1", "P2")

        assert result["queueStatus"] == Appointment.QUEUE_IN_CONSULTATION

    def test_check_in_before_queue_start(self, engine, clinic_day):
        result = engine.check_in("S1", "P1")
        assert result["tokenNumber"] is None
        assert result["queueStatus"] == Appointment.QUEUE_CHECKED_IN

        checked_in_at = Appointment.objects.get(schedule_id="S1", patient_id="P1").check_in_time
        snapshot = engine.start_queue("S1")

        p1 = Appointment.objects.get(schedule_id="S1", patient_id="P1")
        assert p1.checked_in
        assert p1.check_in_time == checked_in_at
        assert p1.queue_status == Appointment.QUEUE_CHECKED_IN
        assert p1.token_number == 1

        entries = {e["patientId"]: e for e in snapshot["patients"]}
        assert entries["P1"]["checkedIn"] is True
        assert entries["P1"]["status"] == Appointment.QUEUE_CHECKED_IN
        assert entries["P2"]["checkedIn"] is False
        assert entries["P2"]["status"] == Appointment.QUEUE_WAITING

    def test_unknown_schedule(self, engine, db):
        with pytest.raises(NotFound, match="Schedule not found"):
            engine.check_in("nope", "P1")


# ============================================================================
# reads
# ============================================================================

@pytest.mark.django_db
class TestQueueReads:

    def test_patient_position_and_wait(self, engine, clinic_day):
        engine.start_queue("S1")

        view = engine.get_queue_for_patient("P3")

        assert view["scheduleId"] == "S1"
        assert view["currentToken"] == 1
        assert view["patientToken"] == 3
        assert view["patientsAhead"] == 2
        assert view["estimatedWaitTime"] == 30
        assert view["totalPatients"] == 3
        assert [p["tokenNumber"] for p in view["allPatients"]] == [1, 2, 3]

    def test_patients_ahead_never_negative(self, engine, clinic_day):
        engine.start_queue("S1")
        engine.advance("S1")
        engine.advance("S1")

        view = engine.get_queue_for_patient("P1")

        assert view["patientsAhead"] == 0
        assert view["estimatedWaitTime"] == 0

    @pytest.mark.parametrize("patient_token,current_token,expected", [
        (5, 2, 3),
        (2, 2, 0),
        (1, 4, 0),
    ])
    def test_patients_ahead_formula(self, patient_token, current_token, expected):
        assert QueueEngine.patients_ahead(patient_token, current_token) == expected

    def test_patient_without_started_queue(self, engine, clinic_day):
        with pytest.raises(NotFound, match="No active queues found for patient"):
            engine.get_queue_for_patient("P1")

    def test_patient_without_appointments(self, engine, db):
        with pytest.raises(NotFound, match="No active appointments found for patient"):
            engine.get_queue_for_patient("nobody")

    def test_schedule_queue(self, engine, clinic_day):
        with pytest.raises(NotFound):
            engine.get_queue_for_schedule("S1")

        engine.start_queue("S1")
        assert engine.get_queue_for_schedule("S1")["totalPatients"] == 3

    def test_active_queues_for_medical_center(self, engine, clinic_day, make_schedule, make_appointment):
        other = make_schedule("S9", medical_center_id="MC2")
        make_appointment(other, "X")
        engine.start_queue("S1")
        engine.start_queue("S9")

        queues = engine.active_queues_for_medical_center("MC1")

        assert [q["scheduleId"] for q in queues] == ["S1"]
        assert queues[0]["totalPatients"] == 3


# ============================================================================
# store retries
# ============================================================================

@pytest.mark.django_db
class TestAtomicWrite:

    def test_retries_operational_errors(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("database is locked")
            return "ok"

        assert atomic_write(flaky, attempts=3, backoff=0) == "ok"
        assert len(calls) == 3

    def test_gives_up_with_transient_error(self):
        def always_locked():
            raise OperationalError("database is locked")

        with pytest.raises(TransientStoreError):
            atomic_write(always_locked, attempts=2, backoff=0)

    def test_domain_errors_are_not_retried(self):
        calls = []

        def missing():
            calls.append(1)
            raise NotFound("Schedule not found")

        with pytest.raises(NotFound):
            atomic_write(missing, attempts=3, backoff=0)
        assert calls == [1]
