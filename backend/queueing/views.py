# queueing/views.py
#
# REST surface of the walk-in queue.  Every response uses the envelope
#   {"success": true,  "message": "...", "data": {...}}
#   {"success": false, "error": "..."}
# Domain failures raised by the engine are rendered by
# core.responses.envelope_exception_handler.

import logging

from rest_framework.views import APIView

from core.responses import success

from .engine import QueueEngine
from .serializers import AdvanceQueueSerializer, CheckInSerializer, StartQueueSerializer

logger = logging.getLogger(__name__)


class QueueView(APIView):
    engine_class = QueueEngine

    def get_engine(self):
        return self.engine_class()


class QueueStartView(QueueView):
    """POST /api/queue/start"""

    def post(self, request):
        body = StartQueueSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        engine   = self.get_engine()
        snapshot = engine.start_queue(
            data["scheduleId"],
            doctor_id=data.get("doctorId"),
            doctor_name=data.get("doctorName"),
            medical_center_id=data.get("medicalCenterId"),
            medical_center_name=data.get("medicalCenterName"),
        )
        return success(
            snapshot,
            message=f"Queue started with {snapshot['totalPatients']} {engine.appointment_type} patients",
        )


class ScheduleQueueView(QueueView):
    """GET /api/queue/schedule/<schedule_id>"""

    def get(self, request, schedule_id):
        return success(self.get_engine().get_queue_for_schedule(schedule_id))


class QueueCheckInView(QueueView):
    """POST /api/queue/checkin"""

    def post(self, request):
        body = CheckInSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        result = self.get_engine().check_in(
            body.validated_data["scheduleId"], body.validated_data["patientId"],
        )
        return success(result, message="Patient checked in successfully")


class QueueNextView(QueueView):
    """POST /api/queue/next"""

    def post(self, request):
        body = AdvanceQueueSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        engine = self.get_engine()
        result = engine.advance(body.validated_data["scheduleId"])
        if result["queueActive"]:
            message = f"Next {engine.appointment_type} patient called"
        else:
            message = f"Queue completed - all {engine.appointment_type} patients seen"
        return success(result, message=message)


class PatientQueueView(QueueView):
    """GET /api/queue/patient/<patient_id>"""

    def get(self, request, patient_id):
        return success(self.get_engine().get_queue_for_patient(patient_id))


class MedicalCenterActiveQueuesView(QueueView):
    """GET /api/medical-center/<medical_center_id>/active-queues"""

    def get(self, request, medical_center_id):
        queues = self.get_engine().active_queues_for_medical_center(medical_center_id)
        logger.debug("[Queue] %d active queues at medical center %s", len(queues), medical_center_id)
        return success(queues)
