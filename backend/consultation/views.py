# consultation/views.py
#
# REST side of the call service: start, inspect or end a call from outside
# the socket (e.g. the clinic dashboard), and a health probe with live
# signaling counts.  Envelope and error rendering as in queueing/views.py.

import logging

from asgiref.sync import async_to_sync
from django.apps import apps
from rest_framework import status
from rest_framework.views import APIView

from core.responses import success

from .serializers import EndCallRequestSerializer, StartCallRequestSerializer
from .sessions import get_session

logger = logging.getLogger(__name__)


class HubView(APIView):

    def get_hub(self):
        return apps.get_app_config("consultation").hub


class CallSessionDetailView(APIView):
    """GET /api/webrtc/call/<room_id>"""

    def get(self, request, room_id):
        return success(get_session(room_id).to_dict())


class CallStartView(HubView):
    """POST /api/webrtc/call/start"""

    def post(self, request):
        body = StartCallRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        session = async_to_sync(self.get_hub().sessions.initiate)(
            data["doctorId"],
            data["patientId"],
            data["roomId"],
            consultation_type=data["callType"],
            doctor_name=data["doctorName"],
            patient_name=data["patientName"],
        )
        logger.info("[API] call %s started via REST by Dr.%s", data["roomId"], data["doctorId"])
        return success(session.to_dict(), message="Call started", status=status.HTTP_201_CREATED)


class CallEndView(HubView):
    """POST /api/webrtc/call/end"""

    def post(self, request):
        body = EndCallRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        session = async_to_sync(self.get_hub().sessions.end)(data["roomId"], data["endedBy"])
        logger.info("[API] call %s ended via REST by %s", data["roomId"], data["endedBy"])
        return success(session.to_dict(), message="Call ended")


class SignalingHealthView(HubView):
    """GET /api/webrtc/health"""

    def get(self, request):
        return success({"status": "ok", **self.get_hub().summary()})
