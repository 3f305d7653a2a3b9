# queueing/serializers.py
#
# Request bodies of the queue endpoints.  Field names follow the camelCase
# used by the mobile/web clients.

from rest_framework import serializers


class StartQueueSerializer(serializers.Serializer):
    scheduleId        = serializers.CharField(max_length=64)
    doctorId          = serializers.CharField(max_length=64, required=False, allow_blank=True)
    doctorName        = serializers.CharField(max_length=150, required=False, allow_blank=True)
    medicalCenterId   = serializers.CharField(max_length=64, required=False, allow_blank=True)
    medicalCenterName = serializers.CharField(max_length=150, required=False, allow_blank=True)


class CheckInSerializer(serializers.Serializer):
    scheduleId = serializers.CharField(max_length=64)
    patientId  = serializers.CharField(max_length=64)


class AdvanceQueueSerializer(serializers.Serializer):
    scheduleId = serializers.CharField(max_length=64)
