"""
Shared fixtures.

- API client (the API is unauthenticated)
- Schedule / appointment factories for the queue tests
- A fresh SignalingHub per test, on a fresh in-memory channel layer
"""
import pytest
from rest_framework.test import APIClient

from consultation.hub import SignalingHub
from queueing.models import Appointment, Schedule


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


# ============================================================================
# Queue data
# ============================================================================

@pytest.fixture
def make_schedule(db):
    def _make(schedule_id="S1", **fields):
        fields.setdefault("doctor_id", "D1")
        fields.setdefault("doctor_name", "Dr. Rao")
        fields.setdefault("medical_center_id", "MC1")
        fields.setdefault("medical_center_name", "Central Clinic")
        return Schedule.objects.create(schedule_id=schedule_id, **fields)
    return _make


@pytest.fixture
def make_appointment(db):
    def _make(schedule, patient_id, **fields):
        fields.setdefault("patient_name", f"Patient {patient_id}")
        fields.setdefault("appointment_type", Appointment.TYPE_PHYSICAL)
        fields.setdefault("status", Appointment.STATUS_CONFIRMED)
        return Appointment.objects.create(schedule=schedule, patient_id=patient_id, **fields)
    return _make


@pytest.fixture
def clinic_day(make_schedule, make_appointment):
    """
    Schedule S1 with three physical bookings (P1, P2, P3, in booking order)
    and one video booking that must stay out of the queue.
    """
    schedule = make_schedule("S1")
    for patient_id in ("P1", "P2", "P3"):
        make_appointment(schedule, patient_id)
    make_appointment(schedule, "V1", appointment_type=Appointment.TYPE_VIDEO)
    return schedule


# ============================================================================
# Signaling
# ============================================================================

@pytest.fixture
def channel_layer_settings(settings):
    """Changing CHANNEL_LAYERS makes channels drop its cached layer instances."""
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    return settings


@pytest.fixture
def hub(channel_layer_settings):
    return SignalingHub(ring_timeout=0)


@pytest.fixture
def make_connection(hub):
    """Register a bare channel-layer connection with the hub (no socket)."""
    async def _make():
        connection_id = await hub.channel_layer.new_channel()
        hub.registry.register(connection_id)
        return connection_id
    return _make
