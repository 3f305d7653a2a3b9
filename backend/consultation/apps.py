import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class ConsultationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "consultation"
    verbose_name = "Telemedicine calls"

    hub = None

    def ready(self):
        from .hub import SignalingHub

        self.hub = SignalingHub()
        logger.info("[Signaling] hub ready (ring timeout %ss)", self.hub.sessions.ring_timeout)
