# consultation/routing.py
#
# The consumer gets the process-wide hub injected, so the URL patterns are
# built around a hub instead of living as a module-level list.

from django.urls import re_path

from .consumers import SignalingConsumer


def build_websocket_urlpatterns(hub):
    return [

        # ── Patient notifications + WebRTC signaling ─────────────────────────
        re_path(r"ws/signaling/?$", SignalingConsumer.as_asgi(hub=hub)),
    ]
