# consultation/urls.py
#
# Prefixed with /api/ in clinic_coordination/urls.py.

from django.urls import path
from . import views

urlpatterns = [

    # ── Calls ─────────────────────────────────────────────────────────────────
    path("webrtc/call/start",           views.CallStartView.as_view()),
    path("webrtc/call/end",             views.CallEndView.as_view()),
    path("webrtc/call/<str:room_id>",   views.CallSessionDetailView.as_view()),

    # ── Monitoring ────────────────────────────────────────────────────────────
    path("webrtc/health",               views.SignalingHealthView.as_view()),
]
