# queueing/urls.py
#
# Prefixed with /api/ in clinic_coordination/urls.py.

from django.urls import path
from . import views

urlpatterns = [

    # ── Walk-in queue ─────────────────────────────────────────────────────────
    path("queue/start",                              views.QueueStartView.as_view()),
    path("queue/schedule/<str:schedule_id>",         views.ScheduleQueueView.as_view()),
    path("queue/checkin",                            views.QueueCheckInView.as_view()),
    path("queue/next",                               views.QueueNextView.as_view()),
    path("queue/patient/<str:patient_id>",           views.PatientQueueView.as_view()),

    # ── Medical centre overview ───────────────────────────────────────────────
    path("medical-center/<str:medical_center_id>/active-queues",
         views.MedicalCenterActiveQueuesView.as_view()),
]
