from django.contrib import admin

from .models import CallSession


@admin.register(CallSession)
class CallSessionAdmin(admin.ModelAdmin):
    """
    Call sessions are an audit trail written by the signaling service;
    nothing is editable here.
    """
    list_display = ("room_id", "doctor_name", "patient_id", "consultation_type", "status", "started_at", "ended_by")
    list_filter = ("status", "consultation_type", "ended_by")
    search_fields = ("room_id", "doctor_id", "doctor_name", "patient_id")
    readonly_fields = [f.name for f in CallSession._meta.fields]
    ordering = ("-started_at",)

    fieldsets = (
        ("Call", {
            "fields": ("call_id", "room_id", "consultation_type", "status")
        }),
        ("Participants", {
            "fields": ("doctor_id", "doctor_name", "patient_id", "patient_name", "doctor_joined", "patient_joined")
        }),
        ("Timeline", {
            "fields": ("started_at", "connected_at", "ended_at", "duration_seconds", "ended_by", "end_reason")
        }),
        ("Metadata", {
            "fields": ("created_at", "updated_at"),
            "classes": ("collapse",)
        }),
    )

    def has_add_permission(self, request):
        return False
