from django.contrib import admin

from .models import Appointment, Queue, Schedule


class AppointmentInline(admin.TabularInline):
    """Appointments listed inside their schedule's admin page."""
    model = Appointment
    extra = 0
    fields = ("patient_id", "patient_name", "appointment_type", "status", "token_number", "queue_status", "checked_in")
    readonly_fields = ("token_number", "queue_status", "checked_in")


@admin.register(Schedule)
class ScheduleAdmin(admin.ModelAdmin):
    list_display = ("schedule_id", "doctor_name", "medical_center_name", "date", "status", "current_token", "total_patients")
    list_filter = ("status", "medical_center_name")
    search_fields = ("schedule_id", "doctor_id", "doctor_name")
    inlines = (AppointmentInline,)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("id", "patient_name", "schedule", "appointment_type", "status", "token_number", "queue_status")
    list_filter = ("appointment_type", "status", "queue_status")
    search_fields = ("patient_id", "patient_name", "schedule__schedule_id")


@admin.register(Queue)
class QueueAdmin(admin.ModelAdmin):
    """Queues are written by the engine only; the admin is read-only."""
    list_display = ("queue_id", "doctor_name", "medical_center_name", "current_token", "total_patients", "is_active", "start_time")
    list_filter = ("is_active", "status")
    readonly_fields = [f.name for f in Queue._meta.fields]
