from django.db import migrations, models
import django.db.models.deletion
import queueing.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Schedule",
            fields=[
                ("schedule_id", models.CharField(default=queueing.models.new_schedule_id, max_length=64, primary_key=True, serialize=False)),
                ("doctor_id", models.CharField(max_length=64)),
                ("doctor_name", models.CharField(blank=True, max_length=150)),
                ("medical_center_id", models.CharField(blank=True, max_length=64)),
                ("medical_center_name", models.CharField(blank=True, max_length=150)),
                ("date", models.DateField(blank=True, null=True)),
                ("start_time", models.TimeField(blank=True, null=True)),
                ("end_time", models.TimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("scheduled", "Scheduled"), ("in-progress", "In progress"), ("completed", "Completed"), ("cancelled", "Cancelled")], default="scheduled", max_length=20)),
                ("queue_started", models.BooleanField(default=False)),
                ("queue_start_time", models.DateTimeField(blank=True, null=True)),
                ("queue_id", models.CharField(blank=True, max_length=120)),
                ("current_token", models.PositiveIntegerField(default=0)),
                ("total_patients", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["date", "start_time", "schedule_id"],
            },
        ),
        migrations.CreateModel(
            name="Appointment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("patient_id", models.CharField(db_index=True, max_length=64)),
                ("patient_name", models.CharField(blank=True, max_length=150)),
                ("patient_age", models.PositiveIntegerField(blank=True, null=True)),
                ("patient_gender", models.CharField(blank=True, max_length=20)),
                ("patient_phone", models.CharField(blank=True, max_length=20)),
                ("appointment_type", models.CharField(choices=[("physical", "Physical visit"), ("video", "Video consultation"), ("audio", "Audio consultation")], default="physical", max_length=20)),
                ("status", models.CharField(choices=[("scheduled", "Scheduled"), ("confirmed", "Confirmed"), ("waiting", "Waiting"), ("completed", "Completed"), ("cancelled", "Cancelled")], default="scheduled", max_length=20)),
                ("date", models.DateField(blank=True, null=True)),
                ("time", models.TimeField(blank=True, null=True)),
                ("token_number", models.PositiveIntegerField(blank=True, null=True)),
                ("queue_status", models.CharField(blank=True, choices=[("waiting", "Waiting"), ("checked-in", "Checked in"), ("in-consultation", "In consultation"), ("completed", "Completed")], max_length=20)),
                ("current_position", models.PositiveIntegerField(blank=True, null=True)),
                ("checked_in", models.BooleanField(default=False)),
                ("check_in_time", models.DateTimeField(blank=True, null=True)),
                ("consultation_start_time", models.DateTimeField(blank=True, null=True)),
                ("consultation_end_time", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("schedule", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="appointments", to="queueing.schedule")),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["schedule", "appointment_type", "token_number"], name="appt_schedule_type_token_idx")],
            },
        ),
        migrations.CreateModel(
            name="Queue",
            fields=[
                ("queue_id", models.CharField(max_length=120, primary_key=True, serialize=False)),
                ("doctor_id", models.CharField(blank=True, max_length=64)),
                ("doctor_name", models.CharField(blank=True, max_length=150)),
                ("medical_center_id", models.CharField(blank=True, db_index=True, max_length=64)),
                ("medical_center_name", models.CharField(blank=True, max_length=150)),
                ("status", models.CharField(choices=[("in-progress", "In progress"), ("completed", "Completed")], default="in-progress", max_length=20)),
                ("start_time", models.DateTimeField()),
                ("current_token", models.PositiveIntegerField(default=1)),
                ("total_patients", models.PositiveIntegerField(default=0)),
                ("patients", models.JSONField(default=list)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("schedule", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="queues", to="queueing.schedule")),
            ],
            options={
                "ordering": ["-start_time"],
            },
        ),
    ]
