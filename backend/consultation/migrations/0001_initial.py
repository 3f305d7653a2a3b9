from django.db import migrations, models
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CallSession",
            fields=[
                ("call_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("room_id", models.CharField(db_index=True, max_length=120)),
                ("doctor_id", models.CharField(max_length=64)),
                ("doctor_name", models.CharField(blank=True, max_length=150)),
                ("patient_id", models.CharField(db_index=True, max_length=64)),
                ("consultation_type", models.CharField(choices=[("video", "Video"), ("audio", "Audio")], default="video", max_length=10)),
                ("status", models.CharField(choices=[("connecting", "Connecting"), ("connected", "Connected"), ("ended", "Ended")], default="connecting", max_length=20)),
                ("doctor_joined", models.BooleanField(default=False)),
                ("patient_joined", models.BooleanField(default=False)),
                ("started_at", models.DateTimeField()),
                ("connected_at", models.DateTimeField(blank=True, null=True)),
                ("ended_at", models.DateTimeField(blank=True, null=True)),
                ("ended_by", models.CharField(blank=True, max_length=64)),
                ("end_reason", models.CharField(blank=True, max_length=300)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-started_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="callsession",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status", "ended"), _negated=True),
                fields=("room_id",),
                name="one_live_call_per_room",
            ),
        ),
    ]
