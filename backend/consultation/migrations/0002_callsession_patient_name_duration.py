from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("consultation", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="callsession",
            name="patient_name",
            field=models.CharField(blank=True, max_length=150),
        ),
        migrations.AddField(
            model_name="callsession",
            name="duration_seconds",
            field=models.PositiveIntegerField(blank=True, null=True),
        ),
    ]
