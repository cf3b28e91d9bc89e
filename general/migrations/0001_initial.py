import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Package",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("package_type", models.CharField(help_text="Commission lookup key, e.g. package_3", max_length=50)),
                ("name", models.CharField(blank=True, max_length=200)),
                ("session_count", models.PositiveIntegerField()),
                ("price", models.DecimalField(blank=True, decimal_places=2, help_text="Total contract price for all sessions", max_digits=10, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("psychologist", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="packages", to="accounts.psychologistprofile")),
            ],
            options={
                "verbose_name": "Package",
                "verbose_name_plural": "Packages",
                "ordering": ["psychologist_id", "session_count"],
            },
        ),
        migrations.CreateModel(
            name="Session",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("session_type", models.CharField(choices=[("therapy", "Therapy"), ("free_assessment", "Free assessment")], default="therapy", max_length=20)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("status", models.CharField(choices=[("booked", "Booked"), ("completed", "Completed"), ("rescheduled", "Rescheduled"), ("reschedule_requested", "Reschedule requested"), ("no_show", "No show"), ("cancelled", "Cancelled")], default="booked", max_length=24)),
                ("scheduled_date", models.DateField()),
                ("scheduled_time", models.TimeField(blank=True, null=True)),
                ("payment_captured_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sessions", to="accounts.clientprofile")),
                ("package", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="sessions", to="general.package")),
                ("psychologist", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sessions", to="accounts.psychologistprofile")),
            ],
            options={
                "verbose_name": "Session",
                "verbose_name_plural": "Sessions",
                "ordering": ["-scheduled_date", "-id"],
                "indexes": [
                    models.Index(fields=["psychologist", "status"], name="session_psych_status_idx"),
                    models.Index(fields=["client", "payment_captured_at"], name="session_client_paid_idx"),
                    models.Index(fields=["package", "client"], name="session_package_client_idx"),
                ],
            },
        ),
    ]
