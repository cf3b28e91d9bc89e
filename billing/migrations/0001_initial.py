import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("general", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CommissionSchedule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("effective_from", models.DateField()),
                ("effective_to", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("individual_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("package_amounts", models.JSONField(blank=True, default=dict)),
                ("first_session_individual_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("followup_individual_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("first_session_package_amounts", models.JSONField(blank=True, default=dict)),
                ("followup_package_amounts", models.JSONField(blank=True, default=dict)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("psychologist", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="commission_schedules", to="accounts.psychologistprofile")),
            ],
            options={
                "ordering": ["-effective_from", "-id"],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("is_active", True)), fields=("psychologist",), name="one_active_schedule_per_psychologist"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payout",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payout_date", models.DateField()),
                ("period_start", models.DateField(blank=True, null=True)),
                ("period_end", models.DateField(blank=True, null=True)),
                ("gross_provider_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("total_commission", models.DecimalField(decimal_places=2, max_digits=12)),
                ("tds_percentage", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ("tds_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("net_payout", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="inr", max_length=10)),
                ("payment_method", models.CharField(choices=[("bank_transfer", "Bank transfer"), ("upi", "UPI"), ("cheque", "Cheque"), ("cash", "Cash"), ("other", "Other")], default="other", max_length=20)),
                ("bank_account_number", models.CharField(blank=True, max_length=64)),
                ("ifsc_code", models.CharField(blank=True, max_length=20)),
                ("upi_id", models.CharField(blank=True, max_length=100)),
                ("cheque_number", models.CharField(blank=True, max_length=64)),
                ("transaction_id", models.CharField(blank=True, max_length=128)),
                ("reference_number", models.CharField(blank=True, max_length=128)),
                ("notes", models.TextField(blank=True)),
                ("status", models.CharField(choices=[("paid", "Paid")], default="paid", max_length=10)),
                ("processed_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("processed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("psychologist", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payouts", to="accounts.psychologistprofile")),
            ],
            options={
                "ordering": ["-payout_date", "-id"],
            },
        ),
        migrations.CreateModel(
            name="CommissionHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("unit_kind", models.CharField(choices=[("individual", "Individual"), ("package", "Package")], max_length=20)),
                ("package_type", models.CharField(blank=True, max_length=50)),
                ("is_first_session", models.BooleanField(default=False)),
                ("gross_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("commission_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("provider_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("gst_rate", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ("gst_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("net_company_revenue", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("scheduled_date", models.DateField()),
                ("payment_captured_at", models.DateTimeField()),
                ("completed_at", models.DateTimeField()),
                ("payment_status", models.CharField(choices=[("pending", "Pending"), ("paid", "Paid")], default="pending", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="commission_history", to="accounts.clientprofile")),
                ("package", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="commission_history", to="general.package")),
                ("payout", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="commission_entries", to="billing.payout")),
                ("psychologist", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="commission_history", to="accounts.psychologistprofile")),
                ("schedule", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="finalized_entries", to="billing.commissionschedule")),
                ("session", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="commission_history", to="general.session")),
            ],
            options={
                "verbose_name_plural": "Commission history",
                "ordering": ["-completed_at", "-id"],
                "indexes": [
                    models.Index(fields=["psychologist", "payment_status"], name="history_psych_status_idx"),
                    models.Index(fields=["completed_at"], name="history_completed_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("session__isnull", False)), fields=("session",), name="one_history_per_session"),
                    models.UniqueConstraint(condition=models.Q(("unit_kind", "package")), fields=("psychologist", "package", "client"), name="one_history_per_package_instance"),
                    models.CheckConstraint(condition=models.Q(models.Q(("payment_status", "pending"), ("payout__isnull", True)), models.Q(("payment_status", "paid"), ("payout__isnull", False)), _connector="OR"), name="history_paid_has_payout"),
                ],
            },
        ),
    ]
