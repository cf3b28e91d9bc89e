"""
Billing models. Commission schedules (append-only versions), finalized commission
history, and payouts. Services in billing/services own every write to these tables.
"""
from django.conf import settings
from django.db import models
from django.db.models import Q


class CommissionSchedule(models.Model):
    """
    One version of a psychologist's commission configuration.

    Rows are never edited: a change deactivates the current head and appends a new
    version, so past finalizations stay reproducible. Amount semantics:
    individual_amount / package_amounts are what the COMPANY keeps; the first-session
    and follow-up overrides are what the PSYCHOLOGIST receives.
    """

    psychologist = models.ForeignKey(
        "accounts.PsychologistProfile",
        on_delete=models.PROTECT,
        related_name="commission_schedules",
    )
    effective_from = models.DateField()
    effective_to = models.DateField(blank=True, null=True)
    is_active = models.BooleanField(default=True)

    individual_amount = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    package_amounts = models.JSONField(default=dict, blank=True)  # {"package_3": "900.00", ...}
    first_session_individual_amount = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    followup_individual_amount = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    first_session_package_amounts = models.JSONField(default=dict, blank=True)
    followup_package_amounts = models.JSONField(default=dict, blank=True)

    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-effective_from", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["psychologist"],
                condition=Q(is_active=True),
                name="one_active_schedule_per_psychologist",
            ),
        ]

    def __str__(self):
        state = "active" if self.is_active else "inactive"
        return f"CommissionSchedule psychologist={self.psychologist_id} from {self.effective_from} ({state})"


class CommissionHistory(models.Model):
    """
    Finalized commission split for one completed session or one fully completed package
    instance. Immutable once written; settlement only flips payment_status/payout.
    """

    UNIT_INDIVIDUAL = "individual"
    UNIT_PACKAGE = "package"
    UNIT_CHOICES = [
        (UNIT_INDIVIDUAL, "Individual"),
        (UNIT_PACKAGE, "Package"),
    ]

    STATUS_PENDING = "pending"
    STATUS_PAID = "paid"
    PAYMENT_STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PAID, "Paid"),
    ]

    psychologist = models.ForeignKey(
        "accounts.PsychologistProfile",
        on_delete=models.PROTECT,
        related_name="commission_history",
    )
    client = models.ForeignKey(
        "accounts.ClientProfile",
        on_delete=models.PROTECT,
        related_name="commission_history",
    )
    unit_kind = models.CharField(max_length=20, choices=UNIT_CHOICES)
    session = models.ForeignKey(
        "general.Session",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="commission_history",
    )
    package = models.ForeignKey(
        "general.Package",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="commission_history",
    )
    package_type = models.CharField(max_length=50, blank=True)
    schedule = models.ForeignKey(
        "billing.CommissionSchedule",
        on_delete=models.PROTECT,
        related_name="finalized_entries",
    )
    is_first_session = models.BooleanField(default=False)

    gross_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2)
    provider_amount = models.DecimalField(max_digits=12, decimal_places=2)
    gst_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    gst_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    net_company_revenue = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    scheduled_date = models.DateField()
    payment_captured_at = models.DateTimeField()
    completed_at = models.DateTimeField()

    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default=STATUS_PENDING)
    payout = models.ForeignKey(
        "billing.Payout",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="commission_entries",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-completed_at", "-id"]
        verbose_name_plural = "Commission history"
        constraints = [
            models.UniqueConstraint(
                fields=["session"],
                condition=Q(session__isnull=False),
                name="one_history_per_session",
            ),
            models.UniqueConstraint(
                fields=["psychologist", "package", "client"],
                condition=Q(unit_kind="package"),
                name="one_history_per_package_instance",
            ),
            models.CheckConstraint(
                condition=(
                    Q(payment_status="pending", payout__isnull=True)
                    | Q(payment_status="paid", payout__isnull=False)
                ),
                name="history_paid_has_payout",
            ),
        ]
        indexes = [
            models.Index(fields=["psychologist", "payment_status"], name="history_psych_status_idx"),
            models.Index(fields=["completed_at"], name="history_completed_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Commission history is immutable once finalized.")
        super().save(*args, **kwargs)

    def __str__(self):
        unit = f"session {self.session_id}" if self.session_id else f"package {self.package_id}/client {self.client_id}"
        return f"CommissionHistory {unit}: {self.commission_amount} / {self.provider_amount} ({self.payment_status})"


class Payout(models.Model):
    """One settlement of a psychologist's finalized, unpaid commission history. Never updated."""

    METHOD_BANK_TRANSFER = "bank_transfer"
    METHOD_UPI = "upi"
    METHOD_CHEQUE = "cheque"
    METHOD_CASH = "cash"
    METHOD_OTHER = "other"
    PAYMENT_METHOD_CHOICES = [
        (METHOD_BANK_TRANSFER, "Bank transfer"),
        (METHOD_UPI, "UPI"),
        (METHOD_CHEQUE, "Cheque"),
        (METHOD_CASH, "Cash"),
        (METHOD_OTHER, "Other"),
    ]

    STATUS_PAID = "paid"
    STATUS_CHOICES = [
        (STATUS_PAID, "Paid"),
    ]

    psychologist = models.ForeignKey(
        "accounts.PsychologistProfile",
        on_delete=models.PROTECT,
        related_name="payouts",
    )
    payout_date = models.DateField()
    period_start = models.DateField(blank=True, null=True)
    period_end = models.DateField(blank=True, null=True)

    gross_provider_amount = models.DecimalField(max_digits=12, decimal_places=2)
    total_commission = models.DecimalField(max_digits=12, decimal_places=2)
    tds_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    tds_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    net_payout = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=10, default="inr")

    # Payment-method metadata is stored for audit only.
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default=METHOD_OTHER)
    bank_account_number = models.CharField(max_length=64, blank=True)
    ifsc_code = models.CharField(max_length=20, blank=True)
    upi_id = models.CharField(max_length=100, blank=True)
    cheque_number = models.CharField(max_length=64, blank=True)
    transaction_id = models.CharField(max_length=128, blank=True)
    reference_number = models.CharField(max_length=128, blank=True)
    notes = models.TextField(blank=True)

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PAID)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    processed_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-payout_date", "-id"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Payouts are immutable; record a new payout instead.")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Payout #{self.pk} psychologist={self.psychologist_id} {self.net_payout} on {self.payout_date}"
