from django.db import models
from django.utils import timezone


class Package(models.Model):
    """
    Package template offered by a psychologist, e.g. "3 sessions for 3000".

    A client buying a package creates a package instance, identified by
    (package, psychologist, client); its sessions all point back here.
    """
    psychologist = models.ForeignKey("accounts.PsychologistProfile", on_delete=models.CASCADE, related_name="packages")
    package_type = models.CharField(max_length=50, help_text="Commission lookup key, e.g. package_3")
    name = models.CharField(max_length=200, blank=True)
    session_count = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True, help_text="Total contract price for all sessions")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Package"
        verbose_name_plural = "Packages"
        ordering = ["psychologist_id", "session_count"]

    def __str__(self):
        return self.name or f"{self.session_count} Session Package"


class SessionQuerySet(models.QuerySet):
    def paid(self):
        """Sessions that reached payment capture. Free assessments never do."""
        return self.exclude(session_type=Session.TYPE_FREE_ASSESSMENT).filter(payment_captured_at__isnull=False)


class Session(models.Model):
    """A booked therapy session. Rows exist only once payment has been captured."""
    TYPE_THERAPY = 'therapy'
    TYPE_FREE_ASSESSMENT = 'free_assessment'
    SESSION_TYPES = [
        (TYPE_THERAPY, 'Therapy'),
        (TYPE_FREE_ASSESSMENT, 'Free assessment'),
    ]

    STATUS_BOOKED = 'booked'
    STATUS_COMPLETED = 'completed'
    STATUS_RESCHEDULED = 'rescheduled'
    STATUS_RESCHEDULE_REQUESTED = 'reschedule_requested'
    STATUS_NO_SHOW = 'no_show'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_BOOKED, 'Booked'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_RESCHEDULED, 'Rescheduled'),
        (STATUS_RESCHEDULE_REQUESTED, 'Reschedule requested'),
        (STATUS_NO_SHOW, 'No show'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    psychologist = models.ForeignKey("accounts.PsychologistProfile", on_delete=models.PROTECT, related_name="sessions")
    client = models.ForeignKey("accounts.ClientProfile", on_delete=models.PROTECT, related_name="sessions")
    package = models.ForeignKey("general.Package", on_delete=models.PROTECT, related_name="sessions", blank=True, null=True)
    session_type = models.CharField(max_length=20, choices=SESSION_TYPES, default=TYPE_THERAPY)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(max_length=24, choices=STATUS_CHOICES, default=STATUS_BOOKED)
    scheduled_date = models.DateField()
    scheduled_time = models.TimeField(blank=True, null=True)
    payment_captured_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)

    objects = SessionQuerySet.as_manager()

    class Meta:
        verbose_name = "Session"
        verbose_name_plural = "Sessions"
        ordering = ['-scheduled_date', '-id']
        indexes = [
            models.Index(fields=['psychologist', 'status'], name='session_psych_status_idx'),
            models.Index(fields=['client', 'payment_captured_at'], name='session_client_paid_idx'),
            models.Index(fields=['package', 'client'], name='session_package_client_idx'),
        ]

    @property
    def is_paid(self):
        return self.payment_captured_at is not None and self.session_type != self.TYPE_FREE_ASSESSMENT

    def __str__(self):
        return f"Session #{self.pk} on {self.scheduled_date} ({self.status})"
