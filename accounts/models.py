from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.utils import timezone
from .managers import CustomUserManager

class CustomUser(AbstractBaseUser, PermissionsMixin):
    email = models.EmailField("email address", unique=True)
    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(default=timezone.now)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = CustomUserManager()

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def save(self, *args, **kwargs):
        """Override save to ensure email is always stored in lowercase"""
        if self.email:
            self.email = self.email.lower().strip()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.email

    @property
    def profile(self):
        """Return the PsychologistProfile or ClientProfile attached to this user, if any"""
        try:
            return self.psychologist_profile
        except PsychologistProfile.DoesNotExist:
            try:
                return self.client_profile
            except ClientProfile.DoesNotExist:
                return None


class ClientProfile(models.Model):
    """Profile for clients booking sessions"""
    ROLE_CHOICES = [
        ('client', 'Client'),
    ]

    user = models.OneToOneField("accounts.CustomUser", on_delete=models.CASCADE, related_name="client_profile")
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='client', editable=False)  # Not changeable
    phone = models.CharField(max_length=32, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Client Profile"
        verbose_name_plural = "Client Profiles"

    def __str__(self):
        return f"{self.first_name} {self.last_name} ({self.user.email})"


class PsychologistProfile(models.Model):
    """Profile for psychologists (service providers receiving payouts)"""
    ROLE_CHOICES = [
        ('psychologist', 'Psychologist'),
    ]

    user = models.OneToOneField("accounts.CustomUser", on_delete=models.CASCADE, related_name="psychologist_profile")
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default='psychologist', editable=False)  # Not changeable
    phone = models.CharField(max_length=32, blank=True)
    experience_years = models.PositiveIntegerField(blank=True, null=True)
    individual_session_price = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)

    # Payout details (JSON for flexibility, passed through to payouts untouched)
    billing = models.JSONField(default=dict, blank=True)
    # Structure: {
    #   "bank_account_number": "...",
    #   "ifsc_code": "...",
    #   "upi_id": "...",
    #   "pan": "...",
    # }

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Psychologist Profile"
        verbose_name_plural = "Psychologist Profiles"
        ordering = ["first_name", "last_name"]

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return f"{self.full_name} ({self.user.email})"
