from datetime import date, datetime
from decimal import Decimal
from itertools import count

from django.utils import timezone

from accounts.models import ClientProfile, CustomUser, PsychologistProfile
from billing.services.commission_schedule_service import update_schedule
from general.models import Package, Session

_sequence = count(1)


def aware(year, month, day, hour=10):
    return timezone.make_aware(datetime(year, month, day, hour, 0))


def make_psychologist(first_name="Asha"):
    user = CustomUser.objects.create_user(email=f"psychologist{next(_sequence)}@example.com", password="pass12345")
    return PsychologistProfile.objects.create(user=user, first_name=first_name, last_name="Rao")


def make_client(first_name="Client"):
    user = CustomUser.objects.create_user(email=f"client{next(_sequence)}@example.com", password="pass12345")
    return ClientProfile.objects.create(user=user, first_name=first_name)


def make_staff():
    return CustomUser.objects.create_user(
        email=f"staff{next(_sequence)}@example.com",
        password="pass12345",
        is_staff=True,
    )


def make_package(psychologist, package_type="package_3", session_count=3, price=Decimal("2700.00")):
    return Package.objects.create(
        psychologist=psychologist,
        package_type=package_type,
        name=f"{session_count} Session Package",
        session_count=session_count,
        price=price,
    )


def make_session(
    psychologist,
    client,
    *,
    price=Decimal("1000.00"),
    scheduled_date=date(2024, 3, 5),
    paid_at=None,
    package=None,
    status=Session.STATUS_BOOKED,
    completed_at=None,
    session_type=Session.TYPE_THERAPY,
    paid=True,
):
    if paid and paid_at is None:
        paid_at = timezone.make_aware(datetime.combine(scheduled_date, datetime.min.time()))
    return Session.objects.create(
        psychologist=psychologist,
        client=client,
        package=package,
        price=price,
        status=status,
        scheduled_date=scheduled_date,
        payment_captured_at=paid_at if paid else None,
        completed_at=completed_at,
        session_type=session_type,
    )


def make_schedule(psychologist, effective_from=date(2024, 1, 1), **amounts):
    amounts.setdefault("commission_amounts", {"individual": "300", "package_3": "600"})
    return update_schedule(psychologist, effective_from=effective_from, **amounts)
