"""
Commission schedule store. Versions are append-only: an update deactivates the current
head and inserts a new row, serialized per psychologist by locking the profile row.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from accounts.models import PsychologistProfile
from billing import config
from billing.models import CommissionSchedule
from billing.services.commission_resolver import ScheduleTerms, to_money

logger = logging.getLogger(__name__)


class InvalidCommissionAmount(Exception):
    pass


def _validated_amount(label, value):
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidCommissionAmount(f"Invalid commission amount for {label}: must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidCommissionAmount(f"Invalid commission amount for {label}: must be a number")
    if not amount.is_finite() or amount < 0:
        raise InvalidCommissionAmount(f"Invalid commission amount for {label}: must be >= 0")
    return to_money(amount)


def _validated_map(label, raw) -> dict:
    if raw in (None, ""):
        return {}
    if not isinstance(raw, dict):
        raise InvalidCommissionAmount(f"{label} must be an object keyed by package type")
    cleaned = {}
    for package_type, value in raw.items():
        key = str(package_type).strip()
        if not key:
            raise InvalidCommissionAmount(f"{label} contains an empty package type")
        amount = _validated_amount(f"{label}[{key}]", value)
        if amount is not None:
            cleaned[key] = str(amount)
    return cleaned


@transaction.atomic()
def update_schedule(
    psychologist: PsychologistProfile,
    *,
    commission_amounts=None,
    first_session_individual_amount=None,
    followup_individual_amount=None,
    first_session_package_amounts=None,
    followup_package_amounts=None,
    effective_from=None,
    notes: str = "",
    created_by=None,
) -> CommissionSchedule:
    """
    Append a new schedule version and make it the active head.

    commission_amounts maps package type -> company commission; the synthetic key
    "individual" sets the individual-session amount. Every amount is validated
    before anything is written.
    """
    package_amounts = _validated_map("commission_amounts", commission_amounts)
    individual_amount = package_amounts.pop(config.INDIVIDUAL_UNIT_KEY, None)
    first_individual = _validated_amount("first_session_individual_amount", first_session_individual_amount)
    followup_individual = _validated_amount("followup_individual_amount", followup_individual_amount)
    first_packages = _validated_map("first_session_package_amounts", first_session_package_amounts)
    followup_packages = _validated_map("followup_package_amounts", followup_package_amounts)

    if (
        individual_amount is None
        and not package_amounts
        and first_individual is None
        and followup_individual is None
        and not first_packages
        and not followup_packages
    ):
        raise InvalidCommissionAmount("At least one commission amount must be provided")

    effective = effective_from or timezone.localdate()

    # Serializes concurrent updates for the same psychologist.
    PsychologistProfile.objects.select_for_update().get(pk=psychologist.pk)

    # effective_to is only set when it does not precede the old head's effective_from.
    CommissionSchedule.objects.filter(
        psychologist=psychologist, is_active=True, effective_from__lte=effective
    ).update(is_active=False, effective_to=effective)
    CommissionSchedule.objects.filter(psychologist=psychologist, is_active=True).update(is_active=False)
    schedule = CommissionSchedule.objects.create(
        psychologist=psychologist,
        effective_from=effective,
        is_active=True,
        individual_amount=individual_amount,
        package_amounts=package_amounts,
        first_session_individual_amount=first_individual,
        followup_individual_amount=followup_individual,
        first_session_package_amounts=first_packages,
        followup_package_amounts=followup_packages,
        notes=notes or "",
        created_by=created_by,
    )
    logger.info(
        "commission schedule %s activated for psychologist=%s effective_from=%s",
        schedule.pk,
        psychologist.pk,
        effective,
    )
    return schedule


def active_schedule(psychologist) -> CommissionSchedule | None:
    """Head of the version chain (the most recently configured schedule)."""
    return CommissionSchedule.objects.filter(psychologist=psychologist, is_active=True).first()


def schedule_in_effect(psychologist, as_of=None) -> CommissionSchedule | None:
    """
    Version governing as_of: the latest effective_from on or before that date, the most
    recently created one when several share it.
    """
    as_of = as_of or timezone.localdate()
    return (
        CommissionSchedule.objects.filter(psychologist=psychologist, effective_from__lte=as_of)
        .order_by("-effective_from", "-id")
        .first()
    )


def terms_in_effect(psychologist, as_of=None) -> ScheduleTerms | None:
    schedule = schedule_in_effect(psychologist, as_of=as_of)
    return ScheduleTerms.from_schedule(schedule) if schedule else None


def schedule_as_dict(schedule: CommissionSchedule | None) -> dict | None:
    if schedule is None:
        return None
    commission_amounts = dict(schedule.package_amounts or {})
    if schedule.individual_amount is not None:
        commission_amounts[config.INDIVIDUAL_UNIT_KEY] = str(schedule.individual_amount)
    return {
        "id": schedule.pk,
        "psychologist_id": schedule.psychologist_id,
        "effective_from": schedule.effective_from.isoformat(),
        "effective_to": schedule.effective_to.isoformat() if schedule.effective_to else None,
        "is_active": schedule.is_active,
        "commission_amounts": commission_amounts,
        "first_session_individual_amount": schedule.first_session_individual_amount,
        "followup_individual_amount": schedule.followup_individual_amount,
        "first_session_package_amounts": schedule.first_session_package_amounts or {},
        "followup_package_amounts": schedule.followup_package_amounts or {},
        "notes": schedule.notes,
    }
