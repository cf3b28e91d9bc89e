"""
Commission resolver - pure split of a booking unit's gross price between the company
and the psychologist.

A booking unit is a closed variant:
  Individual(gross)                 one session outside any package
  PackageUnit(package_type, gross)  one package instance; gross is the TOTAL contract price

Precedence (provider amounts are what the psychologist receives):
  first session + first-session override  -> provider = override
  follow-up     + follow-up override      -> provider = override
  otherwise                               -> provider = gross - fixed company amount

No database access here; callers load ScheduleTerms and pass them in.
"""
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from billing import config

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class NoScheduleConfigured(Exception):
    """The psychologist has no schedule, or the schedule has no amount for this unit."""


def to_money(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount.quantize(config.MONEY_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Individual:
    gross: Decimal

    @property
    def key(self) -> str:
        return config.INDIVIDUAL_UNIT_KEY

    @property
    def kind(self) -> str:
        return "individual"


@dataclass(frozen=True)
class PackageUnit:
    package_type: str
    gross: Decimal

    @property
    def key(self) -> str:
        return self.package_type

    @property
    def kind(self) -> str:
        return "package"


BookingUnit = Individual | PackageUnit


def _amount_map(raw) -> dict:
    return {str(key): to_money(value) for key, value in (raw or {}).items() if value not in (None, "")}


def _optional_money(value):
    return None if value is None or value == "" else to_money(value)


@dataclass(frozen=True)
class ScheduleTerms:
    """Immutable snapshot of one CommissionSchedule version."""

    individual_amount: Decimal | None = None
    package_amounts: dict = field(default_factory=dict)
    first_session_individual_amount: Decimal | None = None
    followup_individual_amount: Decimal | None = None
    first_session_package_amounts: dict = field(default_factory=dict)
    followup_package_amounts: dict = field(default_factory=dict)
    schedule_id: int | None = None

    @classmethod
    def from_schedule(cls, schedule) -> "ScheduleTerms":
        return cls(
            individual_amount=_optional_money(schedule.individual_amount),
            package_amounts=_amount_map(schedule.package_amounts),
            first_session_individual_amount=_optional_money(schedule.first_session_individual_amount),
            followup_individual_amount=_optional_money(schedule.followup_individual_amount),
            first_session_package_amounts=_amount_map(schedule.first_session_package_amounts),
            followup_package_amounts=_amount_map(schedule.followup_package_amounts),
            schedule_id=schedule.pk,
        )

    def company_amount_for(self, unit: BookingUnit) -> Decimal:
        if isinstance(unit, Individual):
            amount = self.individual_amount
        else:
            amount = self.package_amounts.get(unit.package_type)
        if amount is None:
            raise NoScheduleConfigured(f"No commission configured for {unit.key}.")
        return amount

    def provider_override_for(self, unit: BookingUnit, is_first_session: bool):
        if isinstance(unit, Individual):
            if is_first_session:
                return self.first_session_individual_amount
            return self.followup_individual_amount
        overrides = self.first_session_package_amounts if is_first_session else self.followup_package_amounts
        return overrides.get(unit.package_type)


@dataclass(frozen=True)
class Split:
    gross_amount: Decimal
    commission_amount: Decimal
    provider_amount: Decimal
    approximate: bool = False

    def as_dict(self) -> dict:
        return {
            "gross_amount": self.gross_amount,
            "commission_amount": self.commission_amount,
            "provider_amount": self.provider_amount,
            "approximate": self.approximate,
        }


def _clamp(amount: Decimal, gross: Decimal) -> Decimal:
    return min(max(amount, ZERO), gross)


def resolve(unit: BookingUnit, terms: ScheduleTerms | None, is_first_session: bool) -> Split:
    """
    Split unit.gross using the schedule terms. Raises NoScheduleConfigured when terms is
    None or holds no amount for the unit. commission + provider == gross, always.
    """
    if terms is None:
        raise NoScheduleConfigured("No commission schedule configured.")
    gross = to_money(unit.gross)
    override = terms.provider_override_for(unit, is_first_session)
    if override is not None:
        provider = _clamp(override, gross)
    else:
        provider = gross - _clamp(terms.company_amount_for(unit), gross)
    return Split(gross_amount=gross, commission_amount=gross - provider, provider_amount=provider)


def default_estimate(unit: BookingUnit) -> Split:
    """Pending-only fallback: the documented default platform rate."""
    gross = to_money(unit.gross)
    commission = to_money(gross * config.DEFAULT_ESTIMATE_COMMISSION_RATE)
    return Split(gross_amount=gross, commission_amount=commission, provider_amount=gross - commission, approximate=True)


def estimate(unit: BookingUnit, terms: ScheduleTerms | None, is_first_session: bool) -> Split:
    try:
        return resolve(unit, terms, is_first_session)
    except NoScheduleConfigured as exc:
        logger.warning("commission estimate falls back to default rate for %s: %s", unit.key, exc)
        return default_estimate(unit)
