"""
Payout settlement. The only code path that moves commission history to paid.

One settlement is one transaction:
  1. lock the psychologist row so settlements for the same psychologist queue up,
  2. read the finalized pending history rows (scoped by payment capture date when a
     period is given),
  3. create the Payout from those rows' totals,
  4. flip exactly those rows to paid with a write conditioned on payment_status=pending.
If step 4 moves fewer rows than step 2 read, another writer got there first: raise and
let the transaction roll back the payout. Estimates are never settled.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from accounts.models import PsychologistProfile
from billing import config
from billing.models import CommissionHistory, Payout
from billing.services.commission_resolver import ZERO, to_money
from billing.services.payout_aggregator import pending_history, psychologist_as_dict
from billing.services.periods import Period

logger = logging.getLogger(__name__)

PAYMENT_DETAIL_FIELDS = (
    "bank_account_number",
    "ifsc_code",
    "upi_id",
    "cheque_number",
    "transaction_id",
    "reference_number",
)


class PayoutError(Exception):
    pass


class NothingPendingToSettle(PayoutError):
    """No finalized, unpaid history rows in scope. Safe to treat as a no-op."""


class ConcurrentSettlementConflict(PayoutError):
    """Lost a race with another settlement, or the caller's expected total is stale. Re-read and retry."""


def settleable_entries(psychologist, period: Period | None = None):
    entries = pending_history(psychologist)
    if period is not None:
        lower, upper = period.datetime_bounds()
        entries = entries.filter(payment_captured_at__gte=lower, payment_captured_at__lt=upper)
    return entries.order_by("id")


def _claim_entries(entry_ids, payout: Payout, now) -> int:
    return CommissionHistory.objects.filter(
        id__in=entry_ids,
        payment_status=CommissionHistory.STATUS_PENDING,
        payout__isnull=True,
    ).update(
        payment_status=CommissionHistory.STATUS_PAID,
        payout=payout,
        updated_at=now,
    )


def _tds(provider_total: Decimal, tds_percentage) -> tuple:
    try:
        pct = to_money(tds_percentage or 0)
    except ValueError as exc:
        raise PayoutError(f"Invalid TDS percentage: {tds_percentage!r}") from exc
    if pct < 0 or pct > 100:
        raise PayoutError("TDS percentage must be between 0 and 100.")
    return pct, to_money(provider_total * pct / Decimal(100))


def _clean_details(payment_method, payment_details) -> dict:
    if payment_method not in dict(Payout.PAYMENT_METHOD_CHOICES):
        raise PayoutError(f"Unknown payment method: {payment_method}")
    details = dict(payment_details or {})
    unknown = sorted(set(details) - set(PAYMENT_DETAIL_FIELDS))
    if unknown:
        raise PayoutError(f"Unknown payment detail fields: {', '.join(unknown)}")
    return {name: str(details.get(name) or "").strip() for name in PAYMENT_DETAIL_FIELDS}


@transaction.atomic()
def settle_payout(
    psychologist,
    period: Period | None = None,
    *,
    payment_method=Payout.METHOD_OTHER,
    payment_details=None,
    tds_percentage=0,
    expected_net_payout=None,
    processed_by=None,
    notes="",
    now=None,
) -> Payout:
    """
    Settle everything finalized and unpaid for the psychologist (optionally only rows
    whose payment was captured inside `period`) into one Payout.

    Raises NothingPendingToSettle when there is nothing to pay, and
    ConcurrentSettlementConflict when another settlement consumed the rows first or
    `expected_net_payout` no longer matches.
    """
    now = now or timezone.now()
    details = _clean_details(payment_method, payment_details)

    PsychologistProfile.objects.select_for_update().get(pk=psychologist.pk)
    entries = list(settleable_entries(psychologist, period))
    if not entries:
        raise NothingPendingToSettle(f"Nothing pending to settle for psychologist {psychologist.pk}.")

    provider_total = sum((entry.provider_amount for entry in entries), ZERO)
    commission_total = sum((entry.commission_amount for entry in entries), ZERO)
    tds_percentage, tds_amount = _tds(provider_total, tds_percentage)
    net_payout = provider_total - tds_amount

    if expected_net_payout is not None and to_money(expected_net_payout) != net_payout:
        raise ConcurrentSettlementConflict(
            f"Expected net payout {expected_net_payout} but {net_payout} is pending; re-read and retry."
        )

    payout = Payout.objects.create(
        psychologist_id=psychologist.pk,
        payout_date=timezone.localdate(now),
        period_start=period.start if period else None,
        period_end=period.end if period else None,
        gross_provider_amount=provider_total,
        total_commission=commission_total,
        tds_percentage=tds_percentage,
        tds_amount=tds_amount,
        net_payout=net_payout,
        currency=config.DEFAULT_CURRENCY,
        payment_method=payment_method,
        notes=notes or "",
        processed_by=processed_by,
        processed_at=now,
        **details,
    )

    # Conditional on pending: a row claimed by anyone else is not counted.
    claimed = _claim_entries([entry.pk for entry in entries], payout, now)
    if claimed != len(entries):
        logger.warning(
            "Settlement conflict psychologist=%s read=%s claimed=%s; rolling back payout",
            psychologist.pk, len(entries), claimed,
        )
        raise ConcurrentSettlementConflict(
            f"{len(entries) - claimed} commission entries were settled concurrently; re-read and retry."
        )

    logger.info(
        "Payout %s settled psychologist=%s entries=%s net=%s tds=%s",
        payout.pk, psychologist.pk, claimed, net_payout, tds_amount,
    )
    return payout


def mark_as_paid(psychologist, period: Period, processed_by=None, now=None) -> Payout:
    """Settle the period with totals inferred from history; no caller-supplied amounts."""
    return settle_payout(
        psychologist,
        period,
        payment_method=Payout.METHOD_OTHER,
        processed_by=processed_by,
        notes=f"Marked as paid for {period.label}",
        now=now,
    )


def payout_history(psychologist=None, date_from=None, date_to=None):
    payouts = Payout.objects.select_related("psychologist__user", "processed_by")
    if psychologist is not None:
        payouts = payouts.filter(psychologist=psychologist)
    if date_from is not None:
        payouts = payouts.filter(payout_date__gte=date_from)
    if date_to is not None:
        payouts = payouts.filter(payout_date__lte=date_to)
    return payouts.order_by("-payout_date", "-id")


def payout_as_dict(payout: Payout, include_entries=False) -> dict:
    data = {
        "id": payout.pk,
        "psychologist": psychologist_as_dict(payout.psychologist),
        "payout_date": payout.payout_date.isoformat(),
        "period_start": payout.period_start.isoformat() if payout.period_start else None,
        "period_end": payout.period_end.isoformat() if payout.period_end else None,
        "gross_doctor_wallet": payout.gross_provider_amount,
        "total_commission": payout.total_commission,
        "tds_percentage": payout.tds_percentage,
        "tds_amount": payout.tds_amount,
        "net_payout": payout.net_payout,
        "currency": payout.currency,
        "payment_method": payout.payment_method,
        "notes": payout.notes,
        "status": payout.status,
        "processed_by": payout.processed_by.email if payout.processed_by else None,
        "processed_at": payout.processed_at.isoformat(),
    }
    for name in PAYMENT_DETAIL_FIELDS:
        data[name] = getattr(payout, name)
    if include_entries:
        data["commission_entries"] = [
            {
                "id": entry.pk,
                "unit_kind": entry.unit_kind,
                "package_type": entry.package_type,
                "session_id": entry.session_id,
                "package_id": entry.package_id,
                "client_id": entry.client_id,
                "session_amount": entry.gross_amount,
                "company_commission": entry.commission_amount,
                "doctor_wallet": entry.provider_amount,
                "completed_at": entry.completed_at.isoformat(),
            }
            for entry in payout.commission_entries.order_by("id")
        ]
    return data
