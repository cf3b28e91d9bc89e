"""
Payout aggregation over the session ledger and commission history.

Three query modes, each with its own date predicate:

  pending    Outstanding balance. Every paid unit not yet finalized (estimated) plus
             every finalized row not yet paid out. Money totals ignore the period; the
             period only scopes the displayed session counts, by scheduled date.
  completed  Finalized rows whose COMPLETION timestamp falls in the period.
  revenue    Paid sessions whose SCHEDULED date falls in the period, any status.

Package instances contribute one line item each, never one per session.
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from accounts.models import PsychologistProfile
from billing.models import CommissionHistory
from billing.services.commission_resolver import ZERO, Individual, PackageUnit, estimate, to_money
from billing.services.commission_schedule_service import (
    active_schedule,
    schedule_as_dict,
    schedule_in_effect,
    terms_in_effect,
)
from billing.services.package_tracker import PackageInstanceKey, group_by_instance, package_gross
from billing.services.periods import Period
from billing.services.session_ledger import first_session_ids, paid_sessions

MODE_PENDING = "pending"
MODE_COMPLETED = "completed"
MODE_REVENUE = "revenue"


@dataclass
class LineItem:
    psychologist_id: int
    client_id: int
    unit_kind: str
    package_type: str
    gross_amount: Decimal
    commission_amount: Decimal
    provider_amount: Decimal
    finalized: bool
    scheduled_date: date | None = None
    session_ids: list = field(default_factory=list)
    package_id: int | None = None
    approximate: bool = False
    history_id: int | None = None
    payment_status: str = CommissionHistory.STATUS_PENDING
    completed_at: datetime | None = None

    def as_dict(self) -> dict:
        return {
            "psychologist_id": self.psychologist_id,
            "client_id": self.client_id,
            "unit_kind": self.unit_kind,
            "package_type": self.package_type,
            "package_id": self.package_id,
            "session_ids": list(self.session_ids),
            "session_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "session_amount": self.gross_amount,
            "company_commission": self.commission_amount,
            "doctor_wallet": self.provider_amount,
            "finalized": self.finalized,
            "settleable": self.finalized and self.payment_status == CommissionHistory.STATUS_PENDING,
            "approximate": self.approximate,
            "commission_history_id": self.history_id,
            "payment_status": self.payment_status,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class PayoutAggregate:
    mode: str
    psychologist_id: int
    period: Period | None = None
    line_items: list = field(default_factory=list)
    session_counts: dict = field(default_factory=dict)

    @property
    def total_gross(self) -> Decimal:
        return sum((item.gross_amount for item in self.line_items), ZERO)

    @property
    def total_commission(self) -> Decimal:
        return sum((item.commission_amount for item in self.line_items), ZERO)

    @property
    def total_provider_amount(self) -> Decimal:
        return sum((item.provider_amount for item in self.line_items), ZERO)

    @property
    def settleable_provider_amount(self) -> Decimal:
        return sum((item.provider_amount for item in self.line_items if item.finalized), ZERO)

    @property
    def approximate(self) -> bool:
        return any(item.approximate for item in self.line_items)

    def as_dict(self, include_items=True) -> dict:
        data = {
            "mode": self.mode,
            "psychologist_id": self.psychologist_id,
            "period": self.period.as_dict() if self.period else None,
            "total_gross": self.total_gross,
            "total_commission": self.total_commission,
            "total_doctor_wallet": self.total_provider_amount,
            "settleable_doctor_wallet": self.settleable_provider_amount,
            "approximate": self.approximate,
            "session_counts": dict(self.session_counts),
        }
        if include_items:
            data["line_items"] = [item.as_dict() for item in self.line_items]
        return data


def _history_item(entry: CommissionHistory) -> LineItem:
    return LineItem(
        psychologist_id=entry.psychologist_id,
        client_id=entry.client_id,
        unit_kind=entry.unit_kind,
        package_type=entry.package_type,
        gross_amount=entry.gross_amount,
        commission_amount=entry.commission_amount,
        provider_amount=entry.provider_amount,
        finalized=True,
        scheduled_date=entry.scheduled_date,
        session_ids=[entry.session_id] if entry.session_id else [],
        package_id=entry.package_id,
        history_id=entry.pk,
        payment_status=entry.payment_status,
        completed_at=entry.completed_at,
    )


def pending_history(psychologist):
    """Finalized rows still owed to the psychologist. The only rows settlement may consume."""
    return CommissionHistory.objects.filter(
        psychologist=psychologist,
        payment_status=CommissionHistory.STATUS_PENDING,
        payout__isnull=True,
    )


def _estimated_items(psychologist, sessions, history, as_of=None):
    """Line items for paid work that has no history row yet, plus the sessions behind them."""
    finalized_sessions = {entry.session_id for entry in history if entry.session_id}
    finalized_packages = {
        PackageInstanceKey(entry.psychologist_id, entry.package_id, entry.client_id)
        for entry in history
        if entry.unit_kind == CommissionHistory.UNIT_PACKAGE
    }
    terms = terms_in_effect(psychologist, as_of=as_of)
    firsts = first_session_ids({s.client_id for s in sessions})

    items, covered = [], []
    for session in sessions:
        if session.package_id or session.id in finalized_sessions:
            continue
        split = estimate(Individual(gross=session.price), terms, firsts.get(session.client_id) == session.id)
        items.append(LineItem(
            psychologist_id=session.psychologist_id,
            client_id=session.client_id,
            unit_kind=CommissionHistory.UNIT_INDIVIDUAL,
            package_type="individual",
            gross_amount=split.gross_amount,
            commission_amount=split.commission_amount,
            provider_amount=split.provider_amount,
            finalized=False,
            approximate=split.approximate,
            scheduled_date=session.scheduled_date,
            session_ids=[session.id],
        ))
        covered.append(session)

    for key, group in group_by_instance(sessions).items():
        if key in finalized_packages:
            continue
        package = group[0].package
        is_first = firsts.get(key.client_id) in {s.id for s in group}
        unit = PackageUnit(package_type=package.package_type, gross=package_gross(package, group))
        split = estimate(unit, terms, is_first)
        items.append(LineItem(
            psychologist_id=key.psychologist_id,
            client_id=key.client_id,
            unit_kind=CommissionHistory.UNIT_PACKAGE,
            package_type=package.package_type,
            gross_amount=split.gross_amount,
            commission_amount=split.commission_amount,
            provider_amount=split.provider_amount,
            finalized=False,
            approximate=split.approximate,
            scheduled_date=min(s.scheduled_date for s in group),
            session_ids=[s.id for s in group],
            package_id=key.package_id,
        ))
        covered.extend(group)
    return items, covered


def aggregate_pending(psychologist, period: Period | None = None, as_of=None) -> PayoutAggregate:
    sessions = list(paid_sessions(psychologist).order_by("scheduled_date", "id"))
    history = list(CommissionHistory.objects.filter(psychologist=psychologist))

    aggregate = PayoutAggregate(mode=MODE_PENDING, psychologist_id=psychologist.pk, period=period)
    aggregate.line_items.extend(
        _history_item(entry)
        for entry in history
        if entry.payment_status == CommissionHistory.STATUS_PENDING and entry.payout_id is None
    )
    estimated, covered = _estimated_items(psychologist, sessions, history, as_of=as_of)
    aggregate.line_items.extend(estimated)
    aggregate.line_items.sort(key=lambda item: (item.scheduled_date or date.min, item.history_id or 0))

    in_period = [s for s in covered if period is None or period.contains(s.scheduled_date)]
    counts = Counter(s.status for s in in_period)
    counts["total"] = len(in_period)
    aggregate.session_counts = dict(counts)
    return aggregate


def aggregate_completed(psychologist, period: Period) -> PayoutAggregate:
    lower, upper = period.datetime_bounds()
    rows = CommissionHistory.objects.filter(
        psychologist=psychologist,
        completed_at__gte=lower,
        completed_at__lt=upper,
    ).order_by("completed_at", "id")
    aggregate = PayoutAggregate(mode=MODE_COMPLETED, psychologist_id=psychologist.pk, period=period)
    aggregate.line_items = [_history_item(entry) for entry in rows]
    counts = Counter(item.unit_kind for item in aggregate.line_items)
    counts["total"] = len(aggregate.line_items)
    aggregate.session_counts = dict(counts)
    return aggregate


def aggregate(psychologist, period: Period | None, mode: str) -> PayoutAggregate:
    if mode == MODE_PENDING:
        return aggregate_pending(psychologist, period)
    if mode == MODE_COMPLETED:
        if period is None:
            raise ValueError("Completed aggregation needs a period.")
        return aggregate_completed(psychologist, period)
    raise ValueError(f"Unknown aggregation mode: {mode}")


def psychologist_as_dict(psychologist) -> dict:
    return {
        "id": psychologist.pk,
        "first_name": psychologist.first_name,
        "last_name": psychologist.last_name,
        "email": psychologist.user.email,
    }


def aggregate_revenue(period: Period, psychologist=None) -> dict:
    """Revenue by scheduled date; independent of completion and payout state."""
    sessions = list(
        paid_sessions(psychologist)
        .filter(scheduled_date__gte=period.start, scheduled_date__lte=period.end)
        .select_related("psychologist__user")
    )
    by_psychologist, monthly = {}, {}
    for session in sessions:
        price = to_money(session.price)
        row = by_psychologist.setdefault(session.psychologist_id, {
            **psychologist_as_dict(session.psychologist),
            "revenue": ZERO,
            "session_count": 0,
        })
        row["revenue"] += price
        row["session_count"] += 1
        month_key = session.scheduled_date.strftime("%Y-%m")
        month = monthly.setdefault(month_key, {
            "month_key": month_key,
            "month": session.scheduled_date.strftime("%B %Y"),
            "revenue": ZERO,
            "session_count": 0,
        })
        month["revenue"] += price
        month["session_count"] += 1

    counts = Counter(s.status for s in sessions)
    counts["total"] = len(sessions)
    return {
        "mode": MODE_REVENUE,
        "period": period.as_dict(),
        "total_revenue": sum((to_money(s.price) for s in sessions), ZERO),
        "total_sessions": len(sessions),
        "session_counts": dict(counts),
        "by_doctor": list(by_psychologist.values()),
        "monthly_breakdown": [monthly[key] for key in sorted(monthly)],
    }


def _psychologists_with_sessions(psychologist=None):
    if psychologist is not None:
        return [psychologist]
    return list(
        PsychologistProfile.objects.filter(sessions__payment_captured_at__isnull=False)
        .select_related("user")
        .distinct()
        .order_by("first_name", "last_name")
    )


def _all_items(psychologist) -> list:
    """Every unit of paid work: finalized rows as recorded, everything else estimated."""
    sessions = list(paid_sessions(psychologist))
    history = list(CommissionHistory.objects.filter(psychologist=psychologist))
    estimated, _ = _estimated_items(psychologist, sessions, history)
    return [_history_item(entry) for entry in history] + estimated


def dashboard_summary(period: Period, psychologist=None) -> dict:
    """
    Company commission is recognized when payment is received, so it covers every unit
    scheduled in the period (a package by its first session), completed or not.
    """
    revenue = aggregate_revenue(period, psychologist)
    pending_total = completed_total = company_commission = completed_commission = ZERO
    pending_estimated = commission_estimated = False
    for provider in _psychologists_with_sessions(psychologist):
        pending = aggregate_pending(provider, period)
        completed = aggregate_completed(provider, period)
        scheduled = [item for item in _all_items(provider) if item.scheduled_date and period.contains(item.scheduled_date)]
        pending_total += pending.total_provider_amount
        completed_total += completed.total_provider_amount
        company_commission += sum((item.commission_amount for item in scheduled), ZERO)
        completed_commission += completed.total_commission
        pending_estimated = pending_estimated or pending.approximate
        commission_estimated = commission_estimated or any(not item.finalized for item in scheduled)
    return {
        "period": period.as_dict(),
        "total_revenue": revenue["total_revenue"],
        "total_company_commission": company_commission,
        "total_company_commission_completed": completed_commission,
        "company_commission_is_estimate": commission_estimated,
        "pending_payout": pending_total,
        "pending_payout_is_estimate": pending_estimated,
        "completed_payout": completed_total,
        "session_counts": revenue["session_counts"],
    }


def pending_payouts_by_psychologist(period: Period | None = None) -> list:
    """Pending view grouped per psychologist, skipping those with nothing outstanding."""
    grouped = []
    for provider in _psychologists_with_sessions():
        pending = aggregate_pending(provider, period)
        if not pending.line_items:
            continue
        by_type = Counter(item.package_type for item in pending.line_items)
        grouped.append({
            "psychologist_id": provider.pk,
            "psychologist": psychologist_as_dict(provider),
            "total_units": len(pending.line_items),
            "unit_counts_by_type": dict(by_type),
            "total_doctor_wallet": pending.total_provider_amount,
            "total_company_commission": pending.total_commission,
            "settleable_doctor_wallet": pending.settleable_provider_amount,
            "approximate": pending.approximate,
            "session_counts": pending.session_counts,
            "session_details": [item.as_dict() for item in pending.line_items],
        })
    return grouped


def commission_overview(psychologist=None) -> list:
    """Current schedule plus lifetime totals per psychologist, for the commissions screen."""
    if psychologist is not None:
        providers = [psychologist]
    else:
        providers = list(PsychologistProfile.objects.select_related("user").order_by("first_name", "last_name"))

    overview = []
    for provider in providers:
        sessions = list(paid_sessions(provider))
        history = list(CommissionHistory.objects.filter(psychologist=provider))
        estimated, _ = _estimated_items(provider, sessions, history)
        items = [_history_item(entry) for entry in history] + estimated
        paid_out = sum(
            (entry.provider_amount for entry in history if entry.payment_status == CommissionHistory.STATUS_PAID),
            ZERO,
        )
        overview.append({
            "psychologist": psychologist_as_dict(provider),
            "active_schedule": schedule_as_dict(active_schedule(provider)),
            "schedule_in_effect": schedule_as_dict(schedule_in_effect(provider)),
            "individual_sessions": sum(1 for s in sessions if not s.package_id),
            "package_sessions": sum(1 for s in sessions if s.package_id),
            "total_revenue": sum((item.gross_amount for item in items), ZERO),
            "total_commission": sum((item.commission_amount for item in items), ZERO),
            "total_doctor_wallet": sum((item.provider_amount for item in items), ZERO),
            "paid_out": paid_out,
            "includes_estimates": any(item.approximate for item in items),
        })
    return overview
