"""
Finalization: write the immutable CommissionHistory row for a completed session, or for
a package instance once all of its sessions are completed.

Finalization always uses a real schedule version (the one in effect on the completion
date). The default estimate rate is never written here.
"""
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from billing import config
from billing.models import CommissionHistory
from billing.services import package_tracker
from billing.services.commission_resolver import (
    Individual,
    NoScheduleConfigured,
    PackageUnit,
    ScheduleTerms,
    resolve,
    to_money,
)
from billing.services.commission_schedule_service import schedule_in_effect
from billing.services.package_tracker import PackageIncomplete, PackageInstanceKey
from billing.services.session_ledger import first_session_ids, is_first_session
from general.models import Package, Session

logger = logging.getLogger(__name__)


def _local_date(value):
    return timezone.localtime(value).date() if timezone.is_aware(value) else value.date()


def _schedule_for(psychologist_id, completed_at):
    schedule = schedule_in_effect(psychologist_id, as_of=_local_date(completed_at))
    if schedule is None:
        raise NoScheduleConfigured(f"No commission schedule in effect for psychologist {psychologist_id}.")
    return schedule


def _record(*, split, schedule, **fields) -> CommissionHistory:
    if split.commission_amount + split.provider_amount != split.gross_amount:
        raise ValueError("Commission split does not add up to the gross amount.")
    gst_rate = config.HEALTHCARE_GST_RATE_PERCENT
    gst_amount = to_money(split.commission_amount * gst_rate / 100)
    return CommissionHistory.objects.create(
        schedule=schedule,
        gross_amount=split.gross_amount,
        commission_amount=split.commission_amount,
        provider_amount=split.provider_amount,
        gst_rate=gst_rate,
        gst_amount=gst_amount,
        net_company_revenue=split.commission_amount - gst_amount,
        payment_status=CommissionHistory.STATUS_PENDING,
        **fields,
    )


def finalize_individual(session) -> CommissionHistory:
    """Finalize one completed, paid, non-package session. Returns the existing row if already done."""
    if session.package_id:
        raise ValueError(f"Session {session.pk} belongs to a package; finalize the package instead.")
    if session.status != Session.STATUS_COMPLETED or not session.is_paid:
        raise ValueError(f"Session {session.pk} is not a completed paid session.")

    existing = CommissionHistory.objects.filter(session=session).first()
    if existing:
        return existing

    completed_at = session.completed_at or timezone.now()
    schedule = _schedule_for(session.psychologist_id, completed_at)
    first = is_first_session(session)
    split = resolve(Individual(gross=session.price), ScheduleTerms.from_schedule(schedule), first)
    try:
        with transaction.atomic():
            entry = _record(
                split=split,
                schedule=schedule,
                psychologist_id=session.psychologist_id,
                client_id=session.client_id,
                unit_kind=CommissionHistory.UNIT_INDIVIDUAL,
                session=session,
                package_type=config.INDIVIDUAL_UNIT_KEY,
                is_first_session=first,
                scheduled_date=session.scheduled_date,
                payment_captured_at=session.payment_captured_at,
                completed_at=completed_at,
            )
    except IntegrityError:
        # Finalized concurrently by another request.
        return CommissionHistory.objects.get(session=session)

    logger.info(
        "commission finalized session=%s psychologist=%s gross=%s commission=%s provider=%s first=%s",
        session.pk,
        session.psychologist_id,
        split.gross_amount,
        split.commission_amount,
        split.provider_amount,
        first,
    )
    return entry


def finalize_package(key: PackageInstanceKey) -> CommissionHistory:
    """
    Finalize a package instance once. Raises PackageIncomplete until session_count
    sessions are completed.
    """
    existing = CommissionHistory.objects.filter(
        unit_kind=CommissionHistory.UNIT_PACKAGE,
        psychologist_id=key.psychologist_id,
        package_id=key.package_id,
        client_id=key.client_id,
    ).first()
    if existing:
        return existing

    package = Package.objects.get(pk=key.package_id)
    sessions = list(package_tracker.instance_sessions(key))
    if not package_tracker.sessions_complete(package, sessions):
        raise PackageIncomplete(
            f"Package {package.pk} for client {key.client_id}: "
            f"{package_tracker.completed_count(sessions)}/{package.session_count} sessions completed."
        )

    completed_at = package_tracker.completion_timestamp(sessions) or timezone.now()
    schedule = _schedule_for(key.psychologist_id, completed_at)
    session_ids = {s.id for s in sessions}
    first = first_session_ids([key.client_id]).get(key.client_id) in session_ids
    unit = PackageUnit(package_type=package.package_type, gross=package_tracker.package_gross(package, sessions))
    split = resolve(unit, ScheduleTerms.from_schedule(schedule), first)
    try:
        with transaction.atomic():
            entry = _record(
                split=split,
                schedule=schedule,
                psychologist_id=key.psychologist_id,
                client_id=key.client_id,
                unit_kind=CommissionHistory.UNIT_PACKAGE,
                package=package,
                package_type=package.package_type,
                is_first_session=first,
                scheduled_date=min(s.scheduled_date for s in sessions),
                payment_captured_at=package_tracker.payment_timestamp(sessions),
                completed_at=completed_at,
            )
    except IntegrityError:
        return CommissionHistory.objects.get(
            unit_kind=CommissionHistory.UNIT_PACKAGE,
            psychologist_id=key.psychologist_id,
            package_id=key.package_id,
            client_id=key.client_id,
        )

    logger.info(
        "commission finalized package=%s client=%s psychologist=%s gross=%s commission=%s provider=%s first=%s",
        package.pk,
        key.client_id,
        key.psychologist_id,
        split.gross_amount,
        split.commission_amount,
        split.provider_amount,
        first,
    )
    return entry


def finalize_for_session(session) -> CommissionHistory | None:
    """
    Finalize whatever unit this session completes. Returns None while the session is
    not completed or its package is still incomplete. NoScheduleConfigured propagates.
    """
    if session.status != Session.STATUS_COMPLETED or not session.is_paid:
        logger.info("commission not finalized for session %s: status=%s", session.pk, session.status)
        return None
    key = PackageInstanceKey.for_session(session)
    if key is None:
        return finalize_individual(session)
    try:
        return finalize_package(key)
    except PackageIncomplete as exc:
        logger.info("commission deferred for session %s: %s", session.pk, exc)
        return None


def finalize_outstanding(psychologist=None) -> dict:
    """
    Batch finalization for completed work that has no history row yet (e.g. completed
    before a schedule was configured). Returns a per-unit report; one failing unit does
    not stop the rest.
    """
    completed = Session.objects.paid().filter(status=Session.STATUS_COMPLETED).select_related("package")
    if psychologist is not None:
        completed = completed.filter(psychologist=psychologist)
    finalized_sessions = set(
        CommissionHistory.objects.filter(session__isnull=False).values_list("session_id", flat=True)
    )
    finalized_packages = {
        PackageInstanceKey(psychologist_id, package_id, client_id)
        for psychologist_id, package_id, client_id in CommissionHistory.objects.filter(
            unit_kind=CommissionHistory.UNIT_PACKAGE
        ).values_list("psychologist_id", "package_id", "client_id")
    }

    report = {"finalized": [], "deferred": [], "failed": []}
    seen_packages = set()
    for session in completed.order_by("completed_at", "id"):
        key = PackageInstanceKey.for_session(session)
        if key is None and session.id in finalized_sessions:
            continue
        if key is not None:
            if key in seen_packages or key in finalized_packages:
                continue
            seen_packages.add(key)
        try:
            entry = finalize_package(key) if key else finalize_individual(session)
        except PackageIncomplete as exc:
            report["deferred"].append({"session_id": session.id, "reason": str(exc)})
            continue
        except NoScheduleConfigured as exc:
            logger.warning("batch finalization skipped session %s: %s", session.id, exc)
            report["failed"].append({"session_id": session.id, "reason": str(exc)})
            continue
        report["finalized"].append(entry.pk)
    return report
