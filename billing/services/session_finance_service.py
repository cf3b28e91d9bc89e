"""
Session lifecycle transitions that touch money. Completing a session finalizes its
commission (or its package's, when this was the last one) in the same transaction.
"""
import logging

from django.db import transaction
from django.utils import timezone

from billing.models import CommissionHistory
from billing.services.commission_history_service import finalize_for_session
from billing.services.commission_resolver import NoScheduleConfigured
from general.models import Session

logger = logging.getLogger(__name__)


class SessionLifecycleError(Exception):
    pass


@transaction.atomic()
def complete_session(session, now=None):
    """
    Mark a paid session completed and try to finalize its commission.

    Returns the CommissionHistory row, or None when nothing could be finalized yet
    (package still incomplete, or no schedule configured; finalize_commissions picks
    those up later).
    """
    now = now or timezone.now()
    session = Session.objects.select_for_update().select_related("package").get(id=session.id)
    if not session.is_paid:
        raise SessionLifecycleError("Only paid sessions can be completed.")
    if session.status == Session.STATUS_CANCELLED:
        raise SessionLifecycleError("Cancelled sessions cannot be completed.")

    if session.status != Session.STATUS_COMPLETED:
        # Status and timestamp first; finalization reads them back.
        session.status = Session.STATUS_COMPLETED
        session.completed_at = now
        session.save(update_fields=["status", "completed_at"])

    try:
        return finalize_for_session(session)
    except NoScheduleConfigured as exc:
        logger.warning("session %s completed without finalizing commission: %s", session.pk, exc)
        return None


@transaction.atomic()
def cancel_session(session):
    """Cancel a session that has not been completed. Finalized work cannot be cancelled."""
    session = Session.objects.select_for_update().get(id=session.id)
    if session.status == Session.STATUS_COMPLETED:
        raise SessionLifecycleError("Completed sessions cannot be cancelled.")
    if CommissionHistory.objects.filter(session=session).exists():
        raise SessionLifecycleError("Session already has a finalized commission.")
    if session.status == Session.STATUS_CANCELLED:
        return session
    session.status = Session.STATUS_CANCELLED
    session.save(update_fields=["status"])
    return session
