"""
Read model over booked sessions: paid-session queries and the first-session marker.
"""
from general.models import Session


def paid_sessions(psychologist=None):
    qs = Session.objects.paid().select_related("package")
    if psychologist is not None:
        qs = qs.filter(psychologist=psychologist)
    return qs


def first_session_ids(client_ids) -> dict:
    """
    client_id -> id of that client's first paid session.

    Earliest payment capture wins; ties fall back to creation order, then id.
    Recomputed on every call.
    """
    client_ids = {cid for cid in client_ids if cid is not None}
    if not client_ids:
        return {}
    firsts = {}
    rows = (
        Session.objects.paid()
        .filter(client_id__in=client_ids)
        .order_by("client_id", "payment_captured_at", "created_at", "id")
        .values_list("client_id", "id")
    )
    for client_id, session_id in rows:
        firsts.setdefault(client_id, session_id)
    return firsts


def is_first_session(session) -> bool:
    return first_session_ids([session.client_id]).get(session.client_id) == session.id
