"""
Package completion tracker.

A package instance is (psychologist, package, client). Its commission is resolved once,
against the package's total price, and only after session_count of its sessions are
completed. Instances that never get there (e.g. some sessions cancelled) stay pending.
"""
from dataclasses import dataclass

from billing.services.commission_resolver import to_money
from general.models import Package, Session


class PackageIncomplete(Exception):
    """Raised when finalization is requested before every session is completed."""


@dataclass(frozen=True)
class PackageInstanceKey:
    psychologist_id: int
    package_id: int
    client_id: int

    @classmethod
    def for_session(cls, session) -> "PackageInstanceKey | None":
        if not session.package_id:
            return None
        return cls(session.psychologist_id, session.package_id, session.client_id)

    def as_dict(self) -> dict:
        return {
            "psychologist_id": self.psychologist_id,
            "package_id": self.package_id,
            "client_id": self.client_id,
        }


def instance_sessions(key: PackageInstanceKey):
    return Session.objects.paid().filter(
        psychologist_id=key.psychologist_id,
        package_id=key.package_id,
        client_id=key.client_id,
    ).order_by("scheduled_date", "id")


def group_by_instance(sessions) -> dict:
    """Package sessions grouped per instance, in first-seen order. Individual sessions are skipped."""
    grouped = {}
    for session in sessions:
        key = PackageInstanceKey.for_session(session)
        if key is not None:
            grouped.setdefault(key, []).append(session)
    return grouped


def completed_count(sessions) -> int:
    return sum(1 for s in sessions if s.status == Session.STATUS_COMPLETED)


def sessions_complete(package: Package, sessions) -> bool:
    return completed_count(sessions) >= package.session_count


def is_package_complete(psychologist_id, client_id, package_id) -> bool:
    package = Package.objects.get(pk=package_id)
    key = PackageInstanceKey(psychologist_id, package_id, client_id)
    return sessions_complete(package, list(instance_sessions(key)))


def package_gross(package: Package, sessions):
    """Total contract price; summed session prices only when the template has none."""
    if package.price is not None:
        return to_money(package.price)
    return to_money(sum((s.price or 0) for s in sessions))


def completion_timestamp(sessions):
    stamps = [s.completed_at for s in sessions if s.status == Session.STATUS_COMPLETED and s.completed_at]
    return max(stamps) if stamps else None


def payment_timestamp(sessions):
    stamps = [s.payment_captured_at for s in sessions if s.payment_captured_at]
    return min(stamps) if stamps else None
