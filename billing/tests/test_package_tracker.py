from datetime import date
from decimal import Decimal

from django.test import TestCase

from billing.services.package_tracker import (
    PackageInstanceKey,
    completion_timestamp,
    group_by_instance,
    instance_sessions,
    is_package_complete,
    package_gross,
    payment_timestamp,
)
from billing.tests.factories import aware, make_client, make_package, make_psychologist, make_session
from general.models import Session


class PackageTrackerTests(TestCase):
    def setUp(self):
        self.psychologist = make_psychologist()
        self.client_profile = make_client()
        self.package = make_package(self.psychologist)
        self.sessions = [
            make_session(
                self.psychologist,
                self.client_profile,
                package=self.package,
                price=Decimal("900.00"),
                scheduled_date=date(2024, 3, day),
                paid_at=aware(2024, 3, 1),
            )
            for day in (5, 12, 19)
        ]
        self.key = PackageInstanceKey(self.psychologist.pk, self.package.pk, self.client_profile.pk)

    def _complete(self, session, when):
        Session.objects.filter(pk=session.pk).update(status=Session.STATUS_COMPLETED, completed_at=when)

    def test_key_for_session(self):
        self.assertEqual(PackageInstanceKey.for_session(self.sessions[0]), self.key)
        individual = make_session(self.psychologist, self.client_profile)
        self.assertIsNone(PackageInstanceKey.for_session(individual))

    def test_same_package_different_clients_are_separate_instances(self):
        other_client = make_client()
        make_session(self.psychologist, other_client, package=self.package)

        grouped = group_by_instance(Session.objects.filter(package=self.package))

        self.assertEqual(len(grouped), 2)
        self.assertEqual(len(grouped[self.key]), 3)

    def test_complete_only_when_every_session_completed(self):
        self._complete(self.sessions[0], aware(2024, 3, 5, 12))
        self._complete(self.sessions[1], aware(2024, 3, 12, 12))
        self.assertFalse(is_package_complete(self.psychologist.pk, self.client_profile.pk, self.package.pk))

        self._complete(self.sessions[2], aware(2024, 3, 19, 12))
        self.assertTrue(is_package_complete(self.psychologist.pk, self.client_profile.pk, self.package.pk))

    def test_cancelled_session_keeps_package_incomplete(self):
        self._complete(self.sessions[0], aware(2024, 3, 5, 12))
        self._complete(self.sessions[1], aware(2024, 3, 12, 12))
        Session.objects.filter(pk=self.sessions[2].pk).update(status=Session.STATUS_CANCELLED)

        self.assertFalse(is_package_complete(self.psychologist.pk, self.client_profile.pk, self.package.pk))

    def test_gross_prefers_package_price(self):
        self.assertEqual(package_gross(self.package, self.sessions), Decimal("2700.00"))

        self.package.price = None
        self.package.save(update_fields=["price"])
        sessions = list(instance_sessions(self.key))
        self.assertEqual(package_gross(self.package, sessions), Decimal("2700.00"))

        Session.objects.filter(pk=self.sessions[0].pk).update(price=Decimal("1000.00"))
        self.assertEqual(package_gross(self.package, list(instance_sessions(self.key))), Decimal("2800.00"))

    def test_timestamps(self):
        self._complete(self.sessions[0], aware(2024, 3, 5, 12))
        self._complete(self.sessions[2], aware(2024, 3, 19, 12))
        sessions = list(instance_sessions(self.key))

        self.assertEqual(completion_timestamp(sessions), aware(2024, 3, 19, 12))
        self.assertEqual(payment_timestamp(sessions), aware(2024, 3, 1))
