from datetime import date
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase

from billing.models import CommissionHistory
from billing.services.commission_history_service import (
    finalize_for_session,
    finalize_individual,
    finalize_outstanding,
    finalize_package,
)
from billing.services.commission_resolver import NoScheduleConfigured
from billing.services.package_tracker import PackageIncomplete, PackageInstanceKey
from billing.tests.factories import aware, make_client, make_package, make_psychologist, make_schedule, make_session
from general.models import Session


def _completed(session, when):
    Session.objects.filter(pk=session.pk).update(status=Session.STATUS_COMPLETED, completed_at=when)
    session.refresh_from_db()
    return session


class FinalizeIndividualTests(TestCase):
    def setUp(self):
        self.psychologist = make_psychologist()
        self.client_profile = make_client()

    def test_writes_split_with_gst(self):
        make_schedule(self.psychologist)
        session = _completed(make_session(self.psychologist, self.client_profile), aware(2024, 3, 5, 12))

        with self.assertLogs("billing.services.commission_history_service", level="INFO"):
            entry = finalize_individual(session)

        self.assertEqual(entry.gross_amount, Decimal("1000.00"))
        self.assertEqual(entry.commission_amount, Decimal("300.00"))
        self.assertEqual(entry.provider_amount, Decimal("700.00"))
        self.assertEqual(entry.gst_amount, Decimal("15.00"))
        self.assertEqual(entry.net_company_revenue, Decimal("285.00"))
        self.assertEqual(entry.payment_status, CommissionHistory.STATUS_PENDING)
        self.assertIsNone(entry.payout_id)
        self.assertTrue(entry.is_first_session)
        self.assertEqual(entry.package_type, "individual")

    def test_second_call_returns_existing_row(self):
        make_schedule(self.psychologist)
        session = _completed(make_session(self.psychologist, self.client_profile), aware(2024, 3, 5, 12))

        first = finalize_individual(session)
        again = finalize_individual(session)

        self.assertEqual(first.pk, again.pk)
        self.assertEqual(CommissionHistory.objects.filter(session=session).count(), 1)

    def test_uncompleted_session_rejected(self):
        make_schedule(self.psychologist)
        session = make_session(self.psychologist, self.client_profile)

        with self.assertRaises(ValueError):
            finalize_individual(session)

    def test_missing_schedule_is_not_estimated(self):
        session = _completed(make_session(self.psychologist, self.client_profile), aware(2024, 3, 5, 12))

        with self.assertRaises(NoScheduleConfigured):
            finalize_individual(session)
        self.assertFalse(CommissionHistory.objects.exists())

    def test_uses_schedule_in_effect_at_completion(self):
        january = make_schedule(self.psychologist)
        make_schedule(self.psychologist, effective_from=date(2024, 6, 1), commission_amounts={"individual": "400"})
        march = _completed(make_session(self.psychologist, self.client_profile), aware(2024, 3, 5, 12))
        july = _completed(
            make_session(self.psychologist, self.client_profile, scheduled_date=date(2024, 7, 2)),
            aware(2024, 7, 2, 12),
        )

        march_entry = finalize_individual(march)
        july_entry = finalize_individual(july)

        self.assertEqual(march_entry.schedule_id, january.pk)
        self.assertEqual(march_entry.commission_amount, Decimal("300.00"))
        self.assertEqual(july_entry.commission_amount, Decimal("400.00"))

    def test_first_session_tiering_per_client(self):
        make_schedule(
            self.psychologist,
            first_session_individual_amount="800",
            followup_individual_amount="650",
        )
        first = _completed(
            make_session(self.psychologist, self.client_profile, paid_at=aware(2024, 3, 1)), aware(2024, 3, 5, 12)
        )
        followup = _completed(
            make_session(
                self.psychologist, self.client_profile, scheduled_date=date(2024, 3, 12), paid_at=aware(2024, 3, 8)
            ),
            aware(2024, 3, 12, 12),
        )

        # Finalization order does not change which session is first.
        followup_entry = finalize_individual(followup)
        first_entry = finalize_individual(first)

        self.assertTrue(first_entry.is_first_session)
        self.assertEqual(first_entry.provider_amount, Decimal("800.00"))
        self.assertFalse(followup_entry.is_first_session)
        self.assertEqual(followup_entry.provider_amount, Decimal("650.00"))

    def test_history_rows_are_immutable(self):
        make_schedule(self.psychologist)
        entry = finalize_individual(
            _completed(make_session(self.psychologist, self.client_profile), aware(2024, 3, 5, 12))
        )

        entry.commission_amount = Decimal("1.00")
        with self.assertRaises(ValueError):
            entry.save()

    def test_paid_status_requires_payout(self):
        make_schedule(self.psychologist)
        entry = finalize_individual(
            _completed(make_session(self.psychologist, self.client_profile), aware(2024, 3, 5, 12))
        )

        with self.assertRaises(IntegrityError), transaction.atomic():
            CommissionHistory.objects.filter(pk=entry.pk).update(payment_status=CommissionHistory.STATUS_PAID)


class FinalizePackageTests(TestCase):
    def setUp(self):
        self.psychologist = make_psychologist()
        self.client_profile = make_client()
        make_schedule(self.psychologist)
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

    def test_incomplete_package_not_finalized(self):
        done = _completed(self.sessions[0], aware(2024, 3, 5, 12))

        with self.assertRaises(PackageIncomplete):
            finalize_package(self.key)
        self.assertIsNone(finalize_for_session(done))
        self.assertFalse(CommissionHistory.objects.exists())

    def test_commission_applied_once_on_total_price(self):
        for day, session in zip((5, 12, 19), self.sessions):
            _completed(session, aware(2024, 3, day, 12))

        entry = finalize_for_session(self.sessions[2])
        again = finalize_for_session(self.sessions[0])

        self.assertEqual(entry.pk, again.pk)
        self.assertEqual(CommissionHistory.objects.count(), 1)
        self.assertEqual(entry.unit_kind, CommissionHistory.UNIT_PACKAGE)
        self.assertIsNone(entry.session_id)
        self.assertEqual(entry.gross_amount, Decimal("2700.00"))
        self.assertEqual(entry.commission_amount, Decimal("600.00"))
        self.assertEqual(entry.provider_amount, Decimal("2100.00"))
        self.assertEqual(entry.completed_at, aware(2024, 3, 19, 12))
        self.assertEqual(entry.scheduled_date, date(2024, 3, 5))

    def test_package_without_price_sums_session_prices(self):
        self.package.price = None
        self.package.save(update_fields=["price"])
        for day, session in zip((5, 12, 19), self.sessions):
            _completed(session, aware(2024, 3, day, 12))

        entry = finalize_package(self.key)

        self.assertEqual(entry.gross_amount, Decimal("2700.00"))


class FinalizeOutstandingTests(TestCase):
    def setUp(self):
        self.psychologist = make_psychologist()
        self.client_profile = make_client()

    def test_backfills_after_schedule_is_configured(self):
        session = _completed(make_session(self.psychologist, self.client_profile), aware(2024, 3, 5, 12))
        make_session(self.psychologist, self.client_profile, scheduled_date=date(2024, 3, 20))

        report = finalize_outstanding(self.psychologist)
        self.assertEqual(report["finalized"], [])
        self.assertEqual(report["failed"][0]["session_id"], session.pk)

        make_schedule(self.psychologist)
        report = finalize_outstanding(self.psychologist)
        self.assertEqual(len(report["finalized"]), 1)

        self.assertEqual(finalize_outstanding(self.psychologist)["finalized"], [])

    def test_free_assessments_are_ignored(self):
        make_schedule(self.psychologist)
        free = make_session(
            self.psychologist,
            self.client_profile,
            price=Decimal("0"),
            session_type=Session.TYPE_FREE_ASSESSMENT,
            paid=False,
        )
        _completed(free, aware(2024, 3, 5, 12))

        report = finalize_outstanding()

        self.assertEqual(report, {"finalized": [], "deferred": [], "failed": []})
