from datetime import date
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase

from billing.models import CommissionSchedule
from billing.services.commission_schedule_service import (
    InvalidCommissionAmount,
    active_schedule,
    schedule_as_dict,
    schedule_in_effect,
    terms_in_effect,
    update_schedule,
)
from billing.tests.factories import make_psychologist, make_staff


class UpdateScheduleTests(TestCase):
    def setUp(self):
        self.psychologist = make_psychologist()

    def test_individual_key_is_split_out(self):
        schedule = update_schedule(
            self.psychologist,
            commission_amounts={"individual": "300", "package_3": 600},
            effective_from=date(2024, 1, 1),
        )
        schedule.refresh_from_db()

        self.assertEqual(schedule.individual_amount, Decimal("300.00"))
        self.assertEqual(schedule.package_amounts, {"package_3": "600.00"})
        self.assertTrue(schedule.is_active)

    def test_update_appends_version_and_deactivates_previous(self):
        staff = make_staff()
        first = update_schedule(self.psychologist, commission_amounts={"individual": "300"}, effective_from=date(2024, 1, 1))
        second = update_schedule(
            self.psychologist,
            commission_amounts={"individual": "350"},
            effective_from=date(2024, 6, 1),
            notes="raise",
            created_by=staff,
        )
        first.refresh_from_db()

        self.assertFalse(first.is_active)
        self.assertEqual(first.effective_to, date(2024, 6, 1))
        self.assertEqual(first.individual_amount, Decimal("300.00"))
        self.assertEqual(active_schedule(self.psychologist), second)
        self.assertEqual(CommissionSchedule.objects.filter(psychologist=self.psychologist).count(), 2)
        self.assertEqual(second.created_by, staff)

    def test_negative_amount_rejected_before_any_write(self):
        update_schedule(self.psychologist, commission_amounts={"individual": "300"}, effective_from=date(2024, 1, 1))

        with self.assertRaises(InvalidCommissionAmount):
            update_schedule(self.psychologist, commission_amounts={"individual": "-1"})
        with self.assertRaises(InvalidCommissionAmount):
            update_schedule(self.psychologist, followup_package_amounts={"package_3": "-5"})

        self.assertEqual(CommissionSchedule.objects.filter(psychologist=self.psychologist).count(), 1)
        self.assertEqual(active_schedule(self.psychologist).individual_amount, Decimal("300.00"))

    def test_non_numeric_amount_rejected(self):
        for bad in ("abc", True, "NaN"):
            with self.assertRaises(InvalidCommissionAmount):
                update_schedule(self.psychologist, commission_amounts={"individual": bad})

    def test_empty_update_rejected(self):
        with self.assertRaises(InvalidCommissionAmount):
            update_schedule(self.psychologist, commission_amounts={})

    def test_second_active_schedule_blocked_by_constraint(self):
        update_schedule(self.psychologist, commission_amounts={"individual": "300"})

        with self.assertRaises(IntegrityError), transaction.atomic():
            CommissionSchedule.objects.create(psychologist=self.psychologist, effective_from=date(2024, 1, 1), is_active=True)


class ScheduleLookupTests(TestCase):
    def setUp(self):
        self.psychologist = make_psychologist()
        self.january = update_schedule(
            self.psychologist, commission_amounts={"individual": "300"}, effective_from=date(2024, 1, 1)
        )
        self.june = update_schedule(
            self.psychologist, commission_amounts={"individual": "400"}, effective_from=date(2024, 6, 1)
        )

    def test_schedule_in_effect_follows_effective_from(self):
        self.assertEqual(schedule_in_effect(self.psychologist, as_of=date(2024, 3, 1)), self.january)
        self.assertEqual(schedule_in_effect(self.psychologist, as_of=date(2024, 6, 1)), self.june)
        self.assertIsNone(schedule_in_effect(self.psychologist, as_of=date(2023, 12, 31)))

    def test_terms_in_effect(self):
        terms = terms_in_effect(self.psychologist, as_of=date(2024, 7, 1))

        self.assertEqual(terms.individual_amount, Decimal("400.00"))
        self.assertEqual(terms.schedule_id, self.june.pk)
        self.assertIsNone(terms_in_effect(make_psychologist()))

    def test_back_dated_version_does_not_override_later_one(self):
        psychologist = make_psychologist()
        june = update_schedule(psychologist, commission_amounts={"individual": "300"}, effective_from=date(2024, 6, 1))
        january = update_schedule(
            psychologist, commission_amounts={"individual": "100"}, effective_from=date(2024, 1, 1)
        )

        self.assertEqual(schedule_in_effect(psychologist, as_of=date(2024, 7, 1)), june)
        self.assertEqual(schedule_in_effect(psychologist, as_of=date(2024, 3, 1)), january)
        self.assertEqual(terms_in_effect(psychologist, as_of=date(2024, 7, 1)).individual_amount, Decimal("300.00"))
        june.refresh_from_db()
        self.assertFalse(june.is_active)
        self.assertIsNone(june.effective_to)
        self.assertEqual(active_schedule(psychologist), january)

    def test_same_day_versions_resolve_to_latest(self):
        later = update_schedule(
            self.psychologist, commission_amounts={"individual": "450"}, effective_from=date(2024, 6, 1)
        )

        self.assertEqual(schedule_in_effect(self.psychologist, as_of=date(2024, 6, 15)), later)
        self.june.refresh_from_db()
        self.assertEqual(self.june.effective_to, date(2024, 6, 1))

    def test_schedule_as_dict_merges_individual_key(self):
        data = schedule_as_dict(self.june)

        self.assertEqual(data["commission_amounts"], {"individual": "400.00"})
        self.assertTrue(data["is_active"])
        self.assertIsNone(schedule_as_dict(None))
