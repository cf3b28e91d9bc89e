from decimal import Decimal

from django.utils import timezone

from billing.models import CommissionSchedule
from billing.services.session_finance_service import complete_session
from testing.financial.base import (
    aware,
    cleanup_scenario_data,
    configure_schedule,
    create_paid_session,
    ensure_test_users,
    expect,
)

NAME = "scenario_schedule_immutability"


def run():
    print(f"Running: {NAME}")
    cleanup_scenario_data(NAME)
    psychologist, client = ensure_test_users(NAME)
    original = configure_schedule(psychologist, commission_amounts={"individual": "300"})
    session = create_paid_session(psychologist=psychologist, client=client)
    entry = complete_session(session, now=aware(2024, 3, 5, 12))

    replacement = configure_schedule(
        psychologist,
        effective_from=timezone.localdate(),
        commission_amounts={"individual": "450"},
    )
    entry.refresh_from_db()
    original.refresh_from_db()
    expect(entry.commission_amount == Decimal("300.00"), "Finalized commission changed after a schedule update.")
    expect(entry.schedule_id == original.pk, "History must keep pointing at the schedule it was resolved with.")
    expect(not original.is_active and replacement.is_active, "Only the new schedule should be active.")
    active = CommissionSchedule.objects.filter(psychologist=psychologist, is_active=True).count()
    expect(active == 1, f"Expected exactly one active schedule, found {active}.")
    print("✓ Passed")
