from billing.models import Payout
from billing.services.payout_settlement_service import NothingPendingToSettle, settle_payout
from billing.services.session_finance_service import complete_session
from testing.financial.base import (
    ScenarioCheckFailed,
    aware,
    cleanup_scenario_data,
    configure_schedule,
    create_paid_session,
    ensure_test_users,
    expect,
)

NAME = "scenario_double_settlement_guard"


def run():
    print(f"Running: {NAME}")
    cleanup_scenario_data(NAME)
    psychologist, client = ensure_test_users(NAME)
    configure_schedule(psychologist, commission_amounts={"individual": "250"})
    session = create_paid_session(psychologist=psychologist, client=client)
    complete_session(session, now=aware(2024, 3, 5, 12))

    first = settle_payout(psychologist)
    try:
        settle_payout(psychologist)
    except NothingPendingToSettle:
        pass
    else:
        raise ScenarioCheckFailed("Expected second settlement to find nothing pending.")

    payouts = Payout.objects.filter(psychologist=psychologist)
    expect(payouts.count() == 1, f"Expected exactly one payout, found {payouts.count()}.")
    expect(payouts.get().net_payout == first.net_payout, "Payout total changed after the second attempt.")
    print("✓ Passed")
