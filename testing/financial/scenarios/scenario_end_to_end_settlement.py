from decimal import Decimal

from billing.models import CommissionHistory
from billing.services.payout_aggregator import aggregate_pending
from billing.services.payout_settlement_service import settle_payout
from billing.services.session_finance_service import complete_session
from testing.financial.base import (
    aware,
    cleanup_scenario_data,
    configure_schedule,
    create_paid_session,
    ensure_test_users,
    expect,
)

NAME = "scenario_end_to_end_settlement"


def run():
    print(f"Running: {NAME}")
    cleanup_scenario_data(NAME)
    psychologist, client = ensure_test_users(NAME)
    configure_schedule(psychologist, commission_amounts={"individual": "300"})
    session = create_paid_session(psychologist=psychologist, client=client)

    pending = aggregate_pending(psychologist)
    expect(pending.total_provider_amount == Decimal("700.00"), f"Expected 700.00 pending, got {pending.total_provider_amount}")
    expect(pending.settleable_provider_amount == Decimal("0"), "Unfinalized sessions must not be settleable.")

    entry = complete_session(session, now=aware(2024, 3, 5, 12))
    expect(entry is not None, "Completing the session should finalize its commission.")
    expect(entry.commission_amount == Decimal("300.00"), f"Expected commission 300.00, got {entry.commission_amount}")

    payout = settle_payout(psychologist, payment_method="upi", payment_details={"upi_id": "test@upi"})
    expect(payout.net_payout == Decimal("700.00"), f"Expected net payout 700.00, got {payout.net_payout}")
    entry.refresh_from_db()
    expect(entry.payment_status == CommissionHistory.STATUS_PAID, "History row should be paid after settlement.")
    expect(entry.payout_id == payout.pk, "History row should point at the payout.")
    expect(aggregate_pending(psychologist).total_provider_amount == Decimal("0"), "Nothing should remain pending.")
    print("✓ Passed")
