"""
Billing configuration - single source of truth for commission defaults and tax rates.

All monetary amounts are Decimal rupees quantized to MONEY_QUANTUM.
Safe to import from views, services, and management commands.
"""
from decimal import Decimal

MONEY_QUANTUM = Decimal("0.01")

DEFAULT_CURRENCY = "inr"

# Platform commission assumed for PENDING estimates when a psychologist has no
# usable schedule (0.30 = 30%). Never used for finalized commission history.
DEFAULT_ESTIMATE_COMMISSION_RATE = Decimal("0.30")

# GST charged on the company commission at finalization (percent).
HEALTHCARE_GST_RATE_PERCENT = Decimal("5")

# Synthetic package-type key for sessions booked outside a package.
INDIVIDUAL_UNIT_KEY = "individual"

# Pagination for payout history listings
PAYOUTS_PAGE_SIZE = 50
PAYOUTS_MAX_PAGE_SIZE = 200
