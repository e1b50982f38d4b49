"""
Price-equalization rebate.

Early auction buyers are refunded, in the secondary currency, the
difference between what they paid on their first auction purchase and the
final settled price:

  - paid in STARS:  (price - settled_stars) * quantity
  - paid in ETH:    (price - settled_eth) * quantity, converted ETH -> USD -> STARS
                    and scaled by the tier multiplier (1.5x tier 0, 1.3x tier 1, 1x after)

Only the first auction purchase counts, and its quantity is the quantity the
rebate applies to.
"""

import logging
from dataclasses import dataclass

from mintsale.core.constants import DEFAULT_REBATE_MULTIPLIER, TIER_REBATE_MULTIPLIERS
from mintsale.core.errors import AlreadyClaimed, NothingToRebate
from mintsale.engine.ledger import AllocationLedger, PurchaseRecord
from mintsale.engine.pricing import Currency

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExchangeRates:
    """Value-unit (USD) price of one whole unit of each currency, in base units."""
    eth_usd: int
    stars_usd: int

    def __post_init__(self):
        if self.eth_usd <= 0 or self.stars_usd <= 0:
            raise ValueError("exchange rates must be positive")


def tier_multiplier(tier: int) -> tuple[int, int]:
    return TIER_REBATE_MULTIPLIERS.get(tier, DEFAULT_REBATE_MULTIPLIER)


def rebate_amount(
    record: PurchaseRecord,
    settled: dict[Currency, int],
    rates: ExchangeRates,
) -> int:
    """Rebate owed for ``record`` in STARS base units. Zero or negative means none."""
    if not record.in_queue:
        return 0
    difference = record.first_unit_price - settled[record.first_currency]
    if difference <= 0:
        return 0
    if record.first_currency == Currency.STARS:
        return difference * record.first_quantity
    numerator, denominator = tier_multiplier(record.first_tier)
    return (
        difference * record.first_quantity * rates.eth_usd * numerator
        // (rates.stars_usd * denominator)
    )


class RebateEngine:
    def __init__(self, ledger: AllocationLedger):
        self.ledger = ledger

    def preview(self, address: str, settled: dict[Currency, int], rates: ExchangeRates) -> int:
        record = self.ledger.record_of(address)
        if record is None:
            return 0
        return rebate_amount(record, settled, rates)

    def claim(self, address: str, settled: dict[Currency, int], rates: ExchangeRates) -> int:
        """
        Mark ``address``'s rebate claimed and return the STARS amount to pay.
        The caller has already checked that sales are closed and performs the
        payout.
        """
        if address in self.ledger.rebate_claimed:
            raise AlreadyClaimed("Rebate already claimed")
        amount = self.preview(address, settled, rates)
        if amount <= 0:
            raise NothingToRebate()
        self.ledger.rebate_claimed.add(address)
        logger.info(f"rebate: {address} owed {amount} STARS base units")
        return amount
