"""
Linear step-down Dutch auction pricing.

The auction price for a currency is a pure function of the time elapsed since
the auction start:

    tier  = min(elapsed // step_interval, num_tiers - 1)
    price = max(start_price - step_amount * tier, end_price)

The step must divide the price range exactly, so the last tier lands on
end_price. All prices are integers in 10^18 base units. Each currency has its own
independent PriceSchedule; the formula is the same for both.
"""

from dataclasses import dataclass
from enum import Enum


class Currency(str, Enum):
    """Payment currencies accepted by the sale."""
    ETH = "eth"      # primary, attached to the call
    STARS = "stars"  # secondary, debited from the buyer's token balance


@dataclass(frozen=True, slots=True)
class PriceSchedule:
    start_price: int     # tier 0 price (base units)
    end_price: int       # floor price (base units)
    step_amount: int     # drop per tier (base units)
    step_interval: int   # seconds per tier

    def __post_init__(self):
        if self.start_price <= self.end_price:
            raise ValueError("start_price must be greater than end_price")
        if self.end_price < 0:
            raise ValueError("end_price must not be negative")
        if self.step_amount <= 0:
            raise ValueError("step_amount must be positive")
        if self.step_interval <= 0:
            raise ValueError("step_interval must be positive")
        if (self.start_price - self.end_price) % self.step_amount != 0:
            raise ValueError("step_amount must divide start_price - end_price")

    @property
    def num_tiers(self) -> int:
        return (self.start_price - self.end_price) // self.step_amount + 1

    @property
    def last_tier_boundary(self) -> int:
        """Elapsed seconds after which the price stays at end_price."""
        return (self.num_tiers - 1) * self.step_interval

    def tier_at(self, elapsed: int) -> int:
        if elapsed < 0:
            raise ValueError("elapsed time must not be negative")
        return min(elapsed // self.step_interval, self.num_tiers - 1)

    def price_for_tier(self, tier: int) -> int:
        if tier < 0:
            raise ValueError("tier must not be negative")
        tier = min(tier, self.num_tiers - 1)
        return max(self.start_price - self.step_amount * tier, self.end_price)

    def price_at(self, elapsed: int) -> int:
        return self.price_for_tier(self.tier_at(elapsed))


@dataclass(frozen=True, slots=True)
class Quote:
    """A price lookup result: the currency, the tier and the unit price."""
    currency: Currency
    tier: int
    unit_price: int

    def total(self, quantity: int) -> int:
        return self.unit_price * quantity


class PriceEngine:
    """Per-currency price lookup over two independent schedules."""

    def __init__(self, eth: PriceSchedule, stars: PriceSchedule):
        self._schedules: dict[Currency, PriceSchedule] = {
            Currency.ETH: eth,
            Currency.STARS: stars,
        }

    def schedule(self, currency: Currency) -> PriceSchedule:
        return self._schedules[currency]

    def replace(self, currency: Currency, schedule: PriceSchedule) -> None:
        self._schedules[currency] = schedule

    def copy(self) -> "PriceEngine":
        return PriceEngine(eth=self._schedules[Currency.ETH], stars=self._schedules[Currency.STARS])

    def quote(self, currency: Currency, elapsed: int) -> Quote:
        schedule = self._schedules[currency]
        tier = schedule.tier_at(elapsed)
        return Quote(currency=currency, tier=tier, unit_price=schedule.price_for_tier(tier))

    def price(self, currency: Currency, elapsed: int) -> int:
        return self._schedules[currency].price_at(elapsed)
