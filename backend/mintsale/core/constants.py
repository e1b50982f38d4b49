from decimal import Decimal

# Both currencies use 18 decimals
BASE_UNIT_DECIMALS = 18
BASE_UNIT = 10**BASE_UNIT_DECIMALS

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Rebate multipliers for primary-currency buyers, keyed by the tier of their
# first auction purchase, as (numerator, denominator). Tiers past the table use 1x.
TIER_REBATE_MULTIPLIERS: dict[int, tuple[int, int]] = {
    0: (15, 10),
    1: (13, 10),
}
DEFAULT_REBATE_MULTIPLIER = (1, 1)

# Default page size for buyer list queries
BUYER_LIST_PAGE_SIZE = 100


def to_base_units(amount: Decimal | int | str) -> int:
    """Convert a whole-currency amount (e.g. Decimal("0.2")) to 10^18 base units."""
    value = Decimal(amount) * BASE_UNIT
    if value != value.to_integral_value():
        raise ValueError(f"{amount} has more than {BASE_UNIT_DECIMALS} decimals")
    return int(value)
