"""
Allocation ledger.

Tracks the supply pools, each buyer's purchase record, the first-auction-
purchase queue and the claim flags. The ledger validates capacity but does
not decide phases or prices; the sale engine does that and then records the
outcome here.

Pools:
  - early, dev:  owner mints
  - auction:     auction-phase purchases
  - public:      allowlist and public-phase purchases
  - remaining:   post-sale distribution of unsold supply. Its budget is 0
                 until the unsold total is frozen, then equals that total.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from mintsale.core.errors import SupplyExceeded
from mintsale.engine.pricing import Currency


class PoolName(str, Enum):
    EARLY = "early"
    DEV = "dev"
    AUCTION = "auction"
    PUBLIC = "public"
    REMAINING = "remaining"


SALE_POOLS = (PoolName.EARLY, PoolName.DEV, PoolName.AUCTION, PoolName.PUBLIC)


@dataclass(slots=True)
class SupplyPool:
    budget: int
    minted: int = 0

    @property
    def available(self) -> int:
        return self.budget - self.minted


@dataclass(slots=True)
class PurchaseRecord:
    # Queue placement (first auction purchase only)
    sequence: Optional[int] = None
    first_tier: Optional[int] = None
    first_unit_price: Optional[int] = None
    first_currency: Optional[Currency] = None
    first_quantity: int = 0
    # Running totals
    auction_quantity: int = 0
    total_quantity: int = 0

    @property
    def in_queue(self) -> bool:
        return self.sequence is not None


@dataclass(slots=True)
class AllocationLedger:
    total_supply: int
    pools: dict[PoolName, SupplyPool]
    records: dict[str, PurchaseRecord] = field(default_factory=dict)
    queue: list[str] = field(default_factory=list)
    rebate_claimed: set[str] = field(default_factory=set)
    remaining_minted: dict[str, int] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        total_supply: int,
        early_budget: int,
        dev_budget: int,
        auction_budget: int,
    ) -> "AllocationLedger":
        public_budget = total_supply - early_budget - dev_budget - auction_budget
        budgets = (early_budget, dev_budget, auction_budget, public_budget)
        if min(budgets) < 0:
            raise ValueError("pool budgets must be non-negative and fit in total supply")
        pools = {name: SupplyPool(budget) for name, budget in zip(SALE_POOLS, budgets)}
        pools[PoolName.REMAINING] = SupplyPool(0)
        return cls(total_supply=total_supply, pools=pools)

    # --- Supply ---

    @property
    def total_minted(self) -> int:
        return sum(pool.minted for pool in self.pools.values())

    def unsold(self) -> int:
        """Unminted supply across the four sale pools."""
        return sum(self.pools[name].available for name in SALE_POOLS)

    def reserved(self) -> int:
        """Supply promised to the remaining-supply queue but not yet paid out."""
        return self.pools[PoolName.REMAINING].available

    def ensure_capacity(self, pool: PoolName, quantity: int) -> None:
        target = self.pools[pool]
        if target.minted + quantity > target.budget:
            raise SupplyExceeded(f"Purchase would exceed max supply for {pool.value} mint")
        reserved = 0 if pool == PoolName.REMAINING else self.reserved()
        if self.total_minted + reserved + quantity > self.total_supply:
            raise SupplyExceeded("Purchase would exceed max supply")

    def record_mint(self, pool: PoolName, quantity: int) -> None:
        self.ensure_capacity(pool, quantity)
        self.pools[pool].minted += quantity

    def freeze_remaining(self) -> int:
        """Fix the remaining-supply total at the current unsold amount. Idempotent."""
        remaining = self.pools[PoolName.REMAINING]
        if remaining.budget == 0 and remaining.minted == 0:
            remaining.budget = self.unsold()
        return remaining.budget

    # --- Buyers ---

    def record_purchase(
        self,
        address: str,
        quantity: int,
        is_auction: bool,
        tier: int,
        unit_price: int,
        currency: Currency,
    ) -> PurchaseRecord:
        record = self.records.setdefault(address, PurchaseRecord())
        record.total_quantity += quantity
        if not is_auction:
            return record
        record.auction_quantity += quantity
        if record.sequence is None:
            record.sequence = len(self.queue)
            record.first_tier = tier
            record.first_unit_price = unit_price
            record.first_currency = currency
            record.first_quantity = quantity
            self.queue.append(address)
        return record

    def record_of(self, address: str) -> Optional[PurchaseRecord]:
        return self.records.get(address)

    def queue_position(self, address: str) -> Optional[int]:
        record = self.records.get(address)
        return record.sequence if record else None
