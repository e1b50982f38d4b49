"""
Remaining-supply distribution.

After every sale window has closed, unsold supply is split across the
auction queue (addresses ordered by their first auction purchase):

    share(i) = R // N + (1 if i < R % N else 0)

where R is the unsold total frozen at the first claim after closing and N is
the queue length. A share depends only on (R, N, i), so the outcome does not
depend on the order in which buyers claim.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from mintsale.core.errors import AlreadyClaimed, NothingToMint
from mintsale.engine.ledger import AllocationLedger, PoolName

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Entitlement:
    position: Optional[int]   # 0-based queue index, None when not queued
    quantity: int             # full share
    claimed: int              # already paid out

    @property
    def outstanding(self) -> int:
        return self.quantity - self.claimed


def fair_share(total: int, participants: int, index: int) -> int:
    if participants <= 0 or total <= 0:
        return 0
    if not 0 <= index < participants:
        raise ValueError("index out of range")
    base, extra = divmod(total, participants)
    return base + (1 if index < extra else 0)


class RemainingSupplyDistributor:
    def __init__(self, ledger: AllocationLedger):
        self.ledger = ledger

    def remaining_total(self) -> int:
        """The frozen total when set, otherwise what would be frozen now."""
        remaining = self.ledger.pools[PoolName.REMAINING]
        if remaining.budget or remaining.minted:
            return remaining.budget
        return self.ledger.unsold()

    def entitlement(self, address: str) -> Entitlement:
        position = self.ledger.queue_position(address)
        claimed = self.ledger.remaining_minted.get(address, 0)
        if position is None:
            return Entitlement(position=None, quantity=0, claimed=claimed)
        quantity = fair_share(self.remaining_total(), len(self.ledger.queue), position)
        return Entitlement(position=position, quantity=quantity, claimed=claimed)

    def claim(self, address: str) -> int:
        """
        Pay ``address`` its share. The caller has already checked that sales
        are closed. Returns the quantity to mint.
        """
        self.ledger.freeze_remaining()
        entitlement = self.entitlement(address)
        if entitlement.claimed and entitlement.outstanding <= 0:
            raise AlreadyClaimed("cannot mint more")
        if entitlement.position is None or entitlement.quantity == 0:
            raise NothingToMint()

        quantity = entitlement.outstanding
        self.ledger.record_mint(PoolName.REMAINING, quantity)
        self.ledger.remaining_minted[address] = entitlement.claimed + quantity
        logger.info(
            f"remaining: {address} at queue index {entitlement.position} "
            f"receives {quantity} of {self.remaining_total()}"
        )
        return quantity
