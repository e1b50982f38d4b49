"""
In-memory collaborator ledgers.

Used by the default service wiring and by the test-suite. Item ids start at
0 and each mint call owns one contiguous run of ids.
"""

import bisect
import logging
from collections import defaultdict
from typing import Optional

from mintsale.core.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidQuantity,
    TokenNotFound,
)
from mintsale.ledgers.base import ItemLedger, PaymentTokenLedger

logger = logging.getLogger(__name__)


class InMemoryItemLedger(ItemLedger):
    def __init__(
        self,
        uri_prefix: str = "",
        uri_suffix: str = ".json",
        hidden_metadata_uri: str = "",
        revealed: bool = False,
    ):
        self.uri_prefix = uri_prefix
        self.uri_suffix = uri_suffix
        self.hidden_metadata_uri = hidden_metadata_uri
        self.revealed = revealed
        # Parallel arrays: start id of each mint run and its owner
        self._run_starts: list[int] = []
        self._run_owners: list[str] = []
        self._balances: dict[str, int] = defaultdict(int)
        self._next_id = 0

    @property
    def total_minted(self) -> int:
        return self._next_id

    def mint(self, to: str, quantity: int) -> range:
        if quantity <= 0:
            raise InvalidQuantity()
        start = self._next_id
        self._run_starts.append(start)
        self._run_owners.append(to)
        self._next_id += quantity
        self._balances[to] += quantity
        return range(start, self._next_id)

    def runs(self, since: int = 0) -> list[tuple[int, int, str]]:
        """(start id, quantity, owner) of each mint run from run index ``since`` on."""
        stops = self._run_starts[1:] + [self._next_id]
        runs = zip(self._run_starts, stops, self._run_owners)
        return [(start, stop - start, owner) for start, stop, owner in runs][since:]

    def restore(self, runs: list[tuple[int, int, str]]) -> None:
        """Replace the registry with previously saved mint runs, ordered by start id."""
        self._run_starts, self._run_owners = [], []
        self._balances = defaultdict(int)
        self._next_id = 0
        for start, quantity, owner in runs:
            if start != self._next_id:
                raise ValueError(f"mint run at {start} does not follow id {self._next_id}")
            self.mint(owner, quantity)

    @property
    def metadata(self) -> dict:
        return {
            "revealed": self.revealed,
            "uri_prefix": self.uri_prefix,
            "uri_suffix": self.uri_suffix,
            "hidden_metadata_uri": self.hidden_metadata_uri,
        }

    def owner_of(self, token_id: int) -> str:
        if not 0 <= token_id < self._next_id:
            raise TokenNotFound(f"token {token_id} does not exist")
        run = bisect.bisect_right(self._run_starts, token_id) - 1
        return self._run_owners[run]

    def balance_of(self, owner: str) -> int:
        return self._balances.get(owner, 0)

    def token_uri(self, token_id: int) -> str:
        if not 0 <= token_id < self._next_id:
            raise TokenNotFound()
        if not self.revealed:
            return self.hidden_metadata_uri
        if not self.uri_prefix:
            return ""
        return f"{self.uri_prefix}{token_id}{self.uri_suffix}"

    def configure_metadata(
        self,
        revealed: Optional[bool] = None,
        uri_prefix: Optional[str] = None,
        uri_suffix: Optional[str] = None,
        hidden_metadata_uri: Optional[str] = None,
    ) -> None:
        if revealed is not None:
            self.revealed = revealed
        if uri_prefix is not None:
            self.uri_prefix = uri_prefix
        if uri_suffix is not None:
            self.uri_suffix = uri_suffix
        if hidden_metadata_uri is not None:
            self.hidden_metadata_uri = hidden_metadata_uri


class InMemoryPaymentToken(PaymentTokenLedger):
    def __init__(self, balances: Optional[dict[str, int]] = None):
        self._balances: dict[str, int] = defaultdict(int, balances or {})
        self._allowances: dict[tuple[str, str], int] = defaultdict(int)

    def balance_of(self, owner: str) -> int:
        return self._balances.get(owner, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("allowance must not be negative")
        self._allowances[(owner, spender)] = amount

    def mint(self, to: str, amount: int) -> None:
        """Credit ``amount`` out of thin air (funding helper)."""
        self._balances[to] += amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        if self._balances.get(sender, 0) < amount:
            raise InsufficientBalance()
        self._balances[sender] -= amount
        self._balances[to] += amount

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        if self._allowances.get((owner, spender), 0) < amount:
            raise InsufficientAllowance()
        if self._balances.get(owner, 0) < amount:
            raise InsufficientBalance()
        self._allowances[(owner, spender)] -= amount
        self._balances[owner] -= amount
        self._balances[to] += amount
        logger.debug(f"transfer_from {owner} -> {to}: {amount}")
