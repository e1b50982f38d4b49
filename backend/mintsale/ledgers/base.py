"""
Abstract base classes for the sale's external collaborators.

The sale engine never owns item ownership or token balances. It talks to:
- an ItemLedger that mints contiguous item ids and answers ownership/URI reads
- a PaymentTokenLedger for the secondary currency (debits on purchase,
  credits on rebate)

To plug in a real registry:
1. Implement the abstract classes defined here
2. Pass the instances to SaleEngine (see services/sale_service.py)
"""

from abc import ABC, abstractmethod
from typing import Optional


class ItemLedger(ABC):
    """
    Non-fungible item registry.

    Minted ids must be contiguous per call and attributable to the recipient
    in mint order.
    """

    @abstractmethod
    def mint(self, to: str, quantity: int) -> range:
        """Mint ``quantity`` items to ``to`` and return the new id range."""
        pass

    @abstractmethod
    def owner_of(self, token_id: int) -> str:
        """Owner of ``token_id``; raises TokenNotFound for unknown ids."""
        pass

    @abstractmethod
    def balance_of(self, owner: str) -> int:
        pass

    @abstractmethod
    def token_uri(self, token_id: int) -> str:
        """Metadata URI of ``token_id``; raises TokenNotFound for unknown ids."""
        pass

    @abstractmethod
    def configure_metadata(
        self,
        revealed: Optional[bool] = None,
        uri_prefix: Optional[str] = None,
        uri_suffix: Optional[str] = None,
        hidden_metadata_uri: Optional[str] = None,
    ) -> None:
        """Update any subset of the metadata settings."""
        pass

    @property
    @abstractmethod
    def total_minted(self) -> int:
        pass


class PaymentTokenLedger(ABC):
    """
    Fungible secondary-currency registry.

    Insufficient balance or allowance must raise (InsufficientBalance /
    InsufficientAllowance) without moving any funds.
    """

    @abstractmethod
    def balance_of(self, owner: str) -> int:
        pass

    @abstractmethod
    def allowance(self, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    def approve(self, owner: str, spender: str, amount: int) -> None:
        pass

    @abstractmethod
    def transfer(self, sender: str, to: str, amount: int) -> None:
        """Move ``amount`` from ``sender`` to ``to``."""
        pass

    @abstractmethod
    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        """Move ``amount`` from ``owner`` to ``to`` using ``spender``'s allowance."""
        pass
