from mintsale.ledgers.base import ItemLedger, PaymentTokenLedger
from mintsale.ledgers.memory import InMemoryItemLedger, InMemoryPaymentToken

__all__ = [
    "ItemLedger",
    "PaymentTokenLedger",
    "InMemoryItemLedger",
    "InMemoryPaymentToken",
]
