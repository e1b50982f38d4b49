from mintsale.engine.phases import SalePhase, SaleSchedule
from mintsale.engine.pricing import Currency, PriceSchedule
from mintsale.engine.sale import CallContext, SaleEngine, SaleState

__all__ = [
    "CallContext",
    "Currency",
    "PriceSchedule",
    "SaleEngine",
    "SalePhase",
    "SaleSchedule",
    "SaleState",
]
