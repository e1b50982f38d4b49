"""
Sale state persistence.

The engine keeps the live sale in memory and stays synchronous; this
repository mirrors it into the database after every committed operation
and rebuilds it on startup. Sale-wide values are one SaleStateRecord row,
buyers are one BuyerRecord row each and only the buyers a call touched are
rewritten.
"""

import logging
from typing import Iterable

from tortoise.transactions import in_transaction

from mintsale.engine.allowlist import to_node
from mintsale.engine.ledger import PoolName, PurchaseRecord, SupplyPool
from mintsale.engine.phases import SaleSchedule
from mintsale.engine.pricing import Currency, PriceEngine, PriceSchedule
from mintsale.engine.rebate import ExchangeRates
from mintsale.engine.sale import SaleEngine
from mintsale.ledgers.memory import InMemoryItemLedger
from mintsale.models.sale import DEFAULT_SALE, BuyerRecord, ItemMintRun, SaleStateRecord

logger = logging.getLogger(__name__)


def dump_schedule(schedule: PriceSchedule) -> dict:
    return {
        "start_price": str(schedule.start_price),
        "end_price": str(schedule.end_price),
        "step_amount": str(schedule.step_amount),
        "step_interval": schedule.step_interval,
    }


def load_schedule(data: dict) -> PriceSchedule:
    return PriceSchedule(
        start_price=int(data["start_price"]),
        end_price=int(data["end_price"]),
        step_amount=int(data["step_amount"]),
        step_interval=int(data["step_interval"]),
    )


def state_fields(engine: SaleEngine) -> dict:
    state = engine.state
    values = {
        "schedule": state.schedule.as_dict(),
        "prices": {c.value: dump_schedule(state.prices.schedule(c)) for c in Currency},
        "rates": {"eth_usd": str(state.rates.eth_usd), "stars_usd": str(state.rates.stars_usd)},
        "allowlist_root": "0x" + state.allowlist_root.hex(),
        "settled": {c.value: str(price) for c, price in state.settled.items()},
        "pools": {
            name.value: {"budget": pool.budget, "minted": pool.minted}
            for name, pool in state.ledger.pools.items()
        },
        "proceeds_eth": str(state.proceeds_eth),
    }
    if isinstance(engine.item_ledger, InMemoryItemLedger):
        values["item_metadata"] = engine.item_ledger.metadata
    return values


def buyer_fields(address: str, engine: SaleEngine) -> dict:
    ledger = engine.state.ledger
    record = ledger.records[address]
    return {
        "sequence": record.sequence,
        "first_tier": record.first_tier,
        "first_unit_price": None if record.first_unit_price is None else str(record.first_unit_price),
        "first_currency": record.first_currency,
        "first_quantity": record.first_quantity,
        "auction_quantity": record.auction_quantity,
        "total_quantity": record.total_quantity,
        "rebate_claimed": address in ledger.rebate_claimed,
        "remaining_minted": ledger.remaining_minted.get(address),
    }


class SaleRepository:
    def __init__(self, name: str = DEFAULT_SALE):
        self.name = name

    async def load(self, engine: SaleEngine) -> bool:
        """
        Replace ``engine``'s state with the stored sale. When nothing is
        stored yet the engine's current state is saved as the starting point.
        Returns whether a stored sale was found.
        """
        stored = await SaleStateRecord.get_or_none(name=self.name)
        if stored is None:
            await self.save(engine, engine.state.ledger.records)
            logger.info(f"No stored sale '{self.name}'; saved the configured one")
            return False

        state = engine.state
        ledger = state.ledger
        state.schedule = SaleSchedule(**stored.schedule)
        state.prices = PriceEngine(
            eth=load_schedule(stored.prices[Currency.ETH.value]),
            stars=load_schedule(stored.prices[Currency.STARS.value]),
        )
        state.rates = ExchangeRates(
            eth_usd=int(stored.rates["eth_usd"]),
            stars_usd=int(stored.rates["stars_usd"]),
        )
        state.allowlist_root = to_node(stored.allowlist_root)
        state.settled = {Currency(c): int(price) for c, price in stored.settled.items()}
        state.proceeds_eth = int(stored.proceeds_eth)
        ledger.pools = {
            PoolName(name): SupplyPool(budget=pool["budget"], minted=pool["minted"])
            for name, pool in stored.pools.items()
        }

        ledger.records.clear()
        ledger.queue.clear()
        ledger.rebate_claimed.clear()
        ledger.remaining_minted.clear()
        buyers = await BuyerRecord.all()
        for buyer in buyers:
            address = buyer.wallet_address
            ledger.records[address] = PurchaseRecord(
                sequence=buyer.sequence,
                first_tier=buyer.first_tier,
                first_unit_price=None if buyer.first_unit_price is None else int(buyer.first_unit_price),
                first_currency=None if buyer.first_currency is None else Currency(buyer.first_currency),
                first_quantity=buyer.first_quantity,
                auction_quantity=buyer.auction_quantity,
                total_quantity=buyer.total_quantity,
            )
            if buyer.rebate_claimed:
                ledger.rebate_claimed.add(address)
            if buyer.remaining_minted is not None:
                ledger.remaining_minted[address] = buyer.remaining_minted
        queued = sorted((b for b in buyers if b.sequence is not None), key=lambda b: b.sequence)
        ledger.queue.extend(b.wallet_address for b in queued)

        if isinstance(engine.item_ledger, InMemoryItemLedger):
            runs = await ItemMintRun.all().order_by("start_id")
            engine.item_ledger.restore([(run.start_id, run.quantity, run.owner) for run in runs])
            if stored.item_metadata:
                engine.item_ledger.configure_metadata(**stored.item_metadata)

        logger.info(
            f"Loaded sale '{self.name}': {len(buyers)} buyers, "
            f"{ledger.total_minted} minted, queue of {len(ledger.queue)}"
        )
        return True

    async def save(self, engine: SaleEngine, addresses: Iterable[str] = ()) -> None:
        """Write the sale-wide row, the given buyers and any new item mint runs."""
        async with in_transaction():
            await SaleStateRecord.update_or_create(name=self.name, defaults=state_fields(engine))
            for address in addresses:
                if address not in engine.state.ledger.records:
                    continue
                await BuyerRecord.update_or_create(
                    wallet_address=address,
                    defaults=buyer_fields(address, engine),
                )
            if isinstance(engine.item_ledger, InMemoryItemLedger):
                saved = await ItemMintRun.all().count()
                for start, quantity, owner in engine.item_ledger.runs(since=saved):
                    await ItemMintRun.create(start_id=start, quantity=quantity, owner=owner)


sale_repository = SaleRepository()
