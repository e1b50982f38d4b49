"""
Sale engine wiring.

Builds a SaleEngine from Settings and in-memory collaborator ledgers. The
module-level ``sale_service`` holds the process-wide instance used by the API
and persists it through the sale repository; tests build their own engines
with ``build_sale_engine``.
"""

import asyncio
import logging
from typing import Callable, Optional, TypeVar

from fastapi.concurrency import run_in_threadpool

from mintsale.core.config import Settings, settings
from mintsale.core.constants import to_base_units
from mintsale.engine.allowlist import normalize_address, to_node
from mintsale.engine.ledger import AllocationLedger
from mintsale.engine.phases import SaleSchedule
from mintsale.engine.pricing import PriceEngine, PriceSchedule
from mintsale.engine.rebate import ExchangeRates
from mintsale.engine.sale import SaleEngine, SaleState, utc_timestamp
from mintsale.ledgers.base import ItemLedger, PaymentTokenLedger
from mintsale.ledgers.memory import InMemoryItemLedger, InMemoryPaymentToken
from mintsale.services.sale_store import SaleRepository, sale_repository

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_sale_state(config: Settings) -> SaleState:
    prices = PriceEngine(
        eth=PriceSchedule(
            start_price=to_base_units(config.eth_start_price),
            end_price=to_base_units(config.eth_end_price),
            step_amount=to_base_units(config.eth_step_amount),
            step_interval=config.eth_step_interval_seconds,
        ),
        stars=PriceSchedule(
            start_price=to_base_units(config.stars_start_price),
            end_price=to_base_units(config.stars_end_price),
            step_amount=to_base_units(config.stars_step_amount),
            step_interval=config.stars_step_interval_seconds,
        ),
    )
    schedule = SaleSchedule(
        auction_sale_start_time=config.auction_sale_start_time,
        auction_sale_end_time=config.auction_sale_end_time,
        whitelist_sale_start_time=config.whitelist_sale_start_time,
        whitelist_sale_end_time=config.whitelist_sale_end_time,
        public_sale_start_time=config.public_sale_start_time,
        public_sale_end_time=config.public_sale_end_time,
        has_public_sale=config.has_public_sale,
    )
    ledger = AllocationLedger.create(
        total_supply=config.total_supply,
        early_budget=config.early_mint_budget,
        dev_budget=config.dev_mint_budget,
        auction_budget=config.auction_budget,
    )
    return SaleState(
        owner=normalize_address(config.owner_address),
        treasury=normalize_address(config.treasury_address),
        schedule=schedule,
        prices=prices,
        rates=ExchangeRates(
            eth_usd=to_base_units(config.eth_usd_price),
            stars_usd=to_base_units(config.stars_usd_price),
        ),
        ledger=ledger,
        allowlist_root=to_node(config.allowlist_merkle_root),
    )


def build_sale_engine(
    config: Settings,
    item_ledger: Optional[ItemLedger] = None,
    payment_token: Optional[PaymentTokenLedger] = None,
    clock: Callable[[], int] = utc_timestamp,
) -> SaleEngine:
    if item_ledger is None:
        item_ledger = InMemoryItemLedger(
            uri_prefix=config.uri_prefix,
            uri_suffix=config.uri_suffix,
            hidden_metadata_uri=config.hidden_metadata_uri,
            revealed=config.revealed,
        )
    if payment_token is None:
        payment_token = InMemoryPaymentToken()
    engine = SaleEngine(
        state=build_sale_state(config),
        item_ledger=item_ledger,
        payment_token=payment_token,
        clock=clock,
    )
    logger.info(
        f"Sale engine ready: supply={config.total_supply}, auction={config.auction_budget}, "
        f"dev={config.dev_mint_budget}, early={config.early_mint_budget}, public={config.public_budget}"
    )
    return engine


class SaleService:
    """
    Lazily builds and holds the process-wide sale engine.

    Mutating operations go through ``execute``: one at a time, on the
    thread pool so the event loop stays free, and each committed result is
    saved before the response goes out.
    """

    def __init__(self, config: Settings, repository: SaleRepository = sale_repository):
        self._config = config
        self._engine: Optional[SaleEngine] = None
        self.repository = repository
        self._write_lock = asyncio.Lock()

    @property
    def engine(self) -> SaleEngine:
        if self._engine is None:
            self._engine = build_sale_engine(self._config)
        return self._engine

    def reset(self, engine: Optional[SaleEngine] = None) -> None:
        self._engine = engine
        self._write_lock = asyncio.Lock()

    async def load(self) -> SaleEngine:
        engine = self.engine
        await self.repository.load(engine)
        return engine

    async def execute(self, operation: Callable[..., T], *args, **kwargs) -> T:
        """Run a SaleEngine method with ``args`` and persist what it changed."""
        async with self._write_lock:
            result = await run_in_threadpool(operation, *args, **kwargs)
            engine = self.engine
            dirty = engine.take_dirty_addresses()
            try:
                await self.repository.save(engine, dirty)
            except Exception as e:
                logger.error(f"Failed to save sale state after {operation.__name__}: {e}")
                engine.mark_dirty(dirty)
                raise
            return result


sale_service = SaleService(settings)
