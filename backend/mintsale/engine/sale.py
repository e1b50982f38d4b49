"""
Sale engine.

Owns one sale's mutable state (schedule, price schedules, settled prices,
allocation ledger, proceeds) and is the only writer of it. Every mutating
operation:

1. runs under the engine lock, so calls are serialized
2. takes a CallContext naming the account acted for and the account that
   authenticated the request
3. is atomic: on any exception the state it touched is restored to its
   pre-call value, collaborator ledger writes are compensated and the
   exception propagates

Purchase order of checks: relayed call -> phase window -> allowlist ->
pool capacity -> price -> payment -> ledger -> settled price -> item mint.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, Optional

from mintsale.core.constants import BUYER_LIST_PAGE_SIZE
from mintsale.core.errors import (
    InsufficientPayment,
    InvalidQuantity,
    NotAllowlisted,
    NotOwner,
    RelayedCallRejected,
    SaleAlreadyStarted,
    TooEarly,
)
from mintsale.engine.allowlist import AllowlistVerifier, normalize_address, to_node
from mintsale.engine.distribution import Entitlement, RemainingSupplyDistributor
from mintsale.engine.ledger import AllocationLedger, PoolName, PurchaseRecord
from mintsale.engine.phases import SalePhase, SalePhaseClock, SaleSchedule
from mintsale.engine.pricing import Currency, PriceEngine, PriceSchedule, Quote
from mintsale.engine.rebate import ExchangeRates, RebateEngine
from mintsale.ledgers.base import ItemLedger, PaymentTokenLedger

logger = logging.getLogger(__name__)

PURCHASE_PHASES = (SalePhase.AUCTION, SalePhase.ALLOWLIST, SalePhase.PUBLIC)


def utc_timestamp() -> int:
    return int(datetime.now(timezone.utc).timestamp())


@dataclass(frozen=True, slots=True)
class CallContext:
    """
    Who a request acts for (``sender``) and who authenticated it (``origin``).
    A request without an authenticated origin, or whose origin differs from
    the sender, counts as relayed.
    """
    sender: str
    origin: Optional[str] = None

    @classmethod
    def direct(cls, address: str) -> "CallContext":
        return cls(sender=address, origin=address)

    @property
    def is_relayed(self) -> bool:
        if self.origin is None:
            return True
        return normalize_address(self.origin) != normalize_address(self.sender)


@dataclass(frozen=True, slots=True)
class PurchaseReceipt:
    buyer: str
    phase: SalePhase
    quantity: int
    currency: Currency
    tier: int
    unit_price: int
    total_cost: int
    refund: int
    token_ids: range
    queue_position: Optional[int]


@dataclass(frozen=True, slots=True)
class ClaimReceipt:
    address: str
    quantity: int
    token_ids: range


@dataclass(frozen=True, slots=True)
class RebateReceipt:
    address: str
    amount: int
    currency: Currency = Currency.STARS


@dataclass(slots=True)
class SaleState:
    owner: str
    treasury: str
    schedule: SaleSchedule
    prices: PriceEngine
    rates: ExchangeRates
    ledger: AllocationLedger
    allowlist_root: bytes
    settled: dict[Currency, int] = field(default_factory=dict)
    proceeds_eth: int = 0

    def __post_init__(self):
        for currency in Currency:
            self.settled.setdefault(currency, self.prices.schedule(currency).start_price)


def ensure_not_relayed(ctx: CallContext) -> None:
    if ctx.is_relayed:
        logger.warning(f"Rejected relayed call for {ctx.sender} from {ctx.origin}")
        raise RelayedCallRejected()


class Checkpoint:
    """
    Pre-call copy of the state a mutating call can change.

    Sale-wide values (schedule, prices, rates, root, settled prices, proceeds,
    pool counters, queue length) are small and always copied. Per-buyer
    entries are copied on ``touch`` before the call writes them. Writes to
    collaborator ledgers cannot be copied, so the call registers an undo step
    with ``on_rollback`` right after each one succeeds.
    """

    def __init__(self, state: SaleState):
        ledger = state.ledger
        self.state = state
        self.schedule = replace(state.schedule)
        self.prices = state.prices.copy()
        self.rates = state.rates
        self.allowlist_root = state.allowlist_root
        self.settled = dict(state.settled)
        self.proceeds_eth = state.proceeds_eth
        self.pools = {name: replace(pool) for name, pool in ledger.pools.items()}
        self.queue_length = len(ledger.queue)
        self.buyers: dict[str, tuple[Optional[PurchaseRecord], bool, Optional[int]]] = {}
        self._compensations: list[Callable[[], None]] = []

    def touch(self, address: str) -> None:
        if address in self.buyers:
            return
        ledger = self.state.ledger
        record = ledger.records.get(address)
        self.buyers[address] = (
            None if record is None else replace(record),
            address in ledger.rebate_claimed,
            ledger.remaining_minted.get(address),
        )

    def on_rollback(self, compensation: Callable[[], None]) -> None:
        self._compensations.append(compensation)

    def rollback(self) -> None:
        state = self.state
        ledger = state.ledger
        state.schedule = self.schedule
        state.prices = self.prices
        state.rates = self.rates
        state.allowlist_root = self.allowlist_root
        state.settled = self.settled
        state.proceeds_eth = self.proceeds_eth
        ledger.pools = self.pools
        del ledger.queue[self.queue_length:]
        for address, (record, rebate_claimed, remaining_minted) in self.buyers.items():
            if record is None:
                ledger.records.pop(address, None)
            else:
                ledger.records[address] = record
            if rebate_claimed:
                ledger.rebate_claimed.add(address)
            else:
                ledger.rebate_claimed.discard(address)
            if remaining_minted is None:
                ledger.remaining_minted.pop(address, None)
            else:
                ledger.remaining_minted[address] = remaining_minted
        # Newest first; a failing undo step propagates with the original error as context
        for compensation in reversed(self._compensations):
            compensation()


class SaleEngine:
    def __init__(
        self,
        state: SaleState,
        item_ledger: ItemLedger,
        payment_token: PaymentTokenLedger,
        clock: Callable[[], int] = utc_timestamp,
    ):
        self.state = state
        self.item_ledger = item_ledger
        self.payment_token = payment_token
        self.clock = clock
        self._lock = threading.RLock()
        # Buyers written by committed calls since the last take_dirty_addresses()
        self._dirty: set[str] = set()

    # --- Internals ---

    def _now(self) -> int:
        return int(self.clock())

    @property
    def phase_clock(self) -> SalePhaseClock:
        return SalePhaseClock(self.state.schedule)

    @property
    def distributor(self) -> RemainingSupplyDistributor:
        return RemainingSupplyDistributor(self.state.ledger)

    @property
    def rebates(self) -> RebateEngine:
        return RebateEngine(self.state.ledger)

    @contextmanager
    def _atomic(self) -> Iterator[Checkpoint]:
        with self._lock:
            checkpoint = Checkpoint(self.state)
            try:
                yield checkpoint
            except BaseException:
                checkpoint.rollback()
                raise
            self._dirty.update(checkpoint.buyers)

    def take_dirty_addresses(self) -> set[str]:
        """Buyers whose records changed since the last call, for persistence."""
        with self._lock:
            dirty, self._dirty = self._dirty, set()
            return dirty

    def mark_dirty(self, addresses: Iterable[str]) -> None:
        with self._lock:
            self._dirty.update(addresses)

    def _require_owner(self, ctx: CallContext) -> None:
        if normalize_address(ctx.sender) != self.state.owner:
            raise NotOwner()

    def _require_before_auction(self) -> None:
        if self.phase_clock.has_auction_started(self._now()):
            raise SaleAlreadyStarted()

    def _elapsed(self, now: int, start_time: Optional[int] = None) -> int:
        start = self.state.schedule.auction_sale_start_time if start_time is None else start_time
        return max(0, now - start)

    # --- Purchases ---

    def auction_mint(self, ctx: CallContext, quantity: int, pay_in_stars: bool, payment: int = 0) -> PurchaseReceipt:
        return self._purchase(ctx, SalePhase.AUCTION, quantity, pay_in_stars, payment)

    def allowlist_mint(
        self,
        ctx: CallContext,
        quantity: int,
        pay_in_stars: bool,
        proof: Iterable[bytes | str],
        payment: int = 0,
    ) -> PurchaseReceipt:
        return self._purchase(ctx, SalePhase.ALLOWLIST, quantity, pay_in_stars, payment, list(proof))

    def public_mint(self, ctx: CallContext, quantity: int, pay_in_stars: bool, payment: int = 0) -> PurchaseReceipt:
        return self._purchase(ctx, SalePhase.PUBLIC, quantity, pay_in_stars, payment)

    def _purchase(
        self,
        ctx: CallContext,
        phase: SalePhase,
        quantity: int,
        pay_in_stars: bool,
        payment: int,
        proof: Optional[list] = None,
    ) -> PurchaseReceipt:
        if phase not in PURCHASE_PHASES:
            raise ValueError(f"{phase.value} is not a purchase phase")

        with self._atomic() as checkpoint:
            state = self.state
            now = self._now()
            ensure_not_relayed(ctx)
            buyer = normalize_address(ctx.sender)
            checkpoint.touch(buyer)
            self.phase_clock.require_open(phase, now)

            if phase == SalePhase.ALLOWLIST:
                verifier = AllowlistVerifier(state.allowlist_root)
                if not verifier.verify(proof or [], buyer):
                    raise NotAllowlisted()

            if quantity <= 0:
                raise InvalidQuantity()
            if payment < 0:
                raise InsufficientPayment("payment must not be negative")

            pool = PoolName.AUCTION if phase == SalePhase.AUCTION else PoolName.PUBLIC
            state.ledger.ensure_capacity(pool, quantity)

            # Every phase pays the decayed auction price
            elapsed = self._elapsed(now)
            currency = Currency.STARS if pay_in_stars else Currency.ETH
            quote = state.prices.quote(currency, elapsed)
            total_cost = quote.total(quantity)
            refund = self._settle_payment(checkpoint, buyer, quote, total_cost, payment)

            state.ledger.record_mint(pool, quantity)
            is_auction = phase == SalePhase.AUCTION
            record = state.ledger.record_purchase(
                buyer,
                quantity,
                is_auction=is_auction,
                tier=quote.tier,
                unit_price=quote.unit_price,
                currency=currency,
            )
            if is_auction:
                self._update_settled_prices(elapsed)

            token_ids = self.item_ledger.mint(buyer, quantity)
            logger.info(
                f"{phase.value} purchase: {buyer} bought {quantity} at tier {quote.tier} "
                f"for {total_cost} {currency.value} (ids {token_ids.start}-{token_ids.stop - 1})"
            )
            return PurchaseReceipt(
                buyer=buyer,
                phase=phase,
                quantity=quantity,
                currency=currency,
                tier=quote.tier,
                unit_price=quote.unit_price,
                total_cost=total_cost,
                refund=refund,
                token_ids=token_ids,
                queue_position=record.sequence,
            )

    def _settle_payment(
        self,
        checkpoint: Checkpoint,
        buyer: str,
        quote: Quote,
        total_cost: int,
        payment: int,
    ) -> int:
        """Collect ``total_cost`` and return the amount of attached ETH to refund."""
        if quote.currency == Currency.STARS:
            treasury = self.state.treasury
            self.payment_token.transfer_from(
                spender=treasury,
                owner=buyer,
                to=treasury,
                amount=total_cost,
            )
            checkpoint.on_rollback(lambda: self._refund_stars(buyer, total_cost))
            return payment
        if payment < total_cost:
            raise InsufficientPayment()
        self.state.proceeds_eth += total_cost
        return payment - total_cost

    def _refund_stars(self, buyer: str, amount: int) -> None:
        logger.warning(f"Refunding {amount} STARS to {buyer} after a failed purchase")
        self.payment_token.transfer(self.state.treasury, buyer, amount)

    def _update_settled_prices(self, elapsed: int) -> None:
        for currency in Currency:
            price = self.state.prices.price(currency, elapsed)
            self.state.settled[currency] = min(self.state.settled[currency], price)

    # --- Post-sale ---

    def mint_remaining(self, ctx: CallContext) -> ClaimReceipt:
        with self._atomic() as checkpoint:
            ensure_not_relayed(ctx)
            address = normalize_address(ctx.sender)
            checkpoint.touch(address)
            if not self.phase_clock.is_closed(self._now()):
                raise TooEarly()
            quantity = self.distributor.claim(address)
            token_ids = self.item_ledger.mint(address, quantity)
            return ClaimReceipt(address=address, quantity=quantity, token_ids=token_ids)

    def rebate(self, ctx: CallContext) -> RebateReceipt:
        with self._atomic() as checkpoint:
            state = self.state
            address = normalize_address(ctx.sender)
            checkpoint.touch(address)
            if not self.phase_clock.is_closed(self._now()):
                raise TooEarly()
            amount = self.rebates.claim(address, state.settled, state.rates)
            self.payment_token.transfer(state.treasury, address, amount)
            return RebateReceipt(address=address, amount=amount)

    # --- Admin ---

    def update_schedule(self, ctx: CallContext, **changes) -> SaleSchedule:
        """Set any subset of the schedule fields (times and ``has_public_sale``)."""
        with self._atomic():
            state = self.state
            self._require_owner(ctx)
            known = set(state.schedule.as_dict())
            unknown = set(changes) - known
            if unknown:
                raise ValueError(f"Unknown schedule fields: {sorted(unknown)}")
            for name, value in changes.items():
                setattr(state.schedule, name, bool(value) if name == "has_public_sale" else int(value))
            logger.info(f"schedule updated: {changes}")
            return state.schedule

    def set_public_sale(self, ctx: CallContext, enabled: bool) -> None:
        self.update_schedule(ctx, has_public_sale=enabled)

    def set_exchange_rates(
        self,
        ctx: CallContext,
        eth_usd: Optional[int] = None,
        stars_usd: Optional[int] = None,
    ) -> ExchangeRates:
        with self._atomic():
            state = self.state
            self._require_owner(ctx)
            self._require_before_auction()
            state.rates = ExchangeRates(
                eth_usd=state.rates.eth_usd if eth_usd is None else eth_usd,
                stars_usd=state.rates.stars_usd if stars_usd is None else stars_usd,
            )
            logger.info(f"exchange rates updated: {state.rates}")
            return state.rates

    def set_auction_params(
        self,
        ctx: CallContext,
        currency: Currency,
        start_price: int,
        end_price: int,
        step_amount: int,
        step_interval: Optional[int] = None,
    ) -> PriceSchedule:
        with self._atomic():
            state = self.state
            self._require_owner(ctx)
            self._require_before_auction()
            current = state.prices.schedule(currency)
            schedule = PriceSchedule(
                start_price=start_price,
                end_price=end_price,
                step_amount=step_amount,
                step_interval=current.step_interval if step_interval is None else step_interval,
            )
            state.prices.replace(currency, schedule)
            state.settled[currency] = schedule.start_price
            logger.info(f"{currency.value} auction params updated: {schedule}")
            return schedule

    def set_allowlist_root(self, ctx: CallContext, root: bytes | str) -> None:
        with self._atomic():
            state = self.state
            self._require_owner(ctx)
            state.allowlist_root = to_node(root)
            logger.info(f"allowlist root set to 0x{state.allowlist_root.hex()}")

    def set_metadata(self, ctx: CallContext, **changes) -> None:
        with self._atomic():
            self._require_owner(ctx)
            self.item_ledger.configure_metadata(**changes)
            logger.info(f"metadata updated: {changes}")

    def early_mint(self, ctx: CallContext, quantity: int, to: str) -> range:
        with self._atomic():
            self._require_owner(ctx)
            self._require_before_auction()
            return self._admin_mint(PoolName.EARLY, quantity, to)

    def dev_mint(self, ctx: CallContext, quantity: int, to: str) -> range:
        with self._atomic():
            self._require_owner(ctx)
            return self._admin_mint(PoolName.DEV, quantity, to)

    def _admin_mint(self, pool: PoolName, quantity: int, to: str) -> range:
        if quantity <= 0:
            raise InvalidQuantity()
        recipient = normalize_address(to)
        self.state.ledger.record_mint(pool, quantity)
        token_ids = self.item_ledger.mint(recipient, quantity)
        logger.info(f"{pool.value} mint: {quantity} to {recipient}")
        return token_ids

    def withdraw(self, ctx: CallContext) -> int:
        with self._atomic():
            state = self.state
            self._require_owner(ctx)
            amount = state.proceeds_eth
            state.proceeds_eth = 0
            logger.info(f"withdrew {amount} wei of proceeds to {state.owner}")
            return amount

    # --- Queries ---

    def current_phase(self) -> SalePhase:
        return self.phase_clock.current_phase(self._now())

    def current_price(self, currency: Currency, start_time: Optional[int] = None) -> int:
        return self.state.prices.price(currency, self._elapsed(self._now(), start_time))

    def current_quote(self, currency: Currency, start_time: Optional[int] = None) -> Quote:
        return self.state.prices.quote(currency, self._elapsed(self._now(), start_time))

    def is_allowlisted(self, proof: Iterable[bytes | str], address: str) -> bool:
        return AllowlistVerifier(self.state.allowlist_root).verify(proof, address)

    def purchase_record(self, address: str) -> Optional[PurchaseRecord]:
        return self.state.ledger.record_of(normalize_address(address))

    def queue_position(self, address: str) -> Optional[int]:
        return self.state.ledger.queue_position(normalize_address(address))

    def entitlement(self, address: str) -> Entitlement:
        return self.distributor.entitlement(normalize_address(address))

    def rebate_preview(self, address: str) -> int:
        return max(0, self.rebates.preview(normalize_address(address), self.state.settled, self.state.rates))

    def rebate_claimed(self, address: str) -> bool:
        return normalize_address(address) in self.state.ledger.rebate_claimed

    def buyer_list(self, offset: int = 0, limit: int = BUYER_LIST_PAGE_SIZE) -> list[str]:
        if offset < 0 or limit < 0:
            raise ValueError("offset and limit must not be negative")
        return self.state.ledger.queue[offset:offset + limit]

    def pool_stats(self) -> dict[PoolName, tuple[int, int]]:
        return {name: (pool.budget, pool.minted) for name, pool in self.state.ledger.pools.items()}

    def settled_price(self, currency: Currency) -> int:
        return self.state.settled[currency]

    def owner_of(self, token_id: int) -> str:
        return self.item_ledger.owner_of(token_id)

    def token_uri(self, token_id: int) -> str:
        return self.item_ledger.token_uri(token_id)
