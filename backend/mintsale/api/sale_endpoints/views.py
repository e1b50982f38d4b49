import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mintsale.core.constants import BUYER_LIST_PAGE_SIZE
from mintsale.engine.pricing import Currency, PriceSchedule
from mintsale.engine.sale import SaleEngine
from mintsale.schemas.sale import (
    AllowlistCheckRequest,
    AllowlistCheckResponse,
    AuctionParamsModel,
    BuyerInfoResponse,
    BuyerListResponse,
    PhaseResponse,
    PoolModel,
    PoolStatsResponse,
    PriceResponse,
    PurchaseRecordModel,
    SaleConfigResponse,
    ScheduleModel,
    TokenResponse,
)

from .common import get_engine, require_wallet_address

logger = logging.getLogger(__name__)
router = APIRouter()


def to_params_model(schedule: PriceSchedule) -> AuctionParamsModel:
    return AuctionParamsModel(
        start_price=schedule.start_price,
        end_price=schedule.end_price,
        step_amount=schedule.step_amount,
        step_interval=schedule.step_interval,
    )


@router.get(
    "/price",
    response_model=PriceResponse,
    summary="Get the current auction price",
)
async def get_price(
    currency: Currency = Currency.ETH,
    start_time: Optional[int] = Query(None, description="Price as if the auction started at this time"),
    engine: SaleEngine = Depends(get_engine),
) -> PriceResponse:
    quote = engine.current_quote(currency, start_time)
    return PriceResponse(
        currency=currency,
        tier=quote.tier,
        price=quote.unit_price,
        settled_price=engine.settled_price(currency),
    )


@router.get("/phase", response_model=PhaseResponse, summary="Get the current sale phase")
async def get_phase(engine: SaleEngine = Depends(get_engine)) -> PhaseResponse:
    return PhaseResponse(phase=engine.current_phase(), timestamp=engine.clock())


@router.get(
    "/config",
    response_model=SaleConfigResponse,
    summary="Get sale configuration",
)
async def get_sale_config(engine: SaleEngine = Depends(get_engine)) -> SaleConfigResponse:
    """Schedule, auction parameters, settled prices and exchange rates."""
    state = engine.state
    return SaleConfigResponse(
        phase=engine.current_phase(),
        schedule=ScheduleModel(**state.schedule.as_dict()),
        eth_auction=to_params_model(state.prices.schedule(Currency.ETH)),
        stars_auction=to_params_model(state.prices.schedule(Currency.STARS)),
        settled_eth_price=engine.settled_price(Currency.ETH),
        settled_stars_price=engine.settled_price(Currency.STARS),
        eth_usd_price=state.rates.eth_usd,
        stars_usd_price=state.rates.stars_usd,
        allowlist_merkle_root="0x" + state.allowlist_root.hex(),
        total_supply=state.ledger.total_supply,
        total_minted=state.ledger.total_minted,
    )


@router.post(
    "/allowlist/check",
    response_model=AllowlistCheckResponse,
    summary="Check an allowlist proof",
)
async def check_allowlist(
    body: AllowlistCheckRequest,
    engine: SaleEngine = Depends(get_engine),
) -> AllowlistCheckResponse:
    wallet_address = require_wallet_address(body.wallet_address)
    try:
        allowlisted = engine.is_allowlisted(body.proof, wallet_address)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Malformed proof: {e}")
    return AllowlistCheckResponse(wallet_address=wallet_address, allowlisted=allowlisted)


@router.get(
    "/buyers",
    response_model=BuyerListResponse,
    summary="List auction buyers in queue order",
)
async def list_buyers(
    offset: int = Query(0, ge=0),
    limit: int = Query(BUYER_LIST_PAGE_SIZE, ge=1, le=1000),
    engine: SaleEngine = Depends(get_engine),
) -> BuyerListResponse:
    return BuyerListResponse(
        offset=offset,
        limit=limit,
        total=len(engine.state.ledger.queue),
        buyers=engine.buyer_list(offset, limit),
    )


@router.get(
    "/buyers/{wallet_address}",
    response_model=BuyerInfoResponse,
    summary="Get a buyer's purchases and entitlements",
)
async def get_buyer(wallet_address: str, engine: SaleEngine = Depends(get_engine)) -> BuyerInfoResponse:
    wallet_address = require_wallet_address(wallet_address)
    record = engine.purchase_record(wallet_address)
    entitlement = engine.entitlement(wallet_address)
    record_model = None
    if record is not None:
        record_model = PurchaseRecordModel(
            first_tier=record.first_tier,
            first_unit_price=record.first_unit_price,
            first_currency=record.first_currency,
            first_quantity=record.first_quantity,
            auction_quantity=record.auction_quantity,
            total_quantity=record.total_quantity,
        )
    return BuyerInfoResponse(
        wallet_address=wallet_address,
        queue_position=entitlement.position,
        record=record_model,
        remaining_entitlement=entitlement.quantity,
        remaining_claimed=entitlement.claimed,
        rebate_preview=engine.rebate_preview(wallet_address),
        rebate_claimed=engine.rebate_claimed(wallet_address),
    )


@router.get("/pools", response_model=PoolStatsResponse, summary="Get supply pool usage")
async def get_pools(engine: SaleEngine = Depends(get_engine)) -> PoolStatsResponse:
    ledger = engine.state.ledger
    return PoolStatsResponse(
        total_supply=ledger.total_supply,
        total_minted=ledger.total_minted,
        unsold=ledger.unsold(),
        pools=[
            PoolModel(name=name.value, budget=budget, minted=minted, available=budget - minted)
            for name, (budget, minted) in engine.pool_stats().items()
        ],
    )


@router.get("/tokens/{token_id}", response_model=TokenResponse, summary="Get an item's owner and URI")
async def get_token(token_id: int, engine: SaleEngine = Depends(get_engine)) -> TokenResponse:
    return TokenResponse(
        token_id=token_id,
        owner=engine.owner_of(token_id),
        token_uri=engine.token_uri(token_id),
    )
