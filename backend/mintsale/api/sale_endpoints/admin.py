"""
Owner-only sale administration.

Every endpoint requires a wallet session; the session wallet must be the sale
owner. Admin calls act for the session wallet, so they carry no
``wallet_address`` in the body.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from mintsale.engine.sale import CallContext, SaleEngine
from mintsale.schemas.sale import (
    AdminMintRequest,
    AdminMintResponse,
    AllowlistRootRequest,
    AuctionParamsModel,
    AuctionParamsRequest,
    ExchangeRatesRequest,
    MetadataRequest,
    ScheduleModel,
    ScheduleUpdateRequest,
    WithdrawResponse,
)
from mintsale.services.sale_service import sale_service

from .common import get_engine, get_session_wallet, require_wallet_address, token_bounds
from .views import to_params_model

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin")


def owner_context(session_wallet: str = Depends(get_session_wallet)) -> CallContext:
    return CallContext.direct(session_wallet)


@router.put("/schedule", response_model=ScheduleModel, summary="Update the sale schedule")
async def update_schedule(
    body: ScheduleUpdateRequest,
    ctx: CallContext = Depends(owner_context),
    engine: SaleEngine = Depends(get_engine),
) -> ScheduleModel:
    schedule = await sale_service.execute(engine.update_schedule, ctx, **body.model_dump(exclude_none=True))
    return ScheduleModel(**schedule.as_dict())


@router.put("/exchange-rates", summary="Update the USD exchange rates")
async def set_exchange_rates(
    body: ExchangeRatesRequest,
    ctx: CallContext = Depends(owner_context),
    engine: SaleEngine = Depends(get_engine),
) -> dict:
    rates = await sale_service.execute(
        engine.set_exchange_rates, ctx, eth_usd=body.eth_usd_price, stars_usd=body.stars_usd_price
    )
    return {"eth_usd_price": rates.eth_usd, "stars_usd_price": rates.stars_usd}


@router.put("/auction-params", response_model=AuctionParamsModel, summary="Update one currency's auction")
async def set_auction_params(
    body: AuctionParamsRequest,
    ctx: CallContext = Depends(owner_context),
    engine: SaleEngine = Depends(get_engine),
) -> AuctionParamsModel:
    try:
        schedule = await sale_service.execute(
            engine.set_auction_params,
            ctx,
            body.currency,
            start_price=body.start_price,
            end_price=body.end_price,
            step_amount=body.step_amount,
            step_interval=body.step_interval,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return to_params_model(schedule)


@router.put("/allowlist-root", summary="Set the allowlist Merkle root")
async def set_allowlist_root(
    body: AllowlistRootRequest,
    ctx: CallContext = Depends(owner_context),
    engine: SaleEngine = Depends(get_engine),
) -> dict:
    try:
        await sale_service.execute(engine.set_allowlist_root, ctx, body.merkle_root)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"merkle_root": "0x" + engine.state.allowlist_root.hex()}


@router.put("/metadata", summary="Update item metadata settings")
async def set_metadata(
    body: MetadataRequest,
    ctx: CallContext = Depends(owner_context),
    engine: SaleEngine = Depends(get_engine),
) -> dict:
    changes = body.model_dump(exclude_none=True)
    await sale_service.execute(engine.set_metadata, ctx, **changes)
    return changes


@router.post("/early-mint", response_model=AdminMintResponse, summary="Mint from the early pool")
async def early_mint(
    body: AdminMintRequest,
    ctx: CallContext = Depends(owner_context),
    engine: SaleEngine = Depends(get_engine),
) -> AdminMintResponse:
    token_ids = await sale_service.execute(engine.early_mint, ctx, body.quantity, require_wallet_address(body.to))
    first_token_id, last_token_id = token_bounds(token_ids)
    return AdminMintResponse(
        to=body.to, quantity=body.quantity, first_token_id=first_token_id, last_token_id=last_token_id
    )


@router.post("/dev-mint", response_model=AdminMintResponse, summary="Mint from the dev pool")
async def dev_mint(
    body: AdminMintRequest,
    ctx: CallContext = Depends(owner_context),
    engine: SaleEngine = Depends(get_engine),
) -> AdminMintResponse:
    token_ids = await sale_service.execute(engine.dev_mint, ctx, body.quantity, require_wallet_address(body.to))
    first_token_id, last_token_id = token_bounds(token_ids)
    return AdminMintResponse(
        to=body.to, quantity=body.quantity, first_token_id=first_token_id, last_token_id=last_token_id
    )


@router.post("/withdraw", response_model=WithdrawResponse, summary="Withdraw ETH proceeds")
async def withdraw(
    ctx: CallContext = Depends(owner_context),
    engine: SaleEngine = Depends(get_engine),
) -> WithdrawResponse:
    amount = await sale_service.execute(engine.withdraw, ctx)
    return WithdrawResponse(amount=amount, to=engine.state.owner)
