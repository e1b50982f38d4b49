import logging

from fastapi import APIRouter, Depends

from mintsale.engine.sale import SaleEngine
from mintsale.schemas.sale import ClaimRequest, ClaimResponse, RebateResponse
from mintsale.services.sale_service import sale_service

from .common import call_context, get_engine, get_session_wallet, token_bounds

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/mint-remaining",
    response_model=ClaimResponse,
    summary="Claim a share of the unsold supply",
)
async def mint_remaining(
    body: ClaimRequest,
    session_wallet: str = Depends(get_session_wallet),
    engine: SaleEngine = Depends(get_engine),
) -> ClaimResponse:
    """Mint the caller's remaining-supply share once every sale window has closed."""
    receipt = await sale_service.execute(engine.mint_remaining, call_context(body.wallet_address, session_wallet))
    first_token_id, last_token_id = token_bounds(receipt.token_ids)
    return ClaimResponse(
        wallet_address=receipt.address,
        quantity=receipt.quantity,
        first_token_id=first_token_id,
        last_token_id=last_token_id,
    )


@router.post(
    "/rebate",
    response_model=RebateResponse,
    summary="Claim the price-equalization rebate",
)
async def rebate(
    body: ClaimRequest,
    session_wallet: str = Depends(get_session_wallet),
    engine: SaleEngine = Depends(get_engine),
) -> RebateResponse:
    receipt = await sale_service.execute(engine.rebate, call_context(body.wallet_address, session_wallet))
    return RebateResponse(
        wallet_address=receipt.address,
        amount=receipt.amount,
        currency=receipt.currency,
    )
