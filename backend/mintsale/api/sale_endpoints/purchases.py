import logging

from fastapi import APIRouter, Depends, HTTPException, status

from mintsale.engine.sale import PurchaseReceipt, SaleEngine
from mintsale.schemas.sale import (
    AllowlistPurchaseRequest,
    PurchaseReceiptResponse,
    PurchaseRequest,
)
from mintsale.services.sale_service import sale_service

from .common import call_context, get_engine, get_session_wallet, token_bounds

logger = logging.getLogger(__name__)
router = APIRouter()


def to_receipt_response(receipt: PurchaseReceipt) -> PurchaseReceiptResponse:
    first_token_id, last_token_id = token_bounds(receipt.token_ids)
    return PurchaseReceiptResponse(
        buyer=receipt.buyer,
        phase=receipt.phase,
        quantity=receipt.quantity,
        currency=receipt.currency,
        tier=receipt.tier,
        unit_price=receipt.unit_price,
        total_cost=receipt.total_cost,
        refund=receipt.refund,
        first_token_id=first_token_id,
        last_token_id=last_token_id,
        queue_position=receipt.queue_position,
    )


@router.post(
    "/auction-mint",
    response_model=PurchaseReceiptResponse,
    summary="Buy during the Dutch auction",
)
async def auction_mint(
    body: PurchaseRequest,
    session_wallet: str = Depends(get_session_wallet),
    engine: SaleEngine = Depends(get_engine),
) -> PurchaseReceiptResponse:
    """Buy at the current auction tier. The first auction purchase places the buyer in the queue."""
    receipt = await sale_service.execute(
        engine.auction_mint,
        call_context(body.wallet_address, session_wallet),
        quantity=body.quantity,
        pay_in_stars=body.pay_in_stars,
        payment=body.payment,
    )
    return to_receipt_response(receipt)


@router.post(
    "/allowlist-mint",
    response_model=PurchaseReceiptResponse,
    summary="Buy during the allowlist presale",
)
async def allowlist_mint(
    body: AllowlistPurchaseRequest,
    session_wallet: str = Depends(get_session_wallet),
    engine: SaleEngine = Depends(get_engine),
) -> PurchaseReceiptResponse:
    try:
        receipt = await sale_service.execute(
            engine.allowlist_mint,
            call_context(body.wallet_address, session_wallet),
            quantity=body.quantity,
            pay_in_stars=body.pay_in_stars,
            proof=body.proof,
            payment=body.payment,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Malformed proof: {e}")
    return to_receipt_response(receipt)


@router.post(
    "/public-mint",
    response_model=PurchaseReceiptResponse,
    summary="Buy during the public sale",
)
async def public_mint(
    body: PurchaseRequest,
    session_wallet: str = Depends(get_session_wallet),
    engine: SaleEngine = Depends(get_engine),
) -> PurchaseReceiptResponse:
    receipt = await sale_service.execute(
        engine.public_mint,
        call_context(body.wallet_address, session_wallet),
        quantity=body.quantity,
        pay_in_stars=body.pay_in_stars,
        payment=body.payment,
    )
    return to_receipt_response(receipt)
