import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from mintsale.core.config import settings
from mintsale.schemas.sale import AuthMessageResponse, SessionRequest, SessionResponse
from mintsale.services.sessions import session_store

from .common import bearer_token, require_wallet_address

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth")


@router.get(
    "/message",
    response_model=AuthMessageResponse,
    summary="Get sign-in message for a wallet",
)
async def get_message(wallet_address: str) -> AuthMessageResponse:
    message = await session_store.issue_message(require_wallet_address(wallet_address))
    return AuthMessageResponse(message=message, expires_in=settings.auth_message_ttl_seconds)


@router.post(
    "/session",
    response_model=SessionResponse,
    summary="Open a wallet session",
)
async def open_session(body: SessionRequest) -> SessionResponse:
    """Verify the signed sign-in message and return a bearer token."""
    token, session = await session_store.open_session(
        require_wallet_address(body.wallet_address), body.signature
    )
    return SessionResponse(
        token=token,
        wallet_address=session.wallet_address,
        expires_at=int(session.expires_at.timestamp()),
    )


@router.delete(
    "/session",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close the current wallet session",
)
async def close_session(token: Optional[str] = Depends(bearer_token)) -> None:
    if token:
        await session_store.revoke(token)
