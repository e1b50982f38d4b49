import re
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from mintsale.engine.sale import CallContext, SaleEngine
from mintsale.services.sale_service import sale_service
from mintsale.services.sessions import session_store


EVM_ADDRESS_REGEX = re.compile(r"^0x[a-fA-F0-9]{40}$")


def validate_wallet_address(wallet_address: str) -> bool:
    """Validate an EVM wallet address format."""
    return EVM_ADDRESS_REGEX.fullmatch(wallet_address.strip()) is not None


def require_wallet_address(wallet_address: str) -> str:
    if not validate_wallet_address(wallet_address):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported wallet_address format. Expected EVM address.",
        )
    return wallet_address.strip()


def get_engine() -> SaleEngine:
    return sale_service.engine


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer":
            return credentials.strip()
    return None


async def get_session_wallet(token: Optional[str] = Depends(bearer_token)) -> str:
    """Resolve ``Authorization: Bearer <token>`` to the session's wallet."""
    session = await session_store.resolve(token)
    return session.wallet_address


def call_context(sender: str, session_wallet: str) -> CallContext:
    """The body's wallet is who the call acts for; the session wallet authenticated it."""
    return CallContext(sender=require_wallet_address(sender), origin=session_wallet)


def token_bounds(token_ids: range) -> tuple[int, int]:
    return token_ids.start, token_ids.stop - 1
