"""
Wallet sessions.

A wallet proves control of its address by signing a one-time message
(EIP-191 personal_sign). A verified signature yields a bearer session token;
the session's wallet is the authenticated origin of every request made with
that token. Messages and sessions are stored in the database, and expired
rows are swept whenever a session is opened.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from mintsale.core.config import settings
from mintsale.core.errors import SessionInvalid
from mintsale.engine.allowlist import normalize_address
from mintsale.models.sale import AuthMessage, WalletSession

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionStore:
    def __init__(
        self,
        message_ttl_seconds: int,
        session_ttl_seconds: int,
        now: Callable[[], datetime] = utc_now,
    ):
        self._message_ttl = timedelta(seconds=message_ttl_seconds)
        self._session_ttl = timedelta(seconds=session_ttl_seconds)
        self._now = now

    async def issue_message(self, wallet_address: str) -> str:
        wallet = normalize_address(wallet_address)
        nonce_str = secrets.token_hex(16)
        message = (
            f"Welcome to the Mintsale auction!\n\n"
            f"Sign this message to start a session for this wallet.\n\n"
            f"Wallet Address: {wallet.lower()}\n"
            f"Nonce: {nonce_str}"
        )
        await AuthMessage.update_or_create(
            wallet_address=wallet,
            defaults={"message": message, "expires_at": self._now() + self._message_ttl},
        )
        return message

    async def open_session(self, wallet_address: str, signature: str) -> tuple[str, WalletSession]:
        wallet = normalize_address(wallet_address)
        now = self._now()
        auth_message = await AuthMessage.get_or_none(wallet_address=wallet)
        if auth_message is not None:
            # One attempt per message: it is consumed whether or not the signature verifies
            await auth_message.delete()
        await self.sweep_expired(now)

        if auth_message is None:
            raise SessionInvalid("Invalid message or message mismatch.")
        if now > as_utc(auth_message.expires_at):
            raise SessionInvalid("Message has expired. Please request a new one.")

        try:
            recovered_address = Account.recover_message(
                encode_defunct(text=auth_message.message), signature=signature
            )
        except Exception as e:
            logger.warning(f"Signature recovery failed for {wallet}: {e}")
            raise SessionInvalid(f"Invalid signature format: {e}") from e

        if recovered_address.lower() != wallet.lower():
            logger.warning(f"Signature for {wallet} recovered {recovered_address}")
            raise SessionInvalid("Signature verification failed: recovered address does not match wallet_address.")

        token = secrets.token_urlsafe(32)
        session = await WalletSession.create(
            token=token,
            wallet_address=wallet,
            expires_at=now + self._session_ttl,
        )
        logger.info(f"Opened session for {wallet}")
        return token, session

    async def resolve(self, token: Optional[str]) -> WalletSession:
        if not token:
            raise SessionInvalid()
        session = await WalletSession.get_or_none(token=token)
        if session is None:
            raise SessionInvalid()
        if self._now() > as_utc(session.expires_at):
            await session.delete()
            raise SessionInvalid("Session has expired. Please sign in again.")
        return session

    async def revoke(self, token: str) -> None:
        await WalletSession.filter(token=token).delete()

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired messages and sessions. Returns the number of rows removed."""
        now = now or self._now()
        messages = await AuthMessage.filter(expires_at__lt=now).delete()
        sessions = await WalletSession.filter(expires_at__lt=now).delete()
        if messages or sessions:
            logger.info(f"Swept {messages} expired messages and {sessions} expired sessions")
        return messages + sessions


session_store = SessionStore(
    message_ttl_seconds=settings.auth_message_ttl_seconds,
    session_ttl_seconds=settings.session_ttl_seconds,
)
