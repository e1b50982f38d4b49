from datetime import datetime, timedelta, timezone

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from conftest import ACCOUNTS
from mintsale.core.errors import SessionInvalid
from mintsale.models.sale import AuthMessage, WalletSession
from mintsale.services.sessions import SessionStore

pytestmark = pytest.mark.anyio


class FakeNow:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def now():
    return FakeNow()


@pytest.fixture
def store(database, now):
    return SessionStore(message_ttl_seconds=300, session_ttl_seconds=3600, now=now)


def sign(message: str, account) -> str:
    return "0x" + bytes(Account.sign_message(encode_defunct(text=message), private_key=account.key).signature).hex()


async def sign_in(store, account) -> str:
    message = await store.issue_message(account.address)
    token, _ = await store.open_session(account.address, sign(message, account))
    return token


async def test_session_resolves_to_wallet(store):
    user = ACCOUNTS[0]
    token = await sign_in(store, user)
    session = await store.resolve(token)
    assert session.wallet_address == user.address
    assert await AuthMessage.filter(wallet_address=user.address).count() == 0


async def test_new_message_replaces_pending_one(store):
    user = ACCOUNTS[0]
    first = await store.issue_message(user.address)
    await store.issue_message(user.address)

    assert await AuthMessage.all().count() == 1
    with pytest.raises(SessionInvalid, match="Signature verification failed"):
        await store.open_session(user.address, sign(first, user))


async def test_expired_message_rejected(store, now):
    user = ACCOUNTS[0]
    message = await store.issue_message(user.address)
    now.advance(301)
    with pytest.raises(SessionInvalid, match="expired"):
        await store.open_session(user.address, sign(message, user))


async def test_expired_session_rejected_and_deleted(store, now):
    token = await sign_in(store, ACCOUNTS[0])
    now.advance(3601)
    with pytest.raises(SessionInvalid, match="expired"):
        await store.resolve(token)
    assert await WalletSession.all().count() == 0


async def test_revoked_session_rejected(store):
    token = await sign_in(store, ACCOUNTS[0])
    await store.revoke(token)
    with pytest.raises(SessionInvalid):
        await store.resolve(token)


async def test_opening_a_session_sweeps_expired_rows(store, now):
    stale_tokens = [await sign_in(store, account) for account in ACCOUNTS[:3]]
    await store.issue_message(ACCOUNTS[4].address)
    now.advance(3601)

    fresh = await sign_in(store, ACCOUNTS[5])

    assert await WalletSession.filter(token__in=stale_tokens).count() == 0
    assert await AuthMessage.all().count() == 0
    assert [s.token for s in await WalletSession.all()] == [fresh]


async def test_sweep_keeps_live_rows(store, now):
    token = await sign_in(store, ACCOUNTS[0])
    await store.issue_message(ACCOUNTS[1].address)
    now.advance(60)
    assert await store.sweep_expired() == 0
    assert (await store.resolve(token)).wallet_address == ACCOUNTS[0].address
