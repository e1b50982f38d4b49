from decimal import Decimal

import pytest
from eth_account import Account
from eth_utils import keccak, to_canonical_address
from tortoise import Tortoise

from mintsale.core.config import Settings
from mintsale.core.constants import BASE_UNIT
from mintsale.engine.allowlist import hash_pair
from mintsale.engine.sale import CallContext
from mintsale.services.sale_service import build_sale_engine

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

T0 = 1_700_000_000

OWNER = Account.from_key("0x" + "a1" * 32)
ACCOUNTS = [Account.from_key("0x" + f"{i + 1:064x}") for i in range(20)]


def ether(amount) -> int:
    return int(Decimal(str(amount)) * BASE_UNIT)


def direct(address: str) -> CallContext:
    return CallContext.direct(address)


class FakeClock:
    """Controllable unix-seconds clock."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class MerkleTree:
    """Sorted-pair keccak tree over keccak(address) leaves, for building proofs in tests."""

    def __init__(self, addresses: list[str]):
        self.leaves = [keccak(to_canonical_address(a)) for a in addresses]
        self.layers = [self.leaves]
        layer = self.leaves
        while len(layer) > 1:
            parents = []
            for i in range(0, len(layer), 2):
                if i + 1 < len(layer):
                    parents.append(hash_pair(layer[i], layer[i + 1]))
                else:
                    parents.append(layer[i])
            self.layers.append(parents)
            layer = parents

    @property
    def root(self) -> bytes:
        return self.layers[-1][0]

    @property
    def hex_root(self) -> str:
        return "0x" + self.root.hex()

    def proof(self, address: str) -> list[str]:
        index = self.leaves.index(keccak(to_canonical_address(address)))
        proof = []
        for layer in self.layers[:-1]:
            sibling = index ^ 1
            if sibling < len(layer):
                proof.append("0x" + layer[sibling].hex())
            index //= 2
        return proof


def sale_settings(**overrides) -> Settings:
    auction_end = T0 + 5 * DAY
    whitelist_start = auction_end + 15 * MINUTE
    whitelist_end = whitelist_start + 4 * DAY
    public_start = whitelist_end + 15 * MINUTE
    values = dict(
        owner_address=OWNER.address,
        auction_sale_start_time=T0,
        auction_sale_end_time=auction_end,
        whitelist_sale_start_time=whitelist_start,
        whitelist_sale_end_time=whitelist_end,
        public_sale_start_time=public_start,
        public_sale_end_time=public_start + 4 * DAY,
        uri_prefix="ipfs://mogies/",
        hidden_metadata_uri="ipfs://hidden.json",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return sale_settings()


@pytest.fixture
def engine(config, clock):
    engine = build_sale_engine(config, clock=clock)
    token = engine.payment_token
    treasury = engine.state.treasury
    token.mint(treasury, ether(10_000_000_000))
    for account in ACCOUNTS[:6]:
        token.mint(account.address, ether(30_000_000))
        token.approve(account.address, treasury, ether(10_000_000_000))
    return engine


@pytest.fixture
def owner():
    return direct(OWNER.address)


@pytest.fixture
def users():
    return [account.address for account in ACCOUNTS]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def database():
    """Fresh in-memory database with every table created."""
    await Tortoise.init(config=Settings(database_url="sqlite://:memory:").tortoise_config)
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()
