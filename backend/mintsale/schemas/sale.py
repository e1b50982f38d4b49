from pydantic import BaseModel, Field
from typing import Optional, List

from mintsale.engine.phases import SalePhase
from mintsale.engine.pricing import Currency


# --- Wallet sessions ---

class AuthMessageResponse(BaseModel):
    """One-time message the wallet must sign to open a session."""
    message: str
    expires_in: int = Field(..., description="Seconds until the message expires")


class SessionRequest(BaseModel):
    wallet_address: str = Field(..., description="EVM wallet address that signed the message")
    signature: str = Field(..., description="0x-prefixed personal_sign signature of the message")


class SessionResponse(BaseModel):
    token: str = Field(..., description="Bearer token for mutating requests")
    wallet_address: str
    expires_at: int = Field(..., description="Unix timestamp when the session expires")


# --- Purchases ---

class PurchaseRequest(BaseModel):
    """Buy items in the auction or public phase."""
    wallet_address: str = Field(..., description="Account the items are minted to")
    quantity: int = Field(..., description="Number of items to buy")
    pay_in_stars: bool = Field(default=False, description="Pay in STARS instead of ETH")
    payment: int = Field(default=0, ge=0, description="Attached ETH in wei (ignored and refunded for STARS)")


class AllowlistPurchaseRequest(PurchaseRequest):
    proof: List[str] = Field(default_factory=list, description="Merkle proof as 0x-prefixed 32-byte hex nodes")


class PurchaseReceiptResponse(BaseModel):
    buyer: str
    phase: SalePhase
    quantity: int
    currency: Currency
    tier: int
    unit_price: int = Field(..., description="Price per item in base units")
    total_cost: int = Field(..., description="Amount charged in base units")
    refund: int = Field(..., description="Attached ETH returned to the buyer, in wei")
    first_token_id: int
    last_token_id: int
    queue_position: Optional[int] = Field(None, description="0-based auction queue index, if queued")


class ClaimRequest(BaseModel):
    wallet_address: str = Field(..., description="Account claiming")


class ClaimResponse(BaseModel):
    wallet_address: str
    quantity: int
    first_token_id: int
    last_token_id: int


class RebateResponse(BaseModel):
    wallet_address: str
    amount: int = Field(..., description="Rebate paid in STARS base units")
    currency: Currency = Currency.STARS


# --- Views ---

class PriceResponse(BaseModel):
    currency: Currency
    tier: int
    price: int = Field(..., description="Current unit price in base units")
    settled_price: int = Field(..., description="Lowest auction price paid so far")


class PhaseResponse(BaseModel):
    phase: SalePhase
    timestamp: int


class ScheduleModel(BaseModel):
    auction_sale_start_time: int
    auction_sale_end_time: int
    whitelist_sale_start_time: int
    whitelist_sale_end_time: int
    public_sale_start_time: int
    public_sale_end_time: int
    has_public_sale: bool


class AuctionParamsModel(BaseModel):
    start_price: int
    end_price: int
    step_amount: int
    step_interval: int


class SaleConfigResponse(BaseModel):
    """Current sale configuration and settlement state."""
    phase: SalePhase
    schedule: ScheduleModel
    eth_auction: AuctionParamsModel
    stars_auction: AuctionParamsModel
    settled_eth_price: int
    settled_stars_price: int
    eth_usd_price: int
    stars_usd_price: int
    allowlist_merkle_root: str
    total_supply: int
    total_minted: int


class AllowlistCheckRequest(BaseModel):
    wallet_address: str
    proof: List[str] = Field(default_factory=list)


class AllowlistCheckResponse(BaseModel):
    wallet_address: str
    allowlisted: bool


class PurchaseRecordModel(BaseModel):
    first_tier: Optional[int] = None
    first_unit_price: Optional[int] = None
    first_currency: Optional[Currency] = None
    first_quantity: int = 0
    auction_quantity: int = 0
    total_quantity: int = 0


class BuyerInfoResponse(BaseModel):
    wallet_address: str
    queue_position: Optional[int] = None
    record: Optional[PurchaseRecordModel] = None
    remaining_entitlement: int = Field(..., description="Full remaining-supply share")
    remaining_claimed: int
    rebate_preview: int = Field(..., description="Rebate owed in STARS base units")
    rebate_claimed: bool


class BuyerListResponse(BaseModel):
    offset: int
    limit: int
    total: int
    buyers: List[str]


class PoolModel(BaseModel):
    name: str
    budget: int
    minted: int
    available: int


class PoolStatsResponse(BaseModel):
    total_supply: int
    total_minted: int
    unsold: int
    pools: List[PoolModel]


class TokenResponse(BaseModel):
    token_id: int
    owner: str
    token_uri: str


# --- Admin ---

class ScheduleUpdateRequest(BaseModel):
    """Any subset of schedule fields; omitted fields keep their value."""
    auction_sale_start_time: Optional[int] = None
    auction_sale_end_time: Optional[int] = None
    whitelist_sale_start_time: Optional[int] = None
    whitelist_sale_end_time: Optional[int] = None
    public_sale_start_time: Optional[int] = None
    public_sale_end_time: Optional[int] = None
    has_public_sale: Optional[bool] = None


class ExchangeRatesRequest(BaseModel):
    eth_usd_price: Optional[int] = Field(None, gt=0, description="USD value of 1 ETH, in base units")
    stars_usd_price: Optional[int] = Field(None, gt=0, description="USD value of 1 STARS, in base units")


class AuctionParamsRequest(BaseModel):
    currency: Currency
    start_price: int = Field(..., ge=0)
    end_price: int = Field(..., ge=0)
    step_amount: int = Field(..., gt=0)
    step_interval: Optional[int] = Field(None, gt=0)


class AllowlistRootRequest(BaseModel):
    merkle_root: str = Field(..., description="0x-prefixed 32-byte hex root")


class MetadataRequest(BaseModel):
    revealed: Optional[bool] = None
    uri_prefix: Optional[str] = None
    uri_suffix: Optional[str] = None
    hidden_metadata_uri: Optional[str] = None


class AdminMintRequest(BaseModel):
    to: str = Field(..., description="Recipient address")
    quantity: int


class AdminMintResponse(BaseModel):
    to: str
    quantity: int
    first_token_id: int
    last_token_id: int


class WithdrawResponse(BaseModel):
    amount: int = Field(..., description="ETH proceeds withdrawn, in wei")
    to: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
