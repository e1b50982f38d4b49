"""
Tortoise ORM models for the sale backend.

These models track:
- One-time sign-in messages and wallet sessions
- The sale configuration and counters (one row per sale)
- Each buyer's purchase record and claim flags
- Item mint runs of the built-in item registry

Base-unit amounts can exceed 64 bits, so they are stored as decimal strings.
"""

from tortoise import fields, models

from mintsale.engine.pricing import Currency

DEFAULT_SALE = "default"


class AuthMessage(models.Model):
    """
    Sign-in message issued to a wallet.

    One pending message per wallet; it is deleted as soon as a signature
    is checked against it.
    """
    id = fields.UUIDField(pk=True)

    wallet_address = fields.CharField(max_length=42, unique=True)
    message = fields.TextField()

    # Timestamps
    created_at = fields.DatetimeField(auto_now_add=True)
    expires_at = fields.DatetimeField(index=True)

    class Meta:
        table = "auth_messages"


class WalletSession(models.Model):
    """Bearer session opened by a verified wallet signature."""
    id = fields.UUIDField(pk=True)

    token = fields.CharField(max_length=64, unique=True)
    wallet_address = fields.CharField(max_length=42, index=True)

    # Timestamps
    created_at = fields.DatetimeField(auto_now_add=True)
    expires_at = fields.DatetimeField(index=True)

    class Meta:
        table = "wallet_sessions"


class SaleStateRecord(models.Model):
    """
    Sale-wide configuration and counters.

    Rewritten after every committed sale operation. Per-buyer data lives in
    BuyerRecord.
    """
    id = fields.UUIDField(pk=True)
    name = fields.CharField(max_length=32, unique=True, default=DEFAULT_SALE)

    # Configuration
    schedule = fields.JSONField()
    prices = fields.JSONField()       # {currency: {start_price, end_price, step_amount, step_interval}}
    rates = fields.JSONField()        # {eth_usd, stars_usd}
    allowlist_root = fields.CharField(max_length=66)
    item_metadata = fields.JSONField(default=dict)

    # Counters
    settled = fields.JSONField()      # {currency: price}
    pools = fields.JSONField()        # {pool: {budget, minted}}
    proceeds_eth = fields.CharField(max_length=80, default="0")

    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "sale_state"


class BuyerRecord(models.Model):
    """
    A wallet's purchases and claims.

    ``sequence`` is the wallet's position in the auction queue, set by its
    first auction purchase. The first-purchase fields drive the rebate.
    """
    id = fields.UUIDField(pk=True)

    wallet_address = fields.CharField(max_length=42, unique=True)

    # First auction purchase
    sequence = fields.IntField(null=True, index=True)
    first_tier = fields.IntField(null=True)
    first_unit_price = fields.CharField(max_length=80, null=True)
    first_currency = fields.CharEnumField(Currency, max_length=10, null=True)
    first_quantity = fields.IntField(default=0)

    # Running totals
    auction_quantity = fields.IntField(default=0)
    total_quantity = fields.IntField(default=0)

    # Claims
    rebate_claimed = fields.BooleanField(default=False)
    remaining_minted = fields.IntField(null=True)  # null until the remaining-supply claim

    # Timestamps
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "buyer_records"


class ItemMintRun(models.Model):
    """One mint call of the built-in item registry: a contiguous id range."""
    id = fields.UUIDField(pk=True)

    start_id = fields.BigIntField(unique=True)
    quantity = fields.IntField()
    owner = fields.CharField(max_length=42, index=True)

    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "item_mint_runs"
