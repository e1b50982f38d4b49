from decimal import Decimal
from typing import List
import json

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    app_name: str = "Mintsale Auction API"
    debug: bool = False
    api_v1_prefix: str = "/api/v1"

    # Accounts
    # Owner may call every admin operation; treasury receives STARS payments and funds rebates
    owner_address: str = "0x1F7283bEDAB59e843bA6671A95417244b532C3e6"
    treasury_address: str = "0x8Ba1f109551bD432803012645Ac136ddd64DBA72"

    # Collection supply (public budget = total - early - dev - auction)
    total_supply: int = 1923
    early_mint_budget: int = 0
    dev_mint_budget: int = 50
    auction_budget: int = 1585

    # Dutch auction parameters, in whole currency units (converted to 10^18 base units)
    eth_start_price: Decimal = Decimal("1")
    eth_end_price: Decimal = Decimal("0.2")
    eth_step_amount: Decimal = Decimal("0.2")
    eth_step_interval_seconds: int = 86400
    stars_start_price: Decimal = Decimal("74862")
    stars_end_price: Decimal = Decimal("14972.4")
    stars_step_amount: Decimal = Decimal("14972.4")
    stars_step_interval_seconds: int = 86400

    # Value-unit (USD) rates used by the rebate conversion
    eth_usd_price: Decimal = Decimal("3000")
    stars_usd_price: Decimal = Decimal("0.05")

    # Sale schedule (unix seconds). Zero means "not scheduled yet".
    auction_sale_start_time: int = 0
    auction_sale_end_time: int = 0
    whitelist_sale_start_time: int = 0
    whitelist_sale_end_time: int = 0
    public_sale_start_time: int = 0
    public_sale_end_time: int = 0
    has_public_sale: bool = False

    # Allowlist Merkle root (0x-prefixed 32-byte hex)
    allowlist_merkle_root: str = "0x" + "00" * 32

    # Item metadata
    uri_prefix: str = ""
    uri_suffix: str = ".json"
    hidden_metadata_uri: str = ""
    revealed: bool = False

    # Wallet sessions
    auth_message_ttl_seconds: int = 300
    session_ttl_seconds: int = 3600

    # Database (Tortoise ORM format)
    database_url: str = "sqlite://mintsale.sqlite3"
    # Create missing tables on startup
    generate_schemas: bool = True

    @property
    def cleaned_database_url(self) -> str:
        """Strip problematic query parameters like sslmode from database_url."""
        url = self.database_url
        if "?" in url:
            base, query = url.split("?", 1)
            params = query.split("&")
            filtered_params = [p for p in params if not p.startswith(("sslmode=", "ssl_mode="))]
            if filtered_params:
                return f"{base}?{'&'.join(filtered_params)}"
            return base
        return url

    @property
    def tortoise_config(self) -> dict:
        """Tortoise ORM configuration."""
        return {
            "connections": {
                "default": self.cleaned_database_url,
            },
            "apps": {
                "models": {
                    "models": ["mintsale.models.sale"],
                    "default_connection": "default",
                },
            },
            "use_tz": True,
            "timezone": "UTC",
        }

    # CORS
    cors_origins: str = '["http://localhost:3000","http://localhost:8080"]'

    @property
    def cors_origins_list(self) -> List[str]:
        return json.loads(self.cors_origins)

    @property
    def public_budget(self) -> int:
        return self.total_supply - self.early_mint_budget - self.dev_mint_budget - self.auction_budget

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


settings = Settings()
