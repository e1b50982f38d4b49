import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tortoise.contrib.fastapi import RegisterTortoise

from mintsale.core.config import settings
from mintsale.core.errors import SaleError
from mintsale.api import health, sale_router
from mintsale.schemas.sale import ErrorResponse
from mintsale.services.sale_service import sale_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    async with RegisterTortoise(
        app,
        config=settings.tortoise_config,
        generate_schemas=settings.generate_schemas,
        add_exception_handlers=True,
    ):
        engine = await sale_service.load()
        logger.info(f"Sale engine started in phase {engine.current_phase().value}")
        yield


app = FastAPI(
    title=settings.app_name,
    description="""
    Mintsale Auction API

    This API provides endpoints for:
    - Buying items in the two-currency Dutch auction, the allowlist presale and the public sale
    - Claiming a fair share of unsold supply after the sale closes
    - Claiming the price-equalization rebate
    - Querying prices, phases, buyers, pools and items
    - Owner administration of the schedule, prices, allowlist and metadata

    ## Sale Flow

    1. Wallet calls `GET /api/v1/sale/auth/message` and signs the returned message
    2. Wallet calls `POST /api/v1/sale/auth/session` with the signature to get a bearer token
    3. During the auction, `POST /api/v1/sale/auction-mint` buys at the current tier price
    4. Allowlisted wallets buy with a Merkle proof via `POST /api/v1/sale/allowlist-mint`
    5. After every window closes, auction buyers call `POST /api/v1/sale/mint-remaining`
       and `POST /api/v1/sale/rebate`
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SaleError)
async def sale_error_handler(request: Request, exc: SaleError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.code, detail=exc.message).model_dump(),
    )


# Include routers
app.include_router(health.router)
app.include_router(sale_router.router, prefix=settings.api_v1_prefix)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "api": f"{settings.api_v1_prefix}/sale",
    }
