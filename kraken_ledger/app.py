"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kraken_ledger.config import Config
from kraken_ledger.database import TradeStore
from kraken_ledger.datasources import KrakenDataSource, TradeHistorySource
from kraken_ledger.errors import LedgerError
from kraken_ledger.api import router
from kraken_ledger.api.dependencies import Services, set_services
from kraken_ledger.models import ApiResponse
from kraken_ledger.services import (
    InfoService,
    RateLimiter,
    SummaryService,
    SyncContext,
    SyncSettings,
    TradeService,
    TradeSyncService,
    get_tier,
)

logger = logging.getLogger(__name__)


def build_services(
    config: Config,
    datasource: Optional[TradeHistorySource] = None,
    store: Optional[TradeStore] = None,
    limiter: Optional[RateLimiter] = None,
) -> Services:
    """
    Wire the store, data source, rate limiter and services together.

    Args:
        config: Application configuration
        datasource: Trade history source, defaults to the Kraken API
        store: Trade store, defaults to the SQLite file from config
        limiter: Rate limiter, defaults to the configured account tier

    Returns:
        Services container
    """
    if datasource is None:
        datasource = KrakenDataSource(
            api_key=config.api_key,
            api_private_key=config.api_private_key,
            api_url=config.kraken_api_url,
            timeout=config.request_timeout,
        )
    if store is None:
        store = TradeStore(config.database_path)
    if limiter is None:
        limiter = RateLimiter(get_tier(config.account_tier))

    sync_service = TradeSyncService(SyncContext(
        source=datasource,
        store=store,
        limiter=limiter,
        settings=SyncSettings(
            max_attempts=config.max_attempts,
            max_rate_limit_retries=config.max_rate_limit_retries,
        ),
    ))

    return Services(
        config=config,
        store=store,
        datasource=datasource,
        limiter=limiter,
        sync_service=sync_service,
        trade_service=TradeService(
            store,
            sync_service,
            freshness_window=config.freshness_window_seconds,
        ),
        summary_service=SummaryService(store),
        info_service=InfoService(
            store,
            sync_service,
            limiter,
            datasource,
            has_credentials=config.has_credentials,
        ),
    )


def _error_response(status_code: int, messages: list[str]) -> JSONResponse:
    body = ApiResponse[None](error=messages, result=None)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def register_exception_handlers(app: FastAPI) -> None:
    """Convert every error into the {"error": [...], "result": null} envelope."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _error_response(exc.status_code, [exc.message])

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = [
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        ]
        return _error_response(422, messages or ["Invalid request"])

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, [str(exc.detail)])

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error for {request.method} {request.url.path}")
        return _error_response(500, ["Internal server error"])


def create_app(
    config: Config | None = None,
    services: Services | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application configuration. If None, loads from environment.
        services: Pre-built services (tests inject fakes). If None, built from config.

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = services.config if services is not None else Config.from_env()
    if services is None:
        services = build_services(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("Starting Kraken Trade Ledger API")
        logger.info(f"Using Kraken API: {config.kraken_api_url}")
        logger.info(f"Trade cache: {config.database_path}")
        if not config.has_credentials:
            logger.warning("Kraken API credentials are not configured, sync endpoints will return 401")

        set_services(services)

        yield

        # Shutdown
        logger.info("Shutting down...")
        await services.datasource.close()
        services.store.close()
        set_services(None)

    app = FastAPI(
        title="Kraken Trade Ledger API",
        description="Cached Kraken trade history with incremental sync",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Include API routes
    app.include_router(router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app
