"""API routes for the trade ledger service."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from kraken_ledger.errors import AuthError, StoreError
from kraken_ledger.models import (
    ApiResponse,
    MAX_PAGE_LIMIT,
    ServiceInfo,
    SyncResult,
    TradeHistoryResult,
    TradeQuery,
    TradeSummary,
)
from kraken_ledger.services import (
    InfoService,
    SummaryService,
    TradeService,
    TradeSyncService,
)
from .dependencies import (
    get_info_service,
    get_summary_service,
    get_sync_service,
    get_trade_service,
    require_credentials,
)

router = APIRouter(prefix="/api/trades")

SideFilter = Literal["buy", "sell", "all"]


def _build_query(
    offset: int = 0,
    limit: int = 50,
    pair: Optional[str] = None,
    side: Optional[str] = None,
    start: Optional[int] = None,
    end: Optional[int] = None,
) -> TradeQuery:
    return TradeQuery(
        offset=offset,
        limit=limit,
        pair=pair or None,
        side=None if side in (None, "all") else side,
        startTime=start,
        endTime=end,
    )


def _sync_response(result: SyncResult):
    """Successful runs are plain envelopes; failed runs keep the result but set a status."""
    if result.success:
        return ApiResponse[SyncResult](result=result)

    if result.errorType == AuthError.__name__:
        status_code = AuthError.status_code
    elif result.errorType == StoreError.__name__:
        status_code = StoreError.status_code
    else:
        status_code = 502

    body = ApiResponse[SyncResult](error=[result.error or "Sync failed"], result=result)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get(
    "",
    response_model=ApiResponse[TradeHistoryResult],
    dependencies=[Depends(require_credentials)],
)
async def get_trades(
    offset: int = Query(0, ge=0, description="Number of trades to skip"),
    limit: int = Query(50, ge=1, le=MAX_PAGE_LIMIT, description="Page size"),
    pair: Optional[str] = Query(None, description="Asset pair filter (substring)", example="XBTUSD"),
    type: Optional[SideFilter] = Query(None, description="buy, sell or all"),
    start: Optional[int] = Query(None, description="Start time in unix seconds (inclusive)"),
    end: Optional[int] = Query(None, description="End time in unix seconds (inclusive)"),
    refresh: bool = Query(False, description="Sync with Kraken before reading"),
    service: TradeService = Depends(get_trade_service),
) -> ApiResponse[TradeHistoryResult]:
    """
    Get synchronized trade history, newest first.

    Syncs with Kraken first when the cache is empty, older than the
    freshness window or `refresh=true`. A failed sync is reported in
    `result.warning` and the cached trades are still returned.
    """
    query = _build_query(offset, limit, pair, type, start, end)
    result = await service.get_trades(query, force_refresh=refresh)
    return ApiResponse[TradeHistoryResult](result=result)


@router.post(
    "/sync",
    response_model=ApiResponse[SyncResult],
    dependencies=[Depends(require_credentials)],
)
async def sync_trades(
    service: TradeSyncService = Depends(get_sync_service),
):
    """
    Trigger an incremental sync from Kraken.

    Returns: newTrades, totalTrades, pagesFetched, error
    """
    result = await service.sync()
    return _sync_response(result)


@router.post(
    "/resync",
    response_model=ApiResponse[SyncResult],
    dependencies=[Depends(require_credentials)],
)
async def resync_trades(
    service: TradeSyncService = Depends(get_sync_service),
):
    """
    Trigger a full resync of all trades from Kraken.

    Responds 409 while another sync is running.
    """
    result = await service.full_resync()
    return _sync_response(result)


@router.get("/info", response_model=ApiResponse[ServiceInfo])
async def get_trades_info(
    service: InfoService = Depends(get_info_service),
) -> ApiResponse[ServiceInfo]:
    """
    Get store statistics, last sync metadata and health.
    """
    return ApiResponse[ServiceInfo](result=await service.get_info())


@router.get("/summary", response_model=ApiResponse[TradeSummary])
async def get_trades_summary(
    pair: Optional[str] = Query(None, description="Asset pair filter (substring)", example="XBTUSD"),
    type: Optional[SideFilter] = Query(None, description="buy, sell or all"),
    start: Optional[int] = Query(None, description="Start time in unix seconds (inclusive)"),
    end: Optional[int] = Query(None, description="End time in unix seconds (inclusive)"),
    service: SummaryService = Depends(get_summary_service),
) -> ApiResponse[TradeSummary]:
    """
    Get volume, fees and realized PnL over the cached trades.

    Reads the local cache only, it never triggers a sync.
    """
    query = _build_query(pair=pair, side=type, start=start, end=end)
    return ApiResponse[TradeSummary](result=service.get_summary(query))
