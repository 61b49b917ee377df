"""Kraken REST API data source implementation."""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from kraken_ledger.errors import (
    AuthError,
    FetchError,
    ProtocolError,
    RateLimitError,
    TransientError,
)
from kraken_ledger.models import ExchangeStatus, KrakenTrade, TradePage
from .auth import NonceGenerator, get_kraken_signature
from .base import TradeHistoryParams, TradeHistorySource

logger = logging.getLogger(__name__)

# API constants
MAINNET_API_URL = "https://api.kraken.com"
TRADES_HISTORY_PATH = "/0/private/TradesHistory"
SYSTEM_STATUS_PATH = "/0/public/SystemStatus"
TRADES_PER_PAGE = 50
REQUEST_TIMEOUT = 30.0

# Kraken reports failures as strings in the "error" array of a 200 response
AUTH_ERROR_MARKERS = (
    "EAPI:Invalid key",
    "EAPI:Invalid signature",
    "EAPI:Bad request",
    "EGeneral:Permission denied",
)
RATE_LIMIT_MARKERS = (
    "rate limit",
    "too many requests",
    "temporary lockout",
)
TRANSIENT_MARKERS = (
    "EService:",
    "EAPI:Invalid nonce",
)


def classify_kraken_error(messages: list[str]) -> FetchError:
    """
    Map Kraken error strings to a typed fetch error.

    Args:
        messages: Contents of the response "error" array

    Returns:
        The FetchError subclass instance the sync service should react to
    """
    text = ", ".join(messages)
    lowered = text.lower()

    if any(marker.lower() in lowered for marker in RATE_LIMIT_MARKERS):
        return RateLimitError(f"Kraken API error: {text}")
    if any(marker in text for marker in AUTH_ERROR_MARKERS):
        return AuthError(f"Kraken API error: {text}")
    if any(marker in text for marker in TRANSIENT_MARKERS):
        return TransientError(f"Kraken API error: {text}")
    return ProtocolError(f"Kraken API error: {text}")


class KrakenDataSource(TradeHistorySource):
    """
    Data source implementation using Kraken's private TradesHistory endpoint.

    Limitations:
    - Kraken returns at most 50 trades per request, most recent first
    - Every private call needs a nonce strictly greater than the last one
      sent with the same key, so a key must not be shared across processes
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_private_key: Optional[str],
        api_url: str = MAINNET_API_URL,
        timeout: float = REQUEST_TIMEOUT,
        nonce: Optional[NonceGenerator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Kraken data source.

        Args:
            api_key: Public API key, sent in the API-Key header
            api_private_key: Base64 private key, only used for signing
            api_url: Base URL for the Kraken API
            timeout: Request timeout in seconds
            nonce: Nonce generator, one per API key
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_url = api_url
        self.timeout = timeout
        self._api_key = api_key
        self._api_private_key = api_private_key
        self._nonce = nonce or NonceGenerator()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures and HTTP status codes."""
        client = await self._get_client()

        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientError(f"Request to {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientError(f"Request to {path} failed: {e}") from e
        except httpx.RequestError as e:
            # Undecodable body, redirect loop and the like
            raise ProtocolError(f"Bad response from {path}: {e}") from e

        status = response.status_code
        if status == 429:
            raise RateLimitError(f"Rate limited (429) on {path}")
        if status in (401, 403):
            raise AuthError(f"HTTP {status} for {path}")
        if status >= 500:
            raise TransientError(f"HTTP {status} for {path}")
        if status >= 400:
            raise ProtocolError(f"HTTP {status} for {path}")
        return response

    @staticmethod
    def _parse_result(response: httpx.Response, path: str) -> dict:
        """Unwrap Kraken's {"error": [...], "result": {...}} envelope."""
        try:
            body = response.json()
        except ValueError as e:
            raise ProtocolError(f"Malformed JSON from {path}: {e}") from e

        if not isinstance(body, dict):
            raise ProtocolError(f"Unexpected response type from {path}: {type(body).__name__}")

        errors = body.get("error") or []
        if errors:
            raise classify_kraken_error([str(e) for e in errors])

        result = body.get("result")
        if not isinstance(result, dict):
            raise ProtocolError(f"No result data from {path}")
        return result

    async def _private_request(self, path: str, payload: dict[str, Any]) -> dict:
        """Sign and send a POST to a private endpoint."""
        if not self._api_key or not self._api_private_key:
            raise AuthError("Kraken API credentials are not configured")

        data = {"nonce": self._nonce.next(), **payload}
        try:
            signature = get_kraken_signature(path, data, self._api_private_key)
        except ValueError as e:
            # binascii.Error from a private key that is not valid base64
            raise AuthError(f"Invalid API private key: {e}") from e

        response = await self._send(
            "POST",
            path,
            data=data,
            headers={"API-Key": self._api_key, "API-Sign": signature},
        )
        return self._parse_result(response, path)

    async def fetch_trades_page(self, params: TradeHistoryParams) -> TradePage:
        """
        Fetch one page of trade history.

        Uses the TradesHistory endpoint with an offset cursor and an optional
        exclusive start time.
        """
        payload: dict[str, Any] = {
            "type": params.trade_type,
            "trades": str(params.include_trades).lower(),
            "consolidate_taker": str(params.consolidate_taker).lower(),
            "ledgers": str(params.include_ledgers).lower(),
            "ofs": params.offset,
        }
        if params.start is not None:
            payload["start"] = params.start
        if params.end is not None:
            payload["end"] = params.end

        result = await self._private_request(TRADES_HISTORY_PATH, payload)

        raw_trades = result.get("trades") or {}
        if not isinstance(raw_trades, dict):
            raise ProtocolError("TradesHistory result 'trades' is not a mapping")

        count = result.get("count", 0)
        if not isinstance(count, int) or isinstance(count, bool):
            raise ProtocolError(f"TradesHistory result 'count' is not an integer: {count!r}")

        try:
            trades = {
                trade_id: KrakenTrade.model_validate(raw).to_trade(trade_id)
                for trade_id, raw in raw_trades.items()
            }
        except ValidationError as e:
            raise ProtocolError(f"Malformed trade in TradesHistory result: {e}") from e

        logger.debug(
            f"TradesHistory ofs={params.offset} start={params.start}: "
            f"{len(trades)} trades, count={count}"
        )
        return TradePage(trades=trades, count=count)

    async def get_system_status(self) -> ExchangeStatus:
        """Get the exchange status from the public SystemStatus endpoint."""
        try:
            response = await self._send("GET", SYSTEM_STATUS_PATH)
            result = self._parse_result(response, SYSTEM_STATUS_PATH)
            return ExchangeStatus.model_validate(result)
        except (FetchError, ValidationError) as e:
            logger.warning(f"Could not determine Kraken system status: {e}")
            return ExchangeStatus(status="unknown")

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
