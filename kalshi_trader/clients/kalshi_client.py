"""
Kalshi Client - Implementation of IExchangeClient for Kalshi.

This client provides async access to the Kalshi Trading API v2.

Every request is signed with RSA-PSS (SHA-256) over
``timestamp_ms + METHOD + path``, where the path excludes the query string.
"""

import base64
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import aiohttp
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from kalshi_trader.interfaces.credentials import KalshiCredentials
from kalshi_trader.interfaces.exchange_client import (
    Balance,
    ExchangeAPIError,
    IExchangeClient,
    MarketSnapshot,
    OrderRequest,
    OrderResult,
)
from kalshi_trader.utils.ssl_patch import get_ssl_context

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10


class KalshiClient(IExchangeClient):
    """
    Kalshi exchange client implementing IExchangeClient interface.
    """

    BASE_URL = "https://api.elections.kalshi.com/trade-api/v2"
    DEMO_URL = "https://demo-api.kalshi.co/trade-api/v2"

    def __init__(self, credentials: KalshiCredentials, use_demo: bool = False):
        """
        Initialize Kalshi client.

        Args:
            credentials: KalshiCredentials object with API key ID and RSA private key
            use_demo: If True, use demo environment
        """
        self.credentials = credentials
        self.base_url = self.DEMO_URL if use_demo else self.BASE_URL
        self._path_prefix = urlparse(self.base_url).path
        self._session: Optional[aiohttp.ClientSession] = None
        self._private_key = None
        self._api_key_id: Optional[str] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self._session is not None and self._private_key is not None

    def load_private_key(self) -> None:
        """Load the RSA key and key id from the credentials. Raises ValueError if unusable."""
        is_valid, error = self.credentials.validate()
        if not is_valid:
            raise ValueError(f"Invalid Kalshi credentials: {error}")

        kwargs = self.credentials.to_client_kwargs()
        self._api_key_id = kwargs["api_key_id"]
        self._private_key = serialization.load_pem_private_key(
            kwargs["private_key_pem"].encode("utf-8"),
            password=None,
        )
        logger.info("RSA private key loaded successfully")

    def _sign_request(self, method: str, path: str) -> Dict[str, str]:
        """
        Build the signed auth headers for one request.

        `path` is the full URL path (``/trade-api/v2/...``) without query.
        """
        timestamp = str(int(time.time() * 1000))
        message = f"{timestamp}{method.upper()}{path.split('?')[0]}".encode("utf-8")

        signature = self._private_key.sign(
            message,
            padding.PSS(
                mgf=padding.MGF1(hashes.SHA256()),
                salt_length=padding.PSS.DIGEST_LENGTH,
            ),
            hashes.SHA256(),
        )

        return {
            "Content-Type": "application/json",
            "KALSHI-ACCESS-KEY": self._api_key_id,
            "KALSHI-ACCESS-SIGNATURE": base64.b64encode(signature).decode("utf-8"),
            "KALSHI-ACCESS-TIMESTAMP": timestamp,
        }

    async def connect(self) -> bool:
        """Load the key, open the session and check the exchange answers signed requests."""
        try:
            self.load_private_key()
        except (ValueError, TypeError, OSError) as e:
            logger.error(f"Failed to load Kalshi credentials: {e}")
            return False

        connector = aiohttp.TCPConnector(ssl=get_ssl_context())
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS),
        )

        try:
            status = await self._request("GET", "/exchange/status")
        except ExchangeAPIError as e:
            logger.error(f"Kalshi auth test failed: {e}")
            await self.disconnect()
            return False

        self._connected = True
        logger.info(f"Kalshi client connected ({self.base_url}), "
                    f"trading_active={status.get('trading_active')}")
        return True

    async def disconnect(self) -> None:
        """Disconnect from Kalshi and cleanup session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._connected = False
        logger.info("Kalshi client disconnected")

    async def _request(self, method: str, endpoint: str,
                       params: Optional[Dict[str, Any]] = None,
                       json_body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Signed request; returns the decoded JSON body or raises ExchangeAPIError."""
        if self._session is None or self._private_key is None:
            raise ExchangeAPIError("Not connected to Kalshi", code="not_connected")

        url = f"{self.base_url}{endpoint}"
        headers = self._sign_request(method, f"{self._path_prefix}{endpoint}")
        try:
            async with self._session.request(method, url, headers=headers,
                                             params=params, json=json_body) as resp:
                if resp.status not in (200, 201, 204):
                    try:
                        body = await resp.json(content_type=None)
                    except ValueError:
                        body = await resp.text()
                    raise ExchangeAPIError.from_response(resp.status, body)
                if resp.status == 204:
                    return {}
                try:
                    return await resp.json(content_type=None) or {}
                except ValueError as e:
                    raise ExchangeAPIError(f"{method} {endpoint} returned a non-JSON body",
                                           status=resp.status, code="invalid_response") from e
        except aiohttp.ClientError as e:
            raise ExchangeAPIError(f"{method} {endpoint} failed: {e}", code="network_error") from e

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    async def get_market(self, ticker: str) -> MarketSnapshot:
        data = await self._request("GET", f"/markets/{ticker}")
        market = data.get("market")
        if not market:
            raise ExchangeAPIError(f"Market {ticker} not found", code="not_found")
        return MarketSnapshot.from_api(market)

    async def get_markets(self, series_ticker: str, status: str = "open", limit: int = 100) -> List[MarketSnapshot]:
        data = await self._request("GET", "/markets", params={
            "series_ticker": series_ticker,
            "status": status,
            "limit": limit,
        })
        return [MarketSnapshot.from_api(m) for m in data.get("markets", [])]

    async def get_latest_market(self, series_ticker: str) -> Optional[MarketSnapshot]:
        """The active, unexpired market of the series that closes first."""
        markets = await self.get_markets(series_ticker, status="open")
        now = datetime.now(timezone.utc)
        tradable = [m for m in markets if m.is_active and m.close_time is not None and not m.is_expired(now)]
        if not tradable:
            logger.info(f"No open markets for series {series_ticker}")
            return None
        tradable.sort(key=lambda m: m.close_time)
        return tradable[0]

    async def get_orderbook(self, ticker: str, depth: Optional[int] = None) -> Dict[str, Any]:
        params = {"depth": depth} if depth else None
        data = await self._request("GET", f"/markets/{ticker}/orderbook", params=params)
        return data.get("orderbook") or {}

    # ------------------------------------------------------------------
    # Portfolio
    # ------------------------------------------------------------------

    async def get_balance(self) -> Balance:
        data = await self._request("GET", "/portfolio/balance")
        cents = int(data.get("balance", 0) or 0)
        extra = {k: v for k, v in data.items() if k != "balance"}
        return Balance(available=cents / 100.0, raw_cents=cents, extra=extra)

    async def place_order(self, request: OrderRequest) -> OrderResult:
        """
        Submit an order. Exchange rejections come back as a failed
        OrderResult; transport failures raise ExchangeAPIError.
        """
        payload = request.to_payload()
        logger.debug(f"Submitting order: {payload}")
        try:
            data = await self._request("POST", "/portfolio/orders", json_body=payload)
        except ExchangeAPIError as e:
            if e.code in ("network_error", "not_connected"):
                raise
            logger.error(f"Kalshi rejected order on {request.ticker}: {e}")
            return OrderResult(success=False, error_code=e.code, error_message=e.message)

        order = data.get("order") or {}
        order_id = order.get("order_id")
        if not order_id:
            return OrderResult(success=False, error_code="no_order_id",
                               error_message="Order response carried no order id")
        return OrderResult(success=True, order_id=order_id, status=order.get("status", ""))

    async def cancel_order(self, order_id: str) -> bool:
        """Cancel an open order."""
        try:
            await self._request("DELETE", f"/portfolio/orders/{order_id}")
        except ExchangeAPIError as e:
            logger.error(f"Error cancelling order {order_id}: {e}")
            return False
        return True
