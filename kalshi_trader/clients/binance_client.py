"""
Binance Client - public spot klines used as the reference price feed.
"""

import logging
from typing import List, Optional

import aiohttp

from kalshi_trader.interfaces.exchange_client import Candle, ExchangeAPIError, IPriceFeed
from kalshi_trader.utils.ssl_patch import get_ssl_context

logger = logging.getLogger(__name__)


class BinanceClient(IPriceFeed):
    """Unauthenticated klines reader."""

    def __init__(self, base_url: str = "https://api.binance.com", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=get_ssl_context())
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def fetch_candles(self, symbol: str, interval: str = "15m", limit: int = 100) -> List[Candle]:
        """
        Most recent `limit` candles for `symbol`, oldest first.

        Raises ExchangeAPIError on HTTP or transport failure.
        """
        session = self._get_session()
        try:
            async with session.get(
                f"{self.base_url}/api/v3/klines",
                params={"symbol": symbol, "interval": interval, "limit": limit},
            ) as r:
                r.raise_for_status()
                data = await r.json()
        except aiohttp.ClientResponseError as e:
            raise ExchangeAPIError(f"Binance klines {symbol} failed: {e.message}",
                                   status=e.status, code="binance_error") from e
        except aiohttp.ClientError as e:
            raise ExchangeAPIError(f"Binance klines {symbol} failed: {e}", code="network_error") from e

        # [open_time, open, high, low, close, volume, close_time, ...]
        candles = [
            Candle(
                open_time=int(k[0]),
                open=float(k[1]),
                high=float(k[2]),
                low=float(k[3]),
                close=float(k[4]),
                volume=float(k[5]),
            )
            for k in data
        ]
        logger.debug(f"Fetched {len(candles)} {interval} candles for {symbol}")
        return candles

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
