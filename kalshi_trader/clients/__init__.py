"""Exchange and price-feed clients."""

from kalshi_trader.clients.kalshi_client import KalshiClient
from kalshi_trader.clients.binance_client import BinanceClient

__all__ = [
    'KalshiClient',
    'BinanceClient'
]
