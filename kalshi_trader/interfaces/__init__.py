"""Interfaces between the trading core and the outside world."""

from kalshi_trader.interfaces.exchange_client import (
    IExchangeClient,
    IPriceFeed,
    MarketSnapshot,
    OrderRequest,
    OrderResult,
    Candle,
    Balance,
    Side,
    OrderAction,
    OrderType,
    ExchangeAPIError,
)
from kalshi_trader.interfaces.credentials import KalshiCredentials

__all__ = [
    'IExchangeClient',
    'IPriceFeed',
    'MarketSnapshot',
    'OrderRequest',
    'OrderResult',
    'Candle',
    'Balance',
    'Side',
    'OrderAction',
    'OrderType',
    'ExchangeAPIError',
    'KalshiCredentials',
]
