"""
Exchange Client Interface - Abstract base classes for the market and price-feed clients.

The trading core only talks to these interfaces, so the Kalshi and Binance
clients can be swapped for in-memory fakes in tests. Every price that
crosses this boundary is converted to dollars (0 < p < 1 for contracts);
Kalshi's integer-cent fields never leak past `MarketSnapshot.from_api`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any
from enum import Enum


class Side(Enum):
    """Contract side."""
    YES = "yes"
    NO = "no"

    @property
    def opposite(self) -> "Side":
        return Side.NO if self is Side.YES else Side.YES


class OrderAction(Enum):
    """Order action enumeration."""
    BUY = "buy"
    SELL = "sell"


class OrderType(Enum):
    """Order type enumeration."""
    MARKET = "market"
    LIMIT = "limit"


class ExchangeAPIError(Exception):
    """
    Raised by a client when the exchange rejects a request or is unreachable.

    `code` carries Kalshi's machine-readable error code when one was sent
    (e.g. ``insufficient_balance``), ``network_error`` for transport failures.
    """

    def __init__(self, message: str, status: Optional[int] = None, code: str = "unknown"):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    @classmethod
    def from_response(cls, status: int, body: Any) -> "ExchangeAPIError":
        """Build from a Kalshi error body: ``{"error": {"code": ..., "message": ...}}``."""
        code = "unknown"
        message = f"HTTP {status}"
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            code = body["error"].get("code") or code
            message = body["error"].get("message") or message
        elif isinstance(body, str) and body:
            message = f"HTTP {status}: {body[:200]}"
        return cls(message, status=status, code=code)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _cents_to_dollars(raw: Dict[str, Any], cents_key: str) -> Optional[float]:
    """Read a price from either the cents field or its ``*_dollars`` twin. 0 means no quote."""
    cents = raw.get(cents_key)
    if cents is not None:
        value = float(cents) / 100.0
    else:
        dollars = raw.get(f"{cents_key}_dollars")
        if dollars is None:
            return None
        value = float(dollars)
    return value if value > 0 else None


@dataclass
class MarketSnapshot:
    """
    Normalized view of one Kalshi market.

    Asks are in dollars and None when the book has no quote on that side.
    """
    ticker: str
    status: str
    yes_ask: Optional[float] = None
    no_ask: Optional[float] = None
    yes_bid: Optional[float] = None
    no_bid: Optional[float] = None
    strike_price: Optional[float] = None
    open_time: Optional[datetime] = None
    close_time: Optional[datetime] = None
    event_ticker: str = ""
    title: str = ""

    @classmethod
    def from_api(cls, m: Dict[str, Any]) -> "MarketSnapshot":
        strike = m.get("floor_strike")
        return cls(
            ticker=m.get("ticker", ""),
            status=(m.get("status") or "").lower(),
            yes_ask=_cents_to_dollars(m, "yes_ask"),
            no_ask=_cents_to_dollars(m, "no_ask"),
            yes_bid=_cents_to_dollars(m, "yes_bid"),
            no_bid=_cents_to_dollars(m, "no_bid"),
            strike_price=float(strike) if strike is not None else None,
            open_time=parse_timestamp(m.get("open_time")),
            close_time=parse_timestamp(m.get("close_time")),
            event_ticker=m.get("event_ticker", ""),
            title=m.get("title", ""),
        )

    @property
    def is_active(self) -> bool:
        """Only open/active markets accept orders."""
        return self.status in ("open", "active")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.close_time is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.close_time <= now

    def minutes_to_close(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.close_time is None:
            return None
        now = now or datetime.now(timezone.utc)
        return max(0.0, (self.close_time - now).total_seconds() / 60.0)

    def minutes_since_open(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.open_time is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (now - self.open_time).total_seconds() / 60.0


@dataclass
class OrderRequest:
    """A single order as sent to Kalshi's create-order endpoint."""
    ticker: str
    side: Side
    action: OrderAction
    count: int
    order_type: OrderType = OrderType.MARKET
    price: float = 0.0  # dollars per contract, 0 for market sells
    buy_max_cost: Optional[int] = None  # cents, total for all contracts
    client_order_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ticker": self.ticker,
            "side": self.side.value,
            "action": self.action.value,
            "count": int(self.count),
            "type": self.order_type.value,
        }
        # Kalshi wants exactly one price field, as a fixed-point dollar string
        if 0 < self.price < 1.0:
            payload[f"{self.side.value}_price_dollars"] = f"{self.price:.4f}"
        if self.buy_max_cost is not None:
            payload["buy_max_cost"] = self.buy_max_cost
        if self.client_order_id:
            payload["client_order_id"] = self.client_order_id
        return payload


@dataclass
class OrderResult:
    """Result of an order submission."""
    success: bool
    order_id: Optional[str] = None
    status: str = ""
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class Candle:
    """One OHLCV bar from the reference price feed."""
    open_time: int  # epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass
class Balance:
    """Available cash, in dollars."""
    available: float
    raw_cents: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)


class IExchangeClient(ABC):
    """
    Abstract base class for the prediction-market exchange.

    Read methods raise ExchangeAPIError on failure. `place_order` reports
    rejections through OrderResult and only raises for transport errors.
    """

    @abstractmethod
    async def get_market(self, ticker: str) -> MarketSnapshot:
        """Fetch a single market by ticker."""

    @abstractmethod
    async def get_markets(self, series_ticker: str, status: str = "open", limit: int = 100) -> List[MarketSnapshot]:
        """List markets of a series."""

    @abstractmethod
    async def get_latest_market(self, series_ticker: str) -> Optional[MarketSnapshot]:
        """The tradable market of a series that closes soonest, or None."""

    @abstractmethod
    async def get_orderbook(self, ticker: str, depth: Optional[int] = None) -> Dict[str, Any]:
        """Raw ``{"yes": [[cents, qty], ...], "no": [...]}`` ladders."""

    @abstractmethod
    async def get_balance(self) -> Balance:
        """Available balance."""

    @abstractmethod
    async def place_order(self, request: OrderRequest) -> OrderResult:
        """Submit an order."""

    @abstractmethod
    async def cancel_order(self, order_id: str) -> bool:
        """Cancel an open order."""


class IPriceFeed(ABC):
    """Reference spot-price feed used for the technical indicators."""

    @abstractmethod
    async def fetch_candles(self, symbol: str, interval: str = "15m", limit: int = 100) -> List[Candle]:
        """Most recent candles, oldest first."""
