"""
Tests for the Kalshi and Binance clients and the boundary types they produce.
"""
import base64
import pytest
import sys
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from kalshi_trader.clients import BinanceClient, KalshiClient
from kalshi_trader.interfaces import (
    ExchangeAPIError,
    KalshiCredentials,
    MarketSnapshot,
    OrderAction,
    OrderRequest,
    Side,
)
from kalshi_trader.models.result import ErrorKind
from kalshi_trader.services.exit_evaluator import ExitEvaluator
from kalshi_trader.services.order_executor import OrderExecutor
from kalshi_trader.services.position_ledger import PositionLedger


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def client(rsa_key):
    pem = rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    client = KalshiClient(KalshiCredentials(api_key_id="key-id", private_key_pem=pem))
    client.load_private_key()
    return client


def market(ticker, status="active", minutes_left=10):
    close_time = datetime.now(timezone.utc) + timedelta(minutes=minutes_left)
    return MarketSnapshot(ticker=ticker, status=status, close_time=close_time)


class FakeResponse:
    """Minimal aiohttp response stand-in."""

    def __init__(self, data, status=200):
        self.data = data
        self.status = status

    def raise_for_status(self):
        pass

    async def json(self, **kwargs):
        if isinstance(self.data, Exception):
            raise self.data
        return self.data

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return False


# =============================================================================
# Kalshi client
# =============================================================================

class TestKalshiSigning:
    """Test cases for request signing."""

    def test_signature_verifies(self, client, rsa_key):
        """Signature covers timestamp + method + path without the query."""
        headers = client._sign_request("GET", "/trade-api/v2/portfolio/balance?limit=5")

        assert headers["KALSHI-ACCESS-KEY"] == "key-id"
        timestamp = headers["KALSHI-ACCESS-TIMESTAMP"]
        assert timestamp.isdigit() and len(timestamp) == 13

        message = f"{timestamp}GET/trade-api/v2/portfolio/balance".encode()
        rsa_key.public_key().verify(
            base64.b64decode(headers["KALSHI-ACCESS-SIGNATURE"]),
            message,
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH),
            hashes.SHA256(),
        )

    def test_demo_url(self):
        """Demo flag switches the base URL."""
        client = KalshiClient(KalshiCredentials(), use_demo=True)
        assert client.base_url == KalshiClient.DEMO_URL

    def test_invalid_credentials(self):
        """Loading without a key fails."""
        with pytest.raises(ValueError):
            KalshiClient(KalshiCredentials(api_key_id="k")).load_private_key()


class TestKalshiRequests:
    """Test cases for the request methods, with the transport mocked."""

    @pytest.mark.asyncio
    async def test_not_connected(self, client):
        """Requests without a session raise."""
        with pytest.raises(ExchangeAPIError) as exc:
            await client.get_balance()
        assert exc.value.code == "not_connected"

    @pytest.mark.asyncio
    async def test_non_json_body(self, client):
        """A 200 with an HTML body raises ExchangeAPIError."""
        client._session = MagicMock()
        client._session.request.return_value = FakeResponse(ValueError("Expecting value"))

        with pytest.raises(ExchangeAPIError) as exc:
            await client.get_market("KXBTC15M-26FEB010800-00")
        assert exc.value.code == "invalid_response"
        assert exc.value.status == 200

    @pytest.mark.asyncio
    async def test_non_json_body_during_entry(self, client):
        """A gateway page during the market check becomes a failed result."""
        client._session = MagicMock()
        client._session.request.return_value = FakeResponse(ValueError("Expecting value"))
        executor = OrderExecutor(client, PositionLedger(), ExitEvaluator())

        result = await executor.execute("KXBTC15M-26FEB010800-00", 0.45, 0.48, both_sides=True)

        assert result.error.kind == ErrorKind.MARKET_UNAVAILABLE
        assert result.error.code == "invalid_response"

    @pytest.mark.asyncio
    async def test_get_balance(self, client):
        """Balance cents become dollars."""
        with patch.object(client, "_request", AsyncMock(return_value={"balance": 12345})):
            balance = await client.get_balance()
        assert balance.available == pytest.approx(123.45)
        assert balance.raw_cents == 12345

    @pytest.mark.asyncio
    async def test_place_order_success(self, client):
        """A created order returns its id."""
        response = {"order": {"order_id": "o-1", "status": "executed"}}
        with patch.object(client, "_request", AsyncMock(return_value=response)) as request:
            result = await client.place_order(OrderRequest("T", Side.YES, OrderAction.BUY, 1, price=0.45))

        assert result.success
        assert result.order_id == "o-1"
        assert request.call_args.kwargs["json_body"]["yes_price_dollars"] == "0.4500"

    @pytest.mark.asyncio
    async def test_place_order_rejected(self, client):
        """Exchange rejections come back as failed results."""
        error = ExchangeAPIError("not enough", status=400, code="insufficient_balance")
        with patch.object(client, "_request", AsyncMock(side_effect=error)):
            result = await client.place_order(OrderRequest("T", Side.NO, OrderAction.BUY, 1, price=0.5))

        assert result.success is False
        assert result.error_code == "insufficient_balance"

    @pytest.mark.asyncio
    async def test_place_order_network_error(self, client):
        """Transport errors propagate."""
        error = ExchangeAPIError("timeout", code="network_error")
        with patch.object(client, "_request", AsyncMock(side_effect=error)):
            with pytest.raises(ExchangeAPIError):
                await client.place_order(OrderRequest("T", Side.NO, OrderAction.SELL, 1))

    @pytest.mark.asyncio
    async def test_latest_market(self, client):
        """The active unexpired market closing first wins."""
        markets = [
            market("LATER", minutes_left=30),
            market("CLOSED", status="closed", minutes_left=5),
            market("EXPIRED", minutes_left=-1),
            market("NEXT", minutes_left=10),
        ]
        with patch.object(client, "get_markets", AsyncMock(return_value=markets)):
            latest = await client.get_latest_market("KXBTC15M")
        assert latest.ticker == "NEXT"

    @pytest.mark.asyncio
    async def test_no_latest_market(self, client):
        """Nothing tradable returns None."""
        with patch.object(client, "get_markets", AsyncMock(return_value=[])):
            assert await client.get_latest_market("KXBTC15M") is None

    @pytest.mark.asyncio
    async def test_cancel_order(self, client):
        """Cancel reports failure instead of raising."""
        with patch.object(client, "_request", AsyncMock(side_effect=ExchangeAPIError("gone", status=404))):
            assert await client.cancel_order("o-1") is False


# =============================================================================
# Boundary types
# =============================================================================

class TestBoundaryTypes:
    """Test cases for MarketSnapshot, OrderRequest and ExchangeAPIError."""

    def test_market_from_api_cents(self):
        """Cent prices become dollars; zero means no quote."""
        snapshot = MarketSnapshot.from_api({
            "ticker": "KXBTC15M-X",
            "status": "Active",
            "yes_ask": 45,
            "no_ask": 0,
            "floor_strike": 97000.5,
            "close_time": "2026-01-01T00:15:00Z",
        })
        assert snapshot.yes_ask == pytest.approx(0.45)
        assert snapshot.no_ask is None
        assert snapshot.strike_price == 97000.5
        assert snapshot.is_active
        assert snapshot.close_time.tzinfo is not None

    def test_market_from_api_dollars(self):
        """The *_dollars fields are read when cents are absent."""
        snapshot = MarketSnapshot.from_api({"ticker": "T", "status": "open", "no_ask_dollars": "0.5200"})
        assert snapshot.no_ask == pytest.approx(0.52)

    def test_market_timing(self):
        """Expiry and minutes to close."""
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        snapshot = MarketSnapshot(ticker="T", status="open",
                                  open_time=now - timedelta(minutes=3),
                                  close_time=now + timedelta(minutes=12))
        assert snapshot.minutes_to_close(now) == pytest.approx(12.0)
        assert snapshot.minutes_since_open(now) == pytest.approx(3.0)
        assert snapshot.is_expired(now) is False
        assert snapshot.is_expired(now + timedelta(minutes=12)) is True

    def test_order_payload(self):
        """Payload carries one fixed-point price field."""
        payload = OrderRequest("T", Side.NO, OrderAction.BUY, 2, price=0.3, buy_max_cost=64).to_payload()
        assert payload == {
            "ticker": "T",
            "side": "no",
            "action": "buy",
            "count": 2,
            "type": "market",
            "no_price_dollars": "0.3000",
            "buy_max_cost": 64,
        }

    def test_error_from_response(self):
        """Kalshi error bodies are parsed into code and message."""
        error = ExchangeAPIError.from_response(400, {"error": {"code": "market_closed", "message": "closed"}})
        assert error.code == "market_closed"
        assert error.message == "closed"
        assert str(error) == "[market_closed] closed"

    def test_error_from_text(self):
        """Non-JSON bodies keep the text."""
        error = ExchangeAPIError.from_response(502, "Bad Gateway")
        assert error.code == "unknown"
        assert "Bad Gateway" in error.message


# =============================================================================
# Binance client
# =============================================================================

class TestBinanceClient:
    """Test cases for kline parsing."""

    @pytest.mark.asyncio
    async def test_fetch_candles(self):
        """Klines rows become candles, oldest first."""
        rows = [
            [1700000000000, "100.0", "101.0", "99.0", "100.5", "12.5", 1700000899999],
            [1700000900000, "100.5", "102.0", "100.0", "101.5", "8.0", 1700001799999],
        ]
        session = MagicMock()
        session.closed = False
        session.get.return_value = FakeResponse(rows)

        feed = BinanceClient()
        feed._session = session
        candles = await feed.fetch_candles("BTCUSDT", "15m", 2)

        assert [c.close for c in candles] == [100.5, 101.5]
        assert candles[0].open_time == 1700000000000
        assert candles[1].volume == 8.0
        assert session.get.call_args.kwargs["params"] == {"symbol": "BTCUSDT", "interval": "15m", "limit": 2}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
