"""
Tests for StrategyRunner.
"""
import time
import pytest
import sys
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kalshi_trader.config import Config
from kalshi_trader.interfaces.exchange_client import (
    Balance,
    Candle,
    ExchangeAPIError,
    MarketSnapshot,
    OrderResult,
    Side,
)
from kalshi_trader.models.order_book import KalshiOrderBook
from kalshi_trader.models.position import MultiLegPosition, Position, StrategyType, TAG_ARBITRAGE_BOTH
from kalshi_trader.services.strategy_runner import StrategyRunner

SERIES = "KXBTC15M"
MARKET = "KXBTC15M-26FEB010800-00"
BOOK = {"yes": [[45, 10]], "no": [[48, 10]]}


def snapshot(opened_minutes_ago=5, yes_ask=0.45, no_ask=0.48):
    now = datetime.now(timezone.utc)
    return MarketSnapshot(
        ticker=MARKET,
        status="active",
        yes_ask=yes_ask,
        no_ask=no_ask,
        strike_price=100.0,
        open_time=now - timedelta(minutes=opened_minutes_ago),
        close_time=now + timedelta(minutes=10),
    )


def flat_candles(n=60, price=100.0):
    return [Candle(open_time=i * 900000, open=price, high=price, low=price, close=price, volume=1.0)
            for i in range(n)]


@pytest.fixture
def config(tmp_path):
    return Config(KALSHI_API_KEY_ID="k", ORDER_LOG_DIR=str(tmp_path))


@pytest.fixture
def client():
    client = AsyncMock()
    client.get_latest_market.return_value = snapshot()
    client.get_market.return_value = snapshot()
    client.get_orderbook.return_value = BOOK
    client.get_balance.return_value = Balance(available=100.0)
    client.place_order.side_effect = [OrderResult(success=True, order_id=f"o-{i}") for i in range(10)]
    return client


@pytest.fixture
def price_feed():
    feed = AsyncMock()
    feed.fetch_candles.return_value = flat_candles()
    return feed


@pytest.fixture
def runner(client, price_feed, config):
    return StrategyRunner(SERIES, "BTCUSDT", client, price_feed, config)


def add_position(runner, market_id, age_minutes):
    entry_time = time.time() - age_minutes * 60
    position = MultiLegPosition(market_id=market_id, entry_time=entry_time)
    position.add_leg(Position.filled(market_id, Side.YES, 1, 0.45, 0.007, TAG_ARBITRAGE_BOTH,
                                     entry_time=entry_time))
    runner.ledger.commit(position, StrategyType.ARBITRAGE)


class TestRunCycle:
    """Test cases for one trading cycle."""

    @pytest.mark.asyncio
    async def test_arbitrage_entry(self, runner, client, price_feed):
        """A YES + NO gap under $1 opens both legs."""
        result = await runner.run()

        assert result.success
        assert result.position.is_two_legged
        assert client.place_order.call_count == 2
        price_feed.fetch_candles.assert_awaited_once_with("BTCUSDT", "15m", 100)

    @pytest.mark.asyncio
    async def test_no_market(self, runner, client, price_feed):
        """No open market ends the cycle early."""
        client.get_latest_market.return_value = None

        assert await runner.run() is None
        price_feed.fetch_candles.assert_not_called()

    @pytest.mark.asyncio
    async def test_fresh_market_skipped(self, runner, client):
        """Markets younger than a minute are not entered."""
        client.get_latest_market.return_value = snapshot(opened_minutes_ago=0.5)

        assert await runner.run() is None
        client.place_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_liquidity_skipped(self, runner, client):
        """An empty side of the book blocks entry."""
        client.get_orderbook.return_value = {"yes": [[45, 10]], "no": []}

        assert await runner.run() is None
        client.place_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_gap_no_trade(self, runner, client):
        """Asks summing to $1 do not trade."""
        client.get_latest_market.return_value = snapshot(yes_ask=0.50, no_ask=0.50)

        assert await runner.run() is None
        client.place_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_errors_end_cycle(self, runner, price_feed):
        """Collaborator failures are logged, not raised."""
        price_feed.fetch_candles.side_effect = ExchangeAPIError("down", code="network_error")

        assert await runner.run() is None

    @pytest.mark.asyncio
    async def test_technical_flat_market(self, client, price_feed, config):
        """Flat prices give the technical engine nothing to trade."""
        config.STRATEGY = "technical"
        runner = StrategyRunner(SERIES, "BTCUSDT", client, price_feed, config)

        assert await runner.run() is None
        client.place_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_exits_before_entries(self, runner, client):
        """A losing position on the current market is closed in the same cycle."""
        entry_time = time.time()
        position = MultiLegPosition(market_id=MARKET, entry_time=entry_time)
        position.add_leg(Position.filled(MARKET, Side.YES, 1, 0.60, 0.007, "Technical-Directional",
                                         entry_time=entry_time))
        runner.ledger.commit(position, StrategyType.TECHNICAL)

        await runner.run()

        first_order = client.place_order.call_args_list[0][0][0]
        assert first_order.side == Side.YES
        assert first_order.action.value == "sell"


class TestRunnerHelpers:
    """Test cases for cleanup, gating and polling."""

    def test_hourly_series_uses_hour_candles(self, client, price_feed, config):
        """Hourly series poll 1h candles and use hourly periods."""
        runner = StrategyRunner("KXBTCD", "BTCUSDT", client, price_feed, config)
        assert runner.candle_interval == "1h"
        assert runner.ledger.period_seconds == 3600

    def test_cleanup_expired_positions(self, runner):
        """Old positions on rolled-over markets and very old ones are dropped."""
        add_position(runner, "KXBTC15M-OLD", age_minutes=31)
        add_position(runner, "KXBTC15M-RECENT", age_minutes=10)
        add_position(runner, MARKET, age_minutes=31)
        runner.ledger.record_failure("KXBTC15M-OLD")

        removed = runner.cleanup_expired_positions(MARKET)

        assert removed == 1
        assert "KXBTC15M-OLD" not in runner.ledger
        assert "KXBTC15M-RECENT" in runner.ledger
        assert MARKET in runner.ledger
        assert runner.ledger.retry_count("KXBTC15M-OLD") == 0

    def test_cleanup_very_old_current(self, runner):
        """Anything past an hour goes, even on the current market."""
        add_position(runner, MARKET, age_minutes=61)
        assert runner.cleanup_expired_positions(MARKET) == 1

    def test_entry_blocker(self, runner):
        """Each precondition has a reason."""
        book = KalshiOrderBook.from_api(MARKET, BOOK)
        assert runner.entry_blocker(snapshot(), book) is None
        assert "ask" in runner.entry_blocker(snapshot(yes_ask=0.995), book)
        assert "missing ask" in runner.entry_blocker(snapshot(yes_ask=None), book)

        closing = snapshot()
        closing.close_time = datetime.now(timezone.utc) + timedelta(minutes=2)
        assert "expiry" in runner.entry_blocker(closing, book)

    @pytest.mark.asyncio
    async def test_polling_stops(self, runner):
        """stop() ends the polling loop."""
        runner.run = AsyncMock(side_effect=lambda: runner.stop())

        await runner.start_polling(0)

        runner.run.assert_awaited_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
