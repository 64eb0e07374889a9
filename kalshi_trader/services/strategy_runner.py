"""
Strategy Runner - one polling loop per Kalshi series.

Each cycle: find the live market, housekeep the ledger, pull candles and
the order book, manage exits, then decide on and place a new entry. Exits
always run before entries.
"""
import asyncio
import logging
from typing import List, Optional

from kalshi_trader.interfaces.exchange_client import Candle, IExchangeClient, IPriceFeed, MarketSnapshot
from kalshi_trader.models.order_book import KalshiOrderBook
from kalshi_trader.models.result import ExecutionResult
from kalshi_trader.services.exit_evaluator import ExitEvaluator
from kalshi_trader.services.order_executor import OrderExecutor
from kalshi_trader.services.order_logger import OrderLogger
from kalshi_trader.services.position_ledger import PositionLedger
from kalshi_trader.strategies.arbitrage import find_arbitrage_signal, make_final_decision
from kalshi_trader.strategies.base import TradeDecision
from kalshi_trader.strategies.technical import TechnicalSignals, analyze_technical_signals

logger = logging.getLogger(__name__)

OTHER_MARKET_MAX_AGE_MINUTES = 30
ANY_MARKET_MAX_AGE_MINUTES = 60
MIN_MARKET_AGE_MINUTES = 1.0
MIN_ASK = 0.01
MAX_ASK = 0.99
CANDLE_LIMIT = 100


class StrategyRunner:
    """
    Trades one series. Owns its ledger, so limits and retries are per asset.
    """

    def __init__(self,
                 series_ticker: str,
                 binance_symbol: str,
                 client: IExchangeClient,
                 price_feed: IPriceFeed,
                 config,
                 ledger: Optional[PositionLedger] = None,
                 executor: Optional[OrderExecutor] = None):
        self.series_ticker = series_ticker
        self.binance_symbol = binance_symbol
        self.client = client
        self.price_feed = price_feed
        self.config = config
        self.ledger = ledger or PositionLedger.from_config(config, series_ticker)
        self.executor = executor or OrderExecutor(
            client,
            self.ledger,
            ExitEvaluator.from_config(config),
            order_logger=OrderLogger(config.ORDER_LOG_DIR),
            fee_rate=config.TAKER_FEE_RATE,
        )
        self.candle_interval = "1h" if series_ticker.upper().endswith("D") else "15m"
        self._running = False

    async def run(self) -> Optional[ExecutionResult]:
        """One trading cycle. Returns the entry result when an entry was attempted."""
        try:
            return await self._run_cycle()
        except Exception as e:
            logger.error(f"[{self.series_ticker}] Cycle failed: {e}")
            return None

    async def _run_cycle(self) -> Optional[ExecutionResult]:
        market = await self.client.get_latest_market(self.series_ticker)
        if market is None:
            logger.info(f"[{self.series_ticker}] No open market found")
            return None

        self.ledger.auto_cleanup(self.config.AUTO_CLEAR_MINUTES)
        self.cleanup_expired_positions(market.ticker)

        candles, raw_book = await asyncio.gather(
            self.price_feed.fetch_candles(self.binance_symbol, self.candle_interval, CANDLE_LIMIT),
            self.client.get_orderbook(market.ticker),
        )
        book = KalshiOrderBook.from_api(market.ticker, raw_book)
        time_left = market.minutes_to_close()

        signals = TechnicalSignals.from_candles(
            candles,
            strike_price=market.strike_price,
            time_left_minutes=time_left,
        )

        await self.executor.monitor_positions(
            market.yes_ask,
            market.no_ask,
            price_history=signals.price_series,
            current_ticker=market.ticker,
        )

        decision = self.decide(market, signals, candles)
        logger.info(f"[{self.series_ticker}] {market.ticker}: {decision.action.value} "
                    f"({decision.confidence:.0%}) {decision.reason}")
        if not decision.is_trade:
            return None

        blocked = self.entry_blocker(market, book)
        if blocked:
            logger.info(f"[{self.series_ticker}] Entry skipped on {market.ticker}: {blocked}")
            return None

        if self.config.is_technical:
            result = await self.executor.execute(
                market.ticker, market.yes_ask, market.no_ask,
                force_side=decision.action.side,
                strike_price=market.strike_price,
            )
        else:
            both_sides = (market.yes_ask + market.no_ask) * (1 + self.config.TAKER_FEE_RATE) < 1.0
            result = await self.executor.execute(
                market.ticker, market.yes_ask, market.no_ask, both_sides=both_sides,
            )

        if result.success:
            logger.info(f"[{self.series_ticker}] Entered {market.ticker}")
        else:
            logger.info(f"[{self.series_ticker}] No entry on {market.ticker}: {result.error}")
        return result

    def decide(self, market: MarketSnapshot, signals: TechnicalSignals,
               candles: List[Candle]) -> TradeDecision:
        if self.config.is_technical:
            if not candles:
                return TradeDecision.no_trade("No candle data")
            return analyze_technical_signals(signals, self.config.STRIKE_GAP_PERCENT)

        signal = find_arbitrage_signal(market.yes_ask, market.no_ask, self.config.TAKER_FEE_RATE)
        return make_final_decision([signal] if signal else [], market.minutes_to_close() or 0.0)

    def entry_blocker(self, market: MarketSnapshot, book: KalshiOrderBook) -> Optional[str]:
        """Reason the market is not fit for a new entry, or None."""
        if not market.is_active:
            return f"market status is '{market.status}'"

        time_left = market.minutes_to_close()
        if time_left is None or time_left < self.config.MIN_TIME_TO_EXPIRY_MIN:
            return f"less than {self.config.MIN_TIME_TO_EXPIRY_MIN:.0f} min to expiry"

        if market.yes_ask is None or market.no_ask is None:
            return "missing ask prices"

        age = market.minutes_since_open()
        if age is not None and age < MIN_MARKET_AGE_MINUTES:
            return f"market opened {age * 60:.0f}s ago"

        for side in ("yes", "no"):
            if book.total_liquidity(side) < 1:
                return f"no {side.upper()} liquidity"
            if book.depth_at_best(side) < 1:
                return f"no {side.upper()} depth at best level"

        for label, ask in (("YES", market.yes_ask), ("NO", market.no_ask)):
            if not (MIN_ASK < ask < MAX_ASK):
                return f"{label} ask ${ask:.2f} outside tradable range"

        return None

    def cleanup_expired_positions(self, current_ticker: str) -> int:
        """Drop positions left on rolled-over markets, then stale retry state."""
        now = self.ledger.now()
        removed = 0
        for position in list(self.ledger.list_open()):
            age_minutes = (now - position.entry_time) / 60
            other_market = position.market_id != current_ticker
            if (other_market and age_minutes > OTHER_MARKET_MAX_AGE_MINUTES) \
                    or age_minutes > ANY_MARKET_MAX_AGE_MINUTES:
                self.ledger.remove(position.market_id)
                removed += 1
        self.ledger.clear_retries_except(current_ticker)
        return removed

    async def start_polling(self, interval: float = 5.0) -> None:
        self._running = True
        logger.info(f"[{self.series_ticker}] Polling every {interval}s "
                    f"({self.config.STRATEGY}, {self.binance_symbol} {self.candle_interval})")
        while self._running:
            await self.run()
            await asyncio.sleep(interval)
        logger.info(f"[{self.series_ticker}] Polling stopped")

    def stop(self) -> None:
        self._running = False
