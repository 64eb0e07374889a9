"""
Tests for the technical decision engine and the arbitrage gap check.
"""
import pytest
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kalshi_trader.indicators import MacdSeries, MacdResult, compute_delta
from kalshi_trader.interfaces.exchange_client import Candle, Side
from kalshi_trader.strategies import (
    TechnicalSignals,
    TradeAction,
    analyze_technical_signals,
    find_arbitrage_signal,
    make_final_decision,
)
from kalshi_trader.strategies.technical import STRIKE_CROSS_CONFIDENCE_FLOOR


def bullish_crosses(time_left=10.0):
    """Strike, MACD, VWAP and RSI all crossing up, with upward momentum."""
    prices = [99.0, 99.2, 99.5, 100.3]
    return TechnicalSignals(
        price=prices[-1],
        strike_price=100.0,
        time_left_minutes=time_left,
        rsi=53.0,
        rsi_series=[48.0, 53.0],
        macd=MacdResult(macd=0.1, signal=0.0, hist=0.1, hist_delta=0.3),
        macd_series=MacdSeries(macd=[-0.2, 0.1], signal=[0.0, 0.0], hist=[-0.2, 0.1]),
        vwap=100.1,
        vwap_series=[99.8, 99.9, 100.0, 100.1],
        delta=compute_delta(prices),
        price_series=prices,
    )


# =============================================================================
# Technical engine
# =============================================================================

class TestTechnicalDecision:
    """Test cases for analyze_technical_signals."""

    def test_strike_cross_dominance(self):
        """Aligned bullish crosses through the strike buy YES."""
        decision = analyze_technical_signals(bullish_crosses())

        assert decision.action == TradeAction.BUY_YES
        assert decision.action.side == Side.YES
        assert decision.confidence >= STRIKE_CROSS_CONFIDENCE_FLOOR
        assert len(decision.signals["bullish"]) > len(decision.signals["bearish"])
        assert any("MOMENTUM CONFIRMED" in s for s in decision.signals["bullish"])

    def test_strike_cross_down_buys_no(self):
        """Falling through strike - gap buys NO."""
        signals = TechnicalSignals(
            price=99.5, strike_price=100.0, time_left_minutes=10.0,
            price_series=[100.5, 99.5],
        )
        decision = analyze_technical_signals(signals)

        assert decision.action == TradeAction.BUY_NO
        assert decision.confidence == pytest.approx(0.8)

    def test_strike_cross_confidence_floor(self):
        """A far-from-strike cross is still lifted to the confidence floor."""
        signals = TechnicalSignals(
            price=101.5, strike_price=100.0, time_left_minutes=10.0,
            price_series=[98.0, 101.5],
        )
        decision = analyze_technical_signals(signals)

        assert decision.action == TradeAction.BUY_YES
        assert decision.confidence == pytest.approx(STRIKE_CROSS_CONFIDENCE_FLOOR)

    def test_cross_inside_gap_ignored(self):
        """A move that stays inside the strike gap is not a strike cross."""
        signals = TechnicalSignals(
            price=100.01, strike_price=100.0, time_left_minutes=10.0,
            price_series=[99.99, 100.01],
        )
        decision = analyze_technical_signals(signals, strike_gap_percent=0.015)

        assert decision.action == TradeAction.NO_TRADE
        assert "Insufficient signal strength" in decision.reason

    def test_conflicting_signals(self):
        """One bullish vs one bearish cross without a strike cross is no trade."""
        signals = TechnicalSignals(
            price=100.0, time_left_minutes=10.0,
            price_series=[101.0, 100.0],
            vwap=100.5, vwap_series=[100.5, 100.5],
            macd_series=MacdSeries(macd=[-1.0, 1.0], signal=[0.0, 0.0], hist=[-1.0, 1.0]),
        )
        decision = analyze_technical_signals(signals)

        assert decision.action == TradeAction.NO_TRADE
        assert "Conflicting signals" in decision.reason

    def test_time_gate(self):
        """Three minutes to expiry stops before any scoring."""
        decision = analyze_technical_signals(bullish_crosses(time_left=3.0))

        assert decision.action == TradeAction.NO_TRADE
        assert "Too close to expiry" in decision.reason
        assert decision.confidence == 0.0

    def test_score_gate(self):
        """A lone weak RSI reading does not reach the minimum score."""
        signals = TechnicalSignals(
            price=100.0, time_left_minutes=10.0,
            rsi=57.0, rsi_series=[56.0, 57.0],
        )
        decision = analyze_technical_signals(signals)

        assert decision.action == TradeAction.NO_TRADE
        assert "Insufficient signal strength" in decision.reason

    def test_strong_setup_without_strike(self):
        """Three bullish crosses and nothing bearish buy YES."""
        signals = TechnicalSignals(
            price=101.0, time_left_minutes=10.0,
            price_series=[99.0, 101.0],
            vwap=100.0, vwap_series=[100.0, 100.0],
            macd_series=MacdSeries(macd=[-1.0, 1.0], signal=[0.0, 0.0], hist=[-1.0, 1.0]),
            rsi=55.0, rsi_series=[45.0, 55.0],
        )
        decision = analyze_technical_signals(signals)

        assert decision.action == TradeAction.BUY_YES
        assert "Strong bullish setup" in decision.reason

    def test_deterministic(self):
        """Same bundle in, same decision out."""
        first = analyze_technical_signals(bullish_crosses())
        second = analyze_technical_signals(bullish_crosses())
        assert first == second


class TestTechnicalSignals:
    """Test cases for building the bundle from candles."""

    def test_from_candles(self):
        """All indicators are populated from enough history."""
        candles = [
            Candle(open_time=i * 60000, open=100 + i, high=101 + i, low=99 + i, close=100.5 + i, volume=10)
            for i in range(60)
        ]
        signals = TechnicalSignals.from_candles(candles, strike_price=150.0,
                                                time_left_minutes=12.0)

        assert signals.price == 159.5
        assert signals.rsi is not None
        assert signals.macd is not None
        assert signals.adx is not None
        assert signals.delta is not None
        assert len(signals.vwap_series) == 60

    def test_from_few_candles(self):
        """Short history leaves the slow indicators empty."""
        candles = [Candle(open_time=i, open=100, high=101, low=99, close=100, volume=1) for i in range(5)]
        signals = TechnicalSignals.from_candles(candles)

        assert signals.macd is None
        assert signals.adx is None
        assert signals.rsi is None
        assert signals.delta is not None


# =============================================================================
# Arbitrage
# =============================================================================

class TestArbitrage:
    """Test cases for the YES + NO gap check."""

    def test_profitable_gap(self):
        """YES + NO well below $1 is a signal."""
        signal = find_arbitrage_signal(0.45, 0.48, fee_rate=0.007)
        assert signal is not None
        assert signal.confidence == 0.95

    def test_no_gap(self):
        """Asks summing to $1 or more are not arbitrage."""
        assert find_arbitrage_signal(0.50, 0.50) is None
        assert find_arbitrage_signal(0.55, 0.50) is None

    def test_gap_too_small(self):
        """A 1c gap does not clear the minimum."""
        assert find_arbitrage_signal(0.49, 0.50) is None

    def test_missing_or_extreme_prices(self):
        """Missing quotes and prices at the edges are ignored."""
        assert find_arbitrage_signal(None, 0.40) is None
        assert find_arbitrage_signal(0.01, 0.40) is None

    def test_final_decision_trades(self):
        """A signal with time left is a trade."""
        signal = find_arbitrage_signal(0.45, 0.48)
        decision = make_final_decision([signal], time_left_minutes=10.0)
        assert decision.is_trade

    def test_final_decision_time_gate(self):
        """Under two minutes to expiry nothing trades."""
        signal = find_arbitrage_signal(0.45, 0.48)
        decision = make_final_decision([signal], time_left_minutes=1.5)
        assert not decision.is_trade

    def test_final_decision_no_signals(self):
        """No signals, no trade."""
        assert not make_final_decision([], time_left_minutes=10.0).is_trade


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
