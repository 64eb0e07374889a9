"""
Arbitrage-gap strategy.

A binary market pays exactly $1.00 to one side at settlement, so buying
both YES and NO for less than $1.00 after fees locks in the difference.
"""
from typing import List, Optional

from kalshi_trader.strategies.base import StrategySignal, TradeAction, TradeDecision

ARBITRAGE_SIGNAL = "Arbitrage"
MIN_PRICE = 0.02
MAX_PRICE = 0.98
MIN_GAP = 0.02
MIN_NET_PROFIT_CENTS = 0.5
MIN_CONFIDENCE = 0.9
MIN_MINUTES_TO_EXPIRY = 2.0


def find_arbitrage_signal(yes_ask: Optional[float], no_ask: Optional[float],
                          fee_rate: float = 0.007) -> Optional[StrategySignal]:
    """Return a signal when YES + NO asks leave a profit after fees, else None."""
    yes = yes_ask or 0.0
    no = no_ask or 0.0
    if not (MIN_PRICE < yes < MAX_PRICE and MIN_PRICE < no < MAX_PRICE):
        return None

    implied_total = yes + no
    gap = abs(1.0 - implied_total)
    if gap <= MIN_GAP:
        return None

    fees_cents = (yes + no) * fee_rate * 100
    net_profit_cents = gap * 100 - fees_cents
    if net_profit_cents <= MIN_NET_PROFIT_CENTS or implied_total >= 1.0:
        return None

    return StrategySignal(
        name=ARBITRAGE_SIGNAL,
        action=TradeAction.BUY_YES,  # both sides are bought; the action only flags a trade
        confidence=0.95,
        reason=(f"ARBITRAGE: YES ${yes:.2f} + NO ${no:.2f} = ${implied_total:.2f} < $1.00, "
                f"net {net_profit_cents:.1f}c after fees"),
    )


def make_final_decision(signals: List[StrategySignal], time_left_minutes: float) -> TradeDecision:
    if time_left_minutes < MIN_MINUTES_TO_EXPIRY:
        return TradeDecision.no_trade(f"Too close to expiry (<{MIN_MINUTES_TO_EXPIRY:.0f} min)")

    arb = next((s for s in signals if s.name == ARBITRAGE_SIGNAL), None)
    if arb is not None and arb.confidence >= MIN_CONFIDENCE:
        return TradeDecision(arb.action, arb.confidence, f"ARBITRAGE TRADE: {arb.reason}")

    return TradeDecision.no_trade("No arbitrage opportunities detected")
