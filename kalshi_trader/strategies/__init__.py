"""Trading strategies."""

from kalshi_trader.strategies.base import TradeAction, TradeDecision, StrategySignal
from kalshi_trader.strategies.technical import TechnicalSignals, analyze_technical_signals
from kalshi_trader.strategies.arbitrage import find_arbitrage_signal, make_final_decision

__all__ = [
    'TradeAction', 'TradeDecision', 'StrategySignal',
    'TechnicalSignals', 'analyze_technical_signals',
    'find_arbitrage_signal', 'make_final_decision',
]
