"""
Data models for the trading bot.
"""
from .position import Position, MultiLegPosition, PositionStatus, StrategyType
from .order_book import KalshiOrderBook
from .result import ErrorKind, ExecutionError, ExecutionResult

__all__ = [
    'Position', 'MultiLegPosition', 'PositionStatus', 'StrategyType',
    'KalshiOrderBook', 'ErrorKind', 'ExecutionError', 'ExecutionResult',
]
