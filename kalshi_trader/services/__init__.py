"""Trading services: ledger, exits, execution, order log and the per-series runner."""

from kalshi_trader.services.position_ledger import PositionLedger, CleanupReport
from kalshi_trader.services.exit_evaluator import ExitEvaluator, ExitDecision
from kalshi_trader.services.order_logger import OrderLogger, OrderLogEntry
from kalshi_trader.services.order_executor import OrderExecutor, build_order_request
from kalshi_trader.services.strategy_runner import StrategyRunner

__all__ = [
    'PositionLedger',
    'CleanupReport',
    'ExitEvaluator',
    'ExitDecision',
    'OrderLogger',
    'OrderLogEntry',
    'OrderExecutor',
    'build_order_request',
    'StrategyRunner',
]
