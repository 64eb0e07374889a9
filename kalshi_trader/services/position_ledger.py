"""
Position Ledger - per-asset record of open positions, rate-limit counters and retry state.

Each StrategyRunner owns one ledger, so assets never share counters.
A market holds at most one entry, and the number of positions opened per
(period, series, strategy) is capped. Periods are 15 minutes for the
15-minute series and 1 hour for the hourly ("...D") series.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from kalshi_trader.models.position import MultiLegPosition, PositionStatus, StrategyType

logger = logging.getLogger(__name__)

FIFTEEN_MINUTES = 15 * 60
ONE_HOUR = 60 * 60
COUNTER_RETENTION_SECONDS = 4 * ONE_HOUR

_SERIES_RE = re.compile(r"^([A-Z0-9]+)-")


def extract_series_ticker(market_id: str) -> str:
    """``KXBTC15M-26FEB010800-00`` -> ``KXBTC15M``; unknown formats map to themselves."""
    match = _SERIES_RE.match(market_id)
    return match.group(1) if match else market_id


def period_seconds_for_series(series_ticker: str) -> int:
    """Hourly series end with 'D' (KXBTCD), everything else is 15-minute."""
    return ONE_HOUR if series_ticker.upper().endswith("D") else FIFTEEN_MINUTES


@dataclass
class RetryState:
    """Failed attempts for one market within one period."""
    market_id: str
    period: int
    attempts: int = 0


@dataclass
class CleanupReport:
    period_reset: int = 0
    stale: int = 0
    closed: int = 0

    @property
    def total(self) -> int:
        return self.period_reset + self.stale + self.closed


class PositionLedger:
    """
    Open positions plus the per-period counters that gate new ones.

    `open` only drafts a position; nothing is recorded until `commit` is
    called after the exchange confirms the fill.
    """

    def __init__(self,
                 max_arbitrage_positions: int = 3,
                 max_technical_positions: int = 1,
                 max_retries: int = 5,
                 period_seconds: int = FIFTEEN_MINUTES,
                 clock: Callable[[], float] = time.time):
        self.max_positions = {
            StrategyType.ARBITRAGE: max_arbitrage_positions,
            StrategyType.TECHNICAL: max_technical_positions,
        }
        self.max_retries = max_retries
        self.period_seconds = period_seconds
        self._clock = clock

        self._positions: Dict[str, MultiLegPosition] = {}
        # period start -> series -> strategy -> opened count
        self._counters: Dict[int, Dict[str, Dict[StrategyType, int]]] = {}
        self._retries: Dict[str, RetryState] = {}
        self._last_period: Optional[int] = None

    @classmethod
    def from_config(cls, config, series_ticker: Optional[str] = None) -> "PositionLedger":
        period = period_seconds_for_series(series_ticker) if series_ticker else FIFTEEN_MINUTES
        return cls(
            max_arbitrage_positions=config.MAX_ARBITRAGE_POSITIONS,
            max_technical_positions=config.MAX_TECHNICAL_POSITIONS,
            max_retries=config.MAX_ORDER_RETRIES,
            period_seconds=period,
        )

    def now(self) -> float:
        return self._clock()

    def current_period(self) -> int:
        now = int(self._clock())
        return now - now % self.period_seconds

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get(self, market_id: str) -> Optional[MultiLegPosition]:
        return self._positions.get(market_id)

    def __contains__(self, market_id: str) -> bool:
        return market_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def list_open(self) -> List[MultiLegPosition]:
        return [p for p in self._positions.values()
                if p.status in (PositionStatus.OPEN, PositionStatus.PARTIAL)]

    def remove(self, market_id: str) -> bool:
        removed = self._positions.pop(market_id, None)
        if removed is not None:
            logger.info(f"Cleared position tracking for {market_id}")
        return removed is not None

    def clear(self) -> int:
        count = len(self._positions)
        self._positions.clear()
        return count

    def positions_in_period(self, series_ticker: str, strategy_type: StrategyType) -> int:
        return (self._counters.get(self.current_period(), {})
                .get(series_ticker, {})
                .get(strategy_type, 0))

    def can_open(self, market_id: str, strategy_type: StrategyType) -> bool:
        return self.rejection_reason(market_id, strategy_type) is None

    def rejection_reason(self, market_id: str, strategy_type: StrategyType) -> Optional[str]:
        """Why `open` would refuse this market right now, or None."""
        if market_id in self._positions:
            existing = self._positions[market_id]
            return f"Already holding a position on {market_id} (status: {existing.status.value})"
        series = extract_series_ticker(market_id)
        opened = self.positions_in_period(series, strategy_type)
        limit = self.max_positions[strategy_type]
        if opened >= limit:
            return (f"{series} reached max {strategy_type.value} positions "
                    f"for this period ({opened}/{limit})")
        return None

    def open(self, market_id: str, strategy_type: StrategyType) -> Optional[MultiLegPosition]:
        """
        Draft an empty position for `market_id`, or None if an entry already
        exists or the period limit is reached. Nothing is mutated.
        """
        if not self.can_open(market_id, strategy_type):
            return None
        return MultiLegPosition(market_id=market_id, entry_time=self._clock())

    def commit(self, position: MultiLegPosition, strategy_type: StrategyType) -> None:
        """Record a filled position and count it against the period limit."""
        if position.market_id in self._positions:
            raise ValueError(f"Position for {position.market_id} already recorded")
        if not position.legs:
            raise ValueError(f"Cannot commit {position.market_id} without filled legs")
        self._positions[position.market_id] = position
        self._increment(extract_series_ticker(position.market_id), strategy_type)

    def _increment(self, series_ticker: str, strategy_type: StrategyType) -> None:
        period = self.current_period()
        series_counts = self._counters.setdefault(period, {}).setdefault(series_ticker, {})
        series_counts[strategy_type] = series_counts.get(strategy_type, 0) + 1
        self._prune_counters()

    def _prune_counters(self) -> None:
        cutoff = self._clock() - COUNTER_RETENTION_SECONDS
        for period in [p for p in self._counters if p < cutoff]:
            del self._counters[period]

    # ------------------------------------------------------------------
    # Retries
    # ------------------------------------------------------------------

    def retry_count(self, market_id: str) -> int:
        state = self._retries.get(market_id)
        if state is None or state.period != self.current_period():
            return 0
        return state.attempts

    def record_failure(self, market_id: str) -> int:
        period = self.current_period()
        state = self._retries.get(market_id)
        if state is None or state.period != period:
            state = RetryState(market_id=market_id, period=period)
            self._retries[market_id] = state
        state.attempts += 1
        return state.attempts

    def retries_exhausted(self, market_id: str) -> bool:
        return self.retry_count(market_id) >= self.max_retries

    def clear_retries(self, market_id: str) -> None:
        self._retries.pop(market_id, None)

    def clear_retries_except(self, market_id: str) -> int:
        stale = [m for m in self._retries if m != market_id]
        for m in stale:
            del self._retries[m]
        return len(stale)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def sweep(self) -> None:
        """Drop retry states from past periods and counters past retention."""
        period = self.current_period()
        for market_id in [m for m, s in self._retries.items() if s.period != period]:
            del self._retries[market_id]
        self._prune_counters()

    def auto_cleanup(self, auto_clear_minutes: float) -> CleanupReport:
        """
        Per-cycle housekeeping.

        A new period clears every entry. Then entries older than
        `auto_clear_minutes` and entries already closed are removed.
        """
        report = CleanupReport()
        period = self.current_period()
        if self._last_period is not None and period != self._last_period and self._positions:
            report.period_reset = self.clear()
            logger.info(f"New period started, cleared {report.period_reset} position(s)")
        self._last_period = period

        now = self._clock()
        max_age = auto_clear_minutes * 60
        for market_id, position in list(self._positions.items()):
            age = now - position.entry_time
            if age > max_age:
                del self._positions[market_id]
                report.stale += 1
                logger.info(f"Auto-cleared stale position: {market_id} (age: {age / 60:.0f} min)")
            elif position.status is PositionStatus.CLOSED:
                del self._positions[market_id]
                report.closed += 1
                logger.info(f"Auto-cleared closed position: {market_id}")

        self.sweep()
        return report
