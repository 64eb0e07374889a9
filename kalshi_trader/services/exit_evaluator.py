"""
Exit Evaluator - decides whether an open position should be closed.

Pure decision logic, no I/O. Rules are checked in a fixed order and the
first one that fires wins:

1. Strike stop loss (single-leg positions with a strike snapshot)
2. Volatility-tiered profit taking (closes both legs)
3. Absolute profit target (closes both legs)
4. Price normalization (both legs held, YES + NO back near $1.00)
5. Percent stop loss (single leg)

Otherwise the position is held to expiry.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from kalshi_trader.interfaces.exchange_client import Side
from kalshi_trader.models.position import MultiLegPosition, Position

logger = logging.getLogger(__name__)

TIER_LABELS = ("1σ", "2σ", "3σ", "4σ")


@dataclass
class ExitDecision:
    should_close: bool
    close_yes: bool = False
    close_no: bool = False
    reason: str = ""
    profit: Optional[float] = None

    @classmethod
    def hold(cls, reason: str = "Holding until expiry") -> "ExitDecision":
        return cls(should_close=False, reason=reason)


class ExitEvaluator:
    """
    Exit rules for multi-leg positions.
    """

    def __init__(self,
                 fee_rate: float = 0.007,
                 profit_target_usd: float = 20.0,
                 stdev_levels: Tuple[float, float, float, float] = (0.050, 0.100, 0.150, 0.200),
                 strike_stop_tolerance: float = 0.0005,
                 stop_loss_percent: float = 15.0,
                 normalization_band: float = 0.02):
        if any(b <= a for a, b in zip(stdev_levels, stdev_levels[1:])):
            raise ValueError(f"stdev_levels must be ascending, got {stdev_levels}")
        self.fee_rate = fee_rate
        self.profit_target_usd = profit_target_usd
        self.stdev_levels = tuple(stdev_levels)
        self.strike_stop_tolerance = strike_stop_tolerance
        self.stop_loss_percent = stop_loss_percent
        self.normalization_band = normalization_band

    @classmethod
    def from_config(cls, config) -> "ExitEvaluator":
        return cls(
            fee_rate=config.TAKER_FEE_RATE,
            profit_target_usd=config.PROFIT_TARGET_USD,
            stdev_levels=config.STDEV_LEVELS,
        )

    def sell_value(self, ask: float, quantity: int) -> float:
        """Proceeds from selling `quantity` contracts at `ask` after the taker fee."""
        return (ask - ask * self.fee_rate) * quantity

    def leg_profit(self, leg: Position, ask: float) -> float:
        return self.sell_value(ask, leg.quantity) - leg.cost

    def tier_reached(self, move_percent: float) -> Optional[str]:
        """Highest volatility tier met by `move_percent`, or None."""
        for label, threshold in reversed(list(zip(TIER_LABELS, self.stdev_levels))):
            if move_percent >= threshold:
                return label
        return None

    def evaluate(self,
                 position: MultiLegPosition,
                 yes_ask: float,
                 no_ask: float,
                 price_history: Optional[Sequence[float]] = None) -> ExitDecision:
        yes_leg = position.yes_leg
        no_leg = position.no_leg
        if yes_leg is None and no_leg is None:
            return ExitDecision.hold("No legs held")

        asks = {Side.YES: yes_ask, Side.NO: no_ask}
        history = list(price_history) if price_history else []
        single_leg = (yes_leg is None) != (no_leg is None)

        # 1. Strike stop: the reference price has come back to the strike
        if single_leg and history:
            current = history[-1]
            leg = yes_leg or no_leg
            strike = leg.strike_price
            if strike:
                if leg.side is Side.YES and current <= strike * (1 + self.strike_stop_tolerance):
                    return ExitDecision(
                        True, close_yes=True, close_no=False,
                        reason=f"STOP LOSS: price ${current:.2f} returned to strike ${strike:.2f}, closing YES",
                        profit=0.0,
                    )
                if leg.side is Side.NO and current >= strike * (1 - self.strike_stop_tolerance):
                    return ExitDecision(
                        True, close_yes=False, close_no=True,
                        reason=f"STOP LOSS: price ${current:.2f} returned to strike ${strike:.2f}, closing NO",
                        profit=0.0,
                    )

        profits = {leg.side: self.leg_profit(leg, asks[leg.side]) for leg in position.legs}

        # 2. Volatility tiers, measured from the first price in the window
        if history and history[0]:
            move_percent = abs(history[-1] - history[0]) / history[0] * 100
            tier = self.tier_reached(move_percent)
            if tier is not None:
                for side, profit in profits.items():
                    if profit > 0:
                        return ExitDecision(
                            True, close_yes=True, close_no=True,
                            reason=(f"{side.value.upper()} side: {tier} move ({move_percent:.3f}%) "
                                    f"+ profit ${profit:.2f}, taking profit"),
                            profit=profit,
                        )

        # 3. Profit target
        for side, profit in profits.items():
            if profit >= self.profit_target_usd:
                return ExitDecision(
                    True, close_yes=True, close_no=True,
                    reason=(f"{side.value.upper()} side profit ${profit:.2f} reached "
                            f"${self.profit_target_usd:.2f} target, closing both sides"),
                    profit=profit,
                )

        # 4. Normalization
        if position.is_two_legged and abs(1.0 - (yes_ask + no_ask)) < self.normalization_band:
            profit = (self.sell_value(yes_ask, yes_leg.quantity)
                      + self.sell_value(no_ask, no_leg.quantity)
                      - position.total_cost)
            if profit > 0:
                return ExitDecision(
                    True, close_yes=True, close_no=True,
                    reason="Prices normalized, locking in profit early",
                    profit=profit,
                )

        # 5. Percent stop loss
        if single_leg:
            leg = yes_leg or no_leg
            ask = asks[leg.side]
            loss = leg.entry_price - ask
            loss_percent = loss / leg.entry_price * 100
            if loss_percent > self.stop_loss_percent:
                return ExitDecision(
                    True,
                    close_yes=leg.side is Side.YES,
                    close_no=leg.side is Side.NO,
                    reason=f"Stop loss triggered ({loss_percent:.1f}% loss)",
                    profit=-loss * leg.quantity,
                )

        return ExitDecision.hold()
