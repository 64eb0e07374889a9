"""
Decision types shared by the technical and arbitrage strategies.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from kalshi_trader.interfaces.exchange_client import Side


class TradeAction(Enum):
    BUY_YES = "BUY_YES"
    BUY_NO = "BUY_NO"
    NO_TRADE = "NO_TRADE"

    @property
    def side(self) -> Optional[Side]:
        """Contract side to buy, None for NO_TRADE."""
        if self is TradeAction.BUY_YES:
            return Side.YES
        if self is TradeAction.BUY_NO:
            return Side.NO
        return None


@dataclass
class StrategySignal:
    """One strategy's vote."""
    name: str
    action: TradeAction
    confidence: float
    reason: str


@dataclass
class TradeDecision:
    action: TradeAction
    confidence: float
    reason: str
    signals: Dict[str, List[str]] = field(default_factory=lambda: {"bullish": [], "bearish": []})

    @property
    def is_trade(self) -> bool:
        return self.action is not TradeAction.NO_TRADE

    @classmethod
    def no_trade(cls, reason: str, confidence: float = 0.0,
                 bullish: Optional[List[str]] = None,
                 bearish: Optional[List[str]] = None) -> "TradeDecision":
        return cls(
            action=TradeAction.NO_TRADE,
            confidence=confidence,
            reason=reason,
            signals={"bullish": list(bullish or []), "bearish": list(bearish or [])},
        )
