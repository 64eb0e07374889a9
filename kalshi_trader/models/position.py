"""
Position data models.

A market holds at most one MultiLegPosition, made of an optional YES leg
and an optional NO leg. Legs are immutable once filled; closing a leg
removes it from the position.
"""
from dataclasses import dataclass, field
from typing import Optional, List
from enum import Enum
import time

from kalshi_trader.interfaces.exchange_client import Side


class StrategyType(Enum):
    """Which rate-limit bucket a position counts against."""
    ARBITRAGE = "arbitrage"
    TECHNICAL = "technical"


class PositionStatus(Enum):
    OPEN = "open"
    PARTIAL = "partial"  # one leg closed while the other is still held
    CLOSED = "closed"


# Strategy tags written on legs and in the order log
TAG_ARBITRAGE_BOTH = "Arbitrage-BothSides"
TAG_ARBITRAGE_SINGLE = "Arbitrage-SingleSide"
TAG_TECHNICAL = "Technical-Directional"


@dataclass(frozen=True)
class Position:
    """
    One filled leg.
    """
    market_id: str
    side: Side
    quantity: int
    entry_price: float  # dollars per contract
    entry_time: float
    fees: float = 0.0  # total fees paid for the leg
    strategy: str = TAG_ARBITRAGE_BOTH
    strike_price: Optional[float] = None

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"Leg quantity must be positive, got {self.quantity}")
        if not (0 < self.entry_price < 1):
            raise ValueError(f"Entry price must be in (0, 1), got {self.entry_price}")

    @classmethod
    def filled(cls, market_id: str, side: Side, quantity: int, price: float,
               fee_rate: float, strategy: str, strike_price: Optional[float] = None,
               entry_time: Optional[float] = None) -> "Position":
        return cls(
            market_id=market_id,
            side=side,
            quantity=quantity,
            entry_price=price,
            entry_time=entry_time if entry_time is not None else time.time(),
            fees=price * fee_rate * quantity,
            strategy=strategy,
            strike_price=strike_price,
        )

    @property
    def cost(self) -> float:
        """Total paid for the leg including fees."""
        return self.entry_price * self.quantity + self.fees


@dataclass
class MultiLegPosition:
    """
    Everything held in one market.
    """
    market_id: str
    entry_time: float = field(default_factory=time.time)
    yes_leg: Optional[Position] = None
    no_leg: Optional[Position] = None
    status: PositionStatus = PositionStatus.OPEN

    @property
    def legs(self) -> List[Position]:
        return [leg for leg in (self.yes_leg, self.no_leg) if leg is not None]

    def leg(self, side: Side) -> Optional[Position]:
        return self.yes_leg if side is Side.YES else self.no_leg

    @property
    def is_two_legged(self) -> bool:
        return self.yes_leg is not None and self.no_leg is not None

    @property
    def total_cost(self) -> float:
        return sum(leg.cost for leg in self.legs)

    @property
    def expected_profit(self) -> float:
        """Settlement payout (one side pays $1/contract) minus what was paid."""
        contracts = max((leg.quantity for leg in self.legs), default=0)
        return contracts * 1.0 - self.total_cost

    def add_leg(self, leg: Position) -> None:
        if leg.market_id != self.market_id:
            raise ValueError(f"Leg for {leg.market_id} added to position in {self.market_id}")
        if self.leg(leg.side) is not None:
            raise ValueError(f"{self.market_id} already holds a {leg.side.value.upper()} leg")
        if leg.side is Side.YES:
            self.yes_leg = leg
        else:
            self.no_leg = leg
        self.status = PositionStatus.OPEN

    def remove_leg(self, side: Side) -> Optional[Position]:
        removed = self.leg(side)
        if removed is None:
            return None
        if side is Side.YES:
            self.yes_leg = None
        else:
            self.no_leg = None
        self.status = PositionStatus.CLOSED if not self.legs else PositionStatus.PARTIAL
        return removed
