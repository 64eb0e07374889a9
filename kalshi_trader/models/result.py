"""
Typed outcome of an execution attempt.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from kalshi_trader.models.position import MultiLegPosition


class ErrorKind(Enum):
    # Rejections: nothing was sent to the exchange
    MARKET_UNAVAILABLE = "market_unavailable"
    MARKET_CLOSED = "market_closed"
    MARKET_EXPIRED = "market_expired"
    POSITION_EXISTS = "position_exists"
    RETRIES_EXHAUSTED = "retries_exhausted"
    RATE_LIMITED = "rate_limited"
    INVALID_ARBITRAGE = "invalid_arbitrage"
    INVALID_ORDER = "invalid_order"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    # Placement failures
    PARTIAL_FILL = "partial_fill"
    ORDER_FAILED = "order_failed"
    COLLABORATOR_ERROR = "collaborator_error"


_PLACEMENT_KINDS = {ErrorKind.PARTIAL_FILL, ErrorKind.ORDER_FAILED, ErrorKind.COLLABORATOR_ERROR}


@dataclass
class ExecutionError:
    kind: ErrorKind
    message: str
    code: Optional[str] = None  # exchange error code, when there was one

    @property
    def is_rejection(self) -> bool:
        """True when the attempt was stopped before any order went out."""
        return self.kind not in _PLACEMENT_KINDS

    def __str__(self) -> str:
        suffix = f" [{self.code}]" if self.code else ""
        return f"{self.kind.value}: {self.message}{suffix}"


@dataclass
class ExecutionResult:
    position: Optional[MultiLegPosition] = None
    error: Optional[ExecutionError] = None

    @property
    def success(self) -> bool:
        return self.position is not None and self.error is None

    @classmethod
    def ok(cls, position: MultiLegPosition) -> "ExecutionResult":
        return cls(position=position)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, code: Optional[str] = None) -> "ExecutionResult":
        return cls(error=ExecutionError(kind, message, code))
