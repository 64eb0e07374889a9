"""
Tests for position models and execution results.
"""
import pytest
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kalshi_trader.interfaces.exchange_client import Side
from kalshi_trader.models import (
    ErrorKind,
    ExecutionResult,
    MultiLegPosition,
    Position,
    PositionStatus,
)
from kalshi_trader.models.position import TAG_ARBITRAGE_BOTH
from kalshi_trader.strategies import TradeAction

MARKET = "KXBTC15M-26FEB010800-00"


def leg(side, quantity=10, price=0.40):
    return Position.filled(MARKET, side, quantity, price, 0.007, TAG_ARBITRAGE_BOTH, entry_time=0)


class TestPosition:
    """Test cases for a single leg."""

    def test_filled_fees(self):
        """Fees are price x rate x quantity."""
        p = leg(Side.YES, 10, 0.40)
        assert p.fees == pytest.approx(0.028)
        assert p.cost == pytest.approx(4.028)

    def test_rejects_bad_values(self):
        """Quantity and price are validated."""
        with pytest.raises(ValueError):
            leg(Side.YES, 0, 0.40)
        with pytest.raises(ValueError):
            leg(Side.YES, 1, 1.0)

    def test_side_opposite(self):
        """YES and NO are opposites."""
        assert Side.YES.opposite == Side.NO
        assert Side.NO.opposite == Side.YES


class TestMultiLegPosition:
    """Test cases for MultiLegPosition."""

    def test_two_legs(self):
        """Cost and expected profit over both legs."""
        position = MultiLegPosition(market_id=MARKET, entry_time=0)
        position.add_leg(leg(Side.YES, 10, 0.40))
        position.add_leg(leg(Side.NO, 10, 0.50))

        assert position.is_two_legged
        assert position.total_cost == pytest.approx(9.063)
        assert position.expected_profit == pytest.approx(10 - 9.063)

    def test_duplicate_side(self):
        """A side can only be filled once."""
        position = MultiLegPosition(market_id=MARKET)
        position.add_leg(leg(Side.YES))
        with pytest.raises(ValueError):
            position.add_leg(leg(Side.YES))

    def test_wrong_market(self):
        """Legs must belong to the position's market."""
        position = MultiLegPosition(market_id="OTHER")
        with pytest.raises(ValueError):
            position.add_leg(leg(Side.YES))

    def test_remove_legs(self):
        """Removing one leg is partial, removing both is closed."""
        position = MultiLegPosition(market_id=MARKET)
        position.add_leg(leg(Side.YES))
        position.add_leg(leg(Side.NO))

        assert position.remove_leg(Side.YES) is not None
        assert position.status == PositionStatus.PARTIAL
        position.remove_leg(Side.NO)
        assert position.status == PositionStatus.CLOSED
        assert position.remove_leg(Side.NO) is None


class TestExecutionResult:
    """Test cases for ExecutionResult."""

    def test_ok(self):
        """A position and no error is success."""
        result = ExecutionResult.ok(MultiLegPosition(market_id=MARKET))
        assert result.success

    def test_rejection_vs_failure(self):
        """Placement failures are not rejections."""
        rejected = ExecutionResult.fail(ErrorKind.RATE_LIMITED, "limit")
        failed = ExecutionResult.fail(ErrorKind.PARTIAL_FILL, "one leg", code="market_closed")

        assert not rejected.success
        assert rejected.error.is_rejection
        assert not failed.error.is_rejection
        assert str(failed.error) == "partial_fill: one leg [market_closed]"

    def test_trade_action_side(self):
        """Actions map to contract sides."""
        assert TradeAction.BUY_YES.side == Side.YES
        assert TradeAction.BUY_NO.side == Side.NO
        assert TradeAction.NO_TRADE.side is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
