"""
Order Executor - validates, places and closes positions on Kalshi.

`execute` runs the entry preconditions in a fixed order and stops at the
first failure without sending anything. Two-leg (arbitrage) entries place
both buys concurrently; a position is only recorded once every leg it
needs has filled.
"""
import asyncio
import logging
import math
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from kalshi_trader.interfaces.exchange_client import (
    ExchangeAPIError,
    IExchangeClient,
    OrderAction,
    OrderRequest,
    OrderResult,
    OrderType,
    Side,
)
from kalshi_trader.models.position import (
    MultiLegPosition,
    Position,
    StrategyType,
    TAG_ARBITRAGE_BOTH,
    TAG_ARBITRAGE_SINGLE,
    TAG_TECHNICAL,
)
from kalshi_trader.models.result import ErrorKind, ExecutionResult
from kalshi_trader.services.exit_evaluator import ExitDecision, ExitEvaluator
from kalshi_trader.services.order_logger import OrderLogEntry, OrderLogger
from kalshi_trader.services.position_ledger import PositionLedger

logger = logging.getLogger(__name__)

MAX_COST_BUFFER = 1.05  # slippage allowance on market buys
MAX_COST_CENTS_PER_CONTRACT = 10000
NETWORK_ERROR = "network_error"


def build_order_request(ticker: str, side: Side, action: OrderAction, quantity: int,
                        price: float = 0.0, order_type: OrderType = OrderType.MARKET) -> OrderRequest:
    """
    Validate and build a market order.

    Buys carry the expected price and a `buy_max_cost` cap (price in cents
    x quantity + 5%, rounded up). Raises ValueError for anything Kalshi
    would reject.
    """
    if order_type is not OrderType.MARKET:
        raise ValueError(f"Only market orders are supported, got {order_type.value}")
    if quantity <= 0 or int(quantity) != quantity:
        raise ValueError(f"Quantity must be a positive whole number, got {quantity}")
    quantity = int(quantity)

    request = OrderRequest(
        ticker=ticker,
        side=side,
        action=action,
        count=quantity,
        order_type=order_type,
        price=price if 0 < price < 1.0 else 0.0,
        client_order_id=str(uuid.uuid4()),
    )

    if action is OrderAction.BUY:
        if not (0 < price < 1.0):
            raise ValueError(f"Invalid price for market buy: ${price} (must be between $0.01 and $0.99)")
        price_cents = math.floor(price * 100 + 0.5)
        max_cost = math.ceil(price_cents * quantity * MAX_COST_BUFFER)
        if max_cost < quantity or max_cost > MAX_COST_CENTS_PER_CONTRACT * quantity:
            raise ValueError(f"Invalid buy_max_cost {max_cost}c for price ${price}, quantity {quantity}")
        request.buy_max_cost = max_cost

    return request


class OrderExecutor:
    """
    Entry and exit execution for one asset's ledger.
    """

    def __init__(self,
                 client: IExchangeClient,
                 ledger: PositionLedger,
                 exit_evaluator: ExitEvaluator,
                 order_logger: Optional[OrderLogger] = None,
                 fee_rate: float = 0.007):
        self.client = client
        self.ledger = ledger
        self.exit_evaluator = exit_evaluator
        self.order_logger = order_logger
        self.fee_rate = fee_rate
        self.order_ids: Dict[str, List[str]] = {}

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    async def execute(self,
                      market_id: str,
                      yes_ask: float,
                      no_ask: float,
                      quantity: int = 1,
                      both_sides: bool = False,
                      force_side: Optional[Side] = None,
                      strike_price: Optional[float] = None) -> ExecutionResult:
        """
        Open a position on `market_id`.

        Args:
            yes_ask / no_ask: Current best asks in dollars.
            both_sides: Buy YES and NO together (arbitrage).
            force_side: Buy only this side (directional/technical entry).
                Without it a single-leg entry buys the cheaper side. Ignored
                when both_sides is set, which always counts as arbitrage.
            strike_price: Reference strike stored on a single leg for the
                strike stop loss.
        """
        if both_sides or force_side is None:
            strategy_type = StrategyType.ARBITRAGE
        else:
            strategy_type = StrategyType.TECHNICAL

        rejected = await self._check_market(market_id)
        if rejected is not None:
            return rejected

        if market_id in self.ledger:
            existing = self.ledger.get(market_id)
            logger.info(f"Skipping {market_id}: already holding a position (status: {existing.status.value})")
            return ExecutionResult.fail(ErrorKind.POSITION_EXISTS,
                                        f"Position already open on {market_id}")

        retries = self.ledger.retry_count(market_id)
        if retries > 0:
            if retries >= self.ledger.max_retries:
                logger.info(f"Skipping {market_id}: max retries reached "
                            f"({retries}/{self.ledger.max_retries}) this period")
                return ExecutionResult.fail(ErrorKind.RETRIES_EXHAUSTED,
                                            f"{retries} failed attempts this period")
            rejected = await self._check_market(market_id, retry=True)
            if rejected is not None:
                return rejected
            logger.info(f"Retry attempt {retries + 1}/{self.ledger.max_retries} for {market_id}")

        reason = self.ledger.rejection_reason(market_id, strategy_type)
        if reason is not None:
            logger.info(f"Skipping {market_id}: {reason}")
            return ExecutionResult.fail(ErrorKind.RATE_LIMITED, reason)

        if both_sides:
            per_contract = (yes_ask + no_ask) * (1 + self.fee_rate)
            if per_contract >= 1.0:
                logger.info(f"INVALID ARBITRAGE on {market_id}: ${per_contract:.4f} >= $1.00 per contract")
                return ExecutionResult.fail(ErrorKind.INVALID_ARBITRAGE,
                                            f"Cost ${per_contract:.4f} per contract is not below $1.00")
            buys = [(Side.YES, yes_ask), (Side.NO, no_ask)]
        else:
            if force_side is not None:
                side = force_side
            else:
                side = Side.YES if yes_ask <= no_ask else Side.NO
            buys = [(side, yes_ask if side is Side.YES else no_ask)]

        try:
            requests = [build_order_request(market_id, side, OrderAction.BUY, quantity, price)
                        for side, price in buys]
        except ValueError as e:
            logger.error(f"Invalid order for {market_id}: {e}")
            return ExecutionResult.fail(ErrorKind.INVALID_ORDER, str(e))

        estimated_cost = sum(price for _, price in buys) * (1 + self.fee_rate) * quantity
        try:
            balance = await self.client.get_balance()
            if balance.available < estimated_cost:
                logger.warning(f"INSUFFICIENT BALANCE: need ${estimated_cost:.4f}, "
                               f"have ${balance.available:.2f}")
                return ExecutionResult.fail(ErrorKind.INSUFFICIENT_BALANCE,
                                            f"Need ${estimated_cost:.4f}, have ${balance.available:.2f}")
        except ExchangeAPIError as e:
            logger.warning(f"Could not verify balance ({e}), proceeding with caution")

        draft = self.ledger.open(market_id, strategy_type)
        if draft is None:
            return ExecutionResult.fail(ErrorKind.POSITION_EXISTS,
                                        f"Position opened on {market_id} while validating")

        if both_sides:
            return await self._execute_both(draft, requests, yes_ask, no_ask, quantity, strategy_type)

        tag = TAG_TECHNICAL if force_side is not None else TAG_ARBITRAGE_SINGLE
        side, price = buys[0]
        return await self._execute_single(draft, requests[0], side, price, quantity,
                                          tag, strategy_type, strike_price)

    async def _check_market(self, market_id: str, retry: bool = False) -> Optional[ExecutionResult]:
        """Rejection if the market cannot take orders right now, else None."""
        try:
            market = await self.client.get_market(market_id)
        except ExchangeAPIError as e:
            logger.info(f"Skipping {market_id}: cannot verify market status ({e})")
            return ExecutionResult.fail(ErrorKind.MARKET_UNAVAILABLE,
                                        f"Market lookup failed: {e.message}", e.code)

        if not market.is_active:
            self.ledger.clear_retries(market_id)
            prefix = "retry " if retry else ""
            logger.info(f"Skipping {prefix}{market_id}: market is closed (status: {market.status})")
            return ExecutionResult.fail(ErrorKind.MARKET_CLOSED, f"Market status is '{market.status}'")

        if market.is_expired():
            self.ledger.clear_retries(market_id)
            logger.info(f"Skipping {market_id}: market expired at {market.close_time}")
            return ExecutionResult.fail(ErrorKind.MARKET_EXPIRED, f"Market closed at {market.close_time}")

        return None

    async def _execute_both(self, draft: MultiLegPosition, requests: Sequence[OrderRequest],
                            yes_ask: float, no_ask: float, quantity: int,
                            strategy_type: StrategyType) -> ExecutionResult:
        market_id = draft.market_id
        logger.info(f"Placing BOTH orders on {market_id}: YES ${yes_ask:.2f} + NO ${no_ask:.2f}")

        results = await asyncio.gather(*(self._submit(r) for r in requests), return_exceptions=True)
        yes_result, no_result = (self._as_result(r) for r in results)

        for side, price, result in ((Side.YES, yes_ask, yes_result), (Side.NO, no_ask, no_result)):
            self._log_order(market_id, side, OrderAction.BUY, quantity, price, result, TAG_ARBITRAGE_BOTH)

        if yes_result.success and no_result.success:
            now = self.ledger.now()
            draft.add_leg(Position.filled(market_id, Side.YES, quantity, yes_ask, self.fee_rate,
                                          TAG_ARBITRAGE_BOTH, entry_time=now))
            draft.add_leg(Position.filled(market_id, Side.NO, quantity, no_ask, self.fee_rate,
                                          TAG_ARBITRAGE_BOTH, entry_time=now))
            self.ledger.commit(draft, strategy_type)
            logger.info(f"Arbitrage position opened on {market_id}: cost ${draft.total_cost:.4f}, "
                        f"expected profit ${draft.expected_profit:.4f}")
            return ExecutionResult.ok(draft)

        attempts = self.ledger.record_failure(market_id)
        if yes_result.success or no_result.success:
            filled = "YES" if yes_result.success else "NO"
            failed = no_result if yes_result.success else yes_result
            logger.warning(f"PARTIAL FILL on {market_id}: {filled} filled but the other leg failed "
                           f"({failed.error_message}). Position NOT recorded, {filled} leg left open. "
                           f"Attempts: {attempts}/{self.ledger.max_retries}")
            return ExecutionResult.fail(ErrorKind.PARTIAL_FILL,
                                        f"Only the {filled} leg filled", failed.error_code)

        logger.error(f"Both orders failed on {market_id}. Attempts: {attempts}/{self.ledger.max_retries}")
        return self._failure(yes_result, no_result)

    async def _execute_single(self, draft: MultiLegPosition, request: OrderRequest, side: Side,
                              price: float, quantity: int, tag: str, strategy_type: StrategyType,
                              strike_price: Optional[float]) -> ExecutionResult:
        market_id = draft.market_id
        logger.info(f"Placing {side.value.upper()} order on {market_id} @ ${price:.2f} ({tag})")

        try:
            result = await self._submit(request)
        except Exception as e:
            logger.error(f"Order placement raised for {market_id}: {e}")
            result = OrderResult(success=False, error_code="exception", error_message=str(e))
        self._log_order(market_id, side, OrderAction.BUY, quantity, price, result, tag)

        if not result.success:
            attempts = self.ledger.record_failure(market_id)
            logger.error(f"{side.value.upper()} order failed on {market_id}: {result.error_message}. "
                         f"Attempts: {attempts}/{self.ledger.max_retries}")
            return self._failure(result)

        draft.add_leg(Position.filled(market_id, side, quantity, price, self.fee_rate, tag,
                                      strike_price=strike_price, entry_time=self.ledger.now()))
        self.ledger.commit(draft, strategy_type)
        logger.info(f"{tag} position opened on {market_id}: {side.value.upper()} x{quantity} "
                    f"@ ${price:.2f}, cost ${draft.total_cost:.4f}")
        return ExecutionResult.ok(draft)

    @staticmethod
    def _failure(*results: OrderResult) -> ExecutionResult:
        codes = [r.error_code for r in results if r.error_code]
        messages = "; ".join(r.error_message or "unknown error" for r in results)
        kind = ErrorKind.COLLABORATOR_ERROR if NETWORK_ERROR in codes else ErrorKind.ORDER_FAILED
        return ExecutionResult.fail(kind, messages, codes[0] if codes else None)

    @staticmethod
    def _as_result(result) -> OrderResult:
        if isinstance(result, OrderResult):
            return result
        logger.error(f"Order placement raised: {result}")
        return OrderResult(success=False, error_code="exception", error_message=str(result))

    async def _submit(self, request: OrderRequest) -> OrderResult:
        """Send one order; exchange errors become a failed OrderResult."""
        try:
            result = await self.client.place_order(request)
        except ExchangeAPIError as e:
            logger.error(f"Order failed for {request.ticker}: {e}")
            return OrderResult(success=False, error_code=e.code, error_message=e.message)

        if result.success and result.order_id:
            self.order_ids.setdefault(request.ticker, []).append(result.order_id)
        elif result.success:
            return OrderResult(success=False, error_code="no_order_id",
                               error_message="No order id returned")
        return result

    def _log_order(self, market_id: str, side: Side, action: OrderAction, quantity: int,
                   price: float, result: OrderResult, strategy: str) -> None:
        if self.order_logger is None:
            return
        fees = price * self.fee_rate * quantity
        self.order_logger.log_order(OrderLogEntry(
            ticker=market_id,
            side=side.value,
            action=action.value,
            quantity=quantity,
            price=price,
            status="success" if result.success else "failed",
            order_id=result.order_id,
            total_cost=price * quantity + fees if action is OrderAction.BUY else None,
            fees=fees if action is OrderAction.BUY else None,
            strategy=strategy,
            error_message=result.error_message,
        ))

    # ------------------------------------------------------------------
    # Exit
    # ------------------------------------------------------------------

    async def close(self, market_id: str, reason: str,
                    close_yes: bool = True, close_no: bool = True) -> bool:
        """
        Market-sell the requested legs. Returns True if any leg was sold.
        """
        position = self.ledger.get(market_id)
        if position is None:
            logger.info(f"No position found for {market_id}")
            return False

        logger.info(f"Closing position on {market_id}: {reason}")
        sold_any = False
        for side, wanted in ((Side.YES, close_yes), (Side.NO, close_no)):
            leg = position.leg(side)
            if not wanted or leg is None:
                continue
            request = build_order_request(market_id, side, OrderAction.SELL, leg.quantity)
            try:
                result = await self._submit(request)
            except Exception as e:
                logger.error(f"Close order raised for {market_id} {side.value.upper()}: {e}")
                result = OrderResult(success=False, error_code="exception", error_message=str(e))
            self._log_order(market_id, side, OrderAction.SELL, leg.quantity, 0.0, result, leg.strategy)
            if result.success:
                position.remove_leg(side)
                sold_any = True
                logger.info(f"{side.value.upper()} leg closed on {market_id}")
            else:
                logger.error(f"Failed to close {side.value.upper()} leg on {market_id}: {result.error_message}")

        logger.info(f"Position on {market_id} is now {position.status.value}")
        return sold_any

    async def monitor_positions(self,
                                yes_ask: Optional[float],
                                no_ask: Optional[float],
                                price_history: Optional[Sequence[float]] = None,
                                current_ticker: Optional[str] = None) -> List[Tuple[str, ExitDecision]]:
        """
        Evaluate open positions against the current quotes and close those
        the exit rules flag. Quotes belong to `current_ticker`, so other
        markets' positions are left alone.
        """
        if yes_ask is None or no_ask is None:
            return []

        closed = []
        for position in self.ledger.list_open():
            if current_ticker is not None and position.market_id != current_ticker:
                continue
            decision = self.exit_evaluator.evaluate(position, yes_ask, no_ask, price_history)
            if not decision.should_close:
                continue
            if await self.close(position.market_id, decision.reason,
                                close_yes=decision.close_yes, close_no=decision.close_no):
                closed.append((position.market_id, decision))
        return closed

    def calculate_pnl(self, market_id: str, winner: Side) -> Optional[float]:
        """Settlement P&L if `winner` pays out: $1 per winning contract minus total cost."""
        position = self.ledger.get(market_id)
        if position is None:
            return None
        winning_leg = position.leg(winner)
        payout = winning_leg.quantity * 1.0 if winning_leg is not None else 0.0
        return payout - position.total_cost

    def get_order_ids(self, market_id: str) -> List[str]:
        return list(self.order_ids.get(market_id, []))
