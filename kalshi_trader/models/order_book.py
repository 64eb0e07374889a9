"""
Kalshi order book backed by SortedDict.

Kalshi publishes two bid ladders, one per side: ``yes`` and ``no``, each a
list of ``[price_cents, quantity]``. Both are kept sorted descending so the
best level is always at index 0.
"""
from typing import Dict, List, Optional, Tuple, Any
from sortedcontainers import SortedDict


class KalshiOrderBook:
    """
    Yes/No ladders for one market. Prices are stored in cents.
    """

    def __init__(self, ticker: str):
        self.ticker = ticker
        self.yes: SortedDict = SortedDict(lambda x: -x)
        self.no: SortedDict = SortedDict(lambda x: -x)

    @classmethod
    def from_api(cls, ticker: str, data: Optional[Dict[str, Any]]) -> "KalshiOrderBook":
        book = cls(ticker)
        book.update(data or {})
        return book

    @staticmethod
    def _load(ladder: SortedDict, levels: Optional[List]) -> None:
        ladder.clear()
        for level in levels or []:
            price = float(level[0])
            qty = float(level[1])
            if price > 0 and qty > 0:
                ladder[price] = ladder.get(price, 0.0) + qty

    def update(self, data: Dict[str, Any]) -> None:
        """Replace both ladders. Accepts the bare or ``{"orderbook": ...}``-wrapped payload."""
        ob = data.get("orderbook", data) or {}
        self._load(self.yes, ob.get("yes"))
        self._load(self.no, ob.get("no"))

    def _ladder(self, side: str) -> SortedDict:
        return self.yes if side == "yes" else self.no

    def best_level(self, side: str) -> Optional[Tuple[float, float]]:
        ladder = self._ladder(side)
        if ladder:
            return ladder.peekitem(0)
        return None

    def best_price(self, side: str) -> Optional[float]:
        """Best price in dollars."""
        level = self.best_level(side)
        return level[0] / 100.0 if level else None

    def depth_at_best(self, side: str) -> float:
        level = self.best_level(side)
        return level[1] if level else 0.0

    def get_depth(self, side: str, levels: int = 3) -> List[float]:
        """Quantities of the first `levels` price levels, zero-padded."""
        ladder = self._ladder(side)
        depth = [ladder.peekitem(i)[1] for i in range(min(levels, len(ladder)))]
        return depth + [0.0] * (levels - len(depth))

    def total_liquidity(self, side: str) -> float:
        return float(sum(self._ladder(side).values()))

    @property
    def spread_cents(self) -> Optional[float]:
        yes = self.best_level("yes")
        no = self.best_level("no")
        if yes is None or no is None:
            return None
        return abs(100 - yes[0] - no[0])

    def has_liquidity(self, min_contracts: float = 1.0) -> bool:
        return (self.total_liquidity("yes") >= min_contracts
                and self.total_liquidity("no") >= min_contracts)
