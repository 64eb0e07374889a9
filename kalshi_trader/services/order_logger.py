"""
Order Logger - CSV audit trail of every order sent to Kalshi.

One file per ticker per 15-minute bucket: ``kalshi-<TICKER>-<bucket_ms>.csv``.
Logging never interrupts trading; I/O errors are logged and dropped.
"""
import csv
import logging
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

BUCKET_MS = 15 * 60 * 1000

CSV_FIELDS = [
    "date", "timestamp", "ticker", "side", "action", "quantity", "price",
    "order_id", "status", "total_cost", "fees", "strategy", "error_message",
]


@dataclass
class OrderLogEntry:
    ticker: str
    side: str  # "yes" | "no"
    action: str  # "buy" | "sell"
    quantity: int
    price: float  # dollars
    status: str  # "success" | "failed" | "pending"
    timestamp: int = 0  # epoch milliseconds
    order_id: Optional[str] = None
    total_cost: Optional[float] = None
    fees: Optional[float] = None
    strategy: Optional[str] = None
    error_message: Optional[str] = None

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = int(time.time() * 1000)


class OrderLogger:
    """Append-only CSV order log."""

    def __init__(self, log_dir: str = "tickers"):
        self.log_dir = Path(log_dir)

    def file_path(self, ticker: str, timestamp_ms: int) -> Path:
        bucket = timestamp_ms - timestamp_ms % BUCKET_MS
        return self.log_dir / f"kalshi-{ticker}-{bucket}.csv"

    @staticmethod
    def _to_row(entry: OrderLogEntry) -> Dict[str, str]:
        row = asdict(entry)
        row["date"] = datetime.fromtimestamp(entry.timestamp / 1000, tz=timezone.utc).isoformat()
        row["price"] = f"{entry.price:.2f}"
        row["total_cost"] = f"{entry.total_cost:.4f}" if entry.total_cost is not None else ""
        row["fees"] = f"{entry.fees:.4f}" if entry.fees is not None else ""
        for key in ("order_id", "strategy", "error_message"):
            row[key] = row[key] or ""
        return row

    def log_order(self, entry: OrderLogEntry) -> None:
        path = self.file_path(entry.ticker, entry.timestamp)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            is_new = not path.exists()
            with path.open("a", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
                if is_new:
                    writer.writeheader()
                writer.writerow(self._to_row(entry))
            logger.debug(f"{'Created' if is_new else 'Updated'} order log: {path.name}")
        except OSError as e:
            logger.error(f"Failed to log order for {entry.ticker}: {e}")

    def log_batch_orders(self, entries: Iterable[OrderLogEntry]) -> None:
        for entry in entries:
            self.log_order(entry)

    def read_orders(self, ticker: str, timestamp_ms: int) -> List[OrderLogEntry]:
        path = self.file_path(ticker, timestamp_ms)
        if not path.exists():
            return []
        try:
            with path.open(newline="", encoding="utf-8") as f:
                return [
                    OrderLogEntry(
                        ticker=row["ticker"],
                        side=row["side"],
                        action=row["action"],
                        quantity=int(row["quantity"]),
                        price=float(row["price"]),
                        status=row["status"],
                        timestamp=int(row["timestamp"]),
                        order_id=row["order_id"] or None,
                        total_cost=float(row["total_cost"]) if row["total_cost"] else None,
                        fees=float(row["fees"]) if row["fees"] else None,
                        strategy=row["strategy"] or None,
                        error_message=row["error_message"] or None,
                    )
                    for row in csv.DictReader(f)
                ]
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to read orders from {path}: {e}")
            return []

    def get_summary(self, ticker: str, timestamp_ms: int) -> Dict[str, float]:
        orders = self.read_orders(ticker, timestamp_ms)
        return {
            "total_orders": len(orders),
            "successful_orders": sum(1 for o in orders if o.status == "success"),
            "failed_orders": sum(1 for o in orders if o.status == "failed"),
            "total_cost": sum(o.total_cost or 0.0 for o in orders),
            "total_fees": sum(o.fees or 0.0 for o in orders),
        }
