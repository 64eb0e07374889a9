import os
from dataclasses import dataclass, field
from typing import Dict, List, Tuple
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Kalshi series ticker -> Binance spot symbol used as the reference price feed
ASSET_MAPPING: Dict[str, str] = {
    # 15-minute markets
    "KXBTC15M": "BTCUSDT",
    "KXETH15M": "ETHUSDT",
    "KXSOL15M": "SOLUSDT",
    # Hourly markets
    "KXBTCD": "BTCUSDT",
    "KXETHD": "ETHUSDT",
    "KXSOLD": "SOLUSDT",
    "KXXRPD": "XRPUSDT",
}

STRATEGY_MODES = ("arbitrage", "technical")


def get_binance_symbol(series_ticker: str, fallback: str = "BTCUSDT") -> str:
    """Map a Kalshi series ticker to its Binance symbol."""
    return ASSET_MAPPING.get(series_ticker.upper(), fallback)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """
    Centralized configuration for the Kalshi trading bot.
    Validates that all required fields are present and correctly typed.
    """
    KALSHI_API_KEY_ID: str
    KALSHI_PRIVATE_KEY_PATH: str = ""
    KALSHI_PRIVATE_KEY_PEM: str = ""
    KALSHI_USE_DEMO: bool = False

    SERIES_TICKERS: List[str] = field(default_factory=lambda: ["KXBTC15M"])
    STRATEGY: str = "arbitrage"

    # Position lifecycle
    PROFIT_TARGET_USD: float = 20.0
    MAX_ARBITRAGE_POSITIONS: int = 3
    MAX_TECHNICAL_POSITIONS: int = 1
    AUTO_CLEAR_MINUTES: int = 15
    MAX_ORDER_RETRIES: int = 5
    MIN_TIME_TO_EXPIRY_MIN: float = 5.0

    # Signal thresholds (percent units, 0.015 == 0.015%)
    STRIKE_GAP_PERCENT: float = 0.015
    STDEV_LEVELS: Tuple[float, float, float, float] = (0.050, 0.100, 0.150, 0.200)

    TAKER_FEE_RATE: float = 0.007
    POLL_INTERVAL_SECONDS: float = 5.0

    BINANCE_BASE_URL: str = "https://api.binance.com"
    BINANCE_SYMBOL: str = "BTCUSDT"
    ORDER_LOG_DIR: str = "tickers"

    @property
    def is_technical(self) -> bool:
        return self.STRATEGY == "technical"

    def binance_symbol_for(self, series_ticker: str) -> str:
        return get_binance_symbol(series_ticker, self.BINANCE_SYMBOL)

    @classmethod
    def load(cls):
        """
        Loads configuration from environment variables.
        Raises ValueError if critical variables are missing or invalid.
        """
        api_key_id = os.getenv("KALSHI_API_KEY_ID") or os.getenv("KALSHI_API_KEY", "")
        key_path = os.getenv("KALSHI_PRIVATE_KEY_PATH", "")
        key_pem = os.getenv("KALSHI_PRIVATE_KEY_PEM", "")

        if not api_key_id:
            raise ValueError("Missing KALSHI_API_KEY_ID in .env")
        if not key_path and not key_pem:
            raise ValueError("Missing Kalshi private key (KALSHI_PRIVATE_KEY_PATH or KALSHI_PRIVATE_KEY_PEM)")

        tickers = [
            t.strip().upper()
            for t in os.getenv("KALSHI_SERIES_TICKERS", "KXBTC15M").split(",")
            if t.strip()
        ]
        if not tickers:
            raise ValueError("KALSHI_SERIES_TICKERS must list at least one series")

        strategy = os.getenv("STRATEGY", "arbitrage").strip().lower()
        if strategy not in STRATEGY_MODES:
            raise ValueError(f"STRATEGY must be one of {STRATEGY_MODES}, got '{strategy}'")

        profit_target = float(os.getenv("PROFIT_TARGET_USD", "20"))
        if profit_target <= 0:
            raise ValueError("PROFIT_TARGET_USD must be positive")

        max_arb = int(os.getenv("MAX_ARBITRAGE_POSITIONS", "3"))
        max_tech = int(os.getenv("MAX_TECHNICAL_POSITIONS", "1"))
        if max_arb < 0 or max_tech < 0:
            raise ValueError("Position limits must be non-negative")

        auto_clear = int(os.getenv("AUTO_CLEAR_MINUTES", "15"))
        if auto_clear <= 0:
            raise ValueError("AUTO_CLEAR_MINUTES must be positive")

        max_retries = int(os.getenv("MAX_ORDER_RETRIES", "5"))
        if max_retries < 1:
            raise ValueError("MAX_ORDER_RETRIES must be at least 1")

        stdev_levels = (
            float(os.getenv("STDEV_1_PERCENT", "0.050")),
            float(os.getenv("STDEV_2_PERCENT", "0.100")),
            float(os.getenv("STDEV_3_PERCENT", "0.150")),
            float(os.getenv("STDEV_4_PERCENT", "0.200")),
        )
        if any(b <= a for a, b in zip(stdev_levels, stdev_levels[1:])):
            raise ValueError("STDEV_1..4_PERCENT must be strictly ascending")

        fee_rate = float(os.getenv("TAKER_FEE_RATE", "0.007"))
        if not (0 <= fee_rate < 1):
            raise ValueError("TAKER_FEE_RATE must be between 0 and 1")

        return cls(
            KALSHI_API_KEY_ID=api_key_id.strip(),
            KALSHI_PRIVATE_KEY_PATH=key_path.strip(),
            KALSHI_PRIVATE_KEY_PEM=key_pem.strip(),
            KALSHI_USE_DEMO=_parse_bool(os.getenv("KALSHI_USE_DEMO", "false")),
            SERIES_TICKERS=tickers,
            STRATEGY=strategy,
            PROFIT_TARGET_USD=profit_target,
            MAX_ARBITRAGE_POSITIONS=max_arb,
            MAX_TECHNICAL_POSITIONS=max_tech,
            AUTO_CLEAR_MINUTES=auto_clear,
            MAX_ORDER_RETRIES=max_retries,
            MIN_TIME_TO_EXPIRY_MIN=float(os.getenv("MIN_TIME_TO_EXPIRY_MIN", "5")),
            STRIKE_GAP_PERCENT=float(os.getenv("STRIKE_GAP_PERCENT", "0.015")),
            STDEV_LEVELS=stdev_levels,
            TAKER_FEE_RATE=fee_rate,
            POLL_INTERVAL_SECONDS=float(os.getenv("POLL_INTERVAL_SECONDS", "5")),
            BINANCE_BASE_URL=os.getenv("BINANCE_BASE_URL", "https://api.binance.com"),
            BINANCE_SYMBOL=os.getenv("BINANCE_SYMBOL", "BTCUSDT"),
            ORDER_LOG_DIR=os.getenv("ORDER_LOG_DIR", "tickers"),
        )
