"""Technical indicators and signal primitives."""

from kalshi_trader.indicators.crosses import (
    CrossResult,
    StrikeDistance,
    cross_up,
    cross_down,
    cross_over,
    cross_above,
    cross_below,
    is_above,
    is_below,
    standard_deviation,
    strike_distance,
)
from kalshi_trader.indicators.oscillators import (
    MacdResult,
    MacdSeries,
    ADXResult,
    DeltaResult,
    ema_series,
    compute_rsi,
    compute_macd,
    compute_macd_series,
    compute_vwap_series,
    compute_adx,
    compute_delta,
)

__all__ = [
    'CrossResult', 'StrikeDistance', 'cross_up', 'cross_down', 'cross_over',
    'cross_above', 'cross_below', 'is_above', 'is_below', 'standard_deviation',
    'strike_distance', 'MacdResult', 'MacdSeries', 'ADXResult', 'DeltaResult',
    'ema_series', 'compute_rsi', 'compute_macd', 'compute_macd_series',
    'compute_vwap_series', 'compute_adx', 'compute_delta',
]
