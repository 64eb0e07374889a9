"""
Cross detection and signal primitives.

All functions compare the latest point of a series with the point
`lookback - 1` bars earlier. Series are oldest-first. Anything shorter
than `lookback` never reports a cross.

Pure functions; no I/O.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class CrossResult:
    crossed: bool
    direction: str  # "up" | "down" | "none"
    previous_diff: float
    current_diff: float


@dataclass(frozen=True)
class StrikeDistance:
    absolute: float  # price - strike
    percentage: float  # signed, in percent of strike
    direction: str  # "above" | "below" | "at"


def _has(series: Sequence[float], lookback: int) -> bool:
    return series is not None and len(series) >= lookback


def cross_up(a: Sequence[float], b: Sequence[float], lookback: int = 2) -> bool:
    """`a` moved from at-or-below `b` to strictly above it."""
    if not (_has(a, lookback) and _has(b, lookback)):
        return False
    return a[-1] > b[-1] and a[-lookback] <= b[-lookback]


def cross_down(a: Sequence[float], b: Sequence[float], lookback: int = 2) -> bool:
    """`a` moved from at-or-above `b` to strictly below it."""
    if not (_has(a, lookback) and _has(b, lookback)):
        return False
    return a[-1] < b[-1] and a[-lookback] >= b[-lookback]


def cross_over(a: Sequence[float], b: Sequence[float], lookback: int = 2) -> CrossResult:
    """Detect a cross in either direction."""
    if not (_has(a, lookback) and _has(b, lookback)):
        return CrossResult(False, "none", 0.0, 0.0)

    current_diff = a[-1] - b[-1]
    previous_diff = a[-lookback] - b[-lookback]

    if current_diff > 0 and previous_diff <= 0:
        return CrossResult(True, "up", previous_diff, current_diff)
    if current_diff < 0 and previous_diff >= 0:
        return CrossResult(True, "down", previous_diff, current_diff)
    return CrossResult(False, "none", previous_diff, current_diff)


def cross_above(series: Sequence[float], threshold: float, lookback: int = 2) -> bool:
    """E.g. RSI crossing above 50."""
    if not _has(series, lookback):
        return False
    return series[-1] > threshold and series[-lookback] <= threshold


def cross_below(series: Sequence[float], threshold: float, lookback: int = 2) -> bool:
    if not _has(series, lookback):
        return False
    return series[-1] < threshold and series[-lookback] >= threshold


def is_above(a: Sequence[float], b: Sequence[float]) -> bool:
    if not a or not b:
        return False
    return a[-1] > b[-1]


def is_below(a: Sequence[float], b: Sequence[float]) -> bool:
    if not a or not b:
        return False
    return a[-1] < b[-1]


def standard_deviation(values: Sequence[float], period: int = 20) -> Optional[float]:
    """Population standard deviation of the last `period` values, None if fewer."""
    if values is None or len(values) < period:
        return None
    window = list(values[-period:])
    mean = sum(window) / period
    variance = sum((v - mean) ** 2 for v in window) / period
    return math.sqrt(variance)


def strike_distance(price: float, strike: float) -> StrikeDistance:
    """
    Signed distance of `price` from `strike`.

    Within 0.01% either way counts as "at" the strike.
    """
    absolute = price - strike
    percentage = absolute / strike * 100
    if abs(percentage) < 0.01:
        direction = "at"
    elif absolute > 0:
        direction = "above"
    else:
        direction = "below"
    return StrikeDistance(absolute, percentage, direction)
