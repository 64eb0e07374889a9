"""
Momentum, trend and volume indicators computed over reference-price candles.

Every function takes oldest-first inputs and returns None (or an empty
list) when there is not enough history for a full first window. Moving
averages follow the usual conventions: EMAs are seeded with the SMA of
their first window and RSI/ADX use Wilder smoothing.

Pure functions; no I/O.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from kalshi_trader.interfaces.exchange_client import Candle


@dataclass(frozen=True)
class MacdResult:
    macd: float
    signal: float
    hist: float
    hist_delta: Optional[float]


@dataclass(frozen=True)
class MacdSeries:
    """MACD, signal and histogram, aligned so index i refers to the same bar."""
    macd: List[float]
    signal: List[float]
    hist: List[float]


@dataclass(frozen=True)
class ADXResult:
    adx: float
    plus_di: float
    minus_di: float


@dataclass(frozen=True)
class DeltaResult:
    delta1: float
    delta3: float
    delta_percent1: float
    delta_percent3: float


def ema_series(values: Sequence[float], period: int) -> List[float]:
    """EMA seeded with the SMA of the first `period` values."""
    if period <= 0 or len(values) < period:
        return []
    k = 2.0 / (period + 1)
    current = sum(values[:period]) / period
    out = [current]
    for v in values[period:]:
        current = (v - current) * k + current
        out.append(current)
    return out


def compute_rsi(closes: Sequence[float], period: int = 14) -> Optional[List[float]]:
    """
    Wilder RSI series, one value per close after the first `period`.

    Returns None when fewer than `period + 1` closes are available.
    """
    if len(closes) < period + 1:
        return None

    gains = []
    losses = []
    for i in range(1, len(closes)):
        change = closes[i] - closes[i - 1]
        gains.append(max(change, 0.0))
        losses.append(max(-change, 0.0))

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    def _rsi(gain: float, loss: float) -> float:
        if loss == 0:
            return 100.0 if gain > 0 else 50.0
        rs = gain / loss
        return 100.0 - 100.0 / (1.0 + rs)

    out = [_rsi(avg_gain, avg_loss)]
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        out.append(_rsi(avg_gain, avg_loss))
    return out


def compute_macd_series(closes: Sequence[float], fast: int = 12, slow: int = 26,
                        signal: int = 9) -> Optional[MacdSeries]:
    """Full MACD history starting at the first bar with a signal value."""
    if len(closes) < slow + signal:
        return None

    fast_ema = ema_series(closes, fast)
    slow_ema = ema_series(closes, slow)
    # fast_ema starts at bar fast-1, slow_ema at bar slow-1
    offset = slow - fast
    macd_line = [f - s for f, s in zip(fast_ema[offset:], slow_ema)]

    signal_line = ema_series(macd_line, signal)
    if not signal_line:
        return None
    macd_aligned = macd_line[signal - 1:]
    hist = [m - s for m, s in zip(macd_aligned, signal_line)]
    return MacdSeries(macd=macd_aligned, signal=signal_line, hist=hist)


def compute_macd(closes: Sequence[float], fast: int = 12, slow: int = 26,
                 signal: int = 9) -> Optional[MacdResult]:
    """Latest MACD reading plus the change in histogram since the previous bar."""
    series = compute_macd_series(closes, fast, slow, signal)
    if series is None or len(series.hist) < 2:
        return None
    return MacdResult(
        macd=series.macd[-1],
        signal=series.signal[-1],
        hist=series.hist[-1],
        hist_delta=series.hist[-1] - series.hist[-2],
    )


def compute_vwap_series(candles: Sequence[Candle]) -> List[float]:
    """Cumulative VWAP from the first candle, using the typical price (H+L+C)/3."""
    out: List[float] = []
    cum_pv = 0.0
    cum_volume = 0.0
    for c in candles:
        typical = (c.high + c.low + c.close) / 3.0
        cum_pv += typical * c.volume
        cum_volume += c.volume
        out.append(cum_pv / cum_volume if cum_volume > 0 else typical)
    return out


def compute_adx(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
                period: int = 14) -> Optional[ADXResult]:
    """
    Wilder ADX with the +DI/-DI pair of the latest bar.

    Needs `2 * period` bars: one window to seed the smoothed ranges and
    another to seed the ADX average.
    """
    n = min(len(highs), len(lows), len(closes))
    if n < 2 * period:
        return None

    trs, plus_dm, minus_dm = [], [], []
    for i in range(1, n):
        up = highs[i] - highs[i - 1]
        down = lows[i - 1] - lows[i]
        plus_dm.append(up if up > down and up > 0 else 0.0)
        minus_dm.append(down if down > up and down > 0 else 0.0)
        trs.append(max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1]),
        ))

    sm_tr = sum(trs[:period])
    sm_plus = sum(plus_dm[:period])
    sm_minus = sum(minus_dm[:period])

    def _di(tr: float, p: float, m: float):
        if tr == 0:
            return 0.0, 0.0
        return 100.0 * p / tr, 100.0 * m / tr

    def _dx(pdi: float, mdi: float) -> float:
        total = pdi + mdi
        return 0.0 if total == 0 else 100.0 * abs(pdi - mdi) / total

    plus_di, minus_di = _di(sm_tr, sm_plus, sm_minus)
    dxs = [_dx(plus_di, minus_di)]
    for i in range(period, len(trs)):
        sm_tr = sm_tr - sm_tr / period + trs[i]
        sm_plus = sm_plus - sm_plus / period + plus_dm[i]
        sm_minus = sm_minus - sm_minus / period + minus_dm[i]
        plus_di, minus_di = _di(sm_tr, sm_plus, sm_minus)
        dxs.append(_dx(plus_di, minus_di))

    if len(dxs) < period:
        return None
    adx = sum(dxs[:period]) / period
    for dx in dxs[period:]:
        adx = (adx * (period - 1) + dx) / period
    return ADXResult(adx=adx, plus_di=plus_di, minus_di=minus_di)


def compute_delta(closes: Sequence[float]) -> Optional[DeltaResult]:
    """1- and 3-bar price change, absolute and in percent."""
    if len(closes) < 4:
        return None
    current = closes[-1]
    prev1 = closes[-2]
    prev3 = closes[-4]
    delta1 = current - prev1
    delta3 = current - prev3
    return DeltaResult(
        delta1=delta1,
        delta3=delta3,
        delta_percent1=delta1 / prev1 * 100 if prev1 != 0 else 0.0,
        delta_percent3=delta3 / prev3 * 100 if prev3 != 0 else 0.0,
    )
