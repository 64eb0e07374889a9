"""
Technical Decision Engine.

Scores one cycle of indicator readings into BUY_YES / BUY_NO / NO_TRADE.
The Kalshi contract pays on whether the reference price finishes above
the strike, so a price cross of the strike (plus a small gap) dominates;
MACD, VWAP, RSI and short-term delta add supporting points, and ADX,
strike distance and volatility scale the resulting confidence.

`analyze_technical_signals` is pure: same bundle in, same decision out.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from kalshi_trader.indicators.crosses import (
    cross_up,
    cross_down,
    cross_above,
    cross_below,
    is_above,
    is_below,
    standard_deviation,
    strike_distance,
)
from kalshi_trader.indicators.oscillators import (
    ADXResult,
    DeltaResult,
    MacdResult,
    MacdSeries,
    compute_adx,
    compute_delta,
    compute_macd_series,
    compute_rsi,
    compute_vwap_series,
)
from kalshi_trader.interfaces.exchange_client import Candle
from kalshi_trader.strategies.base import TradeAction, TradeDecision

CONFIDENCE_THRESHOLD = 0.70
MIN_TOTAL_SCORE = 8
MIN_SIGNAL_DIFFERENCE = 2
MIN_MINUTES_TO_EXPIRY = 5.0
STRIKE_CROSS_CONFIDENCE_FLOOR = 0.75
VOLATILITY_PERIOD = 20


@dataclass
class TechnicalSignals:
    """
    Indicator readings for one cycle. Any field may be missing; the
    corresponding signal is then skipped.
    """
    price: float
    strike_price: Optional[float] = None
    time_left_minutes: Optional[float] = None
    rsi: Optional[float] = None
    rsi_series: Optional[List[float]] = None
    macd: Optional[MacdResult] = None
    macd_series: Optional[MacdSeries] = None
    vwap: Optional[float] = None
    vwap_series: Optional[List[float]] = None
    delta: Optional[DeltaResult] = None
    price_series: Optional[List[float]] = None
    adx: Optional[ADXResult] = None

    @classmethod
    def from_candles(cls, candles: Sequence[Candle], strike_price: Optional[float] = None,
                     time_left_minutes: Optional[float] = None) -> "TechnicalSignals":
        closes = [c.close for c in candles]
        highs = [c.high for c in candles]
        lows = [c.low for c in candles]

        rsi_series = compute_rsi(closes, 14)
        macd_series = compute_macd_series(closes, 12, 26, 9)
        macd = None
        if macd_series is not None and len(macd_series.hist) >= 2:
            macd = MacdResult(
                macd=macd_series.macd[-1],
                signal=macd_series.signal[-1],
                hist=macd_series.hist[-1],
                hist_delta=macd_series.hist[-1] - macd_series.hist[-2],
            )
        vwap_series = compute_vwap_series(candles)

        return cls(
            price=closes[-1] if closes else 0.0,
            strike_price=strike_price,
            time_left_minutes=time_left_minutes,
            rsi=rsi_series[-1] if rsi_series else None,
            rsi_series=rsi_series,
            macd=macd,
            macd_series=macd_series,
            vwap=vwap_series[-1] if vwap_series else None,
            vwap_series=vwap_series or None,
            delta=compute_delta(closes),
            price_series=closes,
            adx=compute_adx(highs, lows, closes, 14),
        )


def _adx_multiplier(adx: float) -> float:
    if adx >= 40:
        return 1.3
    if adx >= 30:
        return 1.2
    if adx >= 25:
        return 1.15
    return 1.1


def _adx_label(adx: float) -> str:
    if adx >= 40:
        return "VERY STRONG"
    if adx >= 30:
        return "STRONG"
    if adx >= 25:
        return "MODERATE"
    return "EMERGING"


def _strike_distance_multiplier(abs_percent: float):
    if abs_percent < 0.1:
        return 1.2, "VERY CLOSE"
    if abs_percent < 0.3:
        return 1.1, "CLOSE"
    if abs_percent < 0.5:
        return 1.0, "MEDIUM"
    if abs_percent < 1.0:
        return 0.8, "FAR"
    return 0.6, "VERY FAR"


def analyze_technical_signals(signals: TechnicalSignals,
                              strike_gap_percent: float = 0.015) -> TradeDecision:
    """
    Score a signal bundle into a trade decision.

    Args:
        signals: Indicator readings for the current cycle.
        strike_gap_percent: How far past the strike (in percent) the price
            must cross before the strike cross counts.
    """
    bullish: List[str] = []
    bearish: List[str] = []
    bullish_score = 0
    bearish_score = 0

    # Trend strength
    adx_multiplier = 1.0
    adx = signals.adx
    if adx is not None and adx.adx >= 22 and abs(adx.plus_di - adx.minus_di) >= 3:
        adx_multiplier = _adx_multiplier(adx.adx)
        bonus = f"[+{(adx_multiplier - 1) * 100:.0f}% confidence]"
        if adx.plus_di > adx.minus_di:
            bullish.append(f"ADX {adx.adx:.1f} - {_adx_label(adx.adx)} BULLISH trend "
                           f"(+DI {adx.plus_di:.1f} > -DI {adx.minus_di:.1f}) {bonus}")
        else:
            bearish.append(f"ADX {adx.adx:.1f} - {_adx_label(adx.adx)} BEARISH trend "
                           f"(-DI {adx.minus_di:.1f} > +DI {adx.plus_di:.1f}) {bonus}")

    # Strike distance
    strike_multiplier = 1.0
    strike = signals.strike_price
    if strike and signals.price:
        distance = strike_distance(signals.price, strike)
        strike_multiplier, label = _strike_distance_multiplier(abs(distance.percentage))
        context = (f"Price {distance.direction} strike by {abs(distance.percentage):.3f}% "
                   f"(${abs(distance.absolute):.2f}) [{label}]")
        if distance.direction == "below":
            bullish.append(f"{context} - Need upward cross")
        elif distance.direction == "above":
            bearish.append(f"{context} - Need downward cross")

    if signals.time_left_minutes is not None and signals.time_left_minutes < MIN_MINUTES_TO_EXPIRY:
        return TradeDecision.no_trade(
            f"Too close to expiry ({signals.time_left_minutes:.1f} min left)",
            bullish=bullish,
            bearish=bearish,
        )

    # Volatility
    volatility_multiplier = 1.0
    prices = signals.price_series or []
    if len(prices) >= VOLATILITY_PERIOD and signals.price:
        stdev = standard_deviation(prices, VOLATILITY_PERIOD)
        if stdev is not None:
            stdev_percent = stdev / signals.price * 100
            if stdev_percent < 0.05:
                volatility_multiplier = 0.7
                bearish.append(f"Low volatility ({stdev_percent:.3f}%) - Choppy market")
            elif stdev_percent > 0.2:
                volatility_multiplier = 1.2
                bullish.append(f"High volatility ({stdev_percent:.3f}%) - Strong moves expected")

    strike_cross_up = strike_cross_down = False
    macd_cross_up = macd_cross_down = False
    vwap_cross_up = vwap_cross_down = False
    rsi_cross_up = rsi_cross_down = False

    # Price x strike (with gap)
    if strike and len(prices) >= 2:
        gap = strike_gap_percent / 100
        current = prices[-1]
        if cross_above(prices, strike * (1 + gap)):
            strike_cross_up = True
            bullish.append(f"PRICE CROSSED ABOVE STRIKE +{(current - strike) / strike * 100:.3f}% - YES ENTRY")
            bullish_score += 8
        if cross_below(prices, strike * (1 - gap)):
            strike_cross_down = True
            bearish.append(f"PRICE CROSSED BELOW STRIKE -{(strike - current) / strike * 100:.3f}% - NO ENTRY")
            bearish_score += 8

    # MACD
    ms = signals.macd_series
    if ms is not None and len(ms.macd) >= 2 and len(ms.signal) >= 2:
        macd_cross_up = cross_up(ms.macd, ms.signal)
        macd_cross_down = cross_down(ms.macd, ms.signal)
        if macd_cross_up:
            bullish.append("MACD bullish cross (MACD crossed above signal)")
            bullish_score += 5
        elif macd_cross_down:
            bearish.append("MACD bearish cross (MACD crossed below signal)")
            bearish_score += 5
        elif signals.macd is not None:
            if signals.macd.hist > 0:
                bullish.append(f"MACD above signal (hist: {signals.macd.hist:.2f})")
                bullish_score += 2
            elif signals.macd.hist < 0:
                bearish.append(f"MACD below signal (hist: {signals.macd.hist:.2f})")
                bearish_score += 2

    # Price x VWAP
    vs = signals.vwap_series
    if vs is not None and len(prices) >= 2 and len(vs) >= 2:
        vwap_cross_up = cross_up(prices, vs)
        vwap_cross_down = cross_down(prices, vs)
        if vwap_cross_up:
            bullish.append("Price crossed above VWAP")
            bullish_score += 5
        elif vwap_cross_down:
            bearish.append("Price crossed below VWAP")
            bearish_score += 5
        elif signals.vwap:
            diff = (signals.price - signals.vwap) / signals.vwap * 100
            if is_above(prices, vs):
                bullish.append(f"Price above VWAP (+{diff:.2f}%)")
                bullish_score += 2
            elif is_below(prices, vs):
                bearish.append(f"Price below VWAP ({diff:.2f}%)")
                bearish_score += 2

    # RSI x 50
    rs = signals.rsi_series
    if rs is not None and len(rs) >= 2:
        rsi_cross_up = cross_above(rs, 50)
        rsi_cross_down = cross_below(rs, 50)
        if rsi_cross_up:
            bullish.append("RSI crossed above 50")
            bullish_score += 4
        elif rsi_cross_down:
            bearish.append("RSI crossed below 50")
            bearish_score += 4
        elif signals.rsi is not None:
            rsi = signals.rsi
            if rsi < 30:
                bullish.append(f"RSI oversold ({rsi:.1f})")
                bullish_score += 3
            elif rsi > 70:
                bearish.append(f"RSI overbought ({rsi:.1f})")
                bearish_score += 3
            elif rsi > 55:
                bullish.append(f"RSI bullish ({rsi:.1f})")
                bullish_score += 1
            elif rsi < 45:
                bearish.append(f"RSI bearish ({rsi:.1f})")
                bearish_score += 1

    # 3-candle delta
    if signals.delta is not None:
        d3 = signals.delta.delta_percent3
        if d3 > 0.5:
            bullish.append(f"Upward momentum (+{d3:.2f}% in 3 candles)")
            bullish_score += 2
        elif d3 < -0.5:
            bearish.append(f"Downward momentum ({d3:.2f}% in 3 candles)")
            bearish_score += 2

    strike_crossed = strike_cross_up or strike_cross_down
    other_crossed = (macd_cross_up or macd_cross_down or vwap_cross_up
                     or vwap_cross_down or rsi_cross_up or rsi_cross_down)
    confirmation_multiplier = 1.0
    if strike_crossed and other_crossed:
        confirmation_multiplier = 1.3
        (bullish if strike_cross_up else bearish).append("MOMENTUM CONFIRMED - Multiple crosses aligned")

    total_score = bullish_score + bearish_score
    if total_score < MIN_TOTAL_SCORE:
        return TradeDecision.no_trade(
            f"Insufficient signal strength (score: {total_score}/{MIN_TOTAL_SCORE} minimum)",
            bullish=bullish,
            bearish=bearish,
        )

    multiplier = strike_multiplier * volatility_multiplier * adx_multiplier * confirmation_multiplier
    bullish_conf = min(bullish_score / total_score * multiplier, 1.0)
    bearish_conf = min(bearish_score / total_score * multiplier, 1.0)

    if abs(len(bullish) - len(bearish)) < MIN_SIGNAL_DIFFERENCE and not strike_crossed:
        return TradeDecision.no_trade(
            f"Conflicting signals: {len(bullish)} bullish vs {len(bearish)} bearish",
            confidence=max(bullish_conf, bearish_conf),
            bullish=bullish,
            bearish=bearish,
        )

    if strike_cross_up:
        bullish_conf = max(bullish_conf, STRIKE_CROSS_CONFIDENCE_FLOOR)
    elif strike_cross_down:
        bearish_conf = max(bearish_conf, STRIKE_CROSS_CONFIDENCE_FLOOR)

    def decide(action: TradeAction, confidence: float, reason: str) -> TradeDecision:
        return TradeDecision(action, confidence, reason, {"bullish": bullish, "bearish": bearish})

    if strike_cross_up and bullish_conf >= CONFIDENCE_THRESHOLD:
        return decide(TradeAction.BUY_YES, bullish_conf,
                      f"PRICE CROSSED STRIKE - bullish setup: {len(bullish)} signals, {bullish_conf:.0%} confidence")
    if strike_cross_down and bearish_conf >= CONFIDENCE_THRESHOLD:
        return decide(TradeAction.BUY_NO, bearish_conf,
                      f"PRICE CROSSED STRIKE - bearish setup: {len(bearish)} signals, {bearish_conf:.0%} confidence")

    if bullish_conf >= CONFIDENCE_THRESHOLD and len(bullish) > len(bearish):
        return decide(TradeAction.BUY_YES, bullish_conf,
                      f"Strong bullish setup: {len(bullish)} signals, {bullish_conf:.0%} confidence")
    if bearish_conf >= CONFIDENCE_THRESHOLD and len(bearish) > len(bullish):
        return decide(TradeAction.BUY_NO, bearish_conf,
                      f"Strong bearish setup: {len(bearish)} signals, {bearish_conf:.0%} confidence")

    return TradeDecision.no_trade(
        f"Below confidence threshold: {len(bullish)} bullish ({bullish_conf:.0%}), "
        f"{len(bearish)} bearish ({bearish_conf:.0%}), need {CONFIDENCE_THRESHOLD:.0%}",
        confidence=max(bullish_conf, bearish_conf),
        bullish=bullish,
        bearish=bearish,
    )
