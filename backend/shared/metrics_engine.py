"""Metrics Engine — derived risk metrics for a single quote.

Turns a raw quote (plus optional profile and price history) into the
numbers the dashboard shows: daily change, volatility, an RSI reading,
a 0-100 risk score, short/medium-term price ranges, a 0-100 signal
strength and the price's position inside the short-term range.

Score components:
  Risk score:      base 40 + volatility (cap 25) + beta deviation
                   + RSI extremity + large-move penalty
  Signal strength: volume ratio (30%), momentum (25%),
                   inverse volatility (20%), RSI distance from 50 (25%)

Everything here is pure: the same inputs always give the same outputs.
"""

import math
from typing import Optional, Sequence

import technical_engine
from models import DerivedMetrics, PriceRange, Profile, Quote, Signal, VolatilityRegime

# ─── Volatility ───

VOLATILITY_RANGE_FACTOR = 0.25      # share of the high/low spread treated as volatility
VOLATILITY_FALLBACK_FACTOR = 2.0    # |change%| x beta x factor when high/low are missing
MIN_RANGE_VOLATILITY = 0.5          # floor (percent) so ranges never collapse

LOW_VOLATILITY_CEILING = 15.0
HIGH_VOLATILITY_FLOOR = 30.0
REGIME_MULTIPLIERS = {
    VolatilityRegime.LOW: 0.7,
    VolatilityRegime.NORMAL: 1.0,
    VolatilityRegime.HIGH: 1.5,
}

# ─── Ranges (multiples of the volatility band) ───

SHORT_TERM_DOWNSIDE = 1.0
SHORT_TERM_UPSIDE = 1.5
MEDIUM_TERM_DOWNSIDE = 2.0
MEDIUM_TERM_UPSIDE = 3.0

# ─── RSI ───

RSI_PROXY_SENSITIVITY = 2.5
RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0

# ─── Risk Score ───

RISK_BASE = 40.0
RISK_VOLATILITY_CAP = 25.0
RISK_BETA_WEIGHT = 15.0
RISK_OVERBOUGHT_SLOPE = 1.5
RISK_OVERBOUGHT_CAP = 15.0
RISK_OVERSOLD_SLOPE = 1.0
RISK_OVERSOLD_CAP = 10.0
LARGE_MOVE_PCT = 5.0
RISK_LARGE_MOVE_PENALTY = 10.0

# ─── Signal Strength ───

STRENGTH_WEIGHTS = {
    "volume": 0.30,
    "momentum": 0.25,
    "inverse_volatility": 0.20,
    "rsi_distance": 0.25,
}
NEUTRAL_VOLUME_STRENGTH = 50.0


def compute_metrics(
    quote: Quote,
    profile: Optional[Profile] = None,
    closes: Optional[Sequence[float]] = None,
) -> DerivedMetrics:
    """Derive risk metrics for a quote.

    Args:
        quote: Validated market snapshot.
        profile: Optional enrichment. Missing fields use neutral defaults.
        closes: Optional daily closes, oldest first. Enables true RSI(14).

    Returns:
        DerivedMetrics with signal left at HOLD; the classifier sets it.
    """
    profile = profile or Profile()
    price = quote.price
    beta = profile.beta if profile.beta is not None else 1.0

    daily_change, change_pct = _daily_change(price, quote.previous_close)
    volatility = _volatility(quote, change_pct, beta)
    regime = volatility_regime(volatility)

    rsi = technical_engine.wilder_rsi(closes) if closes else None
    rsi_source = "history"
    if rsi is None:
        rsi = rsi_proxy(change_pct)
        rsi_source = "proxy"

    short_term, medium_term = price_ranges(price, quote.previous_close, volatility, regime)

    return DerivedMetrics(
        daily_change=daily_change,
        daily_change_percent=change_pct,
        volatility=volatility,
        volatility_regime=regime,
        rsi=rsi,
        rsi_source=rsi_source,
        risk_score=risk_score(volatility, beta, rsi, change_pct),
        short_term_range=short_term,
        medium_term_range=medium_term,
        signal_strength=signal_strength(
            quote.volume, profile.average_volume, change_pct, volatility, rsi
        ),
        position_in_range=position_in_range(price, short_term),
        signal=Signal.HOLD,
    )


def _daily_change(price: float, previous_close: float) -> tuple[float, float]:
    if not previous_close:
        return 0.0, 0.0
    change = price - previous_close
    return change, change / previous_close * 100


def _volatility(quote: Quote, change_pct: float, beta: float) -> float:
    if quote.has_intraday_range:
        spread_pct = (quote.high - quote.low) / quote.price * 100
        vol = spread_pct * VOLATILITY_RANGE_FACTOR
    else:
        vol = abs(change_pct) * abs(beta) * VOLATILITY_FALLBACK_FACTOR
    return max(0.0, vol)


def volatility_regime(volatility: float) -> VolatilityRegime:
    if volatility < LOW_VOLATILITY_CEILING:
        return VolatilityRegime.LOW
    if volatility > HIGH_VOLATILITY_FLOOR:
        return VolatilityRegime.HIGH
    return VolatilityRegime.NORMAL


def rsi_proxy(change_pct: float) -> float:
    """Momentum proxy in [0, 100] used when no price history is available."""
    return _clamp(50.0 + RSI_PROXY_SENSITIVITY * change_pct, 0.0, 100.0)


def risk_score(volatility: float, beta: float, rsi: float, change_pct: float) -> int:
    score = RISK_BASE
    score += min(volatility, RISK_VOLATILITY_CAP)
    score += abs(beta - 1) * RISK_BETA_WEIGHT

    if rsi > RSI_OVERBOUGHT:
        score += min(RISK_OVERBOUGHT_CAP, (rsi - RSI_OVERBOUGHT) * RISK_OVERBOUGHT_SLOPE)
    elif rsi < RSI_OVERSOLD:
        score -= min(RISK_OVERSOLD_CAP, (RSI_OVERSOLD - rsi) * RISK_OVERSOLD_SLOPE)

    if abs(change_pct) > LARGE_MOVE_PCT:
        score += RISK_LARGE_MOVE_PENALTY

    return int(_clamp(round_half_up(score), 0, 100))


def price_ranges(
    price: float,
    previous_close: float,
    volatility: float,
    regime: VolatilityRegime,
) -> tuple[PriceRange, PriceRange]:
    """Short-term range anchored on the previous close, medium-term on price.

    The short-term band can leave the current price outside it after a
    large move; that is what makes position-in-range informative.
    """
    band = max(volatility, MIN_RANGE_VOLATILITY) / 100 * price * REGIME_MULTIPLIERS[regime]
    anchor = previous_close if previous_close else price

    short_term = PriceRange(
        low=anchor - band * SHORT_TERM_DOWNSIDE,
        high=anchor + band * SHORT_TERM_UPSIDE,
    )
    medium_term = PriceRange(
        low=price - band * MEDIUM_TERM_DOWNSIDE,
        high=price + band * MEDIUM_TERM_UPSIDE,
    )
    return short_term, medium_term


def position_in_range(price: float, price_range: PriceRange) -> Optional[float]:
    """Percent position of price in the range, unclamped. None if zero-width."""
    width = price_range.high - price_range.low
    if width <= 0 or not math.isfinite(width):
        return None
    return (price - price_range.low) / width * 100


def signal_strength(
    volume: int,
    average_volume: Optional[float],
    change_pct: float,
    volatility: float,
    rsi: float,
) -> int:
    if average_volume and average_volume > 0:
        volume_strength = min(100.0, volume / average_volume * 50)
    else:
        volume_strength = NEUTRAL_VOLUME_STRENGTH

    components = {
        "volume": volume_strength,
        "momentum": min(100.0, abs(change_pct) * 20),
        "inverse_volatility": max(0.0, 100.0 - volatility * 2),
        "rsi_distance": min(100.0, abs(rsi - 50) * 2),
    }
    strength = sum(components[name] * weight for name, weight in STRENGTH_WEIGHTS.items())
    return int(_clamp(round_half_up(strength), 0, 100))


def round_half_up(value: float) -> int:
    # Trim float noise first so 55.4999999999 rounds like 55.5.
    return int(math.floor(round(value, 6) + 0.5))


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
