"""Signal Classifier — BUY / SELL / HOLD from derived metrics.

Rules, first match wins:
  1. strength > 65:  BUY below 25% of the short-term range, SELL above 75%
  2. strength > 35:  BUY below 15%, SELL above 85%
  3. otherwise HOLD
Extreme move (|daily change| > 5%) forces BUY on an up move and SELL on a
down move. With `extreme_move_overrides` it replaces the range rules;
without it, it only breaks a HOLD.

All thresholds are exclusive.
"""

import logging
from typing import Optional

from models import DerivedMetrics, Signal

logger = logging.getLogger(__name__)

STRONG_STRENGTH = 65
MODERATE_STRENGTH = 35

STRONG_BUY_BELOW = 25.0
STRONG_SELL_ABOVE = 75.0
MODERATE_BUY_BELOW = 15.0
MODERATE_SELL_ABOVE = 85.0

EXTREME_MOVE_PCT = 5.0


def classify(
    signal_strength: int,
    position_in_range: Optional[float],
    rsi: float,
    daily_change_percent: float,
    risk_score: int,
    extreme_move_overrides: bool = True,
) -> Signal:
    """Map metrics to a signal.

    `rsi` and `risk_score` do not move any threshold; they are part of the
    call so every caller hands over the same metric set.
    """
    range_signal = _range_signal(signal_strength, position_in_range)
    move_signal = _extreme_move_signal(daily_change_percent)

    if move_signal is None:
        signal = range_signal
    elif extreme_move_overrides or range_signal is Signal.HOLD:
        signal = move_signal
    else:
        signal = range_signal

    logger.debug(
        f"[Classifier] strength={signal_strength} position={position_in_range} "
        f"rsi={rsi:.1f} change={daily_change_percent:.2f}% risk={risk_score} -> {signal.value}"
    )
    return signal


def classify_metrics(metrics: DerivedMetrics, extreme_move_overrides: bool = True) -> Signal:
    return classify(
        metrics.signal_strength,
        metrics.position_in_range,
        metrics.rsi,
        metrics.daily_change_percent,
        metrics.risk_score,
        extreme_move_overrides=extreme_move_overrides,
    )


def _range_signal(signal_strength: int, position: Optional[float]) -> Signal:
    if position is None:
        return Signal.HOLD

    if signal_strength > STRONG_STRENGTH:
        buy_below, sell_above = STRONG_BUY_BELOW, STRONG_SELL_ABOVE
    elif signal_strength > MODERATE_STRENGTH:
        buy_below, sell_above = MODERATE_BUY_BELOW, MODERATE_SELL_ABOVE
    else:
        return Signal.HOLD

    if position < buy_below:
        return Signal.BUY
    if position > sell_above:
        return Signal.SELL
    return Signal.HOLD


def _extreme_move_signal(daily_change_percent: float) -> Optional[Signal]:
    if abs(daily_change_percent) <= EXTREME_MOVE_PCT:
        return None
    return Signal.BUY if daily_change_percent > 0 else Signal.SELL
