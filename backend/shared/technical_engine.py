"""Technical indicators computed from daily closes.

Used by the metrics engine when real price history is available, so the
RSI fed into the risk score and classifier is a true Wilder RSI instead of
the single-quote momentum proxy.
"""

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

RSI_PERIOD = 14


def wilder_rsi(closes: Sequence[float], period: int = RSI_PERIOD) -> Optional[float]:
    """Return the latest RSI(period) for a series of closes, oldest first.

    Returns None when fewer than period + 1 closes are supplied. A series
    with gains and no losses reads 100; a flat series reads 50.
    """
    if closes is None or len(closes) < period + 1:
        return None

    series = pd.Series([float(c) for c in closes], dtype="float64")
    delta = series.diff()
    gain = delta.where(delta > 0, 0.0)
    loss = (-delta).where(delta < 0, 0.0)
    avg_gain = gain.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()
    avg_loss = loss.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()

    last_gain = _safe_last(avg_gain)
    last_loss = _safe_last(avg_loss)
    if last_gain is None or last_loss is None:
        return None

    if last_loss == 0:
        return 100.0 if last_gain > 0 else 50.0

    rs = last_gain / last_loss
    return round(100 - (100 / (1 + rs)), 4)


def _safe_last(series) -> Optional[float]:
    """Get the last non-NaN value from a pandas Series, or None."""
    if series is None:
        return None
    try:
        val = series.dropna().iloc[-1]
        return float(val) if not np.isnan(val) else None
    except (IndexError, TypeError):
        return None
