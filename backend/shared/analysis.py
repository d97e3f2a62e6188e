"""Per-ticker analysis pipeline.

quote -> metrics -> signal -> position sizing, one ticker at a time.
Batch runs are sequential to stay inside Finnhub's free-tier rate limit.
"""

import logging
from typing import Iterable

import metrics_engine
import signal_classifier
from gateway import ProviderGateway
from models import RiskLevel, Signal, StockAnalysis

logger = logging.getLogger(__name__)

MIN_POSITION_SIZE = 3
MAX_POSITION_SIZE = 25
POSITION_SIZE_BASE = 28.0
POSITION_SIZE_RISK_DIVISOR = 3.5

LONG_STOP = 0.94
LONG_TARGET = 1.12
SHORT_STOP = 1.06
SHORT_TARGET = 0.88


def analyze_ticker(symbol: str, gateway: ProviderGateway) -> StockAnalysis:
    """Fetch, score and classify one ticker.

    Raises:
        InvalidInputError: symbol is missing or malformed.
    """
    quote = gateway.get_quote(symbol)
    profile = gateway.get_profile(quote.symbol)
    closes = gateway.get_price_history(quote.symbol)

    metrics = metrics_engine.compute_metrics(quote, profile, closes)
    signal = signal_classifier.classify_metrics(
        metrics, extreme_move_overrides=gateway.settings.extreme_move_overrides
    )
    metrics = metrics.model_copy(update={"signal": signal})

    stop_loss, target = stop_and_target(quote.price, signal)
    analysis = StockAnalysis(
        quote=quote,
        profile=profile,
        metrics=metrics,
        position_size=position_size(metrics.risk_score),
        stop_loss=stop_loss,
        target=target,
        risk_level=risk_level(metrics.risk_score),
    )
    logger.info(
        f"[Analysis] {quote.symbol}: ${quote.price:.2f} signal={signal.value} "
        f"strength={metrics.signal_strength} risk={metrics.risk_score} source={quote.data_source}"
    )
    return analysis


def analyze_all(symbols: Iterable[str], gateway: ProviderGateway) -> list[StockAnalysis]:
    """Analyze each symbol in order. Duplicates are analyzed once."""
    results = []
    seen = set()
    for symbol in symbols:
        key = (symbol or "").strip().upper()
        if key in seen:
            continue
        seen.add(key)
        results.append(analyze_ticker(symbol, gateway))
    return results


def position_size(risk_score: int) -> int:
    """Max portfolio share (%) for a position; riskier names get less."""
    raw = POSITION_SIZE_BASE - risk_score / POSITION_SIZE_RISK_DIVISOR
    size = max(MIN_POSITION_SIZE, min(MAX_POSITION_SIZE, raw))
    return metrics_engine.round_half_up(size)


def stop_and_target(price: float, signal: Signal) -> tuple[float, float]:
    # HOLD is treated as an existing long position.
    if signal is Signal.SELL:
        return round(price * SHORT_STOP, 2), round(price * SHORT_TARGET, 2)
    return round(price * LONG_STOP, 2), round(price * LONG_TARGET, 2)


def risk_level(risk_score: int) -> RiskLevel:
    if risk_score > 70:
        return RiskLevel.HIGH
    if risk_score > 40:
        return RiskLevel.MODERATE
    return RiskLevel.LOW
