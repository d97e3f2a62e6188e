"""Local fallback payloads used when a provider call fails.

Nothing here touches the network, so a fallback always succeeds. Synthetic
quotes are seeded from the ticker symbol: the same ticker always gets the
same demo quote, which keeps the downstream metrics deterministic.
"""

import hashlib
import logging

import numpy as np

from models import (
    FALLBACK_DATA_SOURCE,
    AIAnalysis,
    MoneyFlow,
    NewsSentiment,
    Profile,
    Quote,
    SentimentBlock,
    TradingImplications,
)

logger = logging.getLogger(__name__)

# Demo price anchors for the default watchlist
DEMO_PRICE_ANCHORS = {
    "AAPL": {"base": 175.0, "spread": 15.0},
    "MSFT": {"base": 410.0, "spread": 25.0},
    "GOOGL": {"base": 140.0, "spread": 12.0},
    "TSLA": {"base": 240.0, "spread": 35.0},
    "NVDA": {"base": 470.0, "spread": 40.0},
}
DEFAULT_PRICE_ANCHOR = {"base": 150.0, "spread": 20.0}

DEMO_BETAS = {"AAPL": 1.25, "MSFT": 0.85, "GOOGL": 1.1, "TSLA": 2.1, "NVDA": 1.8}

REASON_UNAVAILABLE = "unavailable"
REASON_UNPARSEABLE = "unparseable"


def _rng_for(symbol: str) -> np.random.Generator:
    digest = hashlib.sha256(symbol.upper().encode("utf-8")).digest()
    return np.random.default_rng(int.from_bytes(digest[:8], "big"))


def synthetic_quote(symbol: str) -> Quote:
    """Build a demo quote shaped exactly like a live one."""
    symbol = symbol.upper()
    anchor = DEMO_PRICE_ANCHORS.get(symbol, DEFAULT_PRICE_ANCHOR)
    rng = _rng_for(symbol)

    price = anchor["base"] + (rng.random() - 0.5) * anchor["spread"]
    change_pct = (rng.random() - 0.5) * 10
    previous_close = price / (1 + change_pct / 100)
    high = max(price, previous_close) * (1 + rng.random() * 0.02)
    low = min(price, previous_close) * (1 - rng.random() * 0.02)
    volume = int(30_000_000 + rng.random() * 20_000_000)

    logger.info(f"[Fallback] Using demo quote for {symbol}")
    return Quote(
        symbol=symbol,
        price=round(price, 2),
        previous_close=round(previous_close, 2),
        high=round(high, 2),
        low=round(low, 2),
        volume=volume,
        data_source=FALLBACK_DATA_SOURCE,
        fallback=True,
    )


def synthetic_profile(symbol: str) -> Profile:
    symbol = symbol.upper()
    return Profile(beta=DEMO_BETAS.get(symbol, 1.0))


def fallback_narrative(symbol: str, reason: str = REASON_UNAVAILABLE) -> AIAnalysis:
    """Static narrative template, chosen by why the live analysis failed."""
    symbol = symbol.upper()
    if reason == REASON_UNPARSEABLE:
        return AIAnalysis(
            key_catalysts=[
                f"AI analysis indicates key catalysts for {symbol} based on current market conditions",
                "Upcoming earnings and industry developments to monitor closely",
                "Regulatory and policy implications for sector positioning and growth",
                "Technical levels and volume patterns suggesting directional bias ahead",
            ],
            money_flow=MoneyFlow(
                institutional="Mixed institutional activity patterns observed",
                retail="Standard retail interest levels detected",
                insider_activity="No significant insider activity detected in recent period",
                options_flow="Options activity within normal ranges for current volatility",
                volume_analysis="Volume patterns suggest consolidation phase with potential for breakout",
            ),
            recent_events=[
                "Recent market developments affecting sector positioning and relative performance",
                "Industry news and competitive landscape changes impacting valuation metrics",
                "Broader market conditions influencing individual stock performance and sentiment",
            ],
            sentiment=SentimentBlock(
                overall="Neutral",
                analyst_consensus="Mixed analyst views with standard coverage and price target distribution",
                social_sentiment="Moderate social media interest with balanced retail sentiment",
                positioning="Institutional positioning appears balanced relative to benchmark allocations",
            ),
            fallback=True,
            note="Fallback analysis used because the AI response could not be parsed",
        )

    return AIAnalysis(
        key_catalysts=[
            f"API temporarily unavailable - analyzing {symbol} with technical indicators",
            "Monitor upcoming earnings announcements and guidance updates",
            "Watch for sector rotation and institutional positioning changes",
            "Technical levels suggest key support/resistance areas ahead",
        ],
        money_flow=MoneyFlow(
            institutional="Analysis pending - API connection issue",
            retail="Standard retail activity patterns observed",
            insider_activity="No recent insider activity detected",
            options_flow="Options flow data temporarily unavailable",
            volume_analysis=f"Volume patterns for {symbol} within normal ranges",
        ),
        recent_events=[
            "Real-time news analysis temporarily unavailable",
            "Monitor financial news sources for latest developments",
            "Check for recent analyst updates and price target changes",
        ],
        sentiment=SentimentBlock(
            overall="Neutral",
            analyst_consensus="Mixed analyst coverage - check latest reports",
            social_sentiment="Social sentiment data pending API restoration",
            positioning="Institutional positioning analysis in progress",
        ),
        fallback=True,
        note="Fallback analysis used due to temporary API unavailability",
    )


def fallback_news_sentiment() -> NewsSentiment:
    return NewsSentiment(
        score=0,
        sentiment="neutral",
        confidence=30,
        summary="Unable to analyze sentiment with AI. Manual review recommended.",
        key_themes=["Analysis unavailable"],
        trading_implications=TradingImplications(
            short_term="Uncertain due to analysis failure",
            medium_term="Uncertain due to analysis failure",
            key_risks=["Analysis unavailable"],
            key_catalysts=["Analysis unavailable"],
        ),
        recommended_action="monitor",
        news_quality="unknown",
        fallback=True,
    )


def no_news_sentiment() -> NewsSentiment:
    return NewsSentiment(
        score=0,
        sentiment="neutral",
        confidence=0,
        summary="No recent news available for analysis",
    )
