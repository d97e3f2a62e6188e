"""Provider Gateway — cached, fail-safe access to Finnhub and Claude.

Every read goes cache-first. On a miss the gateway makes one provider call
with the configured timeout; any ProviderError (or a payload that fails
validation) is answered with a locally generated fallback of the same
shape. Only the data-source / fallback tags tell the two paths apart.

Caches live on the gateway instance, so tests and warm Lambda containers
each own theirs. Fallback results are never cached: the next request tries
the provider again.
"""

import hashlib
import json
import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError

import claude_client
import fallback
import finnhub_client
import news_client
from config import Settings
from errors import InvalidInputError, ProviderError
from models import (
    NEWS_TIMEFRAMES,
    AIAnalysis,
    DerivedMetrics,
    NewsArticle,
    NewsSentiment,
    Profile,
    Quote,
)
from ttl_cache import TTLCache

logger = logging.getLogger(__name__)

MAX_NEWS_ARTICLES = 10
NEWS_DEDUPE_PREFIX = 50
TIMEFRAME_DAYS = {"24h": 1, "7d": 7, "30d": 30}
HISTORY_DAYS = 60


def normalize_symbol(symbol: Optional[str]) -> str:
    """Uppercase and validate a ticker symbol."""
    if symbol is None or not str(symbol).strip():
        raise InvalidInputError("Ticker symbol required")
    cleaned = str(symbol).strip().upper()
    if len(cleaned) > 10 or not all(ch.isalnum() or ch in ".-" for ch in cleaned):
        raise InvalidInputError(f"Invalid ticker symbol: {symbol!r}")
    return cleaned


class ProviderGateway:
    """Cached access to the market-data and LLM providers.

    Args:
        settings: TTLs, timeouts, model and cache bounds.
        market_client: Finnhub-shaped client (module or object).
        llm_client: Claude-shaped client (module or object).
        news_client: Optional NewsAPI / Alpha Vantage sources (module or object).
        clock: Seconds-since-epoch source shared with the caches.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        market_client: Any = finnhub_client,
        llm_client: Any = claude_client,
        news_client: Any = news_client,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or Settings()
        self.market_client = market_client
        self.llm_client = llm_client
        self.news_client = news_client
        self._clock = clock

        max_entries = self.settings.cache_max_entries
        self.quote_cache = TTLCache(
            self.settings.quote_cache_ttl_seconds, max_entries, clock, name="quote"
        )
        self.narrative_cache = TTLCache(
            self.settings.narrative_cache_ttl_seconds, max_entries, clock, name="narrative"
        )
        self.news_cache = TTLCache(
            self.settings.news_cache_ttl_seconds, max_entries, clock, name="news"
        )

    # ─── Market Data ───

    def get_quote(self, symbol: str) -> Quote:
        """Quote for symbol; a demo quote when Finnhub cannot provide one."""
        symbol = normalize_symbol(symbol)
        key = f"quote:{symbol}"

        cached = self.quote_cache.get(key)
        if cached is not None:
            logger.info(f"[Gateway] Quote cache hit for {symbol}")
            return cached

        try:
            raw = self.market_client.get_quote(symbol, timeout=self.settings.http_timeout_seconds)
            quote = Quote(
                symbol=symbol,
                price=raw["price"],
                previous_close=raw.get("previousClose") or 0.0,
                high=raw.get("high"),
                low=raw.get("low"),
                volume=raw.get("volume") or 0,
            )
        except (ProviderError, ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"[Gateway] Quote provider failed for {symbol}, using fallback: {e}")
            return fallback.synthetic_quote(symbol)

        self.quote_cache.set(key, quote)
        logger.info(f"[Gateway] Fetched {symbol} from Finnhub: ${quote.price:.2f}")
        return quote

    def get_profile(self, symbol: str) -> Profile:
        """Best-effort profile: each failed lookup degrades to defaults."""
        symbol = normalize_symbol(symbol)
        key = f"profile:{symbol}"

        cached = self.quote_cache.get(key)
        if cached is not None:
            return cached

        timeout = self.settings.http_timeout_seconds
        company: dict = {}
        financials: dict = {}
        try:
            company = self.market_client.get_company_profile(symbol, timeout=timeout) or {}
        except ProviderError as e:
            logger.warning(f"[Gateway] Profile lookup failed for {symbol}: {e}")
        try:
            financials = self.market_client.get_basic_financials(symbol, timeout=timeout) or {}
        except ProviderError as e:
            logger.warning(f"[Gateway] Financials lookup failed for {symbol}: {e}")

        if not company and not financials:
            return fallback.synthetic_profile(symbol)

        profile = Profile(
            beta=financials.get("beta") or 1.0,
            sector=company.get("sector") or "",
            market_cap=company.get("marketCap") or "N/A",
            name=company.get("name") or symbol,
            average_volume=financials.get("averageVolume"),
            fifty_two_week_high=financials.get("fiftyTwoWeekHigh"),
            fifty_two_week_low=financials.get("fiftyTwoWeekLow"),
        )
        self.quote_cache.set(key, profile)
        return profile

    def get_price_history(self, symbol: str) -> list[float]:
        """Daily closes, oldest first. Empty when disabled or unavailable."""
        if not self.settings.use_price_history:
            return []

        symbol = normalize_symbol(symbol)
        key = f"history:{symbol}"
        cached = self.quote_cache.get(key)
        if cached is not None:
            return cached

        try:
            candles = self.market_client.get_candles(
                symbol, days=HISTORY_DAYS, timeout=self.settings.http_timeout_seconds
            )
        except ProviderError as e:
            logger.warning(f"[Gateway] Price history unavailable for {symbol}: {e}")
            return []

        closes = [c["close"] for c in candles if c.get("close")]
        if closes:
            self.quote_cache.set(key, closes)
        return closes

    # ─── AI Narrative ───

    def narrative_cache_key(self, symbol: str, prompt_context: Optional[dict] = None) -> str:
        """narrative:{SYMBOL}:{model}:{window}:{context digest}

        The digest covers every value quoted in the prompt, so callers that
        supply different numbers never share a narrative.
        """
        window = int(self._clock() // self.settings.narrative_cache_window_seconds)
        encoded = json.dumps(prompt_context or {}, sort_keys=True, default=str)
        digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:12]
        return f"narrative:{symbol}:{self.settings.claude_model}:{window}:{digest}"

    def get_narrative(self, symbol: str, metrics: DerivedMetrics, context: Optional[dict] = None) -> AIAnalysis:
        """AI narrative for symbol; a static template when Claude fails.

        Args:
            symbol: Ticker symbol.
            metrics: Derived metrics embedded in the prompt.
            context: Extra prompt fields (price, beta) not carried by metrics.
        """
        symbol = normalize_symbol(symbol)
        prompt_context = {
            "daily_change_percent": f"{metrics.daily_change_percent:.2f}",
            "rsi": f"{metrics.rsi:.1f}",
            "volatility": f"{metrics.volatility:.1f}",
            "risk_score": metrics.risk_score,
            "signal": metrics.signal.value,
        }
        prompt_context.update(context or {})
        key = self.narrative_cache_key(symbol, prompt_context)

        cached = self.narrative_cache.get(key)
        if cached is not None:
            logger.info(f"[Gateway] Narrative cache hit for {symbol}")
            return cached

        prompt = self.llm_client.build_narrative_prompt(symbol, prompt_context)

        try:
            text = self.llm_client.complete(
                prompt,
                model=self.settings.claude_model,
                max_tokens=self.settings.claude_max_tokens,
                timeout=self.settings.http_timeout_seconds,
            )
        except ProviderError as e:
            logger.warning(f"[Gateway] Narrative provider failed for {symbol}, using fallback: {e}")
            return fallback.fallback_narrative(symbol, fallback.REASON_UNAVAILABLE)

        try:
            payload = self.llm_client.parse_json_response(text)
            analysis = AIAnalysis.model_validate({**payload, "fallback": False, "note": None})
        except (ProviderError, ValidationError) as e:
            logger.warning(f"[Gateway] Narrative for {symbol} unparseable, using fallback: {e}")
            return fallback.fallback_narrative(symbol, fallback.REASON_UNPARSEABLE)

        self.narrative_cache.set(key, analysis)
        logger.info(f"[Gateway] Narrative generated for {symbol}")
        return analysis

    # ─── News Sentiment ───

    def get_news_sentiment(
        self, symbol: str, timeframe: str = "24h"
    ) -> tuple[list[NewsArticle], NewsSentiment, bool]:
        """Recent news and its sentiment read.

        Returns:
            (articles, sentiment, cached)
        """
        symbol = normalize_symbol(symbol)
        if timeframe not in NEWS_TIMEFRAMES:
            timeframe = "24h"
        key = f"news:{symbol}:{timeframe}"

        cached = self.news_cache.get(key)
        if cached is not None:
            logger.info(f"[Gateway] News cache hit for {symbol} ({timeframe})")
            articles, sentiment = cached
            return articles, sentiment, True

        articles = dedupe_articles(self._fetch_news(symbol, timeframe))[:MAX_NEWS_ARTICLES]
        if not articles:
            return [], fallback.no_news_sentiment(), False

        try:
            prompt = self.llm_client.build_news_sentiment_prompt(
                symbol, [a.model_dump(by_alias=True) for a in articles]
            )
            text = self.llm_client.complete(
                prompt,
                model=self.settings.claude_model,
                max_tokens=self.settings.claude_max_tokens,
                timeout=self.settings.http_timeout_seconds,
            )
            payload = self.llm_client.parse_json_response(text)
            sentiment = NewsSentiment.model_validate({
                "score": payload.get("overallScore", 0),
                "sentiment": payload.get("sentiment", "neutral"),
                "confidence": payload.get("confidence", 0),
                "summary": payload.get("summary", ""),
                "keyThemes": payload.get("keyThemes") or [],
                "tradingImplications": payload.get("tradingImplications") or {},
                "recommendedAction": payload.get("recommendedAction", "monitor"),
                "newsQuality": payload.get("newsQuality", "unknown"),
            })
        except (ProviderError, ValidationError) as e:
            logger.warning(f"[Gateway] Sentiment analysis failed for {symbol}, using fallback: {e}")
            return articles, fallback.fallback_news_sentiment(), False

        self.news_cache.set(key, (articles, sentiment))
        return articles, sentiment, False

    def _fetch_news(self, symbol: str, timeframe: str) -> list[dict]:
        """Raw articles from NewsAPI, Finnhub and Alpha Vantage, in that order.

        Each source fails on its own: a broken source contributes nothing.
        """
        timeout = self.settings.http_timeout_seconds
        days = TIMEFRAME_DAYS[timeframe]
        sources = [
            ("NewsAPI", lambda: self.news_client.get_newsapi_articles(symbol, days=days, timeout=timeout)),
            ("Finnhub", lambda: self.market_client.get_news(symbol, days=days, timeout=timeout)),
            ("AlphaVantage", lambda: self.news_client.get_alpha_vantage_articles(symbol, timeout=timeout)),
        ]

        raw_articles = []
        for name, fetch in sources:
            try:
                raw_articles.extend(fetch() or [])
            except (ProviderError, KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"[Gateway] {name} news fetch failed for {symbol}: {e}")
        return raw_articles


def dedupe_articles(raw_articles: list[dict]) -> list[NewsArticle]:
    """Drop articles whose titles share the same opening, newest first."""
    seen = set()
    unique = []
    for raw in raw_articles or []:
        if not isinstance(raw, dict):
            continue
        title = str(raw.get("title") or "").strip()
        if not title:
            continue
        fingerprint = title.lower()[:NEWS_DEDUPE_PREFIX]
        if fingerprint in seen:
            continue
        try:
            article = NewsArticle.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"[Gateway] Skipping malformed article {title[:40]!r}: {e}")
            continue
        seen.add(fingerprint)
        unique.append(article)
    unique.sort(key=lambda a: a.published_at, reverse=True)
    return unique
