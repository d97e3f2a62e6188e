"""Optional news sources merged with Finnhub company news.

  NewsAPI       /v2/everything      enabled when NEWS_API_KEY is set
  Alpha Vantage NEWS_SENTIMENT      enabled when ALPHA_VANTAGE_API_KEY is set

A source without a key returns [] without touching the network. Request
failures raise ProviderUnavailable / MalformedProviderPayload like the
Finnhub client; the gateway drops a failed source and keeps the rest.
Articles come back in the gateway's shape:
{title, description, url, publishedAt, source}.
"""

import http.client
import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timedelta, timezone

from errors import MalformedProviderPayload, ProviderUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

NEWSAPI = "NewsAPI"
ALPHA_VANTAGE = "AlphaVantage"

_NEWSAPI_URL = "https://newsapi.org/v2/everything"
_ALPHA_VANTAGE_URL = "https://www.alphavantage.co/query"

ALPHA_VANTAGE_MAX_ARTICLES = 5


def _get_json(provider: str, url: str, timeout: float):
    """One GET request, decoded as JSON."""
    try:
        req = urllib.request.Request(url, headers={"User-Agent": "StockRiskAnalyzer/1.0"})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read()
    except urllib.error.HTTPError as e:
        logger.error(f"[{provider}] HTTP {e.code}: {e.reason}")
        raise ProviderUnavailable(provider, f"HTTP {e.code}", status=e.code) from e
    except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
        logger.error(f"[{provider}] Request failed: {e}")
        raise ProviderUnavailable(provider, f"request failed: {e}") from e

    try:
        return json.loads(raw.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedProviderPayload(provider, "invalid JSON") from e


def get_newsapi_articles(ticker: str, days: int = 1, timeout: float = DEFAULT_TIMEOUT) -> list[dict]:
    """Articles mentioning the ticker, newest first."""
    api_key = os.environ.get("NEWS_API_KEY", "")
    if not api_key:
        return []

    from_date = (datetime.now(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%d")
    query = urllib.parse.urlencode({
        "q": ticker,
        "from": from_date,
        "sortBy": "publishedAt",
        "apiKey": api_key,
    })
    data = _get_json(NEWSAPI, f"{_NEWSAPI_URL}?{query}", timeout)

    if not isinstance(data, dict) or data.get("status") != "ok":
        return []

    articles = []
    for a in data.get("articles") or []:
        if not isinstance(a, dict) or not a.get("title"):
            continue
        source = a.get("source")
        articles.append({
            "title": a["title"],
            "description": a.get("description") or "",
            "url": a.get("url") or "",
            "publishedAt": a.get("publishedAt") or "",
            "source": (source.get("name") if isinstance(source, dict) else source) or NEWSAPI,
        })
    return articles


def _alpha_vantage_time(value: str) -> str:
    """20240115T143000 -> ISO-8601 UTC; unknown formats pass through."""
    try:
        return datetime.strptime(value, "%Y%m%dT%H%M%S").replace(tzinfo=timezone.utc).isoformat()
    except (TypeError, ValueError):
        return value or ""


def get_alpha_vantage_articles(ticker: str, timeout: float = DEFAULT_TIMEOUT) -> list[dict]:
    api_key = os.environ.get("ALPHA_VANTAGE_API_KEY", "")
    if not api_key:
        return []

    query = urllib.parse.urlencode({
        "function": "NEWS_SENTIMENT",
        "tickers": ticker,
        "apikey": api_key,
    })
    data = _get_json(ALPHA_VANTAGE, f"{_ALPHA_VANTAGE_URL}?{query}", timeout)

    if not isinstance(data, dict) or not isinstance(data.get("feed"), list):
        return []

    articles = []
    for a in data["feed"][:ALPHA_VANTAGE_MAX_ARTICLES]:
        if not isinstance(a, dict) or not a.get("title"):
            continue
        articles.append({
            "title": a["title"],
            "description": a.get("summary") or "",
            "url": a.get("url") or "",
            "publishedAt": _alpha_vantage_time(a.get("time_published")),
            "source": a.get("source") or ALPHA_VANTAGE,
        })
    return articles
