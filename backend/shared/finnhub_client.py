"""Finnhub API client for the stock risk analyzer.

Fetches quotes, company profiles, basic financials, daily candles and
company news from Finnhub's free-tier REST API (60 calls/min).

Every call makes exactly one HTTP request with an explicit timeout. Failures
raise ProviderUnavailable (non-2xx, network error, timeout) or
MalformedProviderPayload (bad JSON, zero price); the gateway decides what
to fall back to.

API key is read from:
  1. FINNHUB_API_KEY env var (local dev)
  2. FINNHUB_API_KEY_ARN env var -> AWS Secrets Manager
"""

import http.client
import json
import logging
import os
import time
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timedelta, timezone
from typing import Optional

from errors import MalformedProviderPayload, ProviderUnavailable

logger = logging.getLogger(__name__)

PROVIDER = "Finnhub"
DEFAULT_TIMEOUT = 10.0

_api_key: Optional[str] = None
_BASE_URL = "https://finnhub.io/api/v1"

# Rate limiting: track call timestamps
_call_timestamps: list[float] = []
_MAX_CALLS_PER_MINUTE = 55


def _get_api_key() -> str:
    """Retrieve Finnhub API key from env var or Secrets Manager."""
    global _api_key
    if _api_key:
        return _api_key

    env_key = os.environ.get("FINNHUB_API_KEY", "")
    if env_key:
        _api_key = env_key
        return _api_key

    arn = os.environ.get("FINNHUB_API_KEY_ARN", "")
    if arn:
        try:
            import boto3
            client = boto3.client("secretsmanager")
            response = client.get_secret_value(SecretId=arn)
            _api_key = response["SecretString"]
            return _api_key
        except Exception as e:
            logger.error(f"[Finnhub] Failed to get API key from Secrets Manager: {e}")

    raise ProviderUnavailable(
        PROVIDER, "API key not configured. Set FINNHUB_API_KEY or FINNHUB_API_KEY_ARN."
    )


def _rate_limit() -> None:
    """Keep under 55 calls/minute by waiting for the oldest call to age out."""
    now = time.time()
    _call_timestamps[:] = [t for t in _call_timestamps if now - t < 60]

    if len(_call_timestamps) >= _MAX_CALLS_PER_MINUTE:
        wait_time = 60 - (now - _call_timestamps[0]) + 0.1
        if wait_time > 0:
            logger.info(f"[Finnhub] Rate limit reached, waiting {wait_time:.1f}s")
            time.sleep(wait_time)

    _call_timestamps.append(time.time())


def _request(endpoint: str, params: Optional[dict] = None, timeout: float = DEFAULT_TIMEOUT):
    """Make one rate-limited GET request and return the decoded JSON."""
    api_key = _get_api_key()
    _rate_limit()

    query_params = dict(params or {})
    query_params["token"] = api_key
    url = f"{_BASE_URL}/{endpoint}?{urllib.parse.urlencode(query_params)}"

    try:
        req = urllib.request.Request(url, headers={"User-Agent": "StockRiskAnalyzer/1.0"})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read()
    except urllib.error.HTTPError as e:
        logger.error(f"[Finnhub] HTTP {e.code} for {endpoint}: {e.reason}")
        raise ProviderUnavailable(PROVIDER, f"HTTP {e.code} for {endpoint}", status=e.code) from e
    except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
        # OSError covers socket timeouts, resets and SSL errors mid-read
        logger.error(f"[Finnhub] Request failed for {endpoint}: {e}")
        raise ProviderUnavailable(PROVIDER, f"request failed for {endpoint}: {e}") from e

    try:
        return json.loads(raw.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"[Finnhub] Invalid JSON from {endpoint}: {e}")
        raise MalformedProviderPayload(PROVIDER, f"invalid JSON from {endpoint}") from e


# ─── Public API Functions ───


def get_quote(ticker: str, timeout: float = DEFAULT_TIMEOUT) -> dict:
    """Get real-time quote for a ticker.

    Returns: {ticker, price, previousClose, high, low, open, volume, timestamp}
    """
    data = _request("quote", {"symbol": ticker}, timeout=timeout)
    if not isinstance(data, dict) or data.get("error"):
        raise MalformedProviderPayload(PROVIDER, f"unexpected quote payload for {ticker}")

    price = data.get("c") or 0
    if price <= 0:
        raise MalformedProviderPayload(PROVIDER, f"no valid price for {ticker}")

    return {
        "ticker": ticker,
        "price": float(price),
        "previousClose": float(data.get("pc") or 0),
        "high": float(data.get("h") or 0) or None,
        "low": float(data.get("l") or 0) or None,
        "open": float(data.get("o") or 0) or None,
        "volume": int(data.get("v") or 0),
        "timestamp": int(data.get("t") or 0),
    }


def get_company_profile(ticker: str, timeout: float = DEFAULT_TIMEOUT) -> dict:
    """Get company profile: name, sector, market cap."""
    data = _request("stock/profile2", {"symbol": ticker}, timeout=timeout)
    if not isinstance(data, dict) or not data.get("ticker"):
        return {}

    market_cap = data.get("marketCapitalization")
    return {
        "ticker": data.get("ticker", ticker),
        "name": data.get("name", ticker),
        "sector": data.get("finnhubIndustry", ""),
        # Finnhub returns market cap in millions
        "marketCap": market_cap * 1_000_000 if market_cap else None,
        "exchange": data.get("exchange", ""),
    }


def get_basic_financials(ticker: str, timeout: float = DEFAULT_TIMEOUT) -> dict:
    """Get beta, 52-week range and average volume."""
    data = _request("stock/metric", {"symbol": ticker, "metric": "all"}, timeout=timeout)
    if not isinstance(data, dict) or not data.get("metric"):
        return {}

    m = data["metric"]
    avg_volume = m.get("10DayAverageTradingVolume")
    return {
        "ticker": ticker,
        "beta": m.get("beta"),
        "fiftyTwoWeekHigh": m.get("52WeekHigh"),
        "fiftyTwoWeekLow": m.get("52WeekLow"),
        # Finnhub reports average volume in millions of shares
        "averageVolume": avg_volume * 1_000_000 if avg_volume else None,
    }


def get_candles(
    ticker: str,
    resolution: str = "D",
    days: int = 60,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[dict]:
    """Get OHLCV candles for the last `days` days, oldest first."""
    to_ts = int(datetime.now(timezone.utc).timestamp())
    from_ts = to_ts - days * 24 * 3600

    data = _request("stock/candle", {
        "symbol": ticker,
        "resolution": resolution,
        "from": from_ts,
        "to": to_ts,
    }, timeout=timeout)

    if not isinstance(data, dict) or data.get("s") != "ok":
        return []

    timestamps = data.get("t", [])
    closes = data.get("c", [])
    volumes = data.get("v", [])
    candles = []
    for i in range(min(len(timestamps), len(closes))):
        candles.append({
            "date": datetime.fromtimestamp(timestamps[i], tz=timezone.utc).strftime("%Y-%m-%d"),
            "close": float(closes[i]),
            "volume": int(volumes[i]) if i < len(volumes) else 0,
        })
    return candles


def get_news(ticker: str, days: int = 1, timeout: float = DEFAULT_TIMEOUT) -> list[dict]:
    """Get company news published in the last `days` days."""
    now = datetime.now(timezone.utc)
    data = _request("company-news", {
        "symbol": ticker,
        "from": (now - timedelta(days=days)).strftime("%Y-%m-%d"),
        "to": now.strftime("%Y-%m-%d"),
    }, timeout=timeout)

    if not isinstance(data, list):
        return []

    return [
        {
            "title": n.get("headline", ""),
            "description": (n.get("summary") or "")[:500],
            "url": n.get("url", ""),
            "publishedAt": (
                datetime.fromtimestamp(n["datetime"], tz=timezone.utc).isoformat()
                if n.get("datetime") else ""
            ),
            "source": n.get("source", ""),
        }
        for n in data
        if n.get("headline")
    ]
