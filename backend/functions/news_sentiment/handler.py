"""News Sentiment — recent company news scored by Claude.

Routes:
  POST /news-sentiment  {"symbol": "AAPL", "timeframe": "24h" | "7d" | "30d"}

Results are cached per (symbol, timeframe) for NEWS_CACHE_TTL_SECONDS.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Optional

sys.path.insert(0, "/opt/python")

from config import Settings
from errors import InvalidInputError
from gateway import ProviderGateway

_settings = Settings()

logger = logging.getLogger()
logger.setLevel(_settings.log_level)

_gateway: Optional[ProviderGateway] = None


def _get_gateway() -> ProviderGateway:
    global _gateway
    if _gateway is None:
        _gateway = ProviderGateway(_settings)
    return _gateway


def lambda_handler(event, context):
    method = event.get("requestContext", {}).get("http", {}).get("method", "POST")
    if method == "OPTIONS":
        return _response(200, None)
    if method != "POST":
        return _response(405, {"error": "Method not allowed"})

    try:
        body = json.loads(event.get("body", "{}") or "{}")
    except json.JSONDecodeError:
        return _response(400, {"error": "Request body must be JSON"})
    if not isinstance(body, dict):
        return _response(400, {"error": "Request body must be a JSON object"})

    symbol = body.get("symbol")
    timeframe = body.get("timeframe") or "24h"

    try:
        articles, sentiment, cached = _get_gateway().get_news_sentiment(symbol, timeframe)
        return _response(200, {
            "news": [a.model_dump(by_alias=True) for a in articles],
            "sentiment": sentiment.model_dump(by_alias=True, mode="json"),
            "cached": cached,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
    except InvalidInputError as e:
        return _response(400, {"error": "Symbol is required", "message": e.message})
    except Exception as e:
        traceback.print_exc()
        logger.error(f"[NewsSentiment] Failed for {symbol}: {e}")
        return _response(500, {
            "error": "Failed to analyze news sentiment",
            "fallback": True,
            "sentiment": {
                "score": 0,
                "sentiment": "neutral",
                "confidence": 0,
                "summary": "News sentiment analysis temporarily unavailable",
            },
        })


def _response(status_code, body):
    """Build an API Gateway-compatible response."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        },
        "body": json.dumps(body, default=str) if body is not None else "",
    }
