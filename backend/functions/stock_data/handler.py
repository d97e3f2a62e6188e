"""Stock Data — live quote plus derived risk metrics for one ticker.

Routes:
  GET     /stock-data?ticker=AAPL  — quote, metrics, signal, ranges
  OPTIONS /stock-data              — CORS pre-flight

Falls back to deterministic demo data when Finnhub is unavailable; the
response's `dataSource` / `fallback` fields say which path was used.
"""

import json
import logging
import sys
import traceback
from typing import Optional

# Lambda adds /opt/python to sys.path for layers automatically.
# This explicit insert ensures it works in all execution contexts.
sys.path.insert(0, "/opt/python")

from analysis import analyze_ticker
from config import Settings
from errors import InvalidInputError
from gateway import ProviderGateway

_settings = Settings()

logger = logging.getLogger()
logger.setLevel(_settings.log_level)

_gateway: Optional[ProviderGateway] = None


def _get_gateway() -> ProviderGateway:
    """One gateway (and cache) per warm container."""
    global _gateway
    if _gateway is None:
        _gateway = ProviderGateway(_settings)
    return _gateway


def lambda_handler(event, context):
    method = event.get("requestContext", {}).get("http", {}).get("method", "GET")
    if method == "OPTIONS":
        return _response(200, None)
    if method not in ("GET", "POST"):
        return _response(405, {"error": "Method not allowed"})

    query_params = event.get("queryStringParameters") or {}
    ticker = query_params.get("ticker")

    try:
        logger.info(f"[StockData] Fetching data for {ticker}")
        analysis = analyze_ticker(ticker, _get_gateway())
        return _response(200, analysis.to_response())
    except InvalidInputError as e:
        return _response(400, {"error": e.message})
    except Exception as e:
        traceback.print_exc()
        logger.error(f"[StockData] Failed for {ticker}: {e}")
        return _response(500, {"error": "Failed to fetch stock data", "message": str(e)})


def _response(status_code, body):
    """Build an API Gateway-compatible response."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        },
        "body": json.dumps(body, default=str) if body is not None else "",
    }
