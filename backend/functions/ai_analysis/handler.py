"""AI Analysis — Claude narrative (catalysts, money flow, events, sentiment).

Routes:
  POST    /ai-analysis  {"ticker": "AAPL", "stockData": {...}, "includeReport": false}
  OPTIONS /ai-analysis  — CORS pre-flight

`stockData` is optional. When present, its price / dailyChangePercent /
rsi / beta / volatility / riskScore / signal values are the ones quoted in
the prompt, so the narrative matches what the dashboard displayed.
A static template replaces the narrative whenever Claude fails.
"""

import json
import logging
import sys
import time
import traceback
from typing import Optional

sys.path.insert(0, "/opt/python")

import reports
from analysis import analyze_ticker
from config import Settings
from errors import InvalidInputError
from gateway import ProviderGateway

_settings = Settings()

logger = logging.getLogger()
logger.setLevel(_settings.log_level)

_gateway: Optional[ProviderGateway] = None

# stockData field -> prompt field
_CONTEXT_FIELDS = {
    "price": "price",
    "currentPrice": "price",
    "dailyChangePercent": "daily_change_percent",
    "rsi": "rsi",
    "beta": "beta",
    "volatility": "volatility",
    "riskScore": "risk_score",
    "signal": "signal",
}


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
        logger.error(f"[AIAnalysis] Method not allowed: {method}")
        return _response(405, {
            "error": "Method not allowed",
            "message": "This endpoint only accepts POST requests",
            "method": method,
        })

    try:
        body = json.loads(event.get("body", "{}") or "{}")
    except json.JSONDecodeError:
        return _response(400, {"error": "Request body must be JSON"})
    if not isinstance(body, dict):
        return _response(400, {"error": "Request body must be a JSON object"})

    ticker = body.get("ticker")
    stock_data = body.get("stockData") or {}
    if not isinstance(stock_data, dict):
        return _response(400, {"error": "stockData must be a JSON object"})

    try:
        gateway = _get_gateway()
        analysis = analyze_ticker(ticker, gateway)

        prompt_context = {
            "price": f"{analysis.quote.price:.2f}",
            "beta": f"{analysis.profile.beta:.2f}",
        }
        for source_field, prompt_field in _CONTEXT_FIELDS.items():
            if stock_data.get(source_field) not in (None, ""):
                prompt_context[prompt_field] = stock_data[source_field]

        narrative = gateway.get_narrative(analysis.ticker, analysis.metrics, prompt_context)

        result = {
            "success": True,
            "analysis": narrative.model_dump(by_alias=True, exclude={"fallback", "note"}),
            "timestamp": int(time.time() * 1000),
            "ticker": analysis.ticker,
            "fallback": narrative.fallback,
        }
        if narrative.note:
            result["note"] = narrative.note
        if body.get("includeReport"):
            result["report"] = reports.render_text_report(analysis, narrative)

        logger.info(f"[AIAnalysis] Sending analysis for {analysis.ticker} (fallback={narrative.fallback})")
        return _response(200, result)

    except InvalidInputError as e:
        return _response(400, {
            "error": "Missing required parameters",
            "message": e.message,
            "required": ["ticker"],
        })
    except Exception as e:
        traceback.print_exc()
        logger.error(f"[AIAnalysis] Handler error for {ticker}: {e}")
        return _response(500, {
            "error": "Failed to get AI analysis",
            "message": str(e),
            "timestamp": int(time.time() * 1000),
            "ticker": ticker,
        })


def _response(status_code, body):
    """Build an API Gateway-compatible response."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization",
        },
        "body": json.dumps(body, default=str) if body is not None else "",
    }
