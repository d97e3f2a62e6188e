"""Portfolio Report — watchlist analysis rendered as JSON, CSV, text or HTML.

Routes:
  POST /portfolio-report  {"tickers": ["AAPL", "MSFT"], "format": "json" | "csv" | "text" | "html"}

Tickers are analysed one after another. A ticker that cannot be analysed
appears in `errors` (JSON) or as a "No Data" row (CSV) instead of failing
the whole report.
"""

import json
import logging
import sys
import traceback
from typing import Optional

sys.path.insert(0, "/opt/python")

import reports
from analysis import analyze_ticker
from config import Settings
from errors import InvalidInputError
from gateway import ProviderGateway, normalize_symbol

_settings = Settings()

logger = logging.getLogger()
logger.setLevel(_settings.log_level)

_gateway: Optional[ProviderGateway] = None

MAX_TICKERS = 25
FORMATS = ("json", "csv", "text", "html")


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

    tickers = body.get("tickers") or []
    fmt = body.get("format") or "json"
    if not isinstance(fmt, str):
        return _response(400, {"error": "format must be a string", "formats": list(FORMATS)})
    fmt = fmt.lower()

    if not isinstance(tickers, list) or not tickers:
        return _response(400, {"error": "tickers must be a non-empty list"})
    if len(tickers) > MAX_TICKERS:
        return _response(400, {"error": f"At most {MAX_TICKERS} tickers per report"})
    if fmt not in FORMATS:
        return _response(400, {"error": f"Unsupported format: {fmt}", "formats": list(FORMATS)})

    try:
        symbols = []
        for t in tickers:
            symbol = normalize_symbol(t)
            if symbol not in symbols:
                symbols.append(symbol)
    except InvalidInputError as e:
        return _response(400, {"error": e.message})

    try:
        gateway = _get_gateway()
        analyses = {}
        errors = {}
        for symbol in symbols:
            try:
                analyses[symbol] = analyze_ticker(symbol, gateway)
            except Exception as e:
                logger.error(f"[PortfolioReport] Analysis failed for {symbol}: {e}")
                errors[symbol] = str(e)

        logger.info(f"[PortfolioReport] {len(analyses)}/{len(symbols)} tickers analysed, format={fmt}")

        if fmt == "csv":
            return _raw_response(
                reports.to_csv(symbols, analyses),
                "text/csv",
                {"Content-Disposition": f'attachment; filename="{reports.csv_filename()}"'},
            )
        if fmt == "text":
            text = "\n\n---\n\n".join(reports.render_text_report(a) for a in analyses.values())
            return _raw_response(text, "text/markdown")
        if fmt == "html":
            return _raw_response(reports.render_html_report(analyses.values()), "text/html")

        return _response(200, {
            "analyses": [a.to_response() for a in analyses.values()],
            "errors": errors,
            "count": len(analyses),
        })

    except Exception as e:
        traceback.print_exc()
        logger.error(f"[PortfolioReport] Report failed: {e}")
        return _response(500, {"error": "Failed to build report", "message": str(e)})


def _raw_response(content, content_type, extra_headers=None):
    headers = {
        "Content-Type": content_type,
        "Access-Control-Allow-Origin": "*",
    }
    headers.update(extra_headers or {})
    return {"statusCode": 200, "headers": headers, "body": content}


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
