"""Tests for the Lambda handlers (gateway backed by fake providers)"""

import json

import pytest


def _body(response):
    return json.loads(response["body"])


class TestStockData:
    def test_returns_analysis(self, handler_for, make_event):
        handler = handler_for("stock_data")
        response = handler.lambda_handler(make_event("GET", query={"ticker": "acme"}), None)
        body = _body(response)

        assert response["statusCode"] == 200
        assert response["headers"]["Access-Control-Allow-Origin"] == "*"
        assert body["ticker"] == "ACME"
        assert body["signal"] == "BUY"
        assert body["riskScore"] == 56
        assert body["dataSource"] == "Finnhub (Live)"

    def test_missing_ticker(self, handler_for, make_event):
        handler = handler_for("stock_data")
        response = handler.lambda_handler(make_event("GET"), None)
        assert response["statusCode"] == 400
        assert _body(response)["error"] == "Ticker symbol required"

    def test_provider_outage_still_answers(self, handler_for, make_event, market_client, provider_down):
        market_client.fail_with = provider_down
        handler = handler_for("stock_data")
        response = handler.lambda_handler(make_event("GET", query={"ticker": "AAPL"}), None)
        body = _body(response)
        assert response["statusCode"] == 200
        assert body["fallback"] is True
        assert body["dataSource"] == "Demo Data (Fallback)"

    def test_options_preflight(self, handler_for, make_event):
        response = handler_for("stock_data").lambda_handler(make_event("OPTIONS"), None)
        assert response["statusCode"] == 200
        assert response["body"] == ""

    def test_method_not_allowed(self, handler_for, make_event):
        response = handler_for("stock_data").lambda_handler(make_event("DELETE"), None)
        assert response["statusCode"] == 405


class TestAIAnalysis:
    def test_live_narrative(self, handler_for, make_event, llm_client):
        handler = handler_for("ai_analysis")
        event = make_event("POST", body={"ticker": "ACME", "stockData": {"price": "101.00", "signal": "BUY"}})
        body = _body(handler.lambda_handler(event, None))

        assert body["success"] is True
        assert body["ticker"] == "ACME"
        assert body["fallback"] is False
        assert body["analysis"]["keyCatalysts"][0] == "Q3 earnings on Oct 30"
        assert "moneyFlow" in body["analysis"]
        assert "Current Price: $101.00" in llm_client.prompts[0]

    def test_fallback_has_note(self, handler_for, make_event, llm_client):
        llm_client.reply = "sorry, no JSON today"
        body = _body(handler_for("ai_analysis").lambda_handler(make_event("POST", body={"ticker": "ACME"}), None))
        assert body["success"] is True
        assert body["fallback"] is True
        assert "could not be parsed" in body["note"]

    def test_include_report(self, handler_for, make_event):
        event = make_event("POST", body={"ticker": "ACME", "includeReport": True})
        body = _body(handler_for("ai_analysis").lambda_handler(event, None))
        assert "## Key Catalysts" in body["report"]

    def test_missing_ticker(self, handler_for, make_event):
        response = handler_for("ai_analysis").lambda_handler(make_event("POST", body={}), None)
        assert response["statusCode"] == 400
        assert _body(response)["required"] == ["ticker"]

    def test_get_not_allowed(self, handler_for, make_event):
        response = handler_for("ai_analysis").lambda_handler(make_event("GET"), None)
        assert response["statusCode"] == 405

    @pytest.mark.parametrize("stock_data", [[101.0, "BUY"], "101.00"])
    def test_stock_data_must_be_object(self, handler_for, make_event, stock_data):
        event = make_event("POST", body={"ticker": "ACME", "stockData": stock_data})
        response = handler_for("ai_analysis").lambda_handler(event, None)
        assert response["statusCode"] == 400
        assert _body(response)["error"] == "stockData must be a JSON object"


class TestNewsSentiment:
    def test_no_news(self, handler_for, make_event):
        response = handler_for("news_sentiment").lambda_handler(make_event("POST", body={"symbol": "ACME"}), None)
        body = _body(response)
        assert response["statusCode"] == 200
        assert body["news"] == []
        assert body["sentiment"]["confidence"] == 0
        assert body["cached"] is False

    def test_cached_second_time(self, handler_for, make_event, market_client, llm_client, news_sentiment_reply):
        market_client.news = [{"title": "Acme raises guidance", "publishedAt": "2025-01-02T00:00:00+00:00"}]
        llm_client.reply = news_sentiment_reply
        handler = handler_for("news_sentiment")
        event = make_event("POST", body={"symbol": "ACME", "timeframe": "7d"})

        first = _body(handler.lambda_handler(event, None))
        second = _body(handler.lambda_handler(event, None))
        assert first["cached"] is False
        assert second["cached"] is True
        assert first["sentiment"]["score"] == 42
        assert first["news"][0]["title"] == "Acme raises guidance"

    def test_missing_symbol(self, handler_for, make_event):
        response = handler_for("news_sentiment").lambda_handler(make_event("POST", body={}), None)
        assert response["statusCode"] == 400


class TestPortfolioReport:
    def test_json(self, handler_for, make_event):
        event = make_event("POST", body={"tickers": ["acme", "ACME", "MSFT"]})
        body = _body(handler_for("portfolio_report").lambda_handler(event, None))
        assert body["count"] == 2
        assert [a["ticker"] for a in body["analyses"]] == ["ACME", "MSFT"]
        assert body["errors"] == {}

    def test_csv(self, handler_for, make_event):
        event = make_event("POST", body={"tickers": ["ACME"], "format": "csv"})
        response = handler_for("portfolio_report").lambda_handler(event, None)
        assert response["headers"]["Content-Type"] == "text/csv"
        assert "stock_analysis_" in response["headers"]["Content-Disposition"]
        assert response["body"].splitlines()[1].startswith("ACME,100.00")

    @pytest.mark.parametrize("fmt,marker", [("text", "# Comprehensive Risk Range Analysis"), ("html", "<table")])
    def test_rendered_formats(self, handler_for, make_event, fmt, marker):
        event = make_event("POST", body={"tickers": ["ACME"], "format": fmt})
        response = handler_for("portfolio_report").lambda_handler(event, None)
        assert response["statusCode"] == 200
        assert marker in response["body"]

    @pytest.mark.parametrize("body", [
        {},
        {"tickers": "ACME"},
        {"tickers": ["ACME"], "format": "pdf"},
        {"tickers": ["ACME", "NOT A TICKER"]},
        {"tickers": [f"T{i}" for i in range(30)]},
        {"tickers": ["ACME"], "format": 3},
    ])
    def test_bad_requests(self, handler_for, make_event, body):
        response = handler_for("portfolio_report").lambda_handler(make_event("POST", body=body), None)
        assert response["statusCode"] == 400


@pytest.mark.parametrize("name", ["ai_analysis", "news_sentiment", "portfolio_report"])
@pytest.mark.parametrize("body", [["AAPL"], "AAPL", 42, None])
def test_post_body_must_be_object(handler_for, make_event, name, body):
    event = make_event("POST")
    event["body"] = json.dumps(body)
    response = handler_for(name).lambda_handler(event, None)
    assert response["statusCode"] == 400
    assert _body(response)["error"] == "Request body must be a JSON object"
