"""Pytest fixtures for the stock risk analyzer tests"""

import importlib.util
import json
import sys
from pathlib import Path

import pytest

# =============================================================================
# Global Test Setup
# =============================================================================

ROOT = Path(__file__).parent.parent

# Shared modules are flat (Lambda layer layout), so put them on the path
sys.path.insert(0, str(ROOT / "backend" / "shared"))

import claude_client  # noqa: E402
from config import Settings  # noqa: E402
from errors import MalformedProviderPayload, ProviderUnavailable  # noqa: E402
from gateway import ProviderGateway  # noqa: E402
from models import Profile, Quote  # noqa: E402


# =============================================================================
# Test Doubles
# =============================================================================


class FakeClock:
    """Manually advanced clock shared by the gateway and its caches"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMarketClient:
    """Finnhub-shaped client that records calls instead of hitting the network"""

    def __init__(self):
        self.quote = {
            "price": 100.0,
            "previousClose": 95.0,
            "high": 105.0,
            "low": 95.0,
            "volume": 1_000_000,
        }
        self.company = {"name": "Acme Corp", "sector": "Technology", "marketCap": 2.5e12}
        self.financials = {"beta": 1.2, "averageVolume": None}
        self.candles = []
        self.news = []
        self.fail_with = None
        self.calls = []

    def _record(self, name, ticker):
        self.calls.append((name, ticker))
        if self.fail_with is not None:
            raise self.fail_with

    def get_quote(self, ticker, timeout=10.0):
        self._record("quote", ticker)
        return dict(self.quote, ticker=ticker)

    def get_company_profile(self, ticker, timeout=10.0):
        self._record("profile", ticker)
        return dict(self.company)

    def get_basic_financials(self, ticker, timeout=10.0):
        self._record("financials", ticker)
        return dict(self.financials)

    def get_candles(self, ticker, resolution="D", days=60, timeout=10.0):
        self._record("candles", ticker)
        return list(self.candles)

    def get_news(self, ticker, days=1, timeout=10.0):
        self._record("news", ticker)
        return list(self.news)

    def count(self, name):
        return sum(1 for call, _ in self.calls if call == name)


class FakeLLMClient:
    """Claude-shaped client returning canned replies; prompt building is real"""

    build_narrative_prompt = staticmethod(claude_client.build_narrative_prompt)
    build_news_sentiment_prompt = staticmethod(claude_client.build_news_sentiment_prompt)
    parse_json_response = staticmethod(claude_client.parse_json_response)

    def __init__(self, reply: str = ""):
        self.reply = reply
        self.fail_with = None
        self.prompts = []

    def complete(self, prompt, model, max_tokens, timeout):
        self.prompts.append(prompt)
        if self.fail_with is not None:
            raise self.fail_with
        return self.reply


class FakeNewsClient:
    """Optional news sources; both disabled (empty) unless a test fills them"""

    def __init__(self):
        self.newsapi = []
        self.alpha_vantage = []
        self.fail_with = None

    def get_newsapi_articles(self, ticker, days=1, timeout=10.0):
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.newsapi)

    def get_alpha_vantage_articles(self, ticker, timeout=10.0):
        return list(self.alpha_vantage)


NARRATIVE_PAYLOAD = {
    "keyCatalysts": ["Q3 earnings on Oct 30", "New product cycle", "Buyback program", "Sector rotation into tech"],
    "moneyFlow": {
        "institutional": "accumulation",
        "retail": "buying",
        "insiderActivity": "No notable insider sales",
        "optionsFlow": "Call skew elevated",
        "volumeAnalysis": "Above-average volume on up days",
    },
    "recentEvents": ["Analyst upgrade to Buy", "Guidance raised", "CFO transition announced"],
    "sentiment": {
        "overall": "Bullish",
        "analystConsensus": "Mostly Buy ratings",
        "socialSentiment": "Positive",
        "positioning": "Overweight vs peers",
    },
}

NEWS_SENTIMENT_PAYLOAD = {
    "overallScore": 42,
    "sentiment": "Bullish",
    "confidence": 75,
    "summary": "Earnings beat and raised guidance drive optimism.",
    "keyThemes": ["earnings", "guidance"],
    "tradingImplications": {
        "shortTerm": "Likely continuation",
        "mediumTerm": "Constructive",
        "keyRisks": ["Macro slowdown"],
        "keyCatalysts": ["Product launch"],
    },
    "recommendedAction": "Buy",
    "newsQuality": "high",
}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sample_quote() -> Quote:
    """Quote with a +5.26% day and a 10% intraday spread"""
    return Quote(
        symbol="acme",
        price=100.0,
        previous_close=95.0,
        high=105.0,
        low=95.0,
        volume=1_000_000,
    )


@pytest.fixture
def sample_profile() -> Profile:
    return Profile(beta=1.2, sector="Technology", name="Acme Corp")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def market_client() -> FakeMarketClient:
    return FakeMarketClient()


@pytest.fixture
def llm_client() -> FakeLLMClient:
    return FakeLLMClient(reply="Here is the analysis:\n" + json.dumps(NARRATIVE_PAYLOAD))


@pytest.fixture
def news_client() -> FakeNewsClient:
    return FakeNewsClient()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def gateway(settings, market_client, llm_client, news_client, clock) -> ProviderGateway:
    return ProviderGateway(
        settings,
        market_client=market_client,
        llm_client=llm_client,
        news_client=news_client,
        clock=clock,
    )


@pytest.fixture
def provider_down() -> ProviderUnavailable:
    return ProviderUnavailable("Finnhub", "HTTP 500 for quote", status=500)


@pytest.fixture
def malformed_payload() -> MalformedProviderPayload:
    return MalformedProviderPayload("Finnhub", "no valid price for ACME")


def load_handler(name: str):
    """Import backend/functions/<name>/handler.py under a unique module name"""
    path = ROOT / "backend" / "functions" / name / "handler.py"
    spec = importlib.util.spec_from_file_location(f"{name}_handler", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def api_event(method: str = "GET", body=None, query=None) -> dict:
    """Minimal API Gateway HTTP API (v2) event"""
    return {
        "requestContext": {"http": {"method": method}},
        "queryStringParameters": query,
        "body": json.dumps(body) if body is not None else None,
    }


@pytest.fixture
def make_event():
    return api_event


@pytest.fixture
def handler_for(gateway):
    """Load a handler module with its warm-container gateway replaced by the test gateway"""

    def _load(name: str):
        module = load_handler(name)
        module._gateway = gateway
        return module

    return _load


@pytest.fixture
def news_sentiment_reply() -> str:
    return json.dumps(NEWS_SENTIMENT_PAYLOAD)


@pytest.fixture
def narrative_payload() -> dict:
    return json.loads(json.dumps(NARRATIVE_PAYLOAD))
