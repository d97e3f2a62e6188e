"""Pydantic models for the stock risk analyzer.

Defines the schema for the data flowing from the market-data and LLM
providers through the metrics engine and classifier to the handlers and
report renderers. Models serialise with camelCase aliases so handler
responses keep the dashboard's JSON shape.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# ─── Enums ───

class Signal(str, Enum):
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"


class VolatilityRegime(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


# ─── Data Source Tags ───

LIVE_DATA_SOURCE = "Finnhub (Live)"
FALLBACK_DATA_SOURCE = "Demo Data (Fallback)"

NEWS_TIMEFRAMES = ("24h", "7d", "30d")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Market Data ───

class Quote(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    symbol: str
    price: float = Field(gt=0)
    previous_close: float = Field(default=0.0, ge=0)
    high: Optional[float] = None
    low: Optional[float] = None
    volume: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=_utc_now)
    data_source: str = LIVE_DATA_SOURCE
    fallback: bool = False

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def _check_high_low(self):
        if self.high is not None and self.low is not None and self.high < self.low:
            raise ValueError(f"high {self.high} is below low {self.low}")
        return self

    @property
    def has_intraday_range(self) -> bool:
        return bool(self.high) and bool(self.low)


class Profile(_CamelModel):
    beta: float = 1.0
    sector: str = ""
    market_cap: Union[float, str] = "N/A"
    name: str = ""
    average_volume: Optional[float] = None
    fifty_two_week_high: Optional[float] = None
    fifty_two_week_low: Optional[float] = None


# ─── Derived Metrics ───

class PriceRange(_CamelModel):
    low: float
    high: float

    @model_validator(mode="after")
    def _check_order(self):
        if not self.low < self.high:
            raise ValueError(f"range low {self.low} must be below high {self.high}")
        return self

    @property
    def width(self) -> float:
        return self.high - self.low

    def label(self) -> str:
        return f"${self.low:.2f} - ${self.high:.2f}"


class DerivedMetrics(_CamelModel):
    daily_change: float
    daily_change_percent: float
    volatility: float = Field(ge=0)
    volatility_regime: VolatilityRegime
    rsi: float = Field(ge=0, le=100)
    rsi_source: str = "proxy"
    risk_score: int = Field(ge=0, le=100)
    short_term_range: PriceRange
    medium_term_range: PriceRange
    signal_strength: int = Field(ge=0, le=100)
    position_in_range: Optional[float] = None
    signal: Signal = Signal.HOLD


class StockAnalysis(_CamelModel):
    quote: Quote
    profile: Profile
    metrics: DerivedMetrics
    position_size: int = Field(ge=0, le=100)
    stop_loss: float
    target: float
    risk_level: RiskLevel
    analysed_at: datetime = Field(default_factory=_utc_now)

    @property
    def ticker(self) -> str:
        return self.quote.symbol

    def to_response(self) -> dict:
        """Flatten into the dashboard's stock-data payload."""
        q, p, m = self.quote, self.profile, self.metrics
        return {
            "ticker": q.symbol,
            "currentPrice": f"{q.price:.2f}",
            "previousClose": f"{q.previous_close:.2f}",
            "dailyChange": f"{m.daily_change:.2f}",
            "dailyChangePercent": f"{m.daily_change_percent:.2f}",
            "volume": q.volume,
            "volatility": f"{m.volatility:.1f}",
            "volatilityRegime": m.volatility_regime.value,
            "rsi": f"{m.rsi:.1f}",
            "rsiSource": m.rsi_source,
            "beta": f"{p.beta:.2f}",
            "signal": m.signal.value,
            "signalStrength": m.signal_strength,
            "positionInRange": (
                round(m.position_in_range, 1) if m.position_in_range is not None else None
            ),
            "riskScore": m.risk_score,
            "riskLevel": self.risk_level.value,
            "positionSize": self.position_size,
            "stopLoss": f"{self.stop_loss:.2f}",
            "target": f"{self.target:.2f}",
            "riskRanges": {
                "shortTerm": m.short_term_range.label(),
                "mediumTerm": m.medium_term_range.label(),
            },
            "sector": p.sector,
            "marketCap": p.market_cap,
            "timestamp": self.analysed_at.isoformat(),
            "dataSource": q.data_source,
            "fallback": q.fallback,
        }


# ─── AI Narrative ───

class MoneyFlow(_CamelModel):
    institutional: str
    retail: str
    insider_activity: str
    options_flow: str
    volume_analysis: str


class SentimentBlock(_CamelModel):
    overall: str
    analyst_consensus: str
    social_sentiment: str
    positioning: str


class AIAnalysis(_CamelModel):
    key_catalysts: list[str] = Field(min_length=4, max_length=4)
    money_flow: MoneyFlow
    recent_events: list[str] = Field(min_length=3, max_length=3)
    sentiment: SentimentBlock
    fallback: bool = False
    note: Optional[str] = None


# ─── News Sentiment ───

class NewsArticle(_CamelModel):
    title: str
    description: str = ""
    url: str = ""
    published_at: str = ""
    source: str = ""


class TradingImplications(_CamelModel):
    short_term: str = ""
    medium_term: str = ""
    key_risks: list[str] = []
    key_catalysts: list[str] = []


class NewsSentiment(_CamelModel):
    score: float = Field(default=0.0, ge=-100, le=100)
    sentiment: str = "neutral"
    confidence: float = Field(default=0.0, ge=0, le=100)
    summary: str = ""
    key_themes: list[str] = []
    trading_implications: TradingImplications = TradingImplications()
    recommended_action: str = "monitor"
    news_quality: str = "unknown"
    fallback: bool = False
    analysed_at: datetime = Field(default_factory=_utc_now)

    @field_validator("sentiment", "recommended_action")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()
