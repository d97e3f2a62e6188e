"""Runtime configuration for the stock risk analyzer.

Each field is read from the environment variable of the same name in upper
case (Lambda function configuration or a local `.env`), e.g.
QUOTE_CACHE_TTL_SECONDS or EXTREME_MOVE_OVERRIDES. API keys are not part
of the settings: the provider clients resolve FINNHUB_API_KEY /
CLAUDE_API_KEY lazily and fall back to AWS Secrets Manager when only an
ARN is configured.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5-20250929"


class Settings(BaseSettings):
    """Tunables for provider access, caching and classification."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    claude_model: str = Field(default=DEFAULT_CLAUDE_MODEL, min_length=1)
    claude_max_tokens: int = Field(default=1500, gt=0)

    http_timeout_seconds: float = Field(default=10.0, gt=0)

    quote_cache_ttl_seconds: float = Field(default=60.0, ge=0)
    narrative_cache_ttl_seconds: float = Field(default=1800.0, ge=0)
    narrative_cache_window_seconds: int = Field(default=1800, gt=0)
    news_cache_ttl_seconds: float = Field(default=900.0, ge=0)
    cache_max_entries: int = Field(default=50, gt=0)

    extreme_move_overrides: bool = True
    use_price_history: bool = False

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.strip().upper()
