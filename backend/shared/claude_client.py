"""Claude API wrapper for narrative stock analysis and news sentiment.

Builds the prompts, sends them through the Anthropic SDK and pulls the
embedded JSON object out of the free-text reply. Failures surface as
ProviderUnavailable / MalformedProviderPayload so the gateway can swap in
its static templates.

API key is read from:
  1. CLAUDE_API_KEY or ANTHROPIC_API_KEY env var
  2. CLAUDE_API_KEY_ARN env var -> AWS Secrets Manager
"""

import json
import logging
import os
from typing import Optional

from errors import MalformedProviderPayload, ProviderUnavailable

logger = logging.getLogger(__name__)

PROVIDER = "Claude"

_api_key: Optional[str] = None


def _get_api_key() -> str:
    """Retrieve Claude API key from env or Secrets Manager (cached)."""
    global _api_key
    if _api_key:
        return _api_key

    env_key = os.environ.get("CLAUDE_API_KEY") or os.environ.get("ANTHROPIC_API_KEY")
    if env_key:
        _api_key = env_key
        return _api_key

    arn = os.environ.get("CLAUDE_API_KEY_ARN", "")
    if arn:
        try:
            import boto3
            client = boto3.client("secretsmanager")
            response = client.get_secret_value(SecretId=arn)
            _api_key = response["SecretString"]
            return _api_key
        except Exception as e:
            logger.error(f"[Claude] Failed to get API key from Secrets Manager: {e}")

    raise ProviderUnavailable(
        PROVIDER, "API key not configured. Set CLAUDE_API_KEY or CLAUDE_API_KEY_ARN."
    )


def _get_client(timeout: float):
    """Create an Anthropic client with the cached API key and no retries."""
    import anthropic
    return anthropic.Anthropic(api_key=_get_api_key(), timeout=timeout, max_retries=0)


# ─── Narrative Analysis ───

NARRATIVE_PROMPT = """Analyze {ticker} stock for a professional investment report. Based on current market conditions, provide:

1. KEY CATALYSTS (3-4 most important near-term factors):
   - Upcoming earnings/events with specific dates if known
   - Industry developments affecting the sector
   - Regulatory changes or policy impacts
   - Product launches or major business announcements

2. MONEY FLOW ANALYSIS:
   - Institutional vs retail activity patterns
   - Recent insider trading activity (last 30 days)
   - Options flow and sentiment indicators
   - Volume patterns and what they indicate

3. IMPACTFUL RECENT EVENTS/NEWS (Last 30 days):
   - Major news developments affecting stock price
   - Analyst upgrades/downgrades with price targets
   - Management changes or guidance updates
   - Sector rotation impacts and peer comparisons

4. SENTIMENT ANALYSIS:
   - Overall market sentiment (bullish/bearish/neutral)
   - Social media and retail investor sentiment
   - Analyst consensus changes and positioning
   - Institutional positioning relative to peers

Current technical data for context:
- Current Price: ${price}
- Daily Change: {daily_change_percent}%
- RSI: {rsi}
- Beta: {beta}
- Volatility: {volatility}%
- Risk Score: {risk_score}/100
- Current Signal: {signal}

Please provide specific, actionable insights formatted as JSON with this structure:
{{
  "keyCatalysts": ["catalyst1", "catalyst2", "catalyst3", "catalyst4"],
  "moneyFlow": {{
    "institutional": "accumulation/distribution/neutral",
    "retail": "buying/selling/neutral",
    "insiderActivity": "description of recent insider activity",
    "optionsFlow": "description of options sentiment",
    "volumeAnalysis": "analysis of volume patterns"
  }},
  "recentEvents": ["event1", "event2", "event3"],
  "sentiment": {{
    "overall": "Bullish/Bearish/Neutral/Mixed",
    "analystConsensus": "description of analyst views",
    "socialSentiment": "description of social/retail sentiment",
    "positioning": "description of institutional positioning"
  }}
}}

Focus on concrete, recent information that could impact price movement in the next 1-3 months."""


def build_narrative_prompt(ticker: str, context: dict) -> str:
    """Fill the narrative prompt with the metrics the dashboard computed.

    Args:
        ticker: Stock ticker symbol.
        context: Dict with price, daily_change_percent, rsi, beta,
            volatility, risk_score and signal.
    """
    return NARRATIVE_PROMPT.format(
        ticker=ticker,
        price=context.get("price", "N/A"),
        daily_change_percent=context.get("daily_change_percent", "N/A"),
        rsi=context.get("rsi", "N/A"),
        beta=context.get("beta", "N/A"),
        volatility=context.get("volatility", "N/A"),
        risk_score=context.get("risk_score", "N/A"),
        signal=context.get("signal", "N/A"),
    )


# ─── News Sentiment ───

NEWS_SENTIMENT_PROMPT = """You are a financial sentiment analyst. Analyze the following news articles for {ticker} and provide a comprehensive sentiment assessment.

## NEWS ARTICLES:
{articles}

## ANALYSIS REQUIREMENTS:

Provide your analysis in this EXACT JSON format:

{{
  "overallScore": <number between -100 and 100>,
  "sentiment": "<bullish|neutral|bearish>",
  "confidence": <number between 0 and 100>,
  "summary": "<2-3 sentence summary of key sentiment drivers>",
  "keyThemes": ["<theme 1>", "<theme 2>", "<theme 3>"],
  "tradingImplications": {{
    "shortTerm": "<impact on stock in next 1-7 days>",
    "mediumTerm": "<impact on stock in next 1-4 weeks>",
    "keyRisks": ["<risk 1>", "<risk 2>"],
    "keyCatalysts": ["<catalyst 1>", "<catalyst 2>"]
  }},
  "recommendedAction": "<buy|hold|sell|monitor>",
  "newsQuality": "<high|medium|low>"
}}

## SCORING GUIDELINES:
- +100: Extremely bullish (major positive catalysts)
- +50: Moderately bullish (several positive factors)
- 0: Neutral (mixed or no significant news)
- -50: Moderately bearish (several negative factors)
- -100: Extremely bearish (major negative catalysts)

Respond ONLY with the JSON object, no additional text."""


def build_news_sentiment_prompt(ticker: str, articles: list[dict]) -> str:
    blocks = []
    for index, article in enumerate(articles, start=1):
        blocks.append(
            f"{index}. **{article.get('title', '')}**\n"
            f"   Source: {article.get('source', '')}\n"
            f"   Date: {article.get('publishedAt', '')}\n"
            f"   Summary: {article.get('description') or 'No description available'}"
        )
    return NEWS_SENTIMENT_PROMPT.format(ticker=ticker, articles="\n\n".join(blocks))


# ─── Messages API ───

def complete(prompt: str, model: str, max_tokens: int, timeout: float) -> str:
    """Send a single-turn prompt and return the reply text.

    Raises:
        ProviderUnavailable: missing key, API error, connection error or timeout.
        MalformedProviderPayload: reply without a text block.
    """
    import anthropic

    client = _get_client(timeout)
    try:
        message = client.messages.create(
            model=model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIStatusError as e:
        logger.error(f"[Claude] API error {e.status_code}: {e.message}")
        raise ProviderUnavailable(PROVIDER, f"API error {e.status_code}", status=e.status_code) from e
    except anthropic.APIError as e:
        logger.error(f"[Claude] Request failed: {e}")
        raise ProviderUnavailable(PROVIDER, f"request failed: {e}") from e

    texts = [block.text for block in message.content if getattr(block, "type", "") == "text"]
    if not texts:
        raise MalformedProviderPayload(PROVIDER, "reply contained no text")
    return "".join(texts)


# ─── Helpers ───

def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} span in text, or None.

    Braces inside JSON string literals are ignored, so a catalyst like
    "guidance {preliminary}" does not end the object early.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_json_response(text: str) -> dict:
    """Extract and decode the JSON object embedded in a Claude reply."""
    json_text = extract_json_object(text)
    if json_text is None:
        raise MalformedProviderPayload(PROVIDER, "no JSON object found in reply")
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise MalformedProviderPayload(PROVIDER, f"invalid JSON in reply: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedProviderPayload(PROVIDER, "reply JSON is not an object")
    return parsed
