"""Report rendering for analysed tickers: CSV, text and HTML."""

import csv
import html
import io
from datetime import datetime, timezone
from typing import Iterable, Optional

from models import AIAnalysis, Signal, StockAnalysis

CSV_HEADERS = [
    "Ticker",
    "Current Price",
    "Daily Change %",
    "RSI",
    "Beta",
    "Signal",
    "Risk Score",
    "Position Size %",
    "Data Source",
]


def csv_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"stock_analysis_{now.strftime('%Y-%m-%d')}.csv"


def to_csv(tickers: Iterable[str], analyses: dict[str, StockAnalysis]) -> str:
    """One row per watchlist ticker; tickers without an analysis say so."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for ticker in tickers:
        a = analyses.get(ticker.upper())
        if a is None:
            writer.writerow([ticker.upper(), "No Data"] + [""] * (len(CSV_HEADERS) - 2))
            continue
        m = a.metrics
        writer.writerow([
            a.ticker,
            f"{a.quote.price:.2f}",
            f"{m.daily_change_percent:.2f}",
            f"{m.rsi:.1f}",
            f"{a.profile.beta:.2f}",
            m.signal.value,
            m.risk_score,
            a.position_size,
            a.quote.data_source,
        ])
    return buffer.getvalue()


def _rsi_condition(rsi: float) -> str:
    if rsi > 70:
        return "overbought"
    if rsi < 30:
        return "oversold"
    return "neutral"


def _outlook(signal: Signal) -> str:
    if signal is Signal.BUY:
        return "potential upside opportunity"
    if signal is Signal.SELL:
        return "profit-taking consideration"
    return "neutral positioning with monitoring advised"


def _entry_strategy(signal: Signal) -> str:
    if signal is Signal.BUY:
        return "Consider gradual accumulation"
    if signal is Signal.SELL:
        return "Consider position reduction"
    return "Hold current allocation"


def _position_label(position: Optional[float]) -> str:
    if position is None:
        return "undefined (zero-width range)"
    return f"{position:.0f}% of the short-term range"


def render_text_report(analysis: StockAnalysis, narrative: Optional[AIAnalysis] = None) -> str:
    """Markdown-style full risk report for one ticker."""
    q, p, m = analysis.quote, analysis.profile, analysis.metrics
    sign = "+" if m.daily_change_percent > 0 else ""
    lines = [
        f"# Comprehensive Risk Range Analysis for {analysis.ticker}",
        "",
        "## Executive Summary",
        f"Current Signal: **{m.signal.value}** (Strength: {m.signal_strength}/100)",
        f"Risk Assessment: **{analysis.risk_level.value}** risk profile (score {m.risk_score}/100)",
        "",
        "## Current Market Position",
        f"- **Price**: ${q.price:.2f} ({sign}{m.daily_change_percent:.2f}% today)",
        f"- **Technical Status**: RSI at {m.rsi:.1f} indicates {_rsi_condition(m.rsi)} conditions",
        f"- **Volatility**: {m.volatility:.1f}% ({m.volatility_regime.value.lower()} regime)",
        f"- **Beta**: {p.beta:.2f}",
        "",
        "## Risk Range Analysis",
        f"**Short-term Trading Range**: {m.short_term_range.label()}",
        f"**Medium-term Investment Range**: {m.medium_term_range.label()}",
        f"**Position in Range**: {_position_label(m.position_in_range)}",
        "",
        f"The current price positioning suggests {_outlook(m.signal)}.",
        "",
        "## Recommendations",
        f"- **Position Size**: {analysis.position_size}% of portfolio maximum",
        f"- **Entry Strategy**: {_entry_strategy(m.signal)}",
        f"- **Risk Management**: Stop loss at ${analysis.stop_loss:.2f}, target at ${analysis.target:.2f}",
    ]

    if narrative is not None:
        lines += ["", "## Key Catalysts"]
        lines += [f"- {c}" for c in narrative.key_catalysts]
        lines += [
            "",
            "## Money Flow",
            f"- **Institutional**: {narrative.money_flow.institutional}",
            f"- **Retail**: {narrative.money_flow.retail}",
            f"- **Insider Activity**: {narrative.money_flow.insider_activity}",
            f"- **Options Flow**: {narrative.money_flow.options_flow}",
            f"- **Volume**: {narrative.money_flow.volume_analysis}",
            "",
            "## Recent Events",
        ]
        lines += [f"- {e}" for e in narrative.recent_events]
        lines += [
            "",
            "## Sentiment",
            f"- **Overall**: {narrative.sentiment.overall}",
            f"- **Analyst Consensus**: {narrative.sentiment.analyst_consensus}",
            f"- **Social**: {narrative.sentiment.social_sentiment}",
            f"- **Positioning**: {narrative.sentiment.positioning}",
        ]
        if narrative.note:
            lines += ["", f"_{narrative.note}_"]

    lines += ["", f"*Analysis generated using market data from {q.data_source}*"]
    return "\n".join(lines)


_SIGNAL_COLORS = {
    Signal.BUY: "#16a34a",
    Signal.SELL: "#dc2626",
    Signal.HOLD: "#ca8a04",
}


def render_html_report(analyses: Iterable[StockAnalysis], title: str = "Stock Risk Analysis") -> str:
    """Standalone HTML table of analysed tickers."""
    rows = []
    for a in analyses:
        m = a.metrics
        cells = [
            a.ticker,
            f"${a.quote.price:.2f}",
            f"{m.daily_change_percent:.2f}%",
            f"{m.rsi:.1f}",
            f"{a.profile.beta:.2f}",
            m.signal.value,
            f"{m.risk_score}/100",
            f"{a.position_size}%",
            m.short_term_range.label(),
            m.medium_term_range.label(),
            a.quote.data_source,
        ]
        tds = []
        for i, cell in enumerate(cells):
            style = f' style="color:{_SIGNAL_COLORS[m.signal]};font-weight:bold"' if i == 5 else ""
            tds.append(f"<td{style}>{html.escape(str(cell))}</td>")
        rows.append(f"<tr>{''.join(tds)}</tr>")

    headers = CSV_HEADERS[:8] + ["Short Term", "Medium Term", "Data Source"]
    header_html = "".join(f"<th>{html.escape(h)}</th>" for h in headers)
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{html.escape(title)}</title></head>\n"
        f"<body><h1>{html.escape(title)}</h1>\n"
        f"<p>Generated {generated}</p>\n"
        f"<table border=\"1\" cellpadding=\"4\"><thead><tr>{header_html}</tr></thead>\n"
        f"<tbody>{''.join(rows)}</tbody></table>\n"
        "</body></html>\n"
    )
