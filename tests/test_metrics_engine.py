"""Tests for derived risk metrics"""

import pytest

import metrics_engine
from metrics_engine import (
    compute_metrics,
    position_in_range,
    risk_score,
    round_half_up,
    rsi_proxy,
    signal_strength,
    volatility_regime,
)
from models import PriceRange, Profile, Quote, Signal, VolatilityRegime


class TestComputeMetrics:
    def test_reference_quote(self, sample_quote, sample_profile):
        m = compute_metrics(sample_quote, sample_profile)

        assert m.daily_change == pytest.approx(5.0)
        assert m.daily_change_percent == pytest.approx(5.2632, abs=1e-4)
        assert m.volatility == pytest.approx(2.5)
        assert m.volatility_regime is VolatilityRegime.LOW
        assert m.rsi == pytest.approx(63.158, abs=1e-3)
        assert m.rsi_source == "proxy"
        assert m.risk_score == 56
        assert m.signal_strength == 66
        assert m.short_term_range.low == pytest.approx(93.25)
        assert m.short_term_range.high == pytest.approx(97.625)
        assert m.medium_term_range.low == pytest.approx(96.5)
        assert m.medium_term_range.high == pytest.approx(105.25)
        assert m.position_in_range == pytest.approx(154.2857, abs=1e-3)
        assert m.signal is Signal.HOLD

    def test_same_input_same_output(self, sample_quote, sample_profile):
        assert compute_metrics(sample_quote, sample_profile) == compute_metrics(sample_quote, sample_profile)

    def test_missing_profile_uses_neutral_beta(self, sample_quote):
        m = compute_metrics(sample_quote)
        # beta 1.0: 40 + 2.5 volatility + 10 large move = 52.5 -> 53
        assert m.risk_score == 53

    def test_no_previous_close(self):
        q = Quote(symbol="NEW", price=50.0, previous_close=0, high=51.0, low=49.0, volume=10)
        m = compute_metrics(q)
        assert m.daily_change == 0.0
        assert m.daily_change_percent == 0.0
        assert m.rsi == 50.0
        # short-term range anchors on price when there is no previous close
        assert m.short_term_range.low < 50.0 < m.short_term_range.high

    def test_volatility_without_intraday_range(self):
        q = Quote(symbol="X", price=110.0, previous_close=100.0, volume=0)
        m = compute_metrics(q, Profile(beta=1.5))
        assert m.volatility == pytest.approx(30.0)
        assert m.volatility_regime is VolatilityRegime.NORMAL

    def test_ranges_are_ordered_for_flat_quote(self):
        q = Quote(symbol="FLAT", price=20.0, previous_close=20.0, volume=0)
        m = compute_metrics(q)
        assert m.volatility == 0.0
        assert m.short_term_range.low < m.short_term_range.high
        assert m.medium_term_range.low < 20.0 < m.medium_term_range.high

    def test_scores_stay_in_bounds_on_crash(self):
        q = Quote(symbol="CRSH", price=10.0, previous_close=40.0, high=41.0, low=9.0, volume=5)
        m = compute_metrics(q, Profile(beta=4.0, average_volume=1.0))
        assert 0 <= m.risk_score <= 100
        assert 0 <= m.signal_strength <= 100
        assert 0 <= m.rsi <= 100

    def test_history_rsi_used_when_available(self, sample_quote):
        closes = [100 + i for i in range(20)]
        m = compute_metrics(sample_quote, closes=closes)
        assert m.rsi_source == "history"
        assert m.rsi == 100.0

    def test_short_history_falls_back_to_proxy(self, sample_quote):
        m = compute_metrics(sample_quote, closes=[1.0, 2.0, 3.0])
        assert m.rsi_source == "proxy"


class TestComponents:
    @pytest.mark.parametrize("vol,regime", [
        (0.0, VolatilityRegime.LOW),
        (14.99, VolatilityRegime.LOW),
        (15.0, VolatilityRegime.NORMAL),
        (30.0, VolatilityRegime.NORMAL),
        (30.01, VolatilityRegime.HIGH),
    ])
    def test_volatility_regime(self, vol, regime):
        assert volatility_regime(vol) is regime

    def test_rsi_proxy_clamped(self):
        assert rsi_proxy(0) == 50.0
        assert rsi_proxy(40) == 100.0
        assert rsi_proxy(-40) == 0.0

    def test_risk_score_overbought_and_oversold(self):
        base = risk_score(0, 1.0, 50, 0)
        assert base == 40
        assert risk_score(0, 1.0, 80, 0) == 55
        assert risk_score(0, 1.0, 100, 0) == 55
        assert risk_score(0, 1.0, 25, 0) == 35
        assert risk_score(0, 1.0, 0, 0) == 30

    def test_risk_score_clamped(self):
        assert risk_score(100, 9.0, 100, 50) == 100

    def test_signal_strength_uses_volume_ratio(self):
        # twice the average volume saturates the volume component
        assert signal_strength(2_000, 1_000, 0, 0, 50) == 50
        assert signal_strength(0, None, 0, 0, 50) == 35

    def test_position_in_range(self):
        r = PriceRange(low=90, high=110)
        assert position_in_range(100, r) == pytest.approx(50.0)
        assert position_in_range(120, r) == pytest.approx(150.0)
        assert position_in_range(80, r) == pytest.approx(-50.0)

    def test_round_half_up(self):
        assert round_half_up(55.5) == 56
        assert round_half_up(45.49999999999) == 46
        assert round_half_up(2.4) == 2
        assert round_half_up(0.5) == 1

    def test_band_floor(self):
        short, _ = metrics_engine.price_ranges(100.0, 100.0, 0.0, VolatilityRegime.LOW)
        band = metrics_engine.MIN_RANGE_VOLATILITY / 100 * 100.0 * 0.7
        assert short.high - short.low == pytest.approx(band * 2.5)
