"""
Pytest tests for the MarketAnalyzer pipeline.
"""
import json
from datetime import datetime

import pytest
from marketstructure.analyzer import MarketAnalyzer
from marketstructure.config import Settings
from marketstructure.models import DataSource, MarketBatch, OptionContract, PriceBar
from marketstructure.synthetic_data import SyntheticDataGenerator

END = datetime(2026, 3, 13, 16, 0)


@pytest.fixture
def analyzer() -> MarketAnalyzer:
    return MarketAnalyzer()


def _make_bars(closes: list[float]) -> tuple[PriceBar, ...]:
    return tuple(PriceBar(close=float(c), timestamp=i, volume=1000.0) for i, c in enumerate(closes))


def _staircase() -> list[float]:
    closes: list[float] = []
    for k in range(10):
        base = 100 + 3 * k
        closes += [base + off for off in (0, 2, 4, 6, 4, 2)]
    return closes + [135.0] * 10


def _make_chain() -> tuple[OptionContract, ...]:
    return (
        OptionContract(strike=130.0, type="put", open_interest=500.0, volume=80.0,
                       gamma=0.03, delta=-0.3, implied_vol=0.25, days_to_expiration=5.0),
        OptionContract(strike=135.0, type="call", open_interest=300.0, volume=100.0,
                       gamma=0.05, delta=0.5, implied_vol=0.20, days_to_expiration=5.0),
        OptionContract(strike=135.0, type="put", open_interest=300.0, volume=90.0,
                       gamma=0.05, delta=-0.5, implied_vol=0.21, days_to_expiration=5.0),
        OptionContract(strike=140.0, type="call", open_interest=600.0, volume=70.0,
                       gamma=0.03, delta=0.3, implied_vol=0.18, days_to_expiration=5.0),
    )


class TestPriceOnly:
    def test_no_chain_is_no_data(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(bars=_make_bars(_staircase())))
        assert report.options_status == "no_data"
        assert report.walls is None
        assert report.dealer is None
        assert report.volatility is None
        assert report.prediction is None
        assert report.skew_curve == ()

    def test_spot_defaults_to_last_close(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(bars=_make_bars(_staircase())))
        assert report.spot == 135.0

    def test_structure_and_levels(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(bars=_make_bars(_staircase())))
        assert report.structure.trend.trend == "uptrend"
        assert any(e.index == 60 and e.type == "bullish" for e in report.structure.breaks)
        assert len(report.indicators) == 70
        assert report.levels
        assert report.nearest_resistance is None
        assert report.nearest_support is not None and report.nearest_support < 135.0
        assert report.volume_profile.total_volume == pytest.approx(70_000.0)
        assert report.momentum is not None

    def test_empty_batch(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch())
        assert report.spot is None
        assert report.indicators == ()
        assert report.levels == ()
        assert report.momentum is None
        assert report.volume_profile.poc is None


class TestWithChain:
    def test_options_sections(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(
            bars=_make_bars(_staircase()), contracts=_make_chain(), vix=18.0,
            tail_risk_index=150.0,
        ))
        assert report.options_status == "ok"
        assert report.walls.max_pain is not None
        assert report.dealer.is_short_gamma is True
        assert report.volatility.vix_level == 18.0
        assert [p.strike for p in report.skew_curve] == [130.0, 135.0, 140.0]
        assert report.prediction is not None
        assert "Elevated SKEW (>140)" in [s.factor for s in report.prediction.signals]

    def test_explicit_spot_wins(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(
            bars=_make_bars(_staircase()), contracts=_make_chain(), spot=131.0,
        ))
        assert report.spot == 131.0
        assert report.prediction.spot_price == 131.0


class TestCorrelation:
    def test_matching_vix_series(self, analyzer: MarketAnalyzer):
        closes = _staircase()
        vix = tuple(40.0 - c / 10 for c in closes)
        report = analyzer.analyze(MarketBatch(bars=_make_bars(closes), vix_series=vix))
        assert len(report.correlation) == len(closes) - 14
        assert report.warnings == ()

    def test_mismatched_vix_series_warns(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(bars=_make_bars(_staircase()), vix_series=(15.0, 16.0)))
        assert report.correlation == ()
        assert any("vix_series" in w for w in report.warnings)


class TestReport:
    def test_skipped_counts_surface_as_warnings(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(bars=_make_bars([1, 2, 3]), skipped_bars=2,
                                              skipped_contracts=1))
        assert (report.skipped_bars, report.skipped_contracts) == (2, 1)
        assert len(report.warnings) == 2

    def test_synthetic_report_is_json_ready(self, analyzer: MarketAnalyzer):
        batch = SyntheticDataGenerator(seed=11).batch(end=END)
        data = analyzer.analyze(batch).to_dict()
        assert data["source"] == "synthetic"
        assert data["options_status"] == "ok"
        assert data["prediction"]["direction"] in ("BULLISH", "BEARISH")
        json.dumps(data)

    def test_real_source_default(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(bars=_make_bars([1, 2, 3])))
        assert report.source == DataSource.REAL
        assert report.to_dict()["source"] == "real"

    def test_report_is_immutable(self, analyzer: MarketAnalyzer):
        report = analyzer.analyze(MarketBatch(bars=_make_bars([1, 2, 3])))
        with pytest.raises(AttributeError):
            report.spot = 1.0

    def test_repeatable(self, analyzer: MarketAnalyzer):
        batch = SyntheticDataGenerator(seed=4).batch(end=END)
        assert analyzer.analyze(batch) == analyzer.analyze(batch)


class TestFromSettings:
    def test_tuning_wired_through(self):
        settings = Settings(VP_NUM_BINS=10, SR_MAX_LEVELS=2, CORRELATION_WINDOW=5,
                            INDICATOR_LOOKBACK=20)
        analyzer = MarketAnalyzer.from_settings(settings)
        assert analyzer.profile.num_bins == 10
        assert analyzer.levels.max_levels == 2
        assert analyzer.correlation.window == 5
        assert analyzer.indicators.lookback == 20

        closes = _staircase()
        report = analyzer.analyze(MarketBatch(
            bars=_make_bars(closes), vix_series=tuple(float(i % 7) for i in range(len(closes))),
        ))
        assert len(report.volume_profile.bins) == 10
        assert len(report.levels) <= 2
        assert len(report.correlation) == len(closes) - 5
