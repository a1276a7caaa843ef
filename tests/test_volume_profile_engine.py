"""
Pytest tests for the Volume Profile Engine.
"""
import pytest
from marketstructure.models import PriceBar, parse_price_bars
from marketstructure.volume_profile_engine import VolumeProfileEngine


@pytest.fixture
def engine() -> VolumeProfileEngine:
    return VolumeProfileEngine()


def _make_bars(closes: list[float], volumes: list[float] | None = None) -> list[PriceBar]:
    volumes = volumes or [1000.0] * len(closes)
    return [PriceBar(close=float(c), volume=float(v)) for c, v in zip(closes, volumes)]


class TestHistogram:
    def test_empty(self, engine: VolumeProfileEngine):
        profile = engine.analyze([])
        assert profile.bins == ()
        assert profile.poc is None
        assert profile.vah is None and profile.val is None
        assert profile.total_volume == 0.0

    def test_fifty_bins_across_range(self, engine: VolumeProfileEngine):
        profile = engine.analyze(_make_bars([100 + i for i in range(51)]))
        assert len(profile.bins) == 50
        assert profile.bins[0].price_low == pytest.approx(100.0)
        assert profile.bins[-1].price_high == pytest.approx(150.0)

    def test_volume_is_conserved(self, engine: VolumeProfileEngine):
        closes = [100 + (i * 7) % 23 for i in range(60)]
        volumes = [1000.0 + i * 10 for i in range(60)]
        profile = engine.analyze(_make_bars(closes, volumes))
        assert sum(b.volume for b in profile.bins) == pytest.approx(sum(volumes))
        assert profile.total_volume == pytest.approx(sum(volumes))

    def test_max_close_lands_in_top_bin(self, engine: VolumeProfileEngine):
        profile = engine.analyze(_make_bars([100.0, 150.0], [1.0, 5.0]))
        assert profile.bins[-1].volume == 5.0
        assert profile.bins[0].volume == 1.0

    def test_poc_has_most_volume(self, engine: VolumeProfileEngine):
        closes = [100, 101, 102, 120, 120, 120, 140]
        profile = engine.analyze(_make_bars(closes))
        assert all(profile.poc.volume >= b.volume for b in profile.bins)
        assert profile.poc.price_level == pytest.approx(120.4)

    def test_degenerate_range_single_bin(self, engine: VolumeProfileEngine):
        profile = engine.analyze(_make_bars([100.0] * 5))
        assert len(profile.bins) == 1
        assert profile.bins[0].volume == 5000.0
        assert profile.poc.price_level == 100.0

    def test_custom_bin_count(self):
        engine = VolumeProfileEngine(num_bins=10)
        profile = engine.analyze(_make_bars([100 + i for i in range(20)]))
        assert len(profile.bins) == 10


class TestValueArea:
    def test_bounds_ordered(self, engine: VolumeProfileEngine):
        closes = [100 + (i * 7) % 23 for i in range(60)]
        profile = engine.analyze(_make_bars(closes))
        assert profile.vah >= profile.val

    def test_greedy_not_contiguous(self):
        engine = VolumeProfileEngine(num_bins=5)
        # bins 0 and 4 carry the volume; the empty middle is skipped
        profile = engine.analyze(_make_bars([100.0, 150.0], [50.0, 50.0]))
        assert profile.val == pytest.approx(105.0)
        assert profile.vah == pytest.approx(145.0)

    def test_single_dominant_bin(self):
        engine = VolumeProfileEngine(num_bins=5)
        profile = engine.analyze(_make_bars([100.0, 150.0], [90.0, 10.0]))
        assert profile.vah == profile.val == pytest.approx(105.0)

    def test_zero_volume_has_no_value_area(self, engine: VolumeProfileEngine):
        profile = engine.analyze(_make_bars([100.0, 110.0], [0.0, 0.0]))
        assert profile.vah is None
        assert profile.val is None

    def test_history_without_volume(self, engine: VolumeProfileEngine):
        closes = [100, 101, 101, 101, 102, 103, 104, 110]
        bars = parse_price_bars([{"spy": c} for c in closes]).records
        profile = engine.analyze(bars)
        assert profile.total_volume == pytest.approx(sum(closes))
        # three bars close at 101; volume falls back to the close
        assert profile.poc.volume == pytest.approx(303.0)
        assert profile.poc.price_level == pytest.approx(101.1)
        assert profile.vah is not None and profile.val is not None
