"""
Pytest tests for input parsing: price bars, option chains, batches.
"""
import logging

import pandas as pd
import pytest
from marketstructure.models import (
    DataSource, InvalidInputError, OptionContract, PriceBar,
    bars_to_frame, build_batch, parse_option_chain, parse_price_bars,
)


class TestPriceBar:
    def test_missing_fields_fall_back_to_close(self):
        bar = PriceBar(close=101.5)
        assert (bar.open, bar.high, bar.low, bar.volume) == (101.5, 101.5, 101.5, 101.5)

    def test_explicit_zero_volume_kept(self):
        assert PriceBar(close=101.5, volume=0.0).volume == 0.0

    def test_frozen(self):
        with pytest.raises(AttributeError):
            PriceBar(close=1.0).close = 2.0


class TestParsePriceBars:
    def test_full_records(self):
        result = parse_price_bars([
            {"timestamp": 1, "open": 99, "high": 102, "low": 98, "close": 100, "volume": 5000},
        ])
        bar = result.records[0]
        assert (bar.open, bar.high, bar.low, bar.close, bar.volume) == (99, 102, 98, 100, 5000)
        assert result.skipped == 0

    def test_dashboard_aliases(self):
        result = parse_price_bars([{"fullDate": "2026-03-02", "spy": 590.1}])
        bar = result.records[0]
        assert bar.close == 590.1
        assert bar.timestamp == "2026-03-02"
        assert bar.volume == 590.1

    def test_malformed_bars_skipped_and_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="marketstructure.models"):
            result = parse_price_bars([
                {"close": 100},
                {"close": "n/a"},
                {"open": 5},
                {"close": float("nan")},
                "garbage",
                {"close": 101},
            ])
        assert [b.close for b in result.records] == [100.0, 101.0]
        assert result.skipped == 4
        assert "Skipping bar" in caplog.text

    def test_dataframe_input(self):
        frame = pd.DataFrame({"close": [1.0, 2.0, 3.0], "volume": [10, 20, 30]})
        result = parse_price_bars(frame)
        assert [b.close for b in result.records] == [1.0, 2.0, 3.0]
        assert [b.volume for b in result.records] == [10.0, 20.0, 30.0]

    def test_existing_bars_pass_through(self):
        bar = PriceBar(close=5.0)
        assert parse_price_bars([bar]).records == [bar]

    def test_none_is_empty(self):
        assert parse_price_bars(None).records == []

    @pytest.mark.parametrize("bad", ["close,volume", {"close": 1}, 42])
    def test_not_a_record_list(self, bad):
        with pytest.raises(InvalidInputError):
            parse_price_bars(bad)

    def test_frame_round_trip_columns(self):
        frame = bars_to_frame([PriceBar(close=1.0, timestamp=0), PriceBar(close=2.0, timestamp=1)])
        assert list(frame.columns) == ["timestamp", "open", "high", "low", "close", "volume"]
        assert frame["close"].tolist() == [1.0, 2.0]


class TestParseOptionChain:
    def test_tradier_shape(self):
        result = parse_option_chain([{
            "strike": 600, "option_type": "CALL", "open_interest": 1200, "volume": 300,
            "greeks": {"gamma": 0.012, "delta": 0.48, "mid_iv": 0.17},
            "expiration_date": "2026-03-20",
        }])
        c = result.records[0]
        assert (c.type, c.strike, c.open_interest, c.volume) == ("call", 600.0, 1200.0, 300.0)
        assert (c.gamma, c.delta, c.implied_vol) == (0.012, 0.48, 0.17)
        assert c.expiration == "2026-03-20"

    def test_dashboard_shape(self):
        result = parse_option_chain([{
            "strike": 590, "type": "PUT", "oi": 800, "iv": 0.21,
            "gamma": 0.01, "delta": -0.35, "daysToExp": 9,
        }])
        c = result.records[0]
        assert c.is_put
        assert (c.open_interest, c.implied_vol, c.days_to_expiration) == (800.0, 0.21, 9.0)

    def test_short_type_codes(self):
        result = parse_option_chain([
            {"strike": 100, "contract_type": "c"},
            {"strike": 100, "contract_type": "P"},
        ])
        assert [c.type for c in result.records] == ["call", "put"]

    def test_missing_greeks_stay_none(self):
        c = parse_option_chain([{"strike": 100, "type": "call"}]).records[0]
        assert c.gamma is None and c.delta is None
        assert c.implied_vol == 0.0

    def test_malformed_contracts_skipped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="marketstructure.models"):
            result = parse_option_chain([
                {"strike": 100, "type": "straddle"},
                {"strike": "abc", "type": "call"},
                {"strike": 0, "type": "put"},
                {"type": "call"},
                {"strike": 105, "type": "call"},
            ])
        assert [c.strike for c in result.records] == [105.0]
        assert result.skipped == 4
        assert "Skipping contract" in caplog.text

    def test_existing_contracts_pass_through(self):
        c = OptionContract(strike=100.0, type="call")
        assert parse_option_chain([c]).records == [c]

    def test_contract_type_normalised_to_lowercase(self):
        c = OptionContract(strike=100.0, type=" PUT ")
        assert c.type == "put"
        assert c.is_put and not c.is_call
        assert parse_option_chain([c]).records == [c]


class TestBuildBatch:
    def test_counts_and_source(self):
        batch = build_batch(
            bars=[{"close": 1}, {"close": None}],
            chain=[{"strike": 100, "type": "call"}, {"strike": 100, "type": "x"}],
            spot="600.5",
            source=DataSource.SYNTHETIC,
        )
        assert len(batch.bars) == 1
        assert len(batch.contracts) == 1
        assert (batch.skipped_bars, batch.skipped_contracts) == (1, 1)
        assert batch.spot == 600.5
        assert batch.source == DataSource.SYNTHETIC

    def test_vix_series_kept(self):
        batch = build_batch(bars=[{"close": 1}], vix_series=[15.2])
        assert batch.vix_series == (15.2,)

    def test_non_numeric_vix_series_dropped(self):
        batch = build_batch(bars=[{"close": 1}, {"close": 2}], vix_series=[15.2, "x"])
        assert batch.vix_series is None

    def test_empty_inputs(self):
        batch = build_batch()
        assert batch.bars == ()
        assert batch.contracts == ()
        assert batch.source == DataSource.REAL
