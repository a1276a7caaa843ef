"""
Input models shared by every engine.
=====================================
PriceBar / OptionContract are immutable snapshots of one upstream record.
The parse_* helpers turn loosely-shaped upstream payloads (DataFrames,
dicts from Tradier / Polygon / Yahoo proxies) into those models, skipping
records that cannot be used instead of failing the whole batch.
"""
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
import logging
import math

import pandas as pd

logger = logging.getLogger("marketstructure.models")


class DataSource(str, Enum):
    REAL = "real"
    SYNTHETIC = "synthetic"


class InvalidInputError(ValueError):
    """Raised when an input batch is structurally unusable (not a list of records)."""


@dataclass(frozen=True)
class PriceBar:
    """One OHLCV bar. Every field other than close falls back to close."""
    close: float
    timestamp: Any = None
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None

    def __post_init__(self):
        # frozen → go through object.__setattr__ for the close fallbacks
        for name in ("open", "high", "low", "volume"):
            if getattr(self, name) is None:
                object.__setattr__(self, name, self.close)


@dataclass(frozen=True)
class OptionContract:
    strike: float
    type: str                              # "call" | "put"
    open_interest: float = 0.0
    volume: float = 0.0
    gamma: Optional[float] = None          # None → derive from implied_vol
    delta: Optional[float] = None
    implied_vol: float = 0.0               # decimal, 0.18 = 18%
    expiration: Optional[str] = None
    days_to_expiration: Optional[float] = None

    def __post_init__(self):
        if isinstance(self.type, str):
            object.__setattr__(self, "type", self.type.strip().lower())

    @property
    def is_call(self) -> bool:
        return self.type == "call"

    @property
    def is_put(self) -> bool:
        return self.type == "put"


@dataclass(frozen=True)
class MarketBatch:
    """Everything one analysis run consumes."""
    bars: tuple[PriceBar, ...] = ()
    contracts: tuple[OptionContract, ...] = ()
    spot: Optional[float] = None
    vix: Optional[float] = None
    tail_risk_index: Optional[float] = None     # CBOE SKEW
    vix_series: Optional[tuple[float, ...]] = None
    source: DataSource = DataSource.REAL
    skipped_bars: int = 0
    skipped_contracts: int = 0


@dataclass
class ParseResult:
    """Parsed records plus the number that had to be dropped."""
    records: list = field(default_factory=list)
    skipped: int = 0


# ── helpers ──────────────────────────────────────────────────

def _num(value: Any) -> Optional[float]:
    """float(value), or None for missing / NaN / non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def _first(record: Mapping, *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and not (isinstance(value, float) and math.isnan(value)):
            return value
    return None


def _records(data: Any, what: str) -> list:
    if data is None:
        return []
    if isinstance(data, pd.DataFrame):
        return data.to_dict("records")
    if isinstance(data, (str, bytes, Mapping)) or not isinstance(data, Iterable):
        raise InvalidInputError(f"{what} must be a list of records or a DataFrame")
    return list(data)


# ── price bars ───────────────────────────────────────────────

def parse_price_bars(data: Any) -> ParseResult:
    """
    Normalise price history.

    Accepts a DataFrame or an iterable of PriceBar / mappings. The close may
    arrive as ``close`` or ``spy`` (dashboard history rows); the timestamp as
    ``timestamp``, ``datetime``, ``date`` or ``fullDate``. Bars without a
    numeric close are skipped; a bar without a volume takes its close
    as the volume, like the missing open/high/low.
    """
    result = ParseResult()
    for i, rec in enumerate(_records(data, "bars")):
        if isinstance(rec, PriceBar):
            result.records.append(rec)
            continue
        if not isinstance(rec, Mapping):
            logger.warning("Skipping bar %d: not a record (%s)", i, type(rec).__name__)
            result.skipped += 1
            continue

        close = _num(_first(rec, "close", "spy"))
        if close is None:
            logger.warning("Skipping bar %d: missing or non-numeric close", i)
            result.skipped += 1
            continue

        volume = _num(rec.get("volume"))
        if volume is not None and volume < 0:
            volume = 0.0
        result.records.append(PriceBar(
            close=close,
            timestamp=_first(rec, "timestamp", "datetime", "date", "fullDate"),
            open=_num(rec.get("open")),
            high=_num(rec.get("high")),
            low=_num(rec.get("low")),
            volume=volume,
        ))
    return result


def bars_to_frame(bars: Iterable[PriceBar]) -> pd.DataFrame:
    """PriceBars → DataFrame [timestamp, open, high, low, close, volume]."""
    return pd.DataFrame(
        [
            {
                "timestamp": b.timestamp,
                "open": b.open,
                "high": b.high,
                "low": b.low,
                "close": b.close,
                "volume": b.volume,
            }
            for b in bars
        ],
        columns=["timestamp", "open", "high", "low", "close", "volume"],
    )


# ── options chain ────────────────────────────────────────────

_TYPE_ALIASES = {"call": "call", "c": "call", "put": "put", "p": "put"}


def parse_option_chain(data: Any) -> ParseResult:
    """
    Normalise an options chain.

    Tolerates the shapes the upstream proxies produce: ``type`` /
    ``contract_type`` / ``option_type`` in any case, ``open_interest`` /
    ``openInterest`` / ``oi``, ``implied_vol`` / ``iv`` / ``mid_iv``, Greeks
    either flat or nested under ``greeks``. Contracts with an unknown type or
    without a positive strike are skipped.
    """
    result = ParseResult()
    for i, rec in enumerate(_records(data, "chain")):
        if isinstance(rec, OptionContract):
            if rec.type in ("call", "put") and rec.strike > 0:
                result.records.append(rec)
            else:
                result.skipped += 1
            continue
        if not isinstance(rec, Mapping):
            logger.warning("Skipping contract %d: not a record (%s)", i, type(rec).__name__)
            result.skipped += 1
            continue

        raw_type = str(_first(rec, "type", "contract_type", "option_type") or "").strip().lower()
        opt_type = _TYPE_ALIASES.get(raw_type)
        strike = _num(rec.get("strike"))
        if opt_type is None or strike is None or strike <= 0:
            logger.warning(
                "Skipping contract %d: type=%r strike=%r", i, raw_type, rec.get("strike")
            )
            result.skipped += 1
            continue

        greeks = rec.get("greeks") if isinstance(rec.get("greeks"), Mapping) else {}
        gamma = _num(rec.get("gamma"))
        if gamma is None:
            gamma = _num(greeks.get("gamma"))
        delta = _num(rec.get("delta"))
        if delta is None:
            delta = _num(greeks.get("delta"))
        iv = _num(_first(rec, "implied_vol", "impliedVol", "iv"))
        if iv is None:
            iv = _num(greeks.get("mid_iv"))

        result.records.append(OptionContract(
            strike=strike,
            type=opt_type,
            open_interest=_num(_first(rec, "open_interest", "openInterest", "oi")) or 0.0,
            volume=_num(rec.get("volume")) or 0.0,
            gamma=gamma,
            delta=delta,
            implied_vol=iv if iv is not None and iv > 0 else 0.0,
            expiration=_first(rec, "expiration", "expiration_date"),
            days_to_expiration=_num(
                _first(rec, "days_to_expiration", "daysToExpiration", "daysToExp", "dte")
            ),
        ))
    return result


def build_batch(
    bars: Any = None,
    chain: Any = None,
    spot: Optional[float] = None,
    vix: Optional[float] = None,
    tail_risk_index: Optional[float] = None,
    vix_series: Optional[Iterable[float]] = None,
    source: DataSource = DataSource.REAL,
) -> MarketBatch:
    """Parse raw bars + chain into a MarketBatch."""
    parsed_bars = parse_price_bars(bars)
    parsed_chain = parse_option_chain(chain)
    series = None
    if vix_series is not None:
        values = [_num(v) for v in _records(vix_series, "vix_series")]
        if any(v is None for v in values):
            logger.warning("Dropping vix_series: contains non-numeric values")
        else:
            series = tuple(values)
    return MarketBatch(
        bars=tuple(parsed_bars.records),
        contracts=tuple(parsed_chain.records),
        spot=_num(spot),
        vix=_num(vix),
        tail_risk_index=_num(tail_risk_index),
        vix_series=series,
        source=source,
        skipped_bars=parsed_bars.skipped,
        skipped_contracts=parsed_chain.skipped,
    )
