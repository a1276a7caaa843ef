"""
Market Analyzer – the single analysis pipeline
===============================================
Runs every engine once over a MarketBatch and collects the results into
one immutable AnalysisReport.  HTTP handlers, the synthetic demo and
library callers all go through here.

  bars  → indicators, structure → S/R levels, volume profile
  chain → walls / max pain, dealer gamma, volatility metrics, skew curve
  closes + VIX series → rolling correlation
  volatility + dealer + SKEW → directional prediction
"""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional
import logging

from marketstructure.chain_engine import (
    ChainEngine, DealerGammaProfile, OptionsWallSet, SkewPoint, VolatilityMetrics, chain_engine,
)
from marketstructure.config import Settings, get_settings
from marketstructure.correlation_engine import CorrelationEngine, CorrelationPoint, correlation_engine
from marketstructure.greeks_engine import GreeksEngine
from marketstructure.indicator_engine import (
    IndicatorEngine, IndicatorSet, MomentumSummary, indicator_engine,
)
from marketstructure.models import DataSource, MarketBatch
from marketstructure.sentiment_engine import PredictionResult, SentimentEngine, sentiment_engine
from marketstructure.sr_engine import SREngine, SRLevel, sr_engine
from marketstructure.structure_engine import StructureEngine, StructureResult, structure_engine
from marketstructure.volume_profile_engine import (
    VolumeProfile, VolumeProfileEngine, volume_profile_engine,
)

logger = logging.getLogger("marketstructure.analyzer")


@dataclass(frozen=True)
class AnalysisReport:
    source: DataSource
    options_status: str                              # "ok" | "no_data"
    spot: Optional[float]
    indicators: tuple[IndicatorSet, ...]
    momentum: Optional[MomentumSummary]
    structure: StructureResult
    levels: tuple[SRLevel, ...]
    nearest_support: Optional[float]
    nearest_resistance: Optional[float]
    volume_profile: VolumeProfile
    walls: Optional[OptionsWallSet] = None
    dealer: Optional[DealerGammaProfile] = None
    volatility: Optional[VolatilityMetrics] = None
    skew_curve: tuple[SkewPoint, ...] = ()
    correlation: tuple[CorrelationPoint, ...] = ()
    prediction: Optional[PredictionResult] = None
    warnings: tuple[str, ...] = field(default_factory=tuple)
    skipped_bars: int = 0
    skipped_contracts: int = 0

    def to_dict(self) -> dict:
        """JSON-ready dict (enums flattened to their values)."""
        return _plain(asdict(self))


def _plain(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    return obj


class MarketAnalyzer:
    """Stateless between calls; safe to share one instance."""

    def __init__(
        self,
        indicators: IndicatorEngine | None = None,
        structure: StructureEngine | None = None,
        levels: SREngine | None = None,
        profile: VolumeProfileEngine | None = None,
        chain: ChainEngine | None = None,
        correlation: CorrelationEngine | None = None,
        sentiment: SentimentEngine | None = None,
    ):
        self.indicators = indicators or indicator_engine
        self.structure = structure or structure_engine
        self.levels = levels or sr_engine
        self.profile = profile or volume_profile_engine
        self.chain = chain or chain_engine
        self.correlation = correlation or correlation_engine
        self.sentiment = sentiment or sentiment_engine

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MarketAnalyzer":
        s = settings or get_settings()
        return cls(
            indicators=IndicatorEngine(lookback=s.INDICATOR_LOOKBACK),
            levels=SREngine(cluster_pct=s.SR_CLUSTER_PCT, max_levels=s.SR_MAX_LEVELS),
            profile=VolumeProfileEngine(num_bins=s.VP_NUM_BINS, value_area_pct=s.VP_VALUE_AREA_PCT),
            chain=ChainEngine(
                greeks=GreeksEngine(risk_free_rate=s.RISK_FREE_RATE),
                wall_significance_pct=s.WALL_SIGNIFICANCE_PCT,
                hv_window=s.HV_WINDOW,
            ),
            correlation=CorrelationEngine(window=s.CORRELATION_WINDOW),
        )

    # ── Pipeline ─────────────────────────────────────────────

    def analyze(self, batch: MarketBatch) -> AnalysisReport:
        bars = list(batch.bars)
        closes = [b.close for b in bars]
        spot = batch.spot if batch.spot else (closes[-1] if closes else None)
        warnings: list[str] = []

        if batch.skipped_bars:
            warnings.append(f"{batch.skipped_bars} malformed price bar(s) skipped")
        if batch.skipped_contracts:
            warnings.append(f"{batch.skipped_contracts} malformed option contract(s) skipped")

        # Price analytics
        indicators = self.indicators.compute(bars)
        structure = self.structure.analyze(bars)
        levels = self.levels.analyze(structure.swing_highs, structure.swing_lows, spot)
        support, resistance = self.levels.nearest_levels(levels, spot)
        profile = self.profile.analyze(bars)
        momentum = self.indicators.momentum(indicators, structure.trend.trend)

        # Cross-asset correlation
        correlation: list[CorrelationPoint] = []
        if batch.vix_series is not None:
            if len(batch.vix_series) != len(bars):
                msg = (
                    f"vix_series length {len(batch.vix_series)} does not match "
                    f"{len(bars)} bars; correlation skipped"
                )
                logger.warning(msg)
                warnings.append(msg)
            else:
                correlation = self.correlation.rolling(
                    [b.timestamp for b in bars], closes, list(batch.vix_series)
                )

        # Options analytics (nothing fabricated without a chain)
        contracts = list(batch.contracts)
        walls = dealer = volatility = prediction = None
        skew: list[SkewPoint] = []
        if contracts:
            options_status = "ok"
            walls = self.chain.find_walls(contracts, spot)
            dealer = self.chain.dealer_exposure(contracts, spot)
            volatility = self.chain.volatility_metrics(contracts, spot, closes, batch.vix)
            skew = self.chain.skew_curve(contracts, spot)
            prediction = self.sentiment.predict(volatility, dealer, spot, batch.tail_risk_index)
        else:
            options_status = "no_data"
            logger.info("No options chain supplied; options and sentiment sections left empty")

        logger.debug(
            "Analysis complete: source=%s bars=%d contracts=%d swings=%d/%d levels=%d breaks=%d",
            batch.source.value, len(bars), len(contracts),
            len(structure.swing_highs), len(structure.swing_lows),
            len(levels), len(structure.breaks),
        )

        return AnalysisReport(
            source=batch.source,
            options_status=options_status,
            spot=spot,
            indicators=tuple(indicators),
            momentum=momentum,
            structure=structure,
            levels=tuple(levels),
            nearest_support=support,
            nearest_resistance=resistance,
            volume_profile=profile,
            walls=walls,
            dealer=dealer,
            volatility=volatility,
            skew_curve=tuple(skew),
            correlation=tuple(correlation),
            prediction=prediction,
            warnings=tuple(warnings),
            skipped_bars=batch.skipped_bars,
            skipped_contracts=batch.skipped_contracts,
        )
