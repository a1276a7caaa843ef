"""
Volume Profile Engine
=====================
Price-bucketed volume histogram from closing prices:
  * VP_NUM_BINS equal-width bins across [min close, max close]
  * POC (Point of Control) = bin with the most volume
  * Value Area = highest-volume bins taken greedily until 70% of volume

The value area is NOT expanded contiguously from the POC; VAH / VAL are
simply the highest / lowest bin centres among the accumulated bins.
"""
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

from marketstructure.models import PriceBar


@dataclass(frozen=True)
class VolumeBin:
    price_level: float   # bin centre
    volume: float
    price_low: float
    price_high: float


@dataclass(frozen=True)
class VolumeProfile:
    bins: tuple[VolumeBin, ...] = ()
    poc: Optional[VolumeBin] = None
    vah: Optional[float] = None          # Value Area High
    val: Optional[float] = None          # Value Area Low
    total_volume: float = 0.0


class VolumeProfileEngine:
    """Builds a close-price volume profile. Pure computation: no I/O."""

    VP_NUM_BINS = 50
    VALUE_AREA_PCT = 0.70

    def __init__(self, num_bins: int | None = None, value_area_pct: float | None = None):
        self.num_bins = num_bins or self.VP_NUM_BINS
        self.value_area_pct = value_area_pct or self.VALUE_AREA_PCT

    def analyze(self, bars: Sequence[PriceBar]) -> VolumeProfile:
        """
        Build the profile.

        Each bar's volume goes to the bin with low <= close < high; the top
        bin also takes closes equal to the maximum so no volume is lost.
        """
        if not bars:
            return VolumeProfile()

        closes = np.array([b.close for b in bars], dtype=float)
        volumes = np.array([b.volume for b in bars], dtype=float)

        price_min = float(closes.min())
        price_max = float(closes.max())
        price_range = price_max - price_min

        if price_range == 0:
            # Degenerate: every close is identical → one bin holds everything
            n_bins = 1
            bin_size = 0.0
            idx = np.zeros(len(closes), dtype=int)
        else:
            n_bins = self.num_bins
            bin_size = price_range / n_bins
            idx = np.floor((closes - price_min) / bin_size).astype(int)
            idx = np.clip(idx, 0, n_bins - 1)

        bin_volumes = np.bincount(idx, weights=volumes, minlength=n_bins)

        bins = tuple(
            VolumeBin(
                price_level=price_min + (i + 0.5) * bin_size,
                volume=float(bin_volumes[i]),
                price_low=price_min + i * bin_size,
                price_high=price_min + (i + 1) * bin_size if bin_size else price_max,
            )
            for i in range(n_bins)
        )

        # POC = first bin with the highest volume
        poc = bins[int(np.argmax(bin_volumes))]

        total_vol = float(bin_volumes.sum())
        vah, val = self._value_area(bins, bin_volumes, total_vol)

        return VolumeProfile(bins=bins, poc=poc, vah=vah, val=val, total_volume=total_vol)

    # ── Value area ───────────────────────────────────────────

    def _value_area(
        self, bins: tuple[VolumeBin, ...], bin_volumes: np.ndarray, total_vol: float
    ) -> tuple[Optional[float], Optional[float]]:
        """Greedy top-volume accumulation; returns (VAH, VAL)."""
        target_vol = total_vol * self.value_area_pct
        order = np.argsort(-bin_volumes, kind="stable")

        accumulated = 0.0
        levels: list[float] = []
        for i in order:
            if accumulated >= target_vol:
                break
            levels.append(bins[i].price_level)
            accumulated += float(bin_volumes[i])

        if not levels:
            return None, None
        return max(levels), min(levels)


# Global engine instance
volume_profile_engine = VolumeProfileEngine()
