"""
Support / Resistance Engine
============================
Clusters swing points into ranked support / resistance levels:
  1. Swing highs become resistance candidates, swing lows support
  2. Candidates within CLUSTER_PCT of an existing cluster merge into it
     (touch count +1, strength accumulates, price → running mean)
  3. Levels are ranked by touches × strength / cluster count

All computation is pure: no API calls.  Swing points come from the
StructureEngine.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from marketstructure.structure_engine import SwingPoint


# ── Data classes ─────────────────────────────────────────────

@dataclass(frozen=True)
class SRLevel:
    """A single support or resistance level."""
    price: float
    type: str          # "support" | "resistance"
    touches: int       # swing points merged into the level
    strength: float    # touches × accumulated strength / cluster count
    distance: float    # % away from the current price (0 if unknown)


@dataclass
class _Cluster:
    price: float
    type: str
    touches: int
    strength: float


# ── Engine ───────────────────────────────────────────────────

class SREngine:
    """
    Support / Resistance clustering engine.
    Pure computation: no I/O.  Feed it swing points.
    """

    # Clustering tolerance (% of price)
    CLUSTER_PCT = 0.005   # 0.5%

    # Levels kept after ranking
    MAX_LEVELS = 8

    def __init__(self, cluster_pct: float | None = None, max_levels: int | None = None):
        self.cluster_pct = cluster_pct or self.CLUSTER_PCT
        self.max_levels = max_levels or self.MAX_LEVELS

    # ── Public API ───────────────────────────────────────────

    def analyze(
        self,
        swing_highs: Sequence[SwingPoint],
        swing_lows: Sequence[SwingPoint],
        current_price: float | None = None,
    ) -> list[SRLevel]:
        """
        Cluster swing points and return the strongest levels.

        Parameters
        ----------
        swing_highs : swing highs from StructureEngine (typed resistance)
        swing_lows : swing lows from StructureEngine (typed support)
        current_price : spot used for the distance column; None → 0 distance

        Returns
        -------
        Up to MAX_LEVELS SRLevels, strongest first.
        """
        points = [(h.price, "resistance", h.strength) for h in swing_highs]
        points += [(l.price, "support", l.strength) for l in swing_lows]

        clusters = self._cluster_points(points)
        if not clusters:
            return []

        n_clusters = len(clusters)
        levels = [
            SRLevel(
                price=c.price,
                type=c.type,
                touches=c.touches,
                strength=c.touches * c.strength / n_clusters,
                distance=(
                    abs(c.price - current_price) / current_price * 100
                    if current_price else 0.0
                ),
            )
            for c in clusters
        ]

        levels.sort(key=lambda l: l.strength, reverse=True)
        return levels[: self.max_levels]

    # ── Clustering ───────────────────────────────────────────

    def _cluster_points(self, points: list[tuple[float, str, float]]) -> list[_Cluster]:
        """
        Greedy first-fit clustering in input order. A cluster keeps the
        type of the point that opened it.
        """
        clusters: list[_Cluster] = []

        for price, kind, strength in points:
            match = next(
                (
                    c for c in clusters
                    if c.price > 0 and abs(c.price - price) / c.price < self.cluster_pct
                ),
                None,
            )
            if match is not None:
                match.touches += 1
                match.strength += strength
                match.price = (match.price + price) / 2
            else:
                clusters.append(_Cluster(price=price, type=kind, touches=1, strength=strength))

        return clusters

    # ── Proximity helpers ────────────────────────────────────

    @staticmethod
    def nearest_levels(
        levels: Sequence[SRLevel], current_price: float | None
    ) -> tuple[Optional[float], Optional[float]]:
        """Find nearest support (below) and resistance (above) current price."""
        if not current_price:
            return None, None

        supports = [l.price for l in levels if l.price < current_price and l.type == "support"]
        resistances = [l.price for l in levels if l.price > current_price and l.type == "resistance"]

        nearest_sup = max(supports) if supports else None
        nearest_res = min(resistances) if resistances else None

        return nearest_sup, nearest_res


# Global engine instance
sr_engine = SREngine()
