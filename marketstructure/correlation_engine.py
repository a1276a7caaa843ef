"""
Correlation Engine
==================
Pearson correlation between two aligned series, plain and rolling.
Used to track the underlying against the VIX.
"""
from dataclasses import dataclass
from typing import Sequence
import logging

import numpy as np

logger = logging.getLogger("marketstructure.correlation")


@dataclass(frozen=True)
class CorrelationPoint:
    timestamp: object
    correlation: float
    value_a: float
    value_b: float


class CorrelationEngine:
    """Pure computation: no I/O."""

    WINDOW = 14

    def __init__(self, window: int | None = None):
        self.window = window or self.WINDOW

    @staticmethod
    def correlation(a: Sequence[float], b: Sequence[float]) -> float:
        """
        Pearson correlation coefficient.
        0.0 for empty input, mismatched lengths or a zero-variance series.
        """
        if len(a) == 0 or len(a) != len(b):
            return 0.0

        x = np.asarray(a, dtype=float)
        y = np.asarray(b, dtype=float)
        dx = x - x.mean()
        dy = y - y.mean()

        denominator = float(np.sqrt((dx * dx).sum() * (dy * dy).sum()))
        if denominator == 0:
            return 0.0
        return float((dx * dy).sum() / denominator)

    def rolling(
        self,
        timestamps: Sequence[object],
        a: Sequence[float],
        b: Sequence[float],
        window: int | None = None,
    ) -> list[CorrelationPoint]:
        """
        Rolling correlation. The point at index i uses the `window` values
        strictly before i and reports the raw values at i.
        """
        window = window or self.window
        if not (len(timestamps) == len(a) == len(b)):
            logger.warning(
                "Rolling correlation skipped: length mismatch (%d timestamps, %d / %d values)",
                len(timestamps), len(a), len(b),
            )
            return []

        points: list[CorrelationPoint] = []
        for i in range(window, len(a)):
            points.append(CorrelationPoint(
                timestamp=timestamps[i],
                correlation=self.correlation(a[i - window: i], b[i - window: i]),
                value_a=float(a[i]),
                value_b=float(b[i]),
            ))
        return points


# Global engine instance
correlation_engine = CorrelationEngine()
