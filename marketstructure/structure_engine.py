"""
Market Structure Engine
=======================
Swing points, trend state and break-of-structure (BOS) detection on
closing prices.

  * Swing high / low: center close strictly beyond the 2 closes on each side
  * Trend: last two swing highs vs last two swing lows (HH/HL, LH/LL)
  * BOS: close crossing one of the 3 most recent swing extremes

CHOCH (change of character) is reserved in the result but never filled
here.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from marketstructure.models import PriceBar


@dataclass(frozen=True)
class SwingPoint:
    index: int
    price: float
    timestamp: object
    strength: float    # % distance from the center to the farthest neighbour


@dataclass(frozen=True)
class TrendState:
    trend: str         # "uptrend" | "downtrend" | "ranging" | "neutral"
    strength: float    # 0.0-1.0


@dataclass(frozen=True)
class BreakEvent:
    index: int
    type: str          # "bullish" | "bearish"
    price: float       # close that broke the level
    level: float       # swing price that was broken
    strength: float    # % overshoot beyond the level


@dataclass(frozen=True)
class StructureResult:
    swing_highs: tuple[SwingPoint, ...] = ()
    swing_lows: tuple[SwingPoint, ...] = ()
    trend: TrendState = TrendState("neutral", 0.0)
    breaks: tuple[BreakEvent, ...] = ()
    choch: tuple[BreakEvent, ...] = ()


class StructureEngine:
    """
    Market structure analysis engine.
    Pure computation: no I/O.  Feed it PriceBars in ascending time order.
    """

    SWING_WINDOW = 2        # bars each side of the center
    BOS_LOOKBACK = 3        # most recent swings eligible for a break
    TREND_STRENGTH = 0.8
    RANGING_STRENGTH = 0.5

    # ── Public API ───────────────────────────────────────────

    def analyze(self, bars: Sequence[PriceBar]) -> StructureResult:
        highs, lows = self.find_swings(bars)
        return StructureResult(
            swing_highs=tuple(highs),
            swing_lows=tuple(lows),
            trend=self.classify_trend(highs, lows),
            breaks=tuple(self.detect_breaks(bars, highs, lows)),
            choch=(),
        )

    # ── Swing detection ──────────────────────────────────────

    def find_swings(
        self, bars: Sequence[PriceBar]
    ) -> tuple[list[SwingPoint], list[SwingPoint]]:
        """
        Scan centers 2..n-3. A swing high's close must strictly exceed all
        four neighbours; a swing low's must be strictly below them.
        """
        w = self.SWING_WINDOW
        highs: list[SwingPoint] = []
        lows: list[SwingPoint] = []
        if len(bars) < 2 * w + 1:
            return highs, lows

        closes = [b.close for b in bars]
        for i in range(w, len(bars) - w):
            center = closes[i]
            neighbours = closes[i - w: i] + closes[i + 1: i + w + 1]

            if all(center > p for p in neighbours):
                highs.append(SwingPoint(
                    index=i,
                    price=center,
                    timestamp=bars[i].timestamp,
                    strength=self._pct(center - min(neighbours), center),
                ))
            elif all(center < p for p in neighbours):
                lows.append(SwingPoint(
                    index=i,
                    price=center,
                    timestamp=bars[i].timestamp,
                    strength=self._pct(max(neighbours) - center, center),
                ))

        return highs, lows

    # ── Trend ────────────────────────────────────────────────

    def classify_trend(
        self, highs: Sequence[SwingPoint], lows: Sequence[SwingPoint]
    ) -> TrendState:
        if len(highs) < 2 or len(lows) < 2:
            return TrendState("neutral", 0.0)

        last_high, prev_high = highs[-1].price, highs[-2].price
        last_low, prev_low = lows[-1].price, lows[-2].price

        if last_high > prev_high and last_low > prev_low:
            return TrendState("uptrend", self.TREND_STRENGTH)
        if last_high < prev_high and last_low < prev_low:
            return TrendState("downtrend", self.TREND_STRENGTH)
        return TrendState("ranging", self.RANGING_STRENGTH)

    # ── Break of structure ───────────────────────────────────

    def detect_breaks(
        self,
        bars: Sequence[PriceBar],
        highs: Sequence[SwingPoint],
        lows: Sequence[SwingPoint],
    ) -> list[BreakEvent]:
        """
        Walk the bars in order. For each bar, the reference level is the
        most recent of the last BOS_LOOKBACK swings that precedes the bar.
        """
        events: list[BreakEvent] = []
        if len(highs) < 2 or len(lows) < 2:
            return events

        recent_highs = list(highs[-self.BOS_LOOKBACK:])
        recent_lows = list(lows[-self.BOS_LOOKBACK:])

        for i in range(1, len(bars)):
            close = bars[i].close
            prev_close = bars[i - 1].close

            high = self._latest_before(recent_highs, i)
            if high is not None and prev_close <= high.price < close:
                events.append(BreakEvent(
                    index=i,
                    type="bullish",
                    price=close,
                    level=high.price,
                    strength=self._pct(close - high.price, high.price),
                ))

            low = self._latest_before(recent_lows, i)
            if low is not None and prev_close >= low.price > close:
                events.append(BreakEvent(
                    index=i,
                    type="bearish",
                    price=close,
                    level=low.price,
                    strength=self._pct(low.price - close, low.price),
                ))

        return events

    # ── helpers ──────────────────────────────────────────────

    @staticmethod
    def _latest_before(swings: Sequence[SwingPoint], index: int) -> Optional[SwingPoint]:
        """
        Newest swing that precedes `index`. The dashboard scan instead takes
        the first (oldest) qualifying swing of the last three; this one
        returns the newest.
        """
        for swing in reversed(swings):
            if swing.index < index:
                return swing
        return None

    @staticmethod
    def _pct(diff: float, base: float) -> float:
        return diff / base * 100 if base else 0.0


# Global engine instance
structure_engine = StructureEngine()
