"""
Indicator Engine – Trend & Momentum Oscillators
================================================
SMA, EMA, RSI, MACD and Stochastic computed per bar over a trailing
window (up to 51 bars ending at the bar).

Two simplified definitions:
  * MACD signal line = MACD × 0.15 (not a 9-period EMA of MACD)
  * Stochastic %D    = %K × 0.3 + 50 × 0.7 (not a 3-period SMA of %K)

All computation is pure: no I/O.
"""
from dataclasses import dataclass
from typing import Optional, Sequence
import pandas as pd

from marketstructure.models import PriceBar


@dataclass(frozen=True)
class IndicatorSet:
    """Indicator snapshot for one bar."""
    timestamp: object
    close: float
    sma20: float
    sma50: float
    ema12: float
    ema26: float
    rsi14: float
    macd: float
    macd_signal: float
    macd_histogram: float
    stoch_k: float
    stoch_d: float


@dataclass(frozen=True)
class MomentumSummary:
    """Latest-bar momentum read combining RSI, MACD histogram and trend."""
    signal: str          # "BULLISH" | "BEARISH" | "NEUTRAL"
    strength: float
    rsi: float
    macd: float
    trend: str
    stochastic: float


class IndicatorEngine:
    """
    Technical indicator engine.
    Each bar's indicators are recomputed from the trailing slice that ends
    at that bar; EMAs are therefore re-seeded per slice, not carried over.
    """

    LOOKBACK = 51
    RSI_PERIOD = 14
    STOCH_PERIOD = 14
    MACD_SIGNAL_FRACTION = 0.15
    STOCH_D_WEIGHT = 0.3
    NEUTRAL = 50.0

    def __init__(self, lookback: int | None = None):
        self.lookback = lookback or self.LOOKBACK

    # ── primitives ───────────────────────────────────────────

    @staticmethod
    def sma(values: Sequence[float], period: int) -> Optional[float]:
        """Mean of the last min(period, n) values."""
        if not values:
            return None
        actual = min(period, len(values))
        return sum(values[-actual:]) / actual

    @staticmethod
    def ema(values: Sequence[float], period: int) -> Optional[float]:
        """EMA over the whole slice, seeded with its first value."""
        if not values:
            return None
        k = 2 / (period + 1)
        ema = values[0]
        for v in values[1:]:
            ema = v * k + ema * (1 - k)
        return ema

    def rsi(self, values: Sequence[float], period: int | None = None) -> float:
        """
        RSI over exactly the last `period` deltas (simple averages).
        50 when there are fewer than period + 1 values, 100 when nothing fell.
        """
        period = period or self.RSI_PERIOD
        if len(values) < period + 1:
            return self.NEUTRAL

        gains = 0.0
        losses = 0.0
        for i in range(len(values) - period, len(values)):
            change = values[i] - values[i - 1]
            if change > 0:
                gains += change
            else:
                losses -= change

        avg_gain = gains / period
        avg_loss = losses / period
        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        return 100 - (100 / (1 + rs))

    def macd(self, values: Sequence[float]) -> tuple[float, float, float]:
        """(macd, signal, histogram)."""
        ema12 = self.ema(values, 12)
        ema26 = self.ema(values, 26)
        if ema12 is None or ema26 is None:
            return 0.0, 0.0, 0.0
        macd = ema12 - ema26
        signal = macd * self.MACD_SIGNAL_FRACTION
        return macd, signal, macd - signal

    def stochastic(
        self,
        highs: Sequence[float],
        lows: Sequence[float],
        closes: Sequence[float],
        period: int | None = None,
    ) -> tuple[float, float]:
        """(%K, %D). Neutral 50/50 on short history or a flat window."""
        period = period or self.STOCH_PERIOD
        if len(closes) < period:
            return self.NEUTRAL, self.NEUTRAL

        highest = max(highs[-period:])
        lowest = min(lows[-period:])
        if highest == lowest:
            return self.NEUTRAL, self.NEUTRAL

        k = (closes[-1] - lowest) / (highest - lowest) * 100
        d = k * self.STOCH_D_WEIGHT + self.NEUTRAL * (1 - self.STOCH_D_WEIGHT)
        return k, d

    # ── per-bar series ───────────────────────────────────────

    def compute(self, bars: Sequence[PriceBar]) -> list[IndicatorSet]:
        """One IndicatorSet per bar, each from its own trailing window."""
        closes = [b.close for b in bars]
        highs = [b.high for b in bars]
        lows = [b.low for b in bars]

        out: list[IndicatorSet] = []
        for i, bar in enumerate(bars):
            start = max(0, i - self.lookback + 1)
            window = closes[start: i + 1]
            macd, signal, hist = self.macd(window)
            k, d = self.stochastic(highs[start: i + 1], lows[start: i + 1], window)
            out.append(IndicatorSet(
                timestamp=bar.timestamp,
                close=bar.close,
                sma20=self.sma(window, 20),
                sma50=self.sma(window, 50),
                ema12=self.ema(window, 12),
                ema26=self.ema(window, 26),
                rsi14=self.rsi(window),
                macd=macd,
                macd_signal=signal,
                macd_histogram=hist,
                stoch_k=k,
                stoch_d=d,
            ))
        return out

    @staticmethod
    def to_frame(indicators: Sequence[IndicatorSet]) -> pd.DataFrame:
        """Indicator series as a DataFrame (one row per bar)."""
        return pd.DataFrame([vars(s) for s in indicators], columns=list(IndicatorSet.__dataclass_fields__))

    # ── momentum summary ─────────────────────────────────────

    @staticmethod
    def momentum(indicators: Sequence[IndicatorSet], trend: str) -> Optional[MomentumSummary]:
        """
        Overbought/oversold reversals first, then trend-following reads.
        Returns None when there are no bars.
        """
        if not indicators:
            return None

        latest = indicators[-1]
        rsi = latest.rsi14
        hist = latest.macd_histogram

        if rsi > 70 and hist < 0:
            signal, strength = "BEARISH", 0.7
        elif rsi < 30 and hist > 0:
            signal, strength = "BULLISH", 0.7
        elif trend == "uptrend" and rsi > 50:
            signal, strength = "BULLISH", 0.5
        elif trend == "downtrend" and rsi < 50:
            signal, strength = "BEARISH", 0.5
        else:
            signal, strength = "NEUTRAL", 0.0

        return MomentumSummary(
            signal=signal,
            strength=strength,
            rsi=rsi,
            macd=latest.macd,
            trend=trend,
            stochastic=latest.stoch_k,
        )


# Global engine instance
indicator_engine = IndicatorEngine()
