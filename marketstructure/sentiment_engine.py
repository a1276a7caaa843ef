"""
Sentiment Engine – Rule-Based Directional Score
================================================
Additive bull / bear point scorer over options positioning and volatility
regime, plus a scorecard for grading predictions after the fact.

Factors
───────
1. Dealer regime        short gamma above / below the flip, or long gamma
2. Put/call volume      > 1.2 contrarian bullish, < 0.7 bearish
3. IV vs HV             premium = fear (bearish), discount = bullish
4. VIX level            > 25 contrarian bullish, < 12 complacent
5. OTM put skew         > 5 vol points bearish
6. SKEW index           > 140 tail hedging (bearish), < 120 bullish

Not a calibrated model: a fixed set of threshold rules.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from marketstructure.chain_engine import DealerGammaProfile, VolatilityMetrics


# ── Signal taxonomy ─────────────────────────────────────────

class Direction(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"


class Move(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"


@dataclass(frozen=True)
class Signal:
    """Individual factor contribution to the prediction."""
    factor: str
    sentiment: str       # "bullish" | "bearish"
    weight: int


@dataclass(frozen=True)
class PredictionResult:
    direction: Direction
    confidence: float                # |bull - bear| / (bull + bear)
    signals: tuple[Signal, ...]
    bull_score: int
    bear_score: int
    spot_price: Optional[float]


@dataclass(frozen=True)
class PredictionOutcome:
    direction: Direction
    actual_move: Move
    correct: bool
    spot_price: Optional[float]
    close_price: Optional[float]


# ── Engine ───────────────────────────────────────────────────

class SentimentEngine:
    """Pure computation: no I/O."""

    PCR_BULLISH = 1.2
    PCR_BEARISH = 0.7
    IV_PREMIUM = 0.05
    IV_DISCOUNT = -0.02
    VIX_HIGH = 25
    VIX_LOW = 12
    PUT_SKEW = 0.05
    TAIL_RISK_HIGH = 140
    TAIL_RISK_LOW = 120

    def predict(
        self,
        volatility: Optional[VolatilityMetrics],
        dealer: Optional[DealerGammaProfile],
        spot: Optional[float],
        tail_risk_index: Optional[float] = None,
    ) -> Optional[PredictionResult]:
        """
        Score every factor and sum bull / bear points.

        Returns None when neither volatility nor dealer metrics exist; a
        missing input only silences the factors that depend on it.
        """
        if volatility is None and dealer is None:
            return None

        signals: list[Signal] = []

        if dealer is not None:
            signals.extend(self._dealer_signals(dealer, spot))
        if volatility is not None:
            signals.extend(self._volatility_signals(volatility))
        signals.extend(self._tail_risk_signals(tail_risk_index))

        bull = sum(s.weight for s in signals if s.sentiment == "bullish")
        bear = sum(s.weight for s in signals if s.sentiment == "bearish")
        total = bull + bear

        return PredictionResult(
            direction=Direction.BULLISH if bull > bear else Direction.BEARISH,
            confidence=abs(bull - bear) / total if total else 0.0,
            signals=tuple(signals),
            bull_score=bull,
            bear_score=bear,
            spot_price=spot,
        )

    # ── Factor scoring ───────────────────────────────────────

    @staticmethod
    def _dealer_signals(dealer: DealerGammaProfile, spot: Optional[float]) -> list[Signal]:
        if not dealer.is_short_gamma:
            return [Signal("Dealer Long Gamma (Dampening)", "bearish", 1)]

        flip = dealer.gamma_flip_point
        if flip is None or spot is None:
            return []
        if spot > flip:
            return [Signal("Dealer Short Gamma Above Flip", "bullish", 2)]
        return [Signal("Dealer Short Gamma Below Flip", "bearish", 2)]

    def _volatility_signals(self, vol: VolatilityMetrics) -> list[Signal]:
        signals: list[Signal] = []

        if vol.pcr_volume > self.PCR_BULLISH:
            signals.append(Signal("High Put Buying (PCR > 1.2)", "bullish", 1))
        elif vol.pcr_volume < self.PCR_BEARISH:
            signals.append(Signal("High Call Buying (PCR < 0.7)", "bearish", 1))

        if vol.iv_hv_spread > self.IV_PREMIUM:
            signals.append(Signal("IV Premium to HV (Fear)", "bearish", 1))
        elif vol.iv_hv_spread < self.IV_DISCOUNT:
            signals.append(Signal("IV Discount to HV", "bullish", 1))

        if vol.vix_level is not None:
            if vol.vix_level > self.VIX_HIGH:
                signals.append(Signal("Elevated VIX (>25)", "bullish", 2))
            elif vol.vix_level < self.VIX_LOW:
                signals.append(Signal("Low VIX (<12)", "bearish", 1))

        if vol.iv_skew > self.PUT_SKEW:
            signals.append(Signal("High Put Skew (>5%)", "bearish", 1))

        return signals

    def _tail_risk_signals(self, tail_risk_index: Optional[float]) -> list[Signal]:
        if tail_risk_index is None:
            return []
        if tail_risk_index > self.TAIL_RISK_HIGH:
            return [Signal("Elevated SKEW (>140)", "bearish", 2)]
        if tail_risk_index < self.TAIL_RISK_LOW:
            return [Signal("Low SKEW (<120)", "bullish", 1)]
        return []

    # ── Scorecard ────────────────────────────────────────────

    @staticmethod
    def score_outcome(
        prediction: PredictionResult,
        actual_move: Move | str,
        close_price: Optional[float] = None,
    ) -> PredictionOutcome:
        """Grade a prediction: BULLISH + UP or BEARISH + DOWN is correct."""
        move = actual_move if isinstance(actual_move, Move) else Move(actual_move.upper())
        correct = (
            (prediction.direction == Direction.BULLISH and move == Move.UP)
            or (prediction.direction == Direction.BEARISH and move == Move.DOWN)
        )
        return PredictionOutcome(
            direction=prediction.direction,
            actual_move=move,
            correct=correct,
            spot_price=prediction.spot_price,
            close_price=close_price,
        )

    @staticmethod
    def hit_rate(outcomes: Sequence[PredictionOutcome]) -> float:
        """Fraction of correct predictions (0.0 when there are none)."""
        if not outcomes:
            return 0.0
        return sum(1 for o in outcomes if o.correct) / len(outcomes)


# Global engine instance
sentiment_engine = SentimentEngine()
