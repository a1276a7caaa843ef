"""
Options Chain Engine – Positioning Metrics
===========================================
Aggregate metrics computed from a full options chain snapshot.

Metrics
───────
1. Strike aggregation     (call/put OI, volume, OI-weighted gamma per strike)
2. Open-interest walls    (top 20% strikes by total OI → support / resistance)
3. Max pain               (strike minimising option-holder payout at expiry)
4. Dealer gamma exposure  (dealers assumed short every customer contract)
5. Gamma flip             (strike where dealer net gamma changes sign)
6. Volatility metrics     (ATM IV, HV, put/call ratios, OTM skew)
7. Skew curve             (near-term IV by strike)

Strikes are always iterated in ascending numeric order.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional, Sequence
import logging
import math

from marketstructure.greeks_engine import GreeksEngine, greeks_engine
from marketstructure.models import OptionContract

logger = logging.getLogger("marketstructure.chain")


# ── Data classes ─────────────────────────────────────────────

@dataclass(frozen=True)
class StrikeAggregate:
    strike: float
    call_oi: float = 0.0
    put_oi: float = 0.0
    call_volume: float = 0.0
    put_volume: float = 0.0
    call_gamma: float = 0.0      # Σ gamma × OI over calls
    put_gamma: float = 0.0       # Σ gamma × OI over puts
    net_oi: float = 0.0          # call OI - put OI
    net_gamma: float = 0.0       # call gamma - put gamma
    total_oi: float = 0.0
    put_call_ratio: float = 0.0  # put OI / call OI (0 without calls)


@dataclass(frozen=True)
class OptionsWallSet:
    walls: tuple[StrikeAggregate, ...] = ()
    max_pain: Optional[float] = None
    significant_walls: tuple[StrikeAggregate, ...] = ()
    support_walls: tuple[StrikeAggregate, ...] = ()
    resistance_walls: tuple[StrikeAggregate, ...] = ()


@dataclass(frozen=True)
class StrikeExposure:
    """Per-strike dealer exposure, signed from the dealer's side."""
    strike: float
    call_gamma: float = 0.0
    put_gamma: float = 0.0
    call_delta: float = 0.0
    put_delta: float = 0.0
    net_gamma: float = 0.0
    net_delta: float = 0.0


@dataclass(frozen=True)
class DealerGammaProfile:
    strikes: tuple[StrikeExposure, ...]
    total_gamma: float
    total_delta: float
    gamma_flip_point: Optional[float]    # None when net gamma never changes sign
    is_short_gamma: bool
    max_gamma_strike: Optional[float]


@dataclass(frozen=True)
class VolatilityMetrics:
    atm_iv: float
    historical_vol: float
    historical_vol_estimated: bool       # True → HV is the fallback constant
    iv_hv_spread: float
    pcr_volume: float
    pcr_oi: float
    iv_skew: float                       # OTM put IV - OTM call IV
    vix_level: Optional[float]


@dataclass(frozen=True)
class SkewPoint:
    strike: float
    moneyness: float     # % from spot
    call_iv: float       # %
    put_iv: float        # %
    avg_iv: float        # %


# ── Engine ───────────────────────────────────────────────────

class ChainEngine:
    """
    Options positioning analytics over a chain snapshot.
    Pure computation: contracts in, immutable results out.
    """

    CONTRACT_MULTIPLIER = 100
    WALL_SIGNIFICANCE_PCT = 0.20   # top 20% by total OI
    ATM_BAND = 5.0                 # $ from spot counted as at-the-money
    OTM_PUT_MONEYNESS = 0.95
    OTM_CALL_MONEYNESS = 1.05
    DEFAULT_HISTORICAL_VOL = 0.15
    SKEW_MAX_DTE = 8
    SKEW_STRIKE_BAND = 30.0

    def __init__(
        self,
        greeks: GreeksEngine | None = None,
        wall_significance_pct: float | None = None,
        hv_window: int = 30,
    ):
        self.greeks = greeks or greeks_engine
        self.wall_significance_pct = wall_significance_pct or self.WALL_SIGNIFICANCE_PCT
        self.hv_window = hv_window

    # ── Strike aggregation ───────────────────────────────────

    def aggregate_strikes(
        self, contracts: Sequence[OptionContract], spot: float | None = None
    ) -> list[StrikeAggregate]:
        """One StrikeAggregate per distinct strike, ascending by strike."""
        buckets: dict[float, dict[str, float]] = defaultdict(lambda: defaultdict(float))

        for c in contracts:
            opt_type = (c.type or "").lower()
            if opt_type not in ("call", "put"):
                continue
            gamma = c.gamma
            if gamma is None:
                gamma = self.greeks.resolve(c, spot)[0] if spot else 0.0

            b = buckets[c.strike]
            b[f"{opt_type}_oi"] += c.open_interest
            b[f"{opt_type}_volume"] += c.volume
            b[f"{opt_type}_gamma"] += gamma * c.open_interest

        aggregates: list[StrikeAggregate] = []
        for strike in sorted(buckets):
            b = buckets[strike]
            call_oi, put_oi = b["call_oi"], b["put_oi"]
            aggregates.append(StrikeAggregate(
                strike=strike,
                call_oi=call_oi,
                put_oi=put_oi,
                call_volume=b["call_volume"],
                put_volume=b["put_volume"],
                call_gamma=b["call_gamma"],
                put_gamma=b["put_gamma"],
                net_oi=call_oi - put_oi,
                net_gamma=b["call_gamma"] - b["put_gamma"],
                total_oi=call_oi + put_oi,
                put_call_ratio=put_oi / call_oi if call_oi > 0 else 0.0,
            ))
        return aggregates

    # ── Max pain ─────────────────────────────────────────────

    @staticmethod
    def max_pain(aggregates: Sequence[StrikeAggregate]) -> Optional[float]:
        """
        Brute-force max pain: for each candidate strike, total intrinsic value
        owed to call holders below it and put holders above it. O(n²).
        """
        max_pain_strike = None
        min_pain = math.inf

        for candidate in aggregates:
            test_price = candidate.strike
            total_pain = 0.0
            for w in aggregates:
                if test_price > w.strike:
                    total_pain += w.call_oi * (test_price - w.strike)
                elif test_price < w.strike:
                    total_pain += w.put_oi * (w.strike - test_price)

            if total_pain < min_pain:
                min_pain = total_pain
                max_pain_strike = test_price

        return max_pain_strike

    # ── Open-interest walls ──────────────────────────────────

    def find_walls(
        self, contracts: Sequence[OptionContract], spot: float | None
    ) -> OptionsWallSet:
        """
        Significant walls are strikes whose total OI reaches the OI found at
        the 20th-percentile rank of the descending OI ordering.
        """
        walls = self.aggregate_strikes(contracts, spot)
        if not walls:
            return OptionsWallSet()

        by_oi = sorted(walls, key=lambda w: w.total_oi, reverse=True)
        threshold = by_oi[int(len(by_oi) * self.wall_significance_pct)].total_oi
        significant = [w for w in walls if w.total_oi >= threshold]

        support: list[StrikeAggregate] = []
        resistance: list[StrikeAggregate] = []
        if spot:
            support = [w for w in significant if w.strike < spot and w.put_oi > w.call_oi]
            resistance = [w for w in significant if w.strike > spot and w.call_oi > w.put_oi]
        else:
            logger.debug("No spot price; walls not split into support / resistance")

        return OptionsWallSet(
            walls=tuple(walls),
            max_pain=self.max_pain(walls),
            significant_walls=tuple(significant),
            support_walls=tuple(support),
            resistance_walls=tuple(resistance),
        )

    # ── Dealer exposure ──────────────────────────────────────

    def dealer_exposure(
        self, contracts: Sequence[OptionContract], spot: float | None
    ) -> Optional[DealerGammaProfile]:
        """
        Dealer gamma/delta by strike.
        Dealers are assumed short every customer contract, so each
        contract's notional is -OI × 100.
        """
        if not contracts or not spot:
            if contracts:
                logger.warning("Dealer exposure skipped: no spot price for %d contracts", len(contracts))
            return None

        buckets: dict[float, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        for c in contracts:
            opt_type = (c.type or "").lower()
            if opt_type not in ("call", "put"):
                continue
            gamma, delta = self.greeks.resolve(c, spot)
            notional = -c.open_interest * self.CONTRACT_MULTIPLIER

            b = buckets[c.strike]
            b[f"{opt_type}_gamma"] += gamma * notional
            b[f"{opt_type}_delta"] += delta * notional

        if not buckets:
            return None

        strikes = tuple(
            StrikeExposure(
                strike=strike,
                call_gamma=b["call_gamma"],
                put_gamma=b["put_gamma"],
                call_delta=b["call_delta"],
                put_delta=b["put_delta"],
                net_gamma=b["call_gamma"] + b["put_gamma"],
                net_delta=b["call_delta"] + b["put_delta"],
            )
            for strike, b in sorted(buckets.items())
        )

        total_gamma = sum(s.net_gamma for s in strikes)
        total_delta = sum(s.net_delta for s in strikes)
        max_gamma = max(strikes, key=lambda s: abs(s.net_gamma))

        return DealerGammaProfile(
            strikes=strikes,
            total_gamma=total_gamma,
            total_delta=total_delta,
            gamma_flip_point=self.gamma_flip(strikes),
            is_short_gamma=total_gamma < 0,
            max_gamma_strike=max_gamma.strike,
        )

    @staticmethod
    def gamma_flip(strikes: Sequence[StrikeExposure]) -> Optional[float]:
        """Midpoint of the first ascending strike pair whose net gamma changes sign."""
        for lower, upper in zip(strikes, strikes[1:]):
            if lower.net_gamma * upper.net_gamma < 0:
                return (lower.strike + upper.strike) / 2
        return None

    # ── Volatility metrics ───────────────────────────────────

    def volatility_metrics(
        self,
        contracts: Sequence[OptionContract],
        spot: float | None,
        closes: Sequence[float] = (),
        vix: float | None = None,
    ) -> Optional[VolatilityMetrics]:
        """ATM IV vs realized vol, put/call ratios and OTM put-call IV skew."""
        contracts = [c for c in contracts if c.is_call or c.is_put]
        if not contracts or not spot:
            return None

        atm = [c for c in contracts if abs(c.strike - spot) < self.ATM_BAND]
        if not atm:
            nearest = min(contracts, key=lambda c: abs(c.strike - spot)).strike
            atm = [c for c in contracts if c.strike == nearest]
        atm_iv = self._mean_iv(atm)

        hv = self.greeks.historical_vol(closes, window=self.hv_window)
        estimated = hv <= 0
        if estimated:
            hv = self.DEFAULT_HISTORICAL_VOL

        calls = [c for c in contracts if c.is_call]
        puts = [c for c in contracts if c.is_put]
        pcr_volume = sum(p.volume for p in puts) / max(1.0, sum(c.volume for c in calls))
        pcr_oi = sum(p.open_interest for p in puts) / max(1.0, sum(c.open_interest for c in calls))

        otm_puts = [p for p in puts if p.strike < spot * self.OTM_PUT_MONEYNESS]
        otm_calls = [c for c in calls if c.strike > spot * self.OTM_CALL_MONEYNESS]
        put_iv = self._mean_iv(otm_puts) if otm_puts else atm_iv
        call_iv = self._mean_iv(otm_calls) if otm_calls else atm_iv

        return VolatilityMetrics(
            atm_iv=atm_iv,
            historical_vol=hv,
            historical_vol_estimated=estimated,
            iv_hv_spread=atm_iv - hv,
            pcr_volume=pcr_volume,
            pcr_oi=pcr_oi,
            iv_skew=put_iv - call_iv,
            vix_level=vix,
        )

    # ── Skew curve ───────────────────────────────────────────

    def skew_curve(
        self, contracts: Sequence[OptionContract], spot: float | None
    ) -> list[SkewPoint]:
        """Average call / put IV per strike for the front expirations (DTE < 8)."""
        if not spot:
            return []

        acc: dict[float, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        for c in contracts:
            if c.days_to_expiration is None or c.days_to_expiration >= self.SKEW_MAX_DTE:
                continue
            if abs(c.strike - spot) >= self.SKEW_STRIKE_BAND:
                continue
            if c.is_call:
                acc[c.strike]["call_iv"] += c.implied_vol
                acc[c.strike]["calls"] += 1
            elif c.is_put:
                acc[c.strike]["put_iv"] += c.implied_vol
                acc[c.strike]["puts"] += 1

        curve: list[SkewPoint] = []
        for strike in sorted(acc):
            s = acc[strike]
            call_iv = s["call_iv"] / s["calls"] * 100 if s["calls"] else 0.0
            put_iv = s["put_iv"] / s["puts"] * 100 if s["puts"] else 0.0
            sides = [iv for iv, n in ((call_iv, s["calls"]), (put_iv, s["puts"])) if n]
            curve.append(SkewPoint(
                strike=strike,
                moneyness=round((strike / spot - 1) * 100, 1),
                call_iv=round(call_iv, 2),
                put_iv=round(put_iv, 2),
                avg_iv=round(sum(sides) / len(sides), 2),
            ))
        return curve

    # ── helpers ──────────────────────────────────────────────

    @staticmethod
    def _mean_iv(contracts: Sequence[OptionContract]) -> float:
        return sum(c.implied_vol for c in contracts) / len(contracts) if contracts else 0.0


# Global engine instance
chain_engine = ChainEngine()
