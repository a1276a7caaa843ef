"""
Greeks Engine – Black-Scholes Sensitivities
============================================
Closed-form European Greeks (no dividends) plus realized volatility.

  delta = N(d1)          (call)    N(d1) - 1   (put)
  gamma = φ(d1) / (S σ √T)
  vega  = S φ(d1) √T / 100         (per 1 vol point)
  theta = Black-Scholes theta / 365 (per calendar day)

N is the 5-term rational polynomial approximation of the normal CDF
(Abramowitz & Stegun 26.2.17), accurate to ~1e-7.  This is a single
closed-form approximation, not a calibrated pricing model.
"""
from dataclasses import dataclass
from typing import Sequence
import math

from marketstructure.models import OptionContract


def norm_cdf(x: float) -> float:
    """Abramowitz & Stegun approximation (26.2.17) of the cumulative normal CDF."""
    if x > 6.0:
        return 1.0
    if x < -6.0:
        return 0.0
    b1 = 0.319381530
    b2 = -0.356563782
    b3 = 1.781477937
    b4 = -1.821255978
    b5 = 1.330274429
    p = 0.2316419
    x_abs = abs(x)
    t = 1.0 / (1.0 + p * x_abs)
    approx = norm_pdf(x_abs) * (b1 * t + b2 * t**2 + b3 * t**3 + b4 * t**4 + b5 * t**5)
    if x >= 0:
        return 1.0 - approx
    else:
        return approx


def norm_pdf(x: float) -> float:
    return math.exp(-0.5 * x * x) / math.sqrt(2.0 * math.pi)


@dataclass(frozen=True)
class Greeks:
    delta: float = 0.0
    gamma: float = 0.0
    vega: float = 0.0
    theta: float = 0.0


class GreeksEngine:
    """
    Black-Scholes Greeks and realized volatility.
    Degenerate inputs (T <= 0, S <= 0, K <= 0, σ <= 0) give all-zero Greeks.
    """

    # Default risk-free rate (annualized, continuously compounded)
    DEFAULT_RISK_FREE_RATE = 0.045
    TRADING_DAYS = 252
    CALENDAR_DAYS = 365

    def __init__(self, risk_free_rate: float | None = None):
        self.risk_free_rate = (
            risk_free_rate if risk_free_rate is not None else self.DEFAULT_RISK_FREE_RATE
        )

    def greeks(
        self,
        S: float,
        K: float,
        T: float,
        r: float,
        sigma: float,
        contract_type: str = "call",
    ) -> Greeks:
        """
        Compute Black-Scholes Greeks.

        Parameters
        ----------
        S : underlying price
        K : strike price
        T : time to expiry in years
        r : risk-free rate (decimal)
        sigma : volatility (decimal)
        contract_type : "call" or "put"
        """
        if T <= 0 or S <= 0 or K <= 0 or sigma <= 0:
            return Greeks()

        is_call = contract_type.lower() in ("call", "c")
        sqrt_T = math.sqrt(T)
        sigma_sqrt_T = sigma * sqrt_T

        d1 = (math.log(S / K) + (r + sigma * sigma / 2.0) * T) / sigma_sqrt_T
        d2 = d1 - sigma_sqrt_T
        pdf_d1 = norm_pdf(d1)

        delta = norm_cdf(d1) if is_call else norm_cdf(d1) - 1
        gamma = pdf_d1 / (S * sigma_sqrt_T)
        vega = S * pdf_d1 * sqrt_T / 100

        decay = -S * pdf_d1 * sigma / (2 * sqrt_T)
        if is_call:
            theta = (decay - r * K * math.exp(-r * T) * norm_cdf(d2)) / self.CALENDAR_DAYS
        else:
            theta = (decay + r * K * math.exp(-r * T) * norm_cdf(-d2)) / self.CALENDAR_DAYS

        return Greeks(delta=delta, gamma=gamma, vega=vega, theta=theta)

    def resolve(
        self, contract: OptionContract, spot: float, r: float | None = None
    ) -> tuple[float, float]:
        """
        (gamma, delta) for a chain contract.
        Precomputed Greeks from the feed win; otherwise derive them from the
        contract's implied vol and days to expiration.
        """
        if contract.gamma is not None and contract.delta is not None:
            return contract.gamma, contract.delta

        derived = Greeks()
        if contract.implied_vol > 0 and contract.days_to_expiration:
            derived = self.greeks(
                S=spot,
                K=contract.strike,
                T=contract.days_to_expiration / self.CALENDAR_DAYS,
                r=self.risk_free_rate if r is None else r,
                sigma=contract.implied_vol,
                contract_type=contract.type,
            )

        gamma = contract.gamma if contract.gamma is not None else derived.gamma
        delta = contract.delta if contract.delta is not None else derived.delta
        return gamma, delta

    def historical_vol(self, closes: Sequence[float], window: int = 30) -> float:
        """
        Annualized historical volatility from daily closing prices.

        Uses up to `window` most recent log returns (sample stdev × √252).
        Returns 0.0 when fewer than two usable returns exist.
        """
        if len(closes) < 2:
            return 0.0

        recent = list(closes[-(window + 1):])  # need N+1 prices for N returns
        log_returns = [
            math.log(recent[i] / recent[i - 1])
            for i in range(1, len(recent))
            if recent[i - 1] > 0 and recent[i] > 0
        ]
        if len(log_returns) < 2:
            return 0.0

        n = len(log_returns)
        mean = sum(log_returns) / n
        variance = sum((x - mean) ** 2 for x in log_returns) / (n - 1)
        return math.sqrt(variance) * math.sqrt(self.TRADING_DAYS)


# Singleton
greeks_engine = GreeksEngine()
