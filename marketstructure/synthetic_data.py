"""
Synthetic Market Data
=====================
Seed-controlled demo data for running the analytics without a market
data feed.  Every batch produced here is tagged ``DataSource.SYNTHETIC``;
the analyzer never calls into this module on its own.

  * Price history: drifting random walk, step (u - 0.48) × 3
  * VIX series:    14-22 band, +2 below the starting reference, -1 above
  * Option chain:  4 weekly Friday expirations × 51 strikes, put-skewed IV,
                   OI decaying away from the money, Black-Scholes Greeks
"""
from datetime import date, datetime, timedelta
from typing import Optional
import logging
import math

import numpy as np

from marketstructure.greeks_engine import GreeksEngine
from marketstructure.models import DataSource, MarketBatch, OptionContract, PriceBar

logger = logging.getLogger("marketstructure.synthetic")

DAY_MS = 86_400_000


class SyntheticDataGenerator:
    """Same seed → identical output."""

    # Fallback scalars when no live quote is supplied
    DEFAULT_SPOT = 595.42
    DEFAULT_VIX = 14.23
    DEFAULT_TAIL_RISK = 135.7

    HISTORY_DAYS = 100
    EXPIRATIONS = 4
    STRIKES_EACH_SIDE = 25
    STRIKE_SPACING = 2.0
    BASE_OI = 50_000
    MIN_IV = 0.08
    PUT_IV_PREMIUM = 1.05
    RISK_FREE_RATE = 0.045

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.greeks = GreeksEngine(risk_free_rate=self.RISK_FREE_RATE)

    # ── Price history ────────────────────────────────────────

    def price_history(
        self,
        current_price: float,
        days: int = HISTORY_DAYS,
        end: Optional[datetime] = None,
    ) -> tuple[list[PriceBar], list[float]]:
        """
        Daily bars (epoch-ms timestamps, last bar one day before `end`) and
        the matching VIX series.
        """
        end = end or datetime.now()
        end_ms = int(end.timestamp() * 1000)

        start = current_price * 0.95
        closes = start + np.cumsum((self.rng.random(days) - 0.48) * 3)
        highs = closes + self.rng.random(days) * 2
        lows = closes - self.rng.random(days) * 2
        volumes = 50_000_000 + self.rng.random(days) * 30_000_000
        vix = 14 + self.rng.random(days) * 8 + np.where(closes < current_price, 2.0, -1.0)

        bars = [
            PriceBar(
                timestamp=end_ms - (days - i) * DAY_MS,
                open=float(closes[i]),
                high=float(highs[i]),
                low=float(lows[i]),
                close=float(closes[i]),
                volume=float(volumes[i]),
            )
            for i in range(days)
        ]
        return bars, [float(v) for v in vix]

    # ── Option chain ─────────────────────────────────────────

    def option_chain(
        self, spot: float, vix: float, today: Optional[date] = None
    ) -> list[OptionContract]:
        """Calls and puts for the next four Friday expirations."""
        today = today or date.today()
        base_iv = vix / 100
        days_to_friday = (4 - today.weekday()) % 7 or 7

        contracts: list[OptionContract] = []
        for week in range(self.EXPIRATIONS):
            dte = days_to_friday + week * 7
            expiration = (today + timedelta(days=dte)).isoformat()
            T = dte / 365
            time_factor = 1 / math.sqrt(week + 1)

            for i in range(-self.STRIKES_EACH_SIDE, self.STRIKES_EACH_SIDE + 1):
                strike = round((spot + i * self.STRIKE_SPACING) * 2) / 2
                moneyness = strike / spot
                if moneyness < 1:
                    skew_factor = 1 + (1 - moneyness) * 0.8
                else:
                    skew_factor = 1 - (moneyness - 1) * 0.2
                iv = max(self.MIN_IV, base_iv * skew_factor * (0.95 + self.rng.random() * 0.1))

                liquidity = max(0.05, math.exp(-abs(strike - spot) / 15))
                base_oi = self.BASE_OI * liquidity * time_factor
                call_oi = math.floor(base_oi * (0.8 + self.rng.random() * 0.4))
                put_oi = math.floor(base_oi * (1.1 + self.rng.random() * 0.5))
                call_volume = math.floor(call_oi * (0.1 + self.rng.random() * 0.25))
                put_volume = math.floor(put_oi * (0.12 + self.rng.random() * 0.25))

                for opt_type, oi, volume, sigma in (
                    ("call", call_oi, call_volume, iv),
                    ("put", put_oi, put_volume, iv * self.PUT_IV_PREMIUM),
                ):
                    g = self.greeks.greeks(spot, strike, T, self.RISK_FREE_RATE, sigma, opt_type)
                    contracts.append(OptionContract(
                        strike=strike,
                        type=opt_type,
                        open_interest=float(oi),
                        volume=float(volume),
                        gamma=g.gamma,
                        delta=g.delta,
                        implied_vol=sigma,
                        expiration=expiration,
                        days_to_expiration=float(dte),
                    ))
        return contracts

    # ── Batch ────────────────────────────────────────────────

    def batch(
        self,
        spot: Optional[float] = None,
        vix: Optional[float] = None,
        tail_risk_index: Optional[float] = None,
        days: int = HISTORY_DAYS,
        end: Optional[datetime] = None,
    ) -> MarketBatch:
        """A complete synthetic MarketBatch, tagged as such."""
        spot = spot or self.DEFAULT_SPOT
        vix = vix or self.DEFAULT_VIX
        tail_risk_index = tail_risk_index or self.DEFAULT_TAIL_RISK

        bars, vix_series = self.price_history(spot, days=days, end=end)
        today = end.date() if end else None
        contracts = self.option_chain(spot, vix, today=today)

        logger.info(
            "Synthetic batch: seed=%s spot=%.2f vix=%.2f bars=%d contracts=%d",
            self.seed, spot, vix, len(bars), len(contracts),
        )
        return MarketBatch(
            bars=tuple(bars),
            contracts=tuple(contracts),
            spot=spot,
            vix=vix,
            tail_risk_index=tail_risk_index,
            vix_series=tuple(vix_series),
            source=DataSource.SYNTHETIC,
        )
