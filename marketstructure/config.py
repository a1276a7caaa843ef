"""
MarketStructure Configuration
Uses Pydantic BaseSettings for validated, typed config with .env auto-loading.
"""
from pathlib import Path
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Options analytics
    RISK_FREE_RATE: float = 0.045     # annualised, continuously compounded
    WALL_SIGNIFICANCE_PCT: float = 0.20
    HV_WINDOW: int = 30               # trading days

    # Price analytics
    INDICATOR_LOOKBACK: int = 51      # bars per trailing indicator window
    SR_CLUSTER_PCT: float = 0.005     # 0.5%
    SR_MAX_LEVELS: int = 8
    VP_NUM_BINS: int = 50
    VP_VALUE_AREA_PCT: float = 0.70
    CORRELATION_WINDOW: int = 14

    # Demo data (None → fresh entropy on every call)
    SYNTHETIC_SEED: Optional[int] = None

    model_config = {
        "env_file": str(Path(__file__).parent.parent / ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
