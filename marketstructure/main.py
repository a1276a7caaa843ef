"""
MarketStructure – Market Structure & Options Positioning Analytics
Main FastAPI Application

  - Thin presentation layer over MarketAnalyzer (no analytics here)
  - POST /api/analyze for caller-supplied bars + chain
  - GET /api/synthetic for a seed-controlled demo batch, tagged synthetic
  - Dependency-injection ready (get_analyzer)
"""
from contextlib import asynccontextmanager
from typing import Any, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from marketstructure.analyzer import MarketAnalyzer
from marketstructure.config import settings
from marketstructure.models import DataSource, InvalidInputError, build_batch
from marketstructure.synthetic_data import SyntheticDataGenerator

logger = logging.getLogger("marketstructure")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(application: FastAPI):
    logger.info("MarketStructure %s starting (environment=%s)", VERSION, settings.ENVIRONMENT)
    yield
    logger.info("MarketStructure shutting down")


app = FastAPI(
    title="MarketStructure",
    description="Market structure and options positioning analytics",
    version=VERSION,
    lifespan=lifespan,
)


# ── Dependencies ────────────────────────────────────────────

_analyzer = MarketAnalyzer.from_settings(settings)


def get_analyzer() -> MarketAnalyzer:
    return _analyzer


# ── Request models ──────────────────────────────────────────

class AnalyzeRequest(BaseModel):
    bars: list[dict[str, Any]] = Field(default_factory=list)
    chain: list[dict[str, Any]] = Field(default_factory=list)
    spot: Optional[float] = None
    vix: Optional[float] = None
    tail_risk_index: Optional[float] = None
    vix_series: Optional[list[float]] = None


# ── Routes ──────────────────────────────────────────────────

@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": VERSION}


@app.post("/api/analyze")
def analyze(
    body: AnalyzeRequest,
    analyzer: MarketAnalyzer = Depends(get_analyzer),
) -> dict:
    """Analyze caller-supplied price history and options chain."""
    try:
        batch = build_batch(
            bars=body.bars,
            chain=body.chain,
            spot=body.spot,
            vix=body.vix,
            tail_risk_index=body.tail_risk_index,
            vix_series=body.vix_series,
            source=DataSource.REAL,
        )
        return analyzer.analyze(batch).to_dict()
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.exception("Analysis failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/synthetic")
def analyze_synthetic(
    seed: Optional[int] = Query(None, description="RNG seed (defaults to SYNTHETIC_SEED)"),
    spot: Optional[float] = Query(None, gt=0, description="Underlying price"),
    vix: Optional[float] = Query(None, gt=0, description="VIX level"),
    skew: Optional[float] = Query(None, gt=0, description="CBOE SKEW index"),
    days: int = Query(100, ge=1, le=1000, description="Bars of price history"),
    analyzer: MarketAnalyzer = Depends(get_analyzer),
) -> dict:
    """Analyze a synthetic demo batch. The response is tagged source=synthetic."""
    try:
        generator = SyntheticDataGenerator(seed if seed is not None else settings.SYNTHETIC_SEED)
        batch = generator.batch(spot=spot, vix=vix, tail_risk_index=skew, days=days)
        return analyzer.analyze(batch).to_dict()
    except Exception as e:
        logger.exception("Synthetic analysis failed")
        raise HTTPException(status_code=500, detail=str(e))
