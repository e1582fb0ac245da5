"""
FastAPI application entry point.

Admin endpoints for the AI generator and the affiliate networks,
plus a health check.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from api.routes.affiliate_networks import router as affiliate_networks_router
from api.routes.ai_generator import router as ai_generator_router
from api.routes.coupons import router as coupons_router
from core.config import settings
from core.database import engine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: startup/shutdown events."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    yield
    await engine.dispose()


app = FastAPI(
    title="Deal Radar",
    description="Product and coupon ingestion pipeline for the Deal Radar catalog",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Routes ────────────────────────────────────────────────────────────
app.include_router(ai_generator_router)
app.include_router(affiliate_networks_router)
app.include_router(coupons_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "service": "deal-radar"}
