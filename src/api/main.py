"""
FastAPI application entry point.

Setup endpoints for the monitor configuration, manual scan triggers and
raw reads of the persisted state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from api.routes.config import router as config_router
from api.routes.state import router as state_router
from core.ai.factory import AIFactory
from core.config import settings
from core.kv import SqlKeyValueStore
from workers.monitor.fetcher import build_http_client
from workers.monitor.orchestrator import ScanDeps
from workers.state.store import StateStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: startup/shutdown events."""
    logging.basicConfig(level=settings.log_level)
    app.state.deps = ScanDeps(
        store=StateStore(SqlKeyValueStore()),
        http=build_http_client(),
        ai=AIFactory.from_settings(),
    )
    yield
    await app.state.deps.http.aclose()


app = FastAPI(
    title="ScopeHound",
    description="Competitive intelligence change detection and alerting",
    version="3.0.0",
    lifespan=lifespan,
)

# ── Routes ────────────────────────────────────────────────────────────
app.include_router(config_router)
app.include_router(state_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "service": "scopehound"}
