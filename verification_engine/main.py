"""Main FastAPI application for the verification code service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from verification_engine.config import SWEEP_INTERVAL
from verification_engine.rate_limit import limiter
from verification_engine.routers import debug, health, verification
from verification_engine.services.engine import build_service
from verification_engine.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = build_service()
    sweeper = ExpirySweeper(service.store, service.clock, interval=SWEEP_INTERVAL)
    app.state.verification_service = service
    await sweeper.start()
    logger.info("Verification service ready (flows: %s)", ", ".join(service.purposes))
    try:
        yield
    finally:
        await sweeper.stop()
        app.state.verification_service = None


app = FastAPI(
    title="Verification Code Service",
    description="Issues, throttles and validates short-lived one-time codes",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(health.router)
app.include_router(verification.router)
app.include_router(debug.router)
