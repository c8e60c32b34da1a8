"""
Shared test fixtures.

Provides:
  • a manual clock and a fresh code store per test
  • a VerificationService wired to a recording delivery adapter
  • a FastAPI TestClient whose lifespan uses that service

Rate limiting is disabled for the `client` fixture; tests that exercise it
switch it back on explicitly.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.mocks.clock import ManualClock
from tests.mocks.delivery import RecordingDelivery
from verification_engine.main import app
from verification_engine.services.engine import FlowPolicy, VerificationService
from verification_engine.services.identity import IdentityNormalizer
from verification_engine.services.store import CodeStore

TEST_FLOWS = {
    "login": FlowPolicy(ttl_seconds=300, max_attempts=3),
    "verify": FlowPolicy(ttl_seconds=900, max_attempts=5),
    "reset": FlowPolicy(ttl_seconds=900, max_attempts=5),
}


# ── Engine fixtures ────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def store() -> CodeStore:
    return CodeStore(shards=4)


@pytest.fixture()
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture()
def service(store, clock, delivery) -> VerificationService:
    return VerificationService(
        store=store,
        clock=clock,
        delivery=delivery,
        flows=TEST_FLOWS,
        normalizer=IdentityNormalizer("+91"),
        expose_codes=True,
    )


# ── HTTP fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, service):
    """Make the app lifespan use the test service and disable throttling."""
    monkeypatch.setattr("verification_engine.main.build_service", lambda: service)

    from verification_engine.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)

    return service


@pytest.fixture()
def client(_test_env) -> TestClient:
    """TestClient with the lifespan (service + sweeper) running."""
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
