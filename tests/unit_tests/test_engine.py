"""Tests for the VerificationService facade."""

import asyncio

import pytest

from tests.mocks.delivery import FailingDelivery, HangingDelivery, RecordingDelivery
from verification_engine.errors import (
    ConfigurationError,
    DeliveryFailure,
    DiagnosticsDisabled,
    InvalidIdentity,
    RateLimited,
    UnsupportedPurpose,
)
from verification_engine.services.engine import FlowPolicy, VerificationService
from verification_engine.services.identity import IdentityNormalizer
from verification_engine.services.verification import VerificationOutcome

PHONE = "+15550001111"


def _service(store, clock, delivery, **overrides) -> VerificationService:
    defaults = dict(
        store=store,
        clock=clock,
        delivery=delivery,
        flows={"verify": FlowPolicy(ttl_seconds=5, max_attempts=3)},
        normalizer=IdentityNormalizer("+1"),
    )
    defaults.update(overrides)
    return VerificationService(**defaults)


class TestScenarios:
    """TTL=5, max_attempts=3."""

    @pytest.fixture()
    def engine(self, store, clock, delivery, monkeypatch) -> VerificationService:
        monkeypatch.setattr(
            "verification_engine.services.issuance.generate_code",
            lambda length=6: "482913",
        )
        return _service(store, clock, delivery)

    async def test_guess_twice_then_succeed(self, engine, delivery):
        await engine.issue(PHONE, "verify")
        assert delivery.last_code == "482913"

        first = engine.verify(PHONE, "verify", "000000")
        assert first.outcome is VerificationOutcome.MISMATCH
        assert first.remaining == 2

        second = engine.verify(PHONE, "verify", "000000")
        assert second.outcome is VerificationOutcome.MISMATCH
        assert second.remaining == 1

        assert engine.verify(PHONE, "verify", "482913").ok

        again = engine.verify(PHONE, "verify", "482913")
        assert again.outcome is VerificationOutcome.ALREADY_CONSUMED

    async def test_expired_code(self, engine, clock):
        await engine.issue(PHONE, "verify")
        clock.advance(6)
        result = engine.verify(PHONE, "verify", "482913")
        assert result.outcome is VerificationOutcome.EXPIRED

    async def test_back_to_back_issue(self, engine):
        await engine.issue(PHONE, "verify")
        with pytest.raises(RateLimited) as exc_info:
            await engine.issue(PHONE, "verify")
        assert 0 < exc_info.value.retry_after <= 5


class TestIssue:
    async def test_receipt(self, service, delivery):
        receipt = await service.issue("+91 98765 43210", "login")

        assert receipt.masked_destination == "+********3210"
        assert receipt.expires_in_seconds == 300
        assert delivery.sent[-1].destination == "+919876543210"
        assert delivery.sent[-1].purpose == "login"

    async def test_email_receipt_is_masked(self, service):
        receipt = await service.issue("Alice@Example.com", "verify")
        assert receipt.masked_destination == "al***@example.com"

    async def test_retry_after_is_whole_seconds(self, service, clock):
        await service.issue(PHONE, "login")
        clock.advance(100.5)
        with pytest.raises(RateLimited) as exc_info:
            await service.issue(PHONE, "login")
        assert exc_info.value.retry_after == 200

    async def test_textual_variants_share_a_key(self, service):
        await service.issue("9876543210", "login")
        with pytest.raises(RateLimited):
            await service.issue("+91-98765-43210", "login")

    async def test_purposes_are_independent(self, service, delivery):
        await service.issue("alice@example.com", "verify")
        await service.issue("alice@example.com", "reset")
        assert len(delivery.sent) == 2

    async def test_only_one_active_record(self, service, store):
        await service.issue(PHONE, "login")
        with pytest.raises(RateLimited):
            await service.issue(PHONE, "login")
        assert len(store) == 1

    async def test_unknown_purpose(self, service):
        with pytest.raises(UnsupportedPurpose):
            await service.issue(PHONE, "transfer")

    async def test_invalid_identity(self, service):
        with pytest.raises(InvalidIdentity):
            await service.issue("nobody@", "verify")


class TestDeliveryRollback:
    async def test_failure_rolls_back(self, store, clock):
        failing = FailingDelivery()
        engine = _service(store, clock, failing)

        with pytest.raises(DeliveryFailure):
            await engine.issue(PHONE, "verify")

        assert len(store) == 0

    async def test_resend_allowed_after_failure(self, store, clock):
        failing = FailingDelivery()
        engine = _service(store, clock, failing)

        for _ in range(2):
            with pytest.raises(DeliveryFailure):
                await engine.issue(PHONE, "verify")

        assert failing.calls == 2

    async def test_unexpected_adapter_error_also_rolls_back(self, store, clock):
        engine = _service(store, clock, FailingDelivery(RuntimeError("boom")))

        with pytest.raises(DeliveryFailure) as exc_info:
            await engine.issue(PHONE, "verify")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert len(store) == 0

    async def test_delivery_failure_is_not_rate_limited(self, store, clock):
        engine = _service(store, clock, FailingDelivery())
        with pytest.raises(DeliveryFailure) as exc_info:
            await engine.issue(PHONE, "verify")
        assert not isinstance(exc_info.value, RateLimited)

    async def test_cancelled_delivery_rolls_back(self, store, clock):
        engine = _service(store, clock, HangingDelivery())

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(engine.issue(PHONE, "verify"), 0.05)

        assert len(store) == 0
        retry = _service(store, clock, RecordingDelivery())
        receipt = await retry.issue(PHONE, "verify")
        assert receipt.expires_in_seconds == 5


class TestVerifyAndClear:
    async def test_clear_then_reissue(self, service, delivery):
        await service.issue(PHONE, "login")
        assert service.verify(PHONE, "login", delivery.last_code).ok

        service.clear(PHONE, "login")

        await service.issue(PHONE, "login")
        assert len(delivery.sent) == 2

    def test_clear_missing_is_noop(self, service):
        service.clear(PHONE, "login")

    async def test_verify_uses_normalized_identity(self, service, delivery):
        await service.issue("ALICE@example.com", "verify")
        assert service.verify(" alice@EXAMPLE.com", "verify", delivery.last_code).ok

    async def test_is_verified(self, service, delivery):
        await service.issue(PHONE, "login")
        assert service.is_verified(PHONE, "login") is False
        service.verify(PHONE, "login", delivery.last_code)
        assert service.is_verified(PHONE, "login") is True

    def test_verify_unknown_purpose(self, service):
        with pytest.raises(UnsupportedPurpose):
            service.verify(PHONE, "transfer", "123456")


class TestDiagnostics:
    async def test_debug_status(self, service, delivery):
        await service.issue(PHONE, "login")
        state = service.debug_status(PHONE, "login")

        assert state["code"] == delivery.last_code
        assert state["attempts"] == 0
        assert state["consumed"] is False
        assert state["expired"] is False

    def test_debug_status_missing(self, service):
        assert service.debug_status(PHONE, "login") is None

    async def test_debug_status_gated(self, store, clock, delivery):
        engine = _service(store, clock, delivery, expose_codes=False)
        await engine.issue(PHONE, "verify")
        with pytest.raises(DiagnosticsDisabled):
            engine.debug_status(PHONE, "verify")

    async def test_gate_does_not_affect_verification(self, store, clock, delivery):
        engine = _service(store, clock, delivery, expose_codes=False)
        await engine.issue(PHONE, "verify")
        assert engine.verify(PHONE, "verify", delivery.last_code).ok

    async def test_stats(self, service, delivery):
        await service.issue(PHONE, "login")
        service.verify(PHONE, "login", delivery.last_code)
        stats = service.stats()
        assert (stats.total, stats.expired, stats.verified) == (1, 0, 1)


class TestConfiguration:
    @pytest.mark.parametrize("ttl, attempts", [(0, 3), (-5, 3), (300, 0), (300, -1)])
    def test_invalid_flow(self, ttl, attempts):
        with pytest.raises(ConfigurationError):
            FlowPolicy(ttl_seconds=ttl, max_attempts=attempts)

    def test_no_flows(self, store, clock):
        with pytest.raises(ConfigurationError):
            _service(store, clock, RecordingDelivery(), flows={})

    def test_invalid_code_length(self, store, clock):
        with pytest.raises(ConfigurationError):
            _service(store, clock, RecordingDelivery(), code_length=0)

    @pytest.mark.parametrize("length", [3, 11])
    def test_code_length_outside_accepted_range(self, store, clock, length):
        with pytest.raises(ConfigurationError):
            _service(store, clock, RecordingDelivery(), code_length=length)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            FlowPolicy(ttl_seconds=0, max_attempts=1)
