"""
Verification service: the one engine behind every code-based flow.

Phone sign-in, email verification and password reset are all the same
state machine; they differ only in the purpose that forms part of the key
and in the TTL / attempt cap configured for that purpose::

    service = VerificationService(
        store=CodeStore(),
        clock=SystemClock(),
        delivery=ConsoleDelivery(),
        flows={"login": FlowPolicy(ttl_seconds=300, max_attempts=3)},
    )
    receipt = await service.issue("+91 98765 43210", "login")
    result = service.verify("+919876543210", "login", "482913")
    service.clear("+919876543210", "login")
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from verification_engine import config
from verification_engine.errors import (
    ConfigurationError,
    DeliveryFailure,
    DiagnosticsDisabled,
    RateLimited,
    UnsupportedPurpose,
)
from verification_engine.services.clock import Clock, SystemClock
from verification_engine.services.delivery import DeliveryAdapter, build_delivery
from verification_engine.services.identity import IdentityNormalizer, mask_identity
from verification_engine.services.issuance import IssuancePolicy
from verification_engine.services.stats import CodeStats, StatsReporter
from verification_engine.services.store import CodeStore, VerificationKey
from verification_engine.services.verification import (
    VerificationOutcome,
    VerificationPolicy,
    VerificationResult,
)

logger = logging.getLogger(__name__)

# Codes the HTTP layer accepts (see models.VerifyRequest).
MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 10


@dataclass(frozen=True)
class FlowPolicy:
    ttl_seconds: int
    max_attempts: int

    def __post_init__(self) -> None:
        if self.ttl_seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {self.ttl_seconds}")
        if self.max_attempts <= 0:
            raise ConfigurationError(f"max_attempts must be positive, got {self.max_attempts}")

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)


@dataclass(frozen=True)
class IssueReceipt:
    masked_destination: str
    expires_in_seconds: int


class VerificationService:
    def __init__(
        self,
        *,
        store: CodeStore,
        clock: Clock,
        delivery: DeliveryAdapter,
        flows: dict[str, FlowPolicy],
        normalizer: IdentityNormalizer | None = None,
        code_length: int = 6,
        expose_codes: bool = False,
    ) -> None:
        if not flows:
            raise ConfigurationError("At least one flow must be configured")
        if not MIN_CODE_LENGTH <= code_length <= MAX_CODE_LENGTH:
            raise ConfigurationError(
                f"code_length must be between {MIN_CODE_LENGTH} and {MAX_CODE_LENGTH}, got {code_length}"
            )
        self._store = store
        self._clock = clock
        self._delivery = delivery
        self._flows = dict(flows)
        self._normalize = normalizer or IdentityNormalizer()
        self._expose_codes = expose_codes
        self._issuance = IssuancePolicy(store, clock, code_length=code_length)
        self._verification = VerificationPolicy(store, clock)
        self._stats = StatsReporter(store, clock)

    # ── Introspection ──────────────────────────────────────────────────

    @property
    def store(self) -> CodeStore:
        return self._store

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def purposes(self) -> list[str]:
        return sorted(self._flows)

    def flow(self, purpose: str) -> FlowPolicy:
        try:
            return self._flows[purpose]
        except KeyError:
            raise UnsupportedPurpose(f"Unknown verification purpose: {purpose!r}") from None

    def _key(self, identity: str, purpose: str) -> VerificationKey:
        self.flow(purpose)
        return VerificationKey(self._normalize(identity).value, purpose)

    # ── Issue ──────────────────────────────────────────────────────────

    async def issue(self, identity: str, purpose: str) -> IssueReceipt:
        """
        Issue a code for *identity* and hand it to the delivery adapter.

        Raises ``RateLimited`` (``retry_after`` in whole seconds) while an
        earlier code is still valid, and ``DeliveryFailure`` if the adapter
        could not deliver, in which case the code is withdrawn so the user
        can ask again straight away.
        """
        flow = self.flow(purpose)
        key = self._key(identity, purpose)
        masked = mask_identity(key.identity)

        try:
            issued = self._issuance.request_issuance(key, flow.ttl, flow.max_attempts)
        except RateLimited as exc:
            retry_after = max(1, math.ceil(exc.retry_after))
            logger.info("Code for %s (%s) still active, retry in %ds", masked, purpose, retry_after)
            raise RateLimited(str(exc), retry_after=retry_after) from None

        try:
            await self._delivery.send(key.identity, issued.code, purpose)
        except Exception as exc:
            self._issuance.rollback(key, issued)
            logger.warning("Delivery of %s code to %s failed, rolled back: %s", purpose, masked, exc)
            raise DeliveryFailure(f"Could not deliver the code to {masked}") from exc
        except BaseException:
            # Cancelled or timed out mid-delivery; the code never reached the user.
            self._issuance.rollback(key, issued)
            logger.warning("Delivery of %s code to %s cancelled, rolled back", purpose, masked)
            raise

        logger.info("Issued %s code to %s (valid %ds)", purpose, masked, flow.ttl_seconds)
        return IssueReceipt(masked_destination=masked, expires_in_seconds=flow.ttl_seconds)

    # ── Verify / clear ─────────────────────────────────────────────────

    def verify(self, identity: str, purpose: str, submitted_code: str) -> VerificationResult:
        key = self._key(identity, purpose)
        result = self._verification.verify(key, submitted_code)
        if result.outcome is VerificationOutcome.OK:
            logger.info("Verified %s code for %s", purpose, mask_identity(key.identity))
        else:
            logger.info(
                "Rejected %s code for %s: %s",
                purpose,
                mask_identity(key.identity),
                result.outcome.value,
            )
        return result

    def clear(self, identity: str, purpose: str) -> None:
        key = self._key(identity, purpose)
        if self._verification.clear(key):
            logger.info("Cleared %s code for %s", purpose, mask_identity(key.identity))

    def is_verified(self, identity: str, purpose: str) -> bool:
        return self._verification.is_verified(self._key(identity, purpose))

    # ── Monitoring ─────────────────────────────────────────────────────

    def stats(self) -> CodeStats:
        return self._stats.stats()

    def debug_status(self, identity: str, purpose: str) -> dict[str, Any] | None:
        """Stored code and state for *identity*; only when code exposure is on."""
        if not self._expose_codes:
            raise DiagnosticsDisabled("Code diagnostics are disabled")
        key = self._key(identity, purpose)
        record = self._store.get(key)
        if record is None:
            return None
        return {
            "identity": key.identity,
            "purpose": key.purpose,
            "code": record.code,
            "issued_at": record.issued_at,
            "expires_at": record.expires_at,
            "attempts": record.attempts,
            "max_attempts": record.max_attempts,
            "consumed": record.consumed,
            "expired": record.is_expired(self._clock.now()),
        }


def build_service() -> VerificationService:
    """Wire a service from configuration."""
    return VerificationService(
        store=CodeStore(shards=config.STORE_SHARDS),
        clock=SystemClock(),
        delivery=build_delivery(),
        flows={
            purpose: FlowPolicy(ttl_seconds=ttl, max_attempts=attempts)
            for purpose, (ttl, attempts) in config.FLOWS.items()
        },
        normalizer=IdentityNormalizer(config.DEFAULT_COUNTRY_CODE),
        code_length=config.CODE_LENGTH,
        expose_codes=config.expose_codes(),
    )
