"""
Exception hierarchy for the verification engine.

Policy violations are expected and recoverable by the caller; delivery
failures come from the transport adapters; configuration errors are raised
once, when a component is built.
"""

from __future__ import annotations


class VerificationError(Exception):
    """Base exception for verification-code operations."""


class PolicyViolation(VerificationError):
    """A request the engine refuses by rule."""


class RateLimited(PolicyViolation):
    """A still-valid code already exists for the key."""

    def __init__(self, message: str, retry_after: float) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class DeliveryError(VerificationError):
    """Raised by a delivery adapter that could not hand the code over."""


class DeliveryFailure(VerificationError):
    """Issuance was rolled back because the code could not be delivered."""


class ConfigurationError(VerificationError, ValueError):
    """Invalid engine settings (non-positive TTL, attempt cap, etc.)."""


class InvalidIdentity(VerificationError, ValueError):
    """The identity is neither a usable phone number nor an email address."""


class UnsupportedPurpose(VerificationError, LookupError):
    """No flow is configured for the requested purpose."""


class DiagnosticsDisabled(VerificationError):
    """The debug accessor was used while code exposure is turned off."""
