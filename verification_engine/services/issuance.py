"""
Issuance policy – decides whether a new code may be issued for a key.

A key holds at most one live code.  While that code is unexpired (even if
it was already consumed) a new request is refused with ``RateLimited``;
the same check throttles resends and keeps a code from being renewed
before it expires or is explicitly cleared.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from verification_engine.errors import ConfigurationError, RateLimited
from verification_engine.services.clock import Clock
from verification_engine.services.store import CodeStore, VerificationKey, VerificationRecord

_DEFAULT_CODE_LENGTH = 6


@dataclass(frozen=True)
class IssuedCode:
    code: str
    issued_at: datetime
    expires_at: datetime


def generate_code(length: int = _DEFAULT_CODE_LENGTH) -> str:
    """Uniform fixed-width numeric code without a leading zero (e.g. 100000–999999)."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(10**length - low))


class IssuancePolicy:
    def __init__(
        self,
        store: CodeStore,
        clock: Clock,
        *,
        code_length: int = _DEFAULT_CODE_LENGTH,
        sweep_on_issue: bool = True,
    ) -> None:
        if code_length < 1:
            raise ConfigurationError(f"code_length must be positive, got {code_length}")
        self._store = store
        self._clock = clock
        self._code_length = code_length
        self._sweep_on_issue = sweep_on_issue

    def request_issuance(
        self,
        key: VerificationKey,
        ttl: timedelta,
        max_attempts: int,
    ) -> IssuedCode:
        """
        Generate and store a fresh code for *key*.

        Raises ``RateLimited`` (with ``retry_after`` in seconds) while an
        unexpired record exists.  The caller delivers the code and calls
        ``rollback`` if delivery fails.
        """
        if ttl <= timedelta(0):
            raise ConfigurationError(f"ttl must be positive, got {ttl}")
        if max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be positive, got {max_attempts}")

        now = self._clock.now()
        if self._sweep_on_issue:
            self._store.sweep(now)

        with self._store.lock_for(key):
            existing = self._store.get(key)
            if existing is not None and not existing.is_expired(now):
                retry_after = (existing.expires_at - now).total_seconds()
                raise RateLimited(
                    "A code was already sent; wait for it to expire or use it",
                    retry_after=retry_after,
                )

            record = VerificationRecord(
                key=key,
                code=generate_code(self._code_length),
                issued_at=now,
                expires_at=now + ttl,
                max_attempts=max_attempts,
            )
            self._store.put(key, record)

        return IssuedCode(code=record.code, issued_at=record.issued_at, expires_at=record.expires_at)

    def rollback(self, key: VerificationKey, issued: IssuedCode) -> bool:
        """Undo an issuance whose code could not be delivered.

        Only removes the record if it is still the one *issued* describes.
        """
        with self._store.lock_for(key):
            current = self._store.get(key)
            if current is None or current.issued_at != issued.issued_at or current.code != issued.code:
                return False
            self._store.delete(key)
        return True
