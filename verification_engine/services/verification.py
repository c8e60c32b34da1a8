"""
Verification policy – validates a submitted code against the stored record.

Checks run in a fixed order under the key's lock:

1.  no record                  → NOT_FOUND
2.  expired                    → record removed, EXPIRED
3.  already consumed           → ALREADY_CONSUMED (record kept until cleared)
4.  attempt budget spent       → record removed, MAX_ATTEMPTS_EXCEEDED
5.  attempts += 1, stored before the comparison
6.  constant-time comparison
7.  match                      → consumed, OK
8.  mismatch                   → MISMATCH with the remaining budget, or, when
                                 this guess used the last attempt, record
                                 removed and MAX_ATTEMPTS_EXCEEDED

After the exhausting guess every further call sees NOT_FOUND.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, replace
from enum import Enum

from verification_engine.services.clock import Clock
from verification_engine.services.store import CodeStore, VerificationKey


class VerificationOutcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_CONSUMED = "already_consumed"
    MAX_ATTEMPTS_EXCEEDED = "max_attempts_exceeded"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class VerificationResult:
    outcome: VerificationOutcome
    remaining: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is VerificationOutcome.OK


class VerificationPolicy:
    def __init__(self, store: CodeStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    def verify(self, key: VerificationKey, submitted_code: str) -> VerificationResult:
        submitted = (submitted_code or "").strip()
        with self._store.lock_for(key):
            now = self._clock.now()
            record = self._store.get(key)

            if record is None:
                return VerificationResult(VerificationOutcome.NOT_FOUND)

            if record.is_expired(now):
                self._store.delete(key)
                return VerificationResult(VerificationOutcome.EXPIRED)

            if record.consumed:
                return VerificationResult(VerificationOutcome.ALREADY_CONSUMED)

            if record.attempts >= record.max_attempts:
                self._store.delete(key)
                return VerificationResult(VerificationOutcome.MAX_ATTEMPTS_EXCEEDED)

            # Charge the guess before comparing.
            record = replace(record, attempts=record.attempts + 1)
            self._store.put(key, record)

            if secrets.compare_digest(submitted.encode(), record.code.encode()):
                self._store.put(key, replace(record, consumed=True))
                return VerificationResult(VerificationOutcome.OK)

            remaining = record.max_attempts - record.attempts
            if remaining <= 0:
                self._store.delete(key)
                return VerificationResult(VerificationOutcome.MAX_ATTEMPTS_EXCEEDED)
            return VerificationResult(VerificationOutcome.MISMATCH, remaining=remaining)

    def is_verified(self, key: VerificationKey) -> bool:
        """True while a consumed, unexpired record exists for *key*."""
        record = self._store.get(key)
        return record is not None and record.consumed and not record.is_expired(self._clock.now())

    def clear(self, key: VerificationKey) -> bool:
        """Force the record out of the store; a missing key is a no-op."""
        return self._store.delete(key)
