"""
In-memory registry of verification records.

One record per key (normalized identity + purpose).  Keys are spread over
a fixed number of shards, each a plain dict guarded by its own re-entrant
lock, so operations on different keys rarely contend while operations on
the same key are serialized.

Records are immutable; updating one means putting a replacement.  Callers
that need a read-modify-write step hold ``lock_for(key)`` around it::

    with store.lock_for(key):
        record = store.get(key)
        store.put(key, replace(record, attempts=record.attempts + 1))
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from verification_engine.errors import ConfigurationError

logger = logging.getLogger(__name__)

_DEFAULT_SHARDS = 16


@dataclass(frozen=True)
class VerificationKey:
    identity: str
    purpose: str

    def __str__(self) -> str:
        return f"{self.purpose}:{self.identity}"


@dataclass(frozen=True)
class VerificationRecord:
    key: VerificationKey
    code: str
    issued_at: datetime
    expires_at: datetime
    max_attempts: int
    attempts: int = 0
    consumed: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class _Shard:
    __slots__ = ("lock", "records")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.records: dict[VerificationKey, VerificationRecord] = {}


class CodeStore:
    """
    Thread-safe keyed store for verification records.

    Every single-key operation is atomic.  Nothing here performs I/O or
    blocks beyond acquiring a shard lock.
    """

    def __init__(self, shards: int = _DEFAULT_SHARDS) -> None:
        if shards < 1:
            raise ConfigurationError(f"shards must be positive, got {shards}")
        self._shards = [_Shard() for _ in range(shards)]

    def _shard(self, key: VerificationKey) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def lock_for(self, key: VerificationKey) -> threading.RLock:
        """The lock serializing every operation on *key*."""
        return self._shard(key).lock

    # ── Single-key operations ──────────────────────────────────────────

    def put(self, key: VerificationKey, record: VerificationRecord) -> None:
        shard = self._shard(key)
        with shard.lock:
            shard.records[key] = record

    def get(self, key: VerificationKey) -> VerificationRecord | None:
        shard = self._shard(key)
        with shard.lock:
            return shard.records.get(key)

    def delete(self, key: VerificationKey) -> bool:
        """Remove *key*; returns False when there was nothing to remove."""
        shard = self._shard(key)
        with shard.lock:
            return shard.records.pop(key, None) is not None

    # ── Bulk operations ────────────────────────────────────────────────

    def sweep(self, now: datetime) -> int:
        """Drop every record that has expired at *now*; returns the count."""
        removed = 0
        for shard in self._shards:
            with shard.lock:
                expired = [k for k, r in shard.records.items() if r.is_expired(now)]
                for key in expired:
                    del shard.records[key]
                removed += len(expired)
        if removed:
            logger.debug("Swept %d expired verification records", removed)
        return removed

    def records(self) -> list[VerificationRecord]:
        """Point-in-time copy of all records (shard by shard)."""
        snapshot: list[VerificationRecord] = []
        for shard in self._shards:
            with shard.lock:
                snapshot.extend(shard.records.values())
        return snapshot

    def clear_all(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.records.clear()

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.records)
        return total
