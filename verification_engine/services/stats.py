"""Read-only aggregate view of the code store, for monitoring only."""

from __future__ import annotations

from dataclasses import dataclass

from verification_engine.services.clock import Clock
from verification_engine.services.store import CodeStore


@dataclass(frozen=True)
class CodeStats:
    total: int
    expired: int
    verified: int


class StatsReporter:
    def __init__(self, store: CodeStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    def stats(self) -> CodeStats:
        now = self._clock.now()
        records = self._store.records()
        return CodeStats(
            total=len(records),
            expired=sum(1 for r in records if r.is_expired(now)),
            verified=sum(1 for r in records if r.consumed),
        )
