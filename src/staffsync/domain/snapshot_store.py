"""Idempotent, append-only write path of the snapshot store."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from staffsync.domain.hashing import content_hash
from staffsync.domain.model import SnapshotRecord, utcnow
from staffsync.domain.payloads import extract_effective_date

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterator
    from datetime import datetime
    from uuid import UUID

    from staffsync.domain.model import Payload
    from staffsync.domain.ports import SnapshotRepository

log = logging.getLogger(__name__)


class WriteOutcome(StrEnum):
    VERIFIED = "verified"
    CREATED = "created"
    INSERTED = "inserted"


@dataclass(frozen=True, slots=True)
class SnapshotWrite:
    outcome: WriteOutcome
    snapshot: SnapshotRecord
    previous: SnapshotRecord | None = None


class KeyedLock:
    """Per-key mutual exclusion; entries are dropped once nobody holds them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                _, users = self._locks[key]
                if users <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_PROCESS_LOCK = KeyedLock()


class SnapshotStore:
    """Write fetched payloads without duplicating history.

    An identical payload only advances ``last_verified_at``. A divergent payload
    closes the current latest row and inserts a new one; the read-close-insert
    sequence runs under a per-(entity, endpoint) lock, and the repository's
    conditional close rejects writers that lost a race across processes.
    """

    def __init__(
        self,
        *,
        lock: KeyedLock | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._lock = lock or _PROCESS_LOCK
        self._clock = clock

    def write(
        self,
        repository: SnapshotRepository,
        *,
        entity_id: str,
        endpoint: str,
        payload: Payload,
        session_id: UUID | None = None,
        is_partial: bool = False,
        confidence_score: float = 1.0,
        error_message: str | None = None,
    ) -> SnapshotWrite:
        digest = content_hash(payload)
        with self._lock.hold((entity_id, endpoint)):
            now = self._clock()
            previous = repository.latest(entity_id, endpoint)
            if previous is not None and previous.content_hash == digest:
                previous.verify(at=now, session_id=session_id)
                log.debug("Verified unchanged snapshot for %s %s", entity_id, endpoint)
                return SnapshotWrite(WriteOutcome.VERIFIED, previous, previous)

            effective_from = self._effective_from(payload, previous, now)
            if previous is not None:
                repository.close_latest(previous, at=effective_from)

            snapshot = SnapshotRecord(
                entity_id=entity_id,
                endpoint=endpoint,
                payload=payload,
                content_hash=digest,
                collected_at=now,
                last_verified_at=now,
                effective_from=effective_from,
                confidence_score=confidence_score,
                is_partial=is_partial,
                error_message=error_message,
                sync_session_id=session_id,
            )
            repository.add(snapshot)

        outcome = WriteOutcome.CREATED if previous is None else WriteOutcome.INSERTED
        log.debug("Stored %s snapshot for %s %s", outcome, entity_id, endpoint)
        return SnapshotWrite(outcome, snapshot, previous)

    @staticmethod
    def _effective_from(
        payload: Payload,
        previous: SnapshotRecord | None,
        now: datetime,
    ) -> datetime:
        domain_date = extract_effective_date(payload)
        if domain_date is not None and (previous is None or domain_date > previous.effective_from):
            return domain_date
        if previous is not None and previous.effective_from > now:
            return previous.effective_from
        return now
