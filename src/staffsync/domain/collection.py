"""Snapshot collection sessions."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from itertools import batched
from typing import TYPE_CHECKING, Any

from staffsync.domain.ingest import ingest_payload
from staffsync.domain.model import CollectionMode, SessionStatus, SyncSession, utcnow
from staffsync.domain.ports import FetchStatus
from staffsync.domain.snapshot_store import SnapshotStore, WriteOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime
    from uuid import UUID

    from staffsync.domain.ports import FetchOutcome, SnapshotSource, SyncUnitOfWork

log = logging.getLogger(__name__)

DEFAULT_COLLECTION_BATCH_SIZE = 25
DEFAULT_TEST_LIMIT = 3


@dataclass(slots=True)
class CollectionResult:
    """Session totals counted per entity."""

    session_id: UUID
    mode: str
    status: SessionStatus = SessionStatus.RUNNING
    total: int = 0
    successful: int = 0
    failed: int = 0
    no_data: int = 0
    snapshots_created: int = 0
    snapshots_verified: int = 0
    changes_detected: int = 0
    events_created: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    changed_entity_ids: list[str] = field(default_factory=list)

    @property
    def success_rate(self) -> str:
        if self.total == 0:
            return "0.0%"
        return f"{(self.successful + self.no_data) / self.total * 100:.1f}%"

    def summary(self) -> dict[str, Any]:
        return {
            "session_id": str(self.session_id),
            "status": str(self.status),
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "no_data": self.no_data,
            "snapshots_created": self.snapshots_created,
            "snapshots_verified": self.snapshots_verified,
            "changes_detected": self.changes_detected,
            "events_created": self.events_created,
            "errors_encountered": len(self.errors),
            "errors": list(self.errors),
            "success_rate": self.success_rate,
        }


class SnapshotCollector:
    """Pull current payloads for a set of employees into the snapshot store.

    Every entity is accounted for exactly once in the session totals; a failing
    entity is recorded with its reason and never aborts the session.
    """

    def __init__(
        self,
        *,
        source: SnapshotSource,
        unit_of_work_factory: Callable[[], SyncUnitOfWork],
        store: SnapshotStore | None = None,
        batch_size: int = DEFAULT_COLLECTION_BATCH_SIZE,
        test_limit: int = DEFAULT_TEST_LIMIT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._source = source
        self._uow_factory = unit_of_work_factory
        self._store = store or SnapshotStore(clock=clock)
        self._batch_size = batch_size
        self._test_limit = test_limit
        self._clock = clock

    def collect(
        self,
        mode: CollectionMode | str,
        *,
        entity_ids: Sequence[str] | None = None,
    ) -> CollectionResult:
        mode = CollectionMode(mode)
        if mode is CollectionMode.SPECIFIC and not entity_ids:
            raise ValueError("specific mode requires at least one entity id")

        session, retry_ids = self._open_session(mode)
        result = CollectionResult(session_id=session.id, mode=mode)
        log.info("Starting %s collection session %s", mode, session.id)

        try:
            targets = self._targets(mode, entity_ids, retry_ids)
            for batch in batched(targets, self._batch_size):
                outcomes = self._source.fetch_batch(batch)
                by_entity: dict[str, list[FetchOutcome]] = defaultdict(list)
                for outcome in outcomes:
                    by_entity[outcome.entity_id].append(outcome)
                for entity_id in batch:
                    self._collect_entity(
                        entity_id, by_entity.get(entity_id, []), session.id, result
                    )
        except Exception as exc:
            self._close_session(session.id, failure=str(exc))
            raise

        result.status = self._close_session(session.id, result=result)
        log.info(
            "Collection session %s %s: %d/%d successful, %d no data, %d failed",
            session.id,
            result.status,
            result.successful,
            result.total,
            result.no_data,
            result.failed,
        )
        return result

    def _open_session(self, mode: CollectionMode) -> tuple[SyncSession, list[str]]:
        with self._uow_factory() as uow:
            sessions = uow.repositories.sessions
            retry_ids: list[str] = []
            if mode is CollectionMode.RETRY_FAILED:
                previous = sessions.latest_finished()
                if previous is not None:
                    retry_ids = previous.failed_entity_ids
            session = SyncSession(mode=mode, started_at=self._clock())
            sessions.add(session)
            uow.commit()
        return session, retry_ids

    def _targets(
        self,
        mode: CollectionMode,
        entity_ids: Sequence[str] | None,
        retry_ids: list[str],
    ) -> list[str]:
        match mode:
            case CollectionMode.SPECIFIC:
                return list(dict.fromkeys(entity_ids or ()))
            case CollectionMode.RETRY_FAILED:
                return retry_ids
            case CollectionMode.TEST:
                return self._source.list_entity_ids(limit=self._test_limit)
            case CollectionMode.FULL:
                return self._source.list_entity_ids()

    def _collect_entity(
        self,
        entity_id: str,
        outcomes: list[FetchOutcome],
        session_id: UUID,
        result: CollectionResult,
    ) -> None:
        result.total += 1
        failed = False
        stored = False
        if not outcomes:
            result.errors.append({"entity_id": entity_id, "error": "No fetch result returned"})
            failed = True

        for outcome in outcomes:
            if outcome.status is FetchStatus.NO_DATA:
                continue
            if outcome.status is not FetchStatus.OK or outcome.payload is None:
                failed = True
                result.errors.append(
                    {
                        "entity_id": entity_id,
                        "endpoint": outcome.endpoint,
                        "error": outcome.error or str(outcome.status),
                    }
                )
                continue
            try:
                self._ingest(outcome, session_id, result)
            except Exception as exc:
                log.exception("Failed to store %s snapshot for %s", outcome.endpoint, entity_id)
                failed = True
                result.errors.append(
                    {"entity_id": entity_id, "endpoint": outcome.endpoint, "error": str(exc)}
                )
                continue
            stored = True

        if failed:
            result.failed += 1
        elif stored:
            result.successful += 1
        else:
            result.no_data += 1

    def _ingest(self, outcome: FetchOutcome, session_id: UUID, result: CollectionResult) -> None:
        if outcome.payload is None:
            raise ValueError("Cannot ingest an empty payload")
        with self._uow_factory() as uow:
            ingested = ingest_payload(
                uow.repositories,
                entity_id=outcome.entity_id,
                endpoint=outcome.endpoint,
                payload=outcome.payload,
                session_id=session_id,
                store=self._store,
            )
            uow.commit()
        if ingested.outcome is WriteOutcome.VERIFIED:
            result.snapshots_verified += 1
        else:
            result.snapshots_created += 1
        result.changes_detected += len(ingested.changes)
        result.events_created += len(ingested.events)
        if ingested.events and outcome.entity_id not in result.changed_entity_ids:
            result.changed_entity_ids.append(outcome.entity_id)

    def _close_session(
        self,
        session_id: UUID,
        *,
        result: CollectionResult | None = None,
        failure: str | None = None,
    ) -> SessionStatus:
        with self._uow_factory() as uow:
            session = uow.repositories.sessions.get(session_id)
            if session is None:
                raise LookupError(f"Sync session {session_id} disappeared")
            if failure is not None:
                session.fail(message=failure, at=self._clock())
            elif result is not None:
                session.complete(
                    total=result.total,
                    successful=result.successful,
                    failed=result.failed,
                    no_data=result.no_data,
                    errors=result.errors,
                    at=self._clock(),
                )
            uow.commit()
            return session.status
