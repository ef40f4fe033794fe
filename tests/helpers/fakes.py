"""In-memory implementations of the persistence and fetching ports for tests."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from staffsync.domain.errors import SnapshotWriteConflictError
from staffsync.domain.model import (
    ChangeRecord,
    ConflictStatus,
    Endpoint,
    ExternalEmployee,
    ReconstructedState,
    ReconstructionRun,
    SessionStatus,
    SnapshotRecord,
    StaffRecord,
    SyncConflict,
    SyncSession,
    TimelineEvent,
)
from staffsync.domain.ports import (
    EmployeeDirectory,
    FetchOutcome,
    FetchStatus,
    SnapshotSource,
    SyncRepositories,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType
    from uuid import UUID

    from staffsync.domain.model import Payload


class TickingClock:
    """Deterministic clock advancing by ``step`` on every call."""

    def __init__(
        self,
        start: datetime | None = None,
        *,
        step: timedelta = timedelta(minutes=1),
    ) -> None:
        self.current = start or datetime(2024, 1, 1, 9, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + self.step
        return value


class FakeSnapshotRepository:
    def __init__(self) -> None:
        self.items: list[SnapshotRecord] = []

    def add(self, entity: SnapshotRecord) -> None:
        if entity.is_latest and self.latest(entity.entity_id, entity.endpoint) is not None:
            raise SnapshotWriteConflictError(entity.entity_id, entity.endpoint)
        self.items.append(entity)

    def latest(self, entity_id: str, endpoint: str) -> SnapshotRecord | None:
        for item in self.items:
            if item.entity_id == entity_id and item.endpoint == endpoint and item.is_latest:
                return item
        return None

    def close_latest(self, snapshot: SnapshotRecord, *, at: datetime) -> None:
        if not snapshot.is_latest:
            raise SnapshotWriteConflictError(snapshot.entity_id, snapshot.endpoint)
        snapshot.close(at=at)

    def history(self, entity_id: str, endpoint: str) -> list[SnapshotRecord]:
        rows = [
            item for item in self.items if item.entity_id == entity_id and item.endpoint == endpoint
        ]
        return sorted(rows, key=lambda item: (item.effective_from, item.collected_at))

    def earliest_per_endpoint(self, entity_id: str) -> list[SnapshotRecord]:
        earliest: dict[str, SnapshotRecord] = {}
        rows = sorted(
            (item for item in self.items if item.entity_id == entity_id),
            key=lambda item: (item.effective_from, item.collected_at),
        )
        for item in rows:
            earliest.setdefault(item.endpoint, item)
        return list(earliest.values())


class FakeChangeRepository:
    def __init__(self) -> None:
        self.items: list[ChangeRecord] = []

    def add(self, entity: ChangeRecord) -> None:
        self.items.append(entity)

    def for_entity(self, entity_id: str) -> list[ChangeRecord]:
        return [item for item in self.items if item.entity_id == entity_id]


class FakeTimelineRepository:
    def __init__(self) -> None:
        self.items: list[TimelineEvent] = []

    def add(self, entity: TimelineEvent) -> None:
        self.items.append(entity)

    def get(self, event_id: UUID) -> TimelineEvent | None:
        return next((item for item in self.items if item.id == event_id), None)

    def for_entity(self, entity_id: str) -> list[TimelineEvent]:
        rows = [item for item in self.items if item.entity_id == entity_id]
        return sorted(rows, key=lambda item: item.ordering_key)

    def next_sequence_order(self, entity_id: str) -> int:
        orders = [item.sequence_order for item in self.items if item.entity_id == entity_id]
        return max(orders, default=0) + 1

    def entity_ids(self) -> list[str]:
        return sorted({item.entity_id for item in self.items})


class FakeStateRepository:
    def __init__(self) -> None:
        self.items: list[ReconstructedState] = []

    def add(self, entity: ReconstructedState) -> None:
        self.items.append(entity)

    def current_for_entity(self, entity_id: str) -> list[ReconstructedState]:
        rows = [item for item in self.items if item.entity_id == entity_id and item.is_current]
        return sorted(rows, key=lambda item: item.state_version)

    def revisions_for_event(self, event_id: UUID) -> list[ReconstructedState]:
        rows = [item for item in self.items if item.event_id == event_id]
        return sorted(rows, key=lambda item: item.revision)


class FakeSyncSessionRepository:
    def __init__(self) -> None:
        self.items: list[SyncSession] = []

    def add(self, entity: SyncSession) -> None:
        self.items.append(entity)

    def get(self, session_id: UUID) -> SyncSession | None:
        return next((item for item in self.items if item.id == session_id), None)

    def latest_finished(self) -> SyncSession | None:
        finished = [item for item in self.items if item.status is not SessionStatus.RUNNING]
        return max(finished, key=lambda item: item.started_at, default=None)


class FakeReconstructionRunRepository:
    def __init__(self) -> None:
        self.items: list[ReconstructionRun] = []

    def add(self, entity: ReconstructionRun) -> None:
        self.items.append(entity)

    def get(self, run_id: UUID) -> ReconstructionRun | None:
        return next((item for item in self.items if item.id == run_id), None)


class FakeStaffRepository:
    def __init__(self, records: Sequence[StaffRecord] = ()) -> None:
        self.items: list[StaffRecord] = list(records)

    def add(self, entity: StaffRecord) -> None:
        self.items.append(entity)

    def list_all(self) -> list[StaffRecord]:
        return list(self.items)


class FakeSyncConflictRepository:
    def __init__(self) -> None:
        self.items: list[SyncConflict] = []

    def add(self, entity: SyncConflict) -> None:
        self.items.append(entity)

    def open_for(self, staff_id: UUID) -> list[SyncConflict]:
        return [
            item
            for item in self.items
            if item.staff_id == staff_id and item.status is ConflictStatus.OPEN
        ]


def make_repositories() -> SyncRepositories:
    return SyncRepositories(
        snapshots=FakeSnapshotRepository(),
        changes=FakeChangeRepository(),
        timeline=FakeTimelineRepository(),
        states=FakeStateRepository(),
        sessions=FakeSyncSessionRepository(),
        runs=FakeReconstructionRunRepository(),
        staff=FakeStaffRepository(),
        conflicts=FakeSyncConflictRepository(),
    )


class FakeUnitOfWork:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self.committed = False
        self.rolled_back = False

    @property
    def repositories(self) -> SyncRepositories:
        return self._store.repositories

    def __enter__(self) -> FakeUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        self.committed = True
        self._store.commits += 1

    def rollback(self) -> None:
        self.rolled_back = True
        self._store.rollbacks += 1


@dataclass
class InMemoryStore:
    """Unit-of-work factory sharing one set of in-memory repositories."""

    repositories: SyncRepositories = field(default_factory=make_repositories)
    clock: TickingClock = field(default_factory=TickingClock)
    commits: int = 0
    rollbacks: int = 0

    def __call__(self) -> FakeUnitOfWork:
        return FakeUnitOfWork(self)

    @property
    def snapshots(self) -> FakeSnapshotRepository:
        return self.repositories.snapshots  # type: ignore[return-value]

    @property
    def changes(self) -> FakeChangeRepository:
        return self.repositories.changes  # type: ignore[return-value]

    @property
    def timeline(self) -> FakeTimelineRepository:
        return self.repositories.timeline  # type: ignore[return-value]

    @property
    def states(self) -> FakeStateRepository:
        return self.repositories.states  # type: ignore[return-value]

    @property
    def sessions(self) -> FakeSyncSessionRepository:
        return self.repositories.sessions  # type: ignore[return-value]

    @property
    def runs(self) -> FakeReconstructionRunRepository:
        return self.repositories.runs  # type: ignore[return-value]

    @property
    def staff(self) -> FakeStaffRepository:
        return self.repositories.staff  # type: ignore[return-value]

    @property
    def conflicts(self) -> FakeSyncConflictRepository:
        return self.repositories.conflicts  # type: ignore[return-value]


class FakeSnapshotSource:
    """Serves canned payloads per (entity, endpoint).

    A missing key answers ``no_data``; a :class:`FetchOutcome` value is returned
    as-is (with the requested ids filled in) to simulate failures.
    """

    def __init__(
        self,
        payloads: dict[tuple[str, str], Payload | FetchOutcome] | None = None,
        *,
        entity_ids: Sequence[str] | None = None,
        endpoints: tuple[str, ...] = (Endpoint.EMPLOYEE, Endpoint.EMPLOYMENTS),
        list_error: Exception | None = None,
    ) -> None:
        self.payloads: dict[tuple[str, str], Payload | FetchOutcome] = dict(payloads or {})
        self._entity_ids = list(entity_ids) if entity_ids is not None else None
        self._endpoints = endpoints
        self.list_error = list_error
        self.list_calls: list[int | None] = []
        self.batches: list[list[str]] = []

    @property
    def endpoints(self) -> tuple[str, ...]:
        return self._endpoints

    def list_entity_ids(self, *, limit: int | None = None) -> list[str]:
        self.list_calls.append(limit)
        if self.list_error is not None:
            raise self.list_error
        ids = (
            self._entity_ids
            if self._entity_ids is not None
            else list(dict.fromkeys(entity_id for entity_id, _ in self.payloads))
        )
        return ids[:limit] if limit is not None else list(ids)

    def fetch_batch(self, entity_ids: Sequence[str]) -> list[FetchOutcome]:
        self.batches.append(list(entity_ids))
        outcomes: list[FetchOutcome] = []
        for entity_id in entity_ids:
            for endpoint in self._endpoints:
                value = self.payloads.get((entity_id, endpoint))
                if isinstance(value, FetchOutcome):
                    outcome = copy.copy(value)
                    outcome.entity_id = entity_id
                    outcome.endpoint = endpoint
                elif value is None:
                    outcome = FetchOutcome(
                        entity_id=entity_id,
                        endpoint=endpoint,
                        status=FetchStatus.NO_DATA,
                        error="HTTP 404 Not Found",
                        attempts=1,
                    )
                else:
                    outcome = FetchOutcome(
                        entity_id=entity_id,
                        endpoint=endpoint,
                        status=FetchStatus.OK,
                        payload=copy.deepcopy(value),
                        attempts=1,
                    )
                outcomes.append(outcome)
        return outcomes


class FakeEmployeeDirectory:
    def __init__(self, employees: Sequence[ExternalEmployee]) -> None:
        self.employees = list(employees)

    def list_employees(self) -> list[ExternalEmployee]:
        return list(self.employees)


if TYPE_CHECKING:
    _source_check: SnapshotSource = FakeSnapshotSource()
    _directory_check: EmployeeDirectory = FakeEmployeeDirectory([])
