"""Ports for persisting synchronization history."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from staffsync.domain.model import (
    ChangeRecord,
    ReconstructedState,
    ReconstructionRun,
    SnapshotRecord,
    StaffRecord,
    SyncConflict,
    SyncSession,
    TimelineEvent,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class SnapshotRepository(Repository[SnapshotRecord], Protocol):
    """Temporal snapshot table with one latest row per (entity, endpoint)."""

    def latest(self, entity_id: str, endpoint: str) -> SnapshotRecord | None: ...

    def close_latest(self, snapshot: SnapshotRecord, *, at: datetime) -> None:
        """Close ``snapshot`` if it is still latest, else raise ``SnapshotWriteConflictError``."""
        ...

    def history(self, entity_id: str, endpoint: str) -> list[SnapshotRecord]: ...

    def earliest_per_endpoint(self, entity_id: str) -> list[SnapshotRecord]: ...


@runtime_checkable
class ChangeRepository(Repository[ChangeRecord], Protocol):
    def for_entity(self, entity_id: str) -> list[ChangeRecord]: ...


@runtime_checkable
class TimelineRepository(Repository[TimelineEvent], Protocol):
    def get(self, event_id: UUID) -> TimelineEvent | None: ...

    def for_entity(self, entity_id: str) -> list[TimelineEvent]:
        """Events ordered by ``(event_date, sequence_order)``."""
        ...

    def next_sequence_order(self, entity_id: str) -> int: ...

    def entity_ids(self) -> list[str]: ...


@runtime_checkable
class StateRepository(Repository[ReconstructedState], Protocol):
    def current_for_entity(self, entity_id: str) -> list[ReconstructedState]:
        """Current states ordered by ``state_version``."""
        ...

    def revisions_for_event(self, event_id: UUID) -> list[ReconstructedState]: ...


@runtime_checkable
class SyncSessionRepository(Repository[SyncSession], Protocol):
    def get(self, session_id: UUID) -> SyncSession | None: ...

    def latest_finished(self) -> SyncSession | None:
        """Most recently started session that is no longer running."""
        ...


@runtime_checkable
class ReconstructionRunRepository(Repository[ReconstructionRun], Protocol):
    def get(self, run_id: UUID) -> ReconstructionRun | None: ...


@runtime_checkable
class StaffRepository(Repository[StaffRecord], Protocol):
    def list_all(self) -> list[StaffRecord]: ...


@runtime_checkable
class SyncConflictRepository(Repository[SyncConflict], Protocol):
    def open_for(self, staff_id: UUID) -> list[SyncConflict]: ...
