"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value

from staffsync.adapters.sqlalchemy.mappings import (
    change_record_table,
    reconstructed_state_table,
    snapshot_record_table,
    staff_table,
    sync_conflict_table,
    sync_session_table,
    timeline_event_table,
)
from staffsync.domain.errors import SnapshotWriteConflictError
from staffsync.domain.model import (
    ChangeRecord,
    ConflictStatus,
    ReconstructedState,
    ReconstructionRun,
    SessionStatus,
    SnapshotRecord,
    StaffRecord,
    SyncConflict,
    SyncSession,
    TimelineEvent,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.orm import Session


class SqlAlchemySnapshotRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SnapshotRecord) -> None:
        self.session.add(entity)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise SnapshotWriteConflictError(entity.entity_id, entity.endpoint) from exc

    def latest(self, entity_id: str, endpoint: str) -> SnapshotRecord | None:
        stmt = (
            select(SnapshotRecord)
            .where(snapshot_record_table.c.entity_id == entity_id)
            .where(snapshot_record_table.c.endpoint == endpoint)
            .where(snapshot_record_table.c.is_latest.is_(True))
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def close_latest(self, snapshot: SnapshotRecord, *, at: datetime) -> None:
        stmt = (
            update(snapshot_record_table)
            .where(snapshot_record_table.c.id == snapshot.id)
            .where(snapshot_record_table.c.is_latest.is_(True))
            .values(is_latest=False, effective_to=at)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            raise SnapshotWriteConflictError(snapshot.entity_id, snapshot.endpoint)
        set_committed_value(snapshot, "is_latest", False)
        set_committed_value(snapshot, "effective_to", at)

    def history(self, entity_id: str, endpoint: str) -> list[SnapshotRecord]:
        stmt = (
            select(SnapshotRecord)
            .where(snapshot_record_table.c.entity_id == entity_id)
            .where(snapshot_record_table.c.endpoint == endpoint)
            .order_by(
                snapshot_record_table.c.effective_from,
                snapshot_record_table.c.collected_at,
            )
        )
        return list(self.session.execute(stmt).scalars())

    def earliest_per_endpoint(self, entity_id: str) -> list[SnapshotRecord]:
        stmt = (
            select(SnapshotRecord)
            .where(snapshot_record_table.c.entity_id == entity_id)
            .order_by(
                snapshot_record_table.c.effective_from,
                snapshot_record_table.c.collected_at,
            )
        )
        earliest: dict[str, SnapshotRecord] = {}
        for snapshot in self.session.execute(stmt).scalars():
            earliest.setdefault(snapshot.endpoint, snapshot)
        return list(earliest.values())


class SqlAlchemyChangeRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ChangeRecord) -> None:
        # timeline events reference change rows; insert them first
        self.session.add(entity)
        self.session.flush()

    def for_entity(self, entity_id: str) -> list[ChangeRecord]:
        stmt = (
            select(ChangeRecord)
            .where(change_record_table.c.entity_id == entity_id)
            .order_by(change_record_table.c.detected_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyTimelineRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: TimelineEvent) -> None:
        self.session.add(entity)

    def get(self, event_id: UUID) -> TimelineEvent | None:
        return self.session.get(TimelineEvent, event_id)

    def for_entity(self, entity_id: str) -> list[TimelineEvent]:
        stmt = (
            select(TimelineEvent)
            .where(timeline_event_table.c.entity_id == entity_id)
            .order_by(
                timeline_event_table.c.event_date,
                timeline_event_table.c.sequence_order,
            )
        )
        return list(self.session.execute(stmt).scalars())

    def next_sequence_order(self, entity_id: str) -> int:
        stmt = select(func.max(timeline_event_table.c.sequence_order)).where(
            timeline_event_table.c.entity_id == entity_id
        )
        current = self.session.execute(stmt).scalar_one_or_none()
        return (current or 0) + 1

    def entity_ids(self) -> list[str]:
        stmt = (
            select(timeline_event_table.c.entity_id)
            .distinct()
            .order_by(timeline_event_table.c.entity_id)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyStateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ReconstructedState) -> None:
        self.session.add(entity)

    def current_for_entity(self, entity_id: str) -> list[ReconstructedState]:
        stmt = (
            select(ReconstructedState)
            .where(reconstructed_state_table.c.entity_id == entity_id)
            .where(reconstructed_state_table.c.is_current.is_(True))
            .order_by(reconstructed_state_table.c.state_version)
        )
        return list(self.session.execute(stmt).scalars())

    def revisions_for_event(self, event_id: UUID) -> list[ReconstructedState]:
        stmt = (
            select(ReconstructedState)
            .where(reconstructed_state_table.c.event_id == event_id)
            .order_by(reconstructed_state_table.c.revision)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemySyncSessionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SyncSession) -> None:
        self.session.add(entity)

    def get(self, session_id: UUID) -> SyncSession | None:
        return self.session.get(SyncSession, session_id)

    def latest_finished(self) -> SyncSession | None:
        stmt = (
            select(SyncSession)
            .where(sync_session_table.c.status != SessionStatus.RUNNING)
            .order_by(sync_session_table.c.started_at.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyReconstructionRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ReconstructionRun) -> None:
        self.session.add(entity)

    def get(self, run_id: UUID) -> ReconstructionRun | None:
        return self.session.get(ReconstructionRun, run_id)


class SqlAlchemyStaffRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: StaffRecord) -> None:
        self.session.add(entity)

    def list_all(self) -> list[StaffRecord]:
        stmt = select(StaffRecord).order_by(staff_table.c.full_name, staff_table.c.id)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemySyncConflictRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SyncConflict) -> None:
        self.session.add(entity)

    def open_for(self, staff_id: UUID) -> list[SyncConflict]:
        stmt = (
            select(SyncConflict)
            .where(sync_conflict_table.c.staff_id == staff_id)
            .where(sync_conflict_table.c.status == ConflictStatus.OPEN)
            .order_by(sync_conflict_table.c.detected_at)
        )
        return list(self.session.execute(stmt).scalars())
