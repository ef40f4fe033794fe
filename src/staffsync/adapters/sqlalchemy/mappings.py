"""SQLAlchemy mapping metadata for the staffsync domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
    text,
)
from sqlalchemy.orm import configure_mappers

from staffsync.domain.model import (
    STATE_FIELDS,
    ChangeRecord,
    ChangeType,
    ConflictStatus,
    EventType,
    FieldCategory,
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
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]

NUMERIC_STATE_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "month_wage_at_event",
        "hour_wage_at_event",
        "annual_salary_at_event",
        "net_monthly_at_event",
        "hours_per_week_at_event",
        "days_per_week_at_event",
    }
)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Run logs --------------------------------------------------------------------

sync_session_table = Table(
    "sync_session",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("session_type", String, nullable=False),
    Column("mode", String, nullable=False),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("status", Enum(SessionStatus, native_enum=False), nullable=False),
    Column("total", Integer, nullable=False, default=0),
    Column("successful", Integer, nullable=False, default=0),
    Column("failed", Integer, nullable=False, default=0),
    Column("no_data", Integer, nullable=False, default=0),
    Column("errors", JSON, nullable=False),
    Column("error_message", String, nullable=True),
    Index("ix_sync_session_started_at", "started_at"),
)

reconstruction_run_table = Table(
    "reconstruction_run",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("mode", String, nullable=False),
    Column("dry_run", Boolean, nullable=False, default=False),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("status", Enum(SessionStatus, native_enum=False), nullable=False),
    Column("events_processed", Integer, nullable=False, default=0),
    Column("events_completed", Integer, nullable=False, default=0),
    Column("errors", JSON, nullable=False),
)

# Temporal history ------------------------------------------------------------

snapshot_record_table = Table(
    "snapshot_record",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("entity_id", String, nullable=False),
    Column("endpoint", String, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("content_hash", String(64), nullable=False),
    Column("collected_at", UTCDateTime(), nullable=False),
    Column("last_verified_at", UTCDateTime(), nullable=False),
    Column("effective_from", UTCDateTime(), nullable=False),
    Column("effective_to", UTCDateTime(), nullable=True),
    Column("is_latest", Boolean, nullable=False, default=True),
    Column("confidence_score", Float, nullable=False, default=1.0),
    Column("is_partial", Boolean, nullable=False, default=False),
    Column("error_message", String, nullable=True),
    Column(
        "sync_session_id",
        UUIDColumnType,
        ForeignKey("sync_session.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Index(
        "uq_snapshot_record_latest",
        "entity_id",
        "endpoint",
        unique=True,
        sqlite_where=text("is_latest"),
        postgresql_where=text("is_latest"),
    ),
    Index("ix_snapshot_record_history", "entity_id", "endpoint", "effective_from"),
)

change_record_table = Table(
    "change_record",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("entity_id", String, nullable=False),
    Column("endpoint", String, nullable=False),
    Column("field_path", String, nullable=False),
    Column("old_value", JSON(none_as_null=True), nullable=True),
    Column("new_value", JSON(none_as_null=True), nullable=True),
    Column("change_type", Enum(ChangeType, native_enum=False), nullable=False),
    Column("category", Enum(FieldCategory, native_enum=False), nullable=False),
    Column("label", String, nullable=False),
    Column("is_significant", Boolean, nullable=False, default=False),
    Column("confidence_score", Float, nullable=False, default=1.0),
    Column("metadata", JSON, key="details", nullable=False),
    Column("detected_at", UTCDateTime(), nullable=False),
    Column("effective_date", UTCDateTime(), nullable=True),
    Column("snapshot_id", UUIDColumnType, ForeignKey("snapshot_record.id"), nullable=True),
    Column(
        "previous_snapshot_id", UUIDColumnType, ForeignKey("snapshot_record.id"), nullable=True
    ),
    Index("ix_change_record_entity", "entity_id", "detected_at"),
)

timeline_event_table = Table(
    "timeline_event",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("entity_id", String, nullable=False),
    Column("event_type", Enum(EventType, native_enum=False), nullable=False),
    Column("event_date", UTCDateTime(), nullable=False),
    Column("title", String, nullable=False),
    Column("description", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("sequence_order", Integer, nullable=False),
    Column("change_id", UUIDColumnType, ForeignKey("change_record.id"), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_timeline_event_ordering", "entity_id", "event_date", "sequence_order"),
)

reconstructed_state_table = Table(
    "reconstructed_state",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("entity_id", String, nullable=False),
    Column(
        "event_id",
        UUIDColumnType,
        ForeignKey("timeline_event.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("state_version", Integer, nullable=False),
    Column("revision", Integer, nullable=False, default=1),
    Column("is_current", Boolean, nullable=False, default=True),
    Column("computed_at", UTCDateTime(), nullable=False),
    Column("superseded_at", UTCDateTime(), nullable=True),
    Column("change_source", String, nullable=False),
    Column("change_confidence", Float, nullable=False, default=1.0),
    Column("fields_changed", JSON, nullable=False),
    *(
        Column(name, Float if name in NUMERIC_STATE_FIELDS else String, nullable=True)
        for name in STATE_FIELDS
    ),
    UniqueConstraint("event_id", "revision", name="uq_reconstructed_state_event_revision"),
    Index("ix_reconstructed_state_version", "entity_id", "state_version"),
)

# Internal staff records ------------------------------------------------------

staff_table = Table(
    "staff",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("full_name", String, nullable=False),
    Column("email", String, nullable=True),
    Column("phone_number", String, nullable=True),
    Column("employes_id", String, nullable=True, unique=True),
    Column("employee_number", String, nullable=True),
    Column("hourly_wage", Float, nullable=True),
    Column("hours_per_week", Float, nullable=True),
    Column("status", String, nullable=True),
    Column("last_sync_at", UTCDateTime(), nullable=True),
)

sync_conflict_table = Table(
    "sync_conflict",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("staff_id", UUIDColumnType, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
    Column("external_id", String, nullable=False),
    Column("conflicts", JSON, nullable=False),
    Column("detected_at", UTCDateTime(), nullable=False),
    Column("status", Enum(ConflictStatus, native_enum=False), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(SyncSession, sync_session_table)
    mapper_registry.map_imperatively(ReconstructionRun, reconstruction_run_table)
    mapper_registry.map_imperatively(SnapshotRecord, snapshot_record_table)
    mapper_registry.map_imperatively(ChangeRecord, change_record_table)
    mapper_registry.map_imperatively(TimelineEvent, timeline_event_table)
    mapper_registry.map_imperatively(ReconstructedState, reconstructed_state_table)
    mapper_registry.map_imperatively(StaffRecord, staff_table)
    mapper_registry.map_imperatively(SyncConflict, sync_conflict_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
