"""Public domain model surface."""

from __future__ import annotations

from staffsync.domain.model.entity import Entity, new_id, utcnow
from staffsync.domain.model.enums import (
    ChangeType,
    CollectionMode,
    ConflictStatus,
    Endpoint,
    EventType,
    FieldCategory,
    MatchType,
    ReconstructionMode,
    SessionStatus,
)
from staffsync.domain.model.sessions import ReconstructionRun, SyncSession
from staffsync.domain.model.snapshot import Payload, SnapshotRecord
from staffsync.domain.model.staff import (
    EmployeeMatch,
    ExternalEmployee,
    StaffRecord,
    SyncConflict,
)
from staffsync.domain.model.state import (
    DERIVED_STATE_FIELDS,
    STATE_FIELDS,
    ReconstructedState,
)
from staffsync.domain.model.timeline import ChangeRecord, TimelineEvent

__all__ = [
    "DERIVED_STATE_FIELDS",
    "STATE_FIELDS",
    "ChangeRecord",
    "ChangeType",
    "CollectionMode",
    "ConflictStatus",
    "EmployeeMatch",
    "Endpoint",
    "Entity",
    "EventType",
    "ExternalEmployee",
    "FieldCategory",
    "MatchType",
    "Payload",
    "ReconstructedState",
    "ReconstructionMode",
    "ReconstructionRun",
    "SessionStatus",
    "SnapshotRecord",
    "StaffRecord",
    "SyncConflict",
    "SyncSession",
    "TimelineEvent",
    "new_id",
    "utcnow",
]
