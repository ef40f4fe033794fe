"""SQLAlchemy adapter package for staffsync."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyChangeRepository,
    SqlAlchemyReconstructionRunRepository,
    SqlAlchemySnapshotRepository,
    SqlAlchemyStaffRepository,
    SqlAlchemyStateRepository,
    SqlAlchemySyncConflictRepository,
    SqlAlchemySyncSessionRepository,
    SqlAlchemyTimelineRepository,
)

__all__ = [
    "SqlAlchemyChangeRepository",
    "SqlAlchemyReconstructionRunRepository",
    "SqlAlchemySnapshotRepository",
    "SqlAlchemyStaffRepository",
    "SqlAlchemyStateRepository",
    "SqlAlchemySyncConflictRepository",
    "SqlAlchemySyncSessionRepository",
    "SqlAlchemyTimelineRepository",
    "create_all_tables",
    "mapper_registry",
    "start_mappers",
]
