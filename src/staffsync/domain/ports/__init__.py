"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import EmployeeDirectory, FetchOutcome, FetchStatus, SnapshotSource
from .persistence import (
    ChangeRepository,
    ReconstructionRunRepository,
    Repository,
    SnapshotRepository,
    StaffRepository,
    StateRepository,
    SyncConflictRepository,
    SyncSessionRepository,
    TimelineRepository,
)
from .unit_of_work import RepositoryCollection, SyncRepositories, SyncUnitOfWork, UnitOfWork

__all__ = [
    "ChangeRepository",
    "EmployeeDirectory",
    "FetchOutcome",
    "FetchStatus",
    "ReconstructionRunRepository",
    "Repository",
    "RepositoryCollection",
    "SnapshotRepository",
    "SnapshotSource",
    "StaffRepository",
    "StateRepository",
    "SyncConflictRepository",
    "SyncRepositories",
    "SyncSessionRepository",
    "SyncUnitOfWork",
    "TimelineRepository",
    "UnitOfWork",
]
