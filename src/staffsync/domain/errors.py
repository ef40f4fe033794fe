"""Domain error definitions."""

from __future__ import annotations


class StaffSyncError(RuntimeError):
    """Base class for synchronization pipeline errors."""


class SnapshotWriteConflictError(StaffSyncError):
    """Raised when the latest-row invariant of the snapshot store would be violated."""

    def __init__(self, entity_id: str, endpoint: str) -> None:
        super().__init__(f"Concurrent snapshot write detected for {entity_id} {endpoint}")
        self.entity_id = entity_id
        self.endpoint = endpoint


class UnknownFieldPathError(StaffSyncError, KeyError):
    """Raised when a field path has no entry in the static field map."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Unknown field path: {path}")
        self.path = path

    def __str__(self) -> str:
        return str(self.args[0])


class FieldMapError(StaffSyncError):
    """Raised when the static field map fails validation."""


class EventNotFoundError(StaffSyncError, LookupError):
    """Raised when a timeline event referenced by id does not exist."""

    def __init__(self, event_id: object) -> None:
        super().__init__(f"Timeline event not found: {event_id}")
        self.event_id = event_id
