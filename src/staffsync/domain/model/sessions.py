"""Run logs for collection sessions and reconstruction runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .entity import Entity, utcnow
from .enums import SessionStatus

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class SyncSession(Entity):
    """Observability record for one snapshot collection run."""

    mode: str
    session_type: str = "snapshot"
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    status: SessionStatus = SessionStatus.RUNNING
    total: int = 0
    successful: int = 0
    failed: int = 0
    no_data: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    error_message: str | None = None

    def complete(
        self,
        *,
        total: int,
        successful: int,
        failed: int,
        no_data: int,
        errors: list[dict[str, Any]],
        at: datetime,
    ) -> None:
        self.total = total
        self.successful = successful
        self.failed = failed
        self.no_data = no_data
        self.errors = list(errors)
        self.completed_at = at
        self.status = SessionStatus.COMPLETED if failed == 0 else SessionStatus.PARTIAL

    def fail(self, *, message: str, at: datetime) -> None:
        self.error_message = message
        self.completed_at = at
        self.status = SessionStatus.FAILED

    @property
    def failed_entity_ids(self) -> list[str]:
        seen: list[str] = []
        for error in self.errors:
            entity_id = error.get("entity_id")
            if isinstance(entity_id, str) and entity_id not in seen:
                seen.append(entity_id)
        return seen


@dataclass(eq=False, kw_only=True)
class ReconstructionRun(Entity):
    """Run-level completion log written by backfills."""

    mode: str
    dry_run: bool = False
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    status: SessionStatus = SessionStatus.RUNNING
    events_processed: int = 0
    events_completed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def complete(
        self,
        *,
        events_processed: int,
        events_completed: int,
        errors: list[dict[str, Any]],
        at: datetime,
    ) -> None:
        self.events_processed = events_processed
        self.events_completed = events_completed
        self.errors = list(errors)
        self.completed_at = at
        self.status = (
            SessionStatus.COMPLETED
            if events_completed == events_processed
            else SessionStatus.PARTIAL
        )

    def fail(self, *, message: str, at: datetime) -> None:
        self.errors = [*self.errors, {"error": message, "timestamp": at.isoformat()}]
        self.completed_at = at
        self.status = SessionStatus.FAILED
