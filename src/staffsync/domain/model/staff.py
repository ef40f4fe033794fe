"""Internal staff records and their links to external employees."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .entity import Entity, utcnow
from .enums import ConflictStatus, MatchType

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class StaffRecord(Entity):
    """Staff member as held by the application itself."""

    full_name: str
    email: str | None = None
    phone_number: str | None = None
    employes_id: str | None = None
    employee_number: str | None = None
    hourly_wage: float | None = None
    hours_per_week: float | None = None
    status: str | None = None
    last_sync_at: datetime | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ExternalEmployee:
    """Employee as reported by the payroll system of record."""

    external_id: str
    first_name: str
    surname: str | None = None
    email: str | None = None
    phone_number: str | None = None
    employee_number: str | None = None
    hourly_wage: float | None = None
    hours_per_week: float | None = None
    status: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.surname or ''}".strip()


@dataclass(slots=True, kw_only=True)
class EmployeeMatch:
    """Outcome of linking one external employee to zero or one staff record."""

    external: ExternalEmployee
    internal: StaffRecord | None
    match_type: MatchType
    match_confidence: int
    sync_required: bool
    conflicts: list[str] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class SyncConflict(Entity):
    """Field disagreements parked for manual resolution."""

    staff_id: UUID
    external_id: str
    conflicts: list[str] = field(default_factory=list)
    detected_at: datetime = field(default_factory=utcnow)
    status: ConflictStatus = ConflictStatus.OPEN
