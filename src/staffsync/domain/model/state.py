"""Reconstructed employment state attributed to one timeline event."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Final

from .entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

STATE_FIELD_SUFFIX: Final[str] = "_at_event"


@dataclass(eq=False, kw_only=True)
class ReconstructedState(Entity):
    """What was true for an employee as of one timeline event."""

    entity_id: str
    event_id: UUID
    state_version: int
    revision: int = 1
    is_current: bool = True
    computed_at: datetime = field(default_factory=utcnow)
    superseded_at: datetime | None = None
    change_source: str = "state_reconstruction"
    change_confidence: float = 1.0
    fields_changed: list[str] = field(default_factory=list)

    # personal
    employee_number_at_event: str | None = None
    email_at_event: str | None = None
    first_name_at_event: str | None = None
    last_name_at_event: str | None = None
    birth_date_at_event: str | None = None
    phone_number_at_event: str | None = None

    # financial
    month_wage_at_event: float | None = None
    hour_wage_at_event: float | None = None
    annual_salary_at_event: float | None = None
    net_monthly_at_event: float | None = None

    # schedule
    hours_per_week_at_event: float | None = None
    days_per_week_at_event: float | None = None

    # contract
    contract_id_at_event: str | None = None
    contract_type_at_event: str | None = None
    employment_type_at_event: str | None = None
    contract_start_date_at_event: str | None = None
    contract_end_date_at_event: str | None = None
    phase_at_event: str | None = None

    # role
    function_name_at_event: str | None = None
    cost_center_name_at_event: str | None = None
    cost_center_code_at_event: str | None = None
    manager_name_at_event: str | None = None

    # status
    status_at_event: str | None = None

    def values(self) -> dict[str, Any]:
        """Business field values keyed by state field name."""
        return {name: getattr(self, name) for name in STATE_FIELDS}

    def same_content(self, other: ReconstructedState) -> bool:
        return (
            self.values() == other.values()
            and list(self.fields_changed) == list(other.fields_changed)
            and self.state_version == other.state_version
        )

    def supersede(self, *, at: datetime) -> None:
        self.is_current = False
        self.superseded_at = at


STATE_FIELDS: Final[tuple[str, ...]] = tuple(
    item.name for item in fields(ReconstructedState) if item.name.endswith(STATE_FIELD_SUFFIX)
)
DERIVED_STATE_FIELDS: Final[frozenset[str]] = frozenset(
    {"annual_salary_at_event", "net_monthly_at_event"}
)
