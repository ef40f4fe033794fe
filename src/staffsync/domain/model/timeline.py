"""Change log and timeline records (append-only)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .entity import Entity, utcnow
from .enums import ChangeType, EventType, FieldCategory

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class ChangeRecord(Entity):
    """A difference in one tracked field between two adjacent snapshots."""

    entity_id: str
    endpoint: str
    field_path: str
    old_value: Any = None
    new_value: Any = None
    change_type: ChangeType = ChangeType.UPDATED
    category: FieldCategory = FieldCategory.PERSONAL
    label: str = ""
    is_significant: bool = False
    confidence_score: float = 1.0
    details: dict[str, Any] = field(default_factory=dict)
    detected_at: datetime = field(default_factory=utcnow)
    effective_date: datetime | None = None
    snapshot_id: UUID | None = None
    previous_snapshot_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class TimelineEvent(Entity):
    """Narrative projection of detected changes, ordered by (event_date, sequence_order)."""

    entity_id: str
    event_type: EventType
    event_date: datetime
    title: str
    description: str = ""
    event_data: dict[str, Any] = field(default_factory=dict)
    sequence_order: int = 0
    change_id: UUID | None = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def changes(self) -> dict[str, Any]:
        """Field path to new value for every change this event carries."""
        raw = self.event_data.get("changes")
        if not isinstance(raw, dict):
            return {}
        return dict(raw)

    @property
    def ordering_key(self) -> tuple[datetime, int]:
        return (self.event_date, self.sequence_order)
