"""Projection of detected changes into human-readable timeline events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

from staffsync.domain.errors import UnknownFieldPathError
from staffsync.domain.field_map import field_spec, tracked_fields
from staffsync.domain.model import Endpoint, EventType, FieldCategory, TimelineEvent
from staffsync.domain.payloads import current_document, has_path, read_path

if TYPE_CHECKING:
    from collections.abc import Sequence

    from staffsync.domain.model import ChangeRecord, SnapshotRecord

_EVENT_TYPES: Final[dict[FieldCategory, EventType]] = {
    FieldCategory.SALARY: EventType.SALARY_CHANGE,
    FieldCategory.HOURS: EventType.HOURS_CHANGE,
    FieldCategory.CONTRACT: EventType.CONTRACT_CHANGE,
    FieldCategory.STATUS: EventType.STATUS_CHANGE,
}

_ENDPOINT_LABELS: Final[dict[str, str]] = {
    Endpoint.EMPLOYEE: "Profile",
    Endpoint.EMPLOYMENTS: "Employment",
}


def classify(field_path: str) -> EventType:
    """Event type for a change on ``field_path``."""
    try:
        category = field_spec(field_path).category
    except UnknownFieldPathError:
        return _infer_from_name(field_path)
    return _EVENT_TYPES.get(category, EventType.DATA_UPDATE)


def _infer_from_name(field_path: str) -> EventType:
    name = field_path.lower()
    if any(token in name for token in ("salary", "wage", "hourly")):
        return EventType.SALARY_CHANGE
    if "hours" in name:
        return EventType.HOURS_CHANGE
    if "contract" in name:
        return EventType.CONTRACT_CHANGE
    if "status" in name:
        return EventType.STATUS_CHANGE
    return EventType.DATA_UPDATE


def project_changes(changes: Sequence[ChangeRecord], *, start_order: int) -> list[TimelineEvent]:
    """Map one detection pass 1:1 onto timeline events with consecutive ordering."""
    events: list[TimelineEvent] = []
    for offset, change in enumerate(changes):
        event_type = classify(change.field_path)
        title, description = describe_change(change, event_type)
        event_data: dict[str, Any] = {
            "changes": {change.field_path: change.new_value},
            "previous": {change.field_path: change.old_value},
            "endpoint": change.endpoint,
            "label": change.label,
            "confidence": change.confidence_score,
            **change.details,
        }
        events.append(
            TimelineEvent(
                entity_id=change.entity_id,
                event_type=event_type,
                event_date=change.effective_date or change.detected_at,
                title=title,
                description=description,
                event_data=event_data,
                sequence_order=start_order + offset,
                change_id=change.id,
            )
        )
    return events


def initial_event(
    snapshot: SnapshotRecord,
    *,
    first_for_entity: bool,
    sequence_order: int,
) -> TimelineEvent:
    """Synthetic event for the first snapshot seen of an entity or endpoint."""
    document = current_document(snapshot.payload)
    values = {
        spec.path: read_path(document, spec.path)
        for spec in tracked_fields(snapshot.endpoint)
        if has_path(document, spec.path)
    }
    source = _ENDPOINT_LABELS.get(snapshot.endpoint, snapshot.endpoint)
    if first_for_entity:
        event_type = EventType.ENTITY_ADDED
        title = "Employee added"
        description = f"First snapshot collected from {snapshot.endpoint}"
    else:
        event_type = EventType.DATA_UPDATE
        title = f"{source} data added"
        description = f"First snapshot collected from {snapshot.endpoint}"
    return TimelineEvent(
        entity_id=snapshot.entity_id,
        event_type=event_type,
        event_date=snapshot.effective_from,
        title=title,
        description=description,
        event_data={
            "changes": values,
            "endpoint": snapshot.endpoint,
            "snapshot_id": str(snapshot.id),
            "initial": True,
        },
        sequence_order=sequence_order,
    )


def describe_change(change: ChangeRecord, event_type: EventType) -> tuple[str, str]:
    old, new = change.old_value, change.new_value
    label = change.label or change.field_path
    description = f"{label}: {format_value(old)} → {format_value(new)}"
    percent = change.details.get("change_percent")
    if event_type is EventType.SALARY_CHANGE:
        if percent is not None:
            direction = "increased" if percent >= 0 else "decreased"
            return f"{label} {direction} by {abs(percent):.1f}%", description
        if old is None:
            return f"{label} set to {format_value(new)}", description
        return f"{label} changed", description
    if event_type is EventType.HOURS_CHANGE:
        return f"Hours changed: {format_value(old)} → {format_value(new)}", description
    if event_type is EventType.CONTRACT_CHANGE:
        return f"{label} changed to {format_value(new)}", description
    if event_type is EventType.STATUS_CHANGE:
        return f"Status changed to {format_value(new)}", description
    return f"{label} updated", description


def format_value(value: Any) -> str:
    if value is None or value == "":
        return "none"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
