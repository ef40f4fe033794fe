"""Field-level change detection between adjacent snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from staffsync.domain.field_map import ValueKind, tracked_fields
from staffsync.domain.hashing import canonical_json
from staffsync.domain.model import ChangeRecord, ChangeType, FieldCategory, utcnow
from staffsync.domain.payloads import (
    current_document,
    extract_effective_date,
    has_path,
    read_path,
)

if TYPE_CHECKING:
    from datetime import datetime

    from staffsync.domain.field_map import FieldSpec
    from staffsync.domain.model import SnapshotRecord

LARGE_CHANGE_PERCENT = 50.0
MODEST_RAISE_PERCENT = 10.0


def detect_changes(
    previous: SnapshotRecord,
    current: SnapshotRecord,
    *,
    detected_at: datetime | None = None,
) -> list[ChangeRecord]:
    """Diff the tracked fields of two snapshots of the same entity and endpoint.

    Only paths from the static field map are compared, so churn in untracked
    metadata never produces a change. Values are compared after normalization,
    which makes ``17`` equal to ``17.0`` and ``"17.0"`` for numeric fields. Fields
    missing from a partial payload are treated as unknown rather than removed.
    """
    old_doc = current_document(previous.payload)
    new_doc = current_document(current.payload)
    has_effective_date = extract_effective_date(current.payload) is not None
    detected = detected_at or utcnow()

    changes: list[ChangeRecord] = []
    for spec in tracked_fields(current.endpoint):
        if current.is_partial and not has_path(new_doc, spec.path):
            continue
        old_value = read_path(old_doc, spec.path)
        new_value = read_path(new_doc, spec.path)
        if _normalized(spec, old_value) == _normalized(spec, new_value):
            continue
        details = _numeric_details(spec, old_value, new_value)
        changes.append(
            ChangeRecord(
                entity_id=current.entity_id,
                endpoint=current.endpoint,
                field_path=spec.path,
                old_value=old_value,
                new_value=new_value,
                change_type=ChangeType.CREATED if old_value is None else ChangeType.UPDATED,
                category=spec.category,
                label=spec.label,
                is_significant=spec.is_significant,
                confidence_score=confidence_score(
                    spec.category,
                    details.get("change_percent"),
                    has_effective_date=has_effective_date,
                ),
                details=details,
                detected_at=detected,
                effective_date=current.effective_from,
                snapshot_id=current.id,
                previous_snapshot_id=previous.id,
            )
        )
    return changes


def confidence_score(
    category: FieldCategory,
    change_percent: float | None,
    *,
    has_effective_date: bool,
) -> float:
    score = 1.0
    if change_percent is not None and abs(change_percent) > LARGE_CHANGE_PERCENT:
        score -= 0.3
    if not has_effective_date:
        score -= 0.2
    if (
        category is FieldCategory.SALARY
        and change_percent is not None
        and 0 <= change_percent <= MODEST_RAISE_PERCENT
    ):
        score += 0.1
    return round(max(0.0, min(1.0, score)), 2)


def _normalized(spec: FieldSpec, value: Any) -> str:
    try:
        return canonical_json(spec.coerce(value))
    except ValueError:
        return canonical_json(value)


def _numeric_details(spec: FieldSpec, old_value: Any, new_value: Any) -> dict[str, Any]:
    if spec.kind is not ValueKind.NUMBER:
        return {}
    try:
        old = spec.coerce(old_value)
        new = spec.coerce(new_value)
    except ValueError:
        return {}
    if old is None or new is None:
        return {}
    details: dict[str, Any] = {"change_amount": round(new - old, 2)}
    if old != 0:
        details["change_percent"] = round((new - old) / old * 100, 2)
    return details
