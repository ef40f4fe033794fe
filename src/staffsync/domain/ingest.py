"""Ingest one fetched payload: store it, detect changes and extend the timeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from staffsync.domain.change_detection import detect_changes
from staffsync.domain.field_map import missing_required_fields
from staffsync.domain.payloads import current_document
from staffsync.domain.snapshot_store import SnapshotStore, SnapshotWrite, WriteOutcome
from staffsync.domain.timeline import initial_event, project_changes

if TYPE_CHECKING:
    from uuid import UUID

    from staffsync.domain.model import ChangeRecord, Payload, TimelineEvent
    from staffsync.domain.ports import SyncRepositories

log = logging.getLogger(__name__)

PARTIAL_CONFIDENCE = 0.5


@dataclass(slots=True)
class IngestResult:
    write: SnapshotWrite
    changes: list[ChangeRecord] = field(default_factory=list)
    events: list[TimelineEvent] = field(default_factory=list)

    @property
    def outcome(self) -> WriteOutcome:
        return self.write.outcome


def ingest_payload(
    repositories: SyncRepositories,
    *,
    entity_id: str,
    endpoint: str,
    payload: Payload,
    session_id: UUID | None = None,
    store: SnapshotStore | None = None,
) -> IngestResult:
    """Persist ``payload`` and everything derived from it.

    An unchanged payload only touches the latest snapshot. A first payload for an
    entity/endpoint yields one synthetic timeline event; later divergent payloads
    yield one change record and one timeline event per changed tracked field.
    """
    store = store or SnapshotStore()
    missing = missing_required_fields(endpoint, current_document(payload))
    write = store.write(
        repositories.snapshots,
        entity_id=entity_id,
        endpoint=endpoint,
        payload=payload,
        session_id=session_id,
        is_partial=bool(missing),
        confidence_score=PARTIAL_CONFIDENCE if missing else 1.0,
        error_message=f"Missing required fields: {', '.join(missing)}" if missing else None,
    )
    result = IngestResult(write=write)
    if write.outcome is WriteOutcome.VERIFIED:
        return result

    timeline = repositories.timeline
    start_order = timeline.next_sequence_order(entity_id)
    if write.previous is None:
        first_for_entity = not timeline.for_entity(entity_id)
        result.events.append(
            initial_event(
                write.snapshot,
                first_for_entity=first_for_entity,
                sequence_order=start_order,
            )
        )
    else:
        result.changes.extend(
            detect_changes(write.previous, write.snapshot, detected_at=write.snapshot.collected_at)
        )
        result.events.extend(project_changes(result.changes, start_order=start_order))

    for change in result.changes:
        repositories.changes.add(change)
    for event in result.events:
        timeline.add(event)
    if result.changes:
        log.info(
            "Detected %d change(s) for %s %s", len(result.changes), entity_id, endpoint
        )
    return result
