from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from staffsync.domain.model import (
    STATE_FIELDS,
    CollectionMode,
    ExternalEmployee,
    ReconstructedState,
    ReconstructionMode,
    ReconstructionRun,
    SessionStatus,
    SyncSession,
)

AT = datetime(2024, 1, 1, tzinfo=UTC)


def test_session_completes_or_turns_partial() -> None:
    clean = SyncSession(mode=CollectionMode.FULL)
    clean.complete(total=2, successful=1, failed=0, no_data=1, errors=[], at=AT)
    assert clean.status is SessionStatus.COMPLETED

    partial = SyncSession(mode=CollectionMode.FULL)
    errors = [
        {"entity_id": "a", "endpoint": "/employee", "error": "HTTP 403 Forbidden"},
        {"entity_id": "a", "endpoint": "/employments", "error": "HTTP 403 Forbidden"},
        {"entity_id": "b", "error": "No fetch result returned"},
    ]
    partial.complete(total=3, successful=1, failed=2, no_data=0, errors=errors, at=AT)
    assert partial.status is SessionStatus.PARTIAL
    assert partial.failed_entity_ids == ["a", "b"]
    assert partial.completed_at == AT


def test_session_failure_keeps_message() -> None:
    session = SyncSession(mode=CollectionMode.TEST)

    session.fail(message="listing unavailable", at=AT)

    assert session.status is SessionStatus.FAILED
    assert session.error_message == "listing unavailable"


def test_reconstruction_run_status_follows_counts() -> None:
    run = ReconstructionRun(mode=ReconstructionMode.BACKFILL_ALL)
    run.complete(events_processed=3, events_completed=2, errors=[{"error": "x"}], at=AT)
    assert run.status is SessionStatus.PARTIAL

    run.fail(message="boom", at=AT)
    assert run.status is SessionStatus.FAILED
    assert run.errors[-1] == {"error": "boom", "timestamp": AT.isoformat()}


def test_state_fields_are_the_at_event_columns() -> None:
    assert "hour_wage_at_event" in STATE_FIELDS
    assert "annual_salary_at_event" in STATE_FIELDS
    assert "state_version" not in STATE_FIELDS
    assert len(STATE_FIELDS) == 23


def test_same_content_ignores_bookkeeping() -> None:
    event_id = uuid4()
    first = ReconstructedState(
        entity_id="e1", event_id=event_id, state_version=1, status_at_event="active"
    )
    second = ReconstructedState(
        entity_id="e1",
        event_id=event_id,
        state_version=1,
        status_at_event="active",
        computed_at=AT,
        revision=3,
    )

    assert first.same_content(second)
    second.status_at_event = "inactive"
    assert not first.same_content(second)


def test_external_full_name_without_surname() -> None:
    assert ExternalEmployee(external_id="1", first_name="Cher").full_name == "Cher"
