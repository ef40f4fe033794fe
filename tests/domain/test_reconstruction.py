from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from staffsync.domain.errors import EventNotFoundError
from staffsync.domain.ingest import ingest_payload
from staffsync.domain.model import (
    STATE_FIELDS,
    Endpoint,
    EventType,
    ReconstructedState,
    ReconstructionMode,
    SessionStatus,
    SnapshotRecord,
    TimelineEvent,
)
from staffsync.domain.reconstruction import (
    BASE_CHANGE_SOURCE,
    ReconstructionResult,
    StateReconstructor,
    changed_fields,
    persist_state,
    replay,
    with_derived,
)
from staffsync.domain.snapshot_store import KeyedLock, SnapshotStore
from tests.helpers.fakes import FakeSnapshotRepository, InMemoryStore, TickingClock
from tests.helpers.payloads import employee_payload, employment_payload

Payloads = list[tuple[str, object]]


def _seed(memory: InMemoryStore, entity_id: str, payloads: Payloads) -> None:
    store = SnapshotStore(clock=memory.clock, lock=KeyedLock())
    for endpoint, payload in payloads:
        ingest_payload(
            memory.repositories,
            entity_id=entity_id,
            endpoint=endpoint,
            payload=payload,  # type: ignore[arg-type]
            store=store,
        )


def _history(entity_id: str = "e1") -> Payloads:
    return [
        (Endpoint.EMPLOYEE, employee_payload(entity_id, hourly_wage=16.28)),
        (Endpoint.EMPLOYMENTS, employment_payload()),
        (Endpoint.EMPLOYEE, employee_payload(entity_id, hourly_wage=17.37)),
        (
            Endpoint.EMPLOYMENTS,
            employment_payload(salary={"month_wage": 3000.0, "hour_wage": 16.28}),
        ),
    ]


def _reconstructor(memory: InMemoryStore, **kwargs: object) -> StateReconstructor:
    return StateReconstructor(
        unit_of_work_factory=memory,
        clock=TickingClock(datetime(2025, 1, 1, tzinfo=UTC)),
        **kwargs,  # type: ignore[arg-type]
    )


def test_with_derived_computes_annual_and_net_salary() -> None:
    values = with_derived({"month_wage_at_event": 2800.0}, tax_rate=0.37)

    assert values["annual_salary_at_event"] == 33600.0
    assert values["net_monthly_at_event"] == 1764.0
    assert with_derived({"month_wage_at_event": None})["annual_salary_at_event"] is None


def test_changed_fields_compares_values() -> None:
    before = {"hour_wage_at_event": 16.28, "status_at_event": "active"}
    after = {"hour_wage_at_event": 17.37, "status_at_event": "active"}

    assert changed_fields(before, after) == ["hour_wage_at_event"]
    assert changed_fields(None, after) == ["hour_wage_at_event", "status_at_event"]


def test_entity_reconstruction_follows_carry_forward_law() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())

    result = _reconstructor(memory).reconstruct_entity("e1")

    states = memory.states.current_for_entity("e1")
    assert result.events_processed == len(memory.timeline.items) == len(states)
    assert result.events_completed == result.events_processed
    assert result.success_rate == "100.0%"
    assert [state.state_version for state in states] == list(range(1, len(states) + 1))
    assert states[0].change_source == BASE_CHANGE_SOURCE
    for previous, current in zip(states, states[1:], strict=False):
        for name in STATE_FIELDS:
            if name in current.fields_changed:
                assert getattr(previous, name) != getattr(current, name)
            else:
                assert getattr(previous, name) == getattr(current, name)


def test_base_state_merges_earliest_snapshot_of_each_endpoint() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())

    _reconstructor(memory).reconstruct_entity("e1")

    first = memory.states.current_for_entity("e1")[0]
    assert first.first_name_at_event == "Anna"
    assert first.hour_wage_at_event == 16.28
    assert first.month_wage_at_event == 2800.0
    assert first.function_name_at_event == "Group Leader"
    assert first.contract_start_date_at_event == "2023-03-01"
    assert first.change_confidence == 1.0


def test_derived_fields_follow_month_wage() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())

    _reconstructor(memory, tax_rate=0.37).reconstruct_entity("e1")

    latest = memory.states.current_for_entity("e1")[-1]
    assert latest.month_wage_at_event == 3000.0
    assert latest.annual_salary_at_event == 36000.0
    assert latest.net_monthly_at_event == 1890.0
    assert set(latest.fields_changed) == {
        "month_wage_at_event",
        "annual_salary_at_event",
        "net_monthly_at_event",
    }
    for state in memory.states.items:
        if state.month_wage_at_event is not None:
            assert state.annual_salary_at_event == state.month_wage_at_event * 12


def test_rerun_is_idempotent() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())
    reconstructor = _reconstructor(memory)
    first = reconstructor.reconstruct_entity("e1")

    second = reconstructor.reconstruct_entity("e1")

    assert second.states_written == 0
    assert second.states_unchanged == first.states_written
    assert len(memory.states.items) == first.states_written
    assert all(state.revision == 1 for state in memory.states.items)


def test_fresh_replay_reproduces_stored_final_state() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())
    _reconstructor(memory).reconstruct_entity("e1")
    stored = memory.states.current_for_entity("e1")[-1]

    steps = replay(
        memory.timeline.for_entity("e1"),
        memory.snapshots.earliest_per_endpoint("e1"),
    )

    final = steps[-1].state
    assert final is not None
    assert final.same_content(stored)


def test_new_events_extend_existing_states() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history()[:3])
    reconstructor = _reconstructor(memory)
    reconstructor.reconstruct_entity("e1")

    _seed(memory, "e1", _history()[3:])
    result = reconstructor.reconstruct_entity("e1")

    assert result.states_written == 1
    assert result.states_unchanged == result.events_processed - 1


def test_persist_state_supersedes_changed_content() -> None:
    memory = InMemoryStore()
    event_id = uuid4()
    original = ReconstructedState(
        entity_id="e1", event_id=event_id, state_version=1, status_at_event="active"
    )
    memory.states.add(original)
    candidate = ReconstructedState(
        entity_id="e1", event_id=event_id, state_version=1, status_at_event="inactive"
    )
    at = datetime(2025, 1, 1, tzinfo=UTC)

    written = persist_state(memory.states, candidate, at=at)

    assert written
    assert not original.is_current
    assert original.superseded_at == at
    assert candidate.revision == 2
    assert memory.states.revisions_for_event(event_id) == [original, candidate]


def test_event_that_stops_reconstructing_loses_its_current_state() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())
    reconstructor = _reconstructor(memory)
    reconstructor.reconstruct_entity("e1")
    broken = memory.timeline.for_entity("e1")[2]
    broken.event_data = {"changes": {"favourite_colour": "green"}}

    result = reconstructor.reconstruct_entity("e1")

    assert result.errors_encountered == 1
    current = memory.states.current_for_entity("e1")
    versions = [state.state_version for state in current]
    assert versions == list(range(1, len(current) + 1))
    assert broken.id not in {state.event_id for state in current}
    (retired,) = memory.states.revisions_for_event(broken.id)
    assert not retired.is_current
    assert retired.superseded_at is not None


def test_dry_run_computes_without_persisting() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())

    result = _reconstructor(memory).run(
        ReconstructionMode.SINGLE_EMPLOYEE, entity_id="e1", dry_run=True
    )

    assert result.dry_run
    assert memory.states.items == []
    assert len(result.states) == result.events_completed == len(memory.timeline.items)
    assert result.states_written == 0
    assert memory.commits == 0


def test_single_event_replays_its_predecessors() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())
    events = memory.timeline.for_entity("e1")
    target = events[1]

    result = _reconstructor(memory).run(ReconstructionMode.SINGLE_EVENT, event_id=target.id)

    assert result.mode == ReconstructionMode.SINGLE_EVENT
    assert result.events_processed == 2
    assert [state.event_id for state in memory.states.items] == [events[0].id, target.id]


def test_single_event_requires_a_known_event() -> None:
    reconstructor = _reconstructor(InMemoryStore())

    with pytest.raises(EventNotFoundError):
        reconstructor.run(ReconstructionMode.SINGLE_EVENT, event_id=uuid4())
    with pytest.raises(ValueError, match="event_id"):
        reconstructor.run(ReconstructionMode.SINGLE_EVENT)
    with pytest.raises(ValueError, match="entity_id"):
        reconstructor.run(ReconstructionMode.SINGLE_EMPLOYEE)
    with pytest.raises(ValueError, match="not_a_mode"):
        reconstructor.run("not_a_mode")


def test_failing_event_is_skipped_and_counted() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history()[:3])
    last = memory.timeline.for_entity("e1")[-1]
    memory.timeline.add(
        TimelineEvent(
            entity_id="e1",
            event_type=EventType.SALARY_CHANGE,
            event_date=last.event_date + timedelta(minutes=1),
            title="Broken",
            event_data={"changes": {"hourly_wage": "not a number"}},
            sequence_order=last.sequence_order + 1,
        )
    )
    memory.timeline.add(
        TimelineEvent(
            entity_id="e1",
            event_type=EventType.DATA_UPDATE,
            event_date=last.event_date + timedelta(minutes=2),
            title="Unknown",
            event_data={"changes": {"favourite_colour": "green"}},
            sequence_order=last.sequence_order + 2,
        )
    )
    memory.timeline.add(
        TimelineEvent(
            entity_id="e1",
            event_type=EventType.STATUS_CHANGE,
            event_date=last.event_date + timedelta(minutes=3),
            title="Status changed to inactive",
            event_data={"changes": {"status": "inactive"}},
            sequence_order=last.sequence_order + 3,
        )
    )

    result = _reconstructor(memory).reconstruct_entity("e1")

    assert result.events_processed == 6
    assert result.events_completed == 4
    assert result.errors_encountered == 2
    assert result.success_rate == "66.7%"
    states = memory.states.current_for_entity("e1")
    assert [state.state_version for state in states] == [1, 2, 3, 4]
    assert states[-1].status_at_event == "inactive"
    assert states[-1].fields_changed == ["status_at_event"]


def test_events_are_replayed_in_date_order() -> None:
    memory = InMemoryStore()
    base = datetime(2024, 1, 1, tzinfo=UTC)
    for offset, status in ((2, "inactive"), (0, "active"), (1, "leave")):
        memory.timeline.add(
            TimelineEvent(
                entity_id="e1",
                event_type=EventType.STATUS_CHANGE,
                event_date=base + timedelta(days=offset),
                title=status,
                event_data={"changes": {"status": status}},
                sequence_order=offset + 1,
            )
        )

    _reconstructor(memory).reconstruct_entity("e1")

    states = memory.states.current_for_entity("e1")
    assert [state.status_at_event for state in states] == ["active", "leave", "inactive"]


def test_all_employees_processes_every_entity_in_batches() -> None:
    memory = InMemoryStore()
    for entity_id in ("e1", "e2", "e3"):
        _seed(memory, entity_id, _history(entity_id)[:1])

    result = _reconstructor(memory, batch_size=2, workers=2).run(
        ReconstructionMode.ALL_EMPLOYEES
    )

    assert result.mode == ReconstructionMode.ALL_EMPLOYEES
    assert result.events_processed == 3
    assert {state.entity_id for state in memory.states.items} == {"e1", "e2", "e3"}


class _FailingSnapshots(FakeSnapshotRepository):
    def earliest_per_endpoint(self, entity_id: str) -> list[SnapshotRecord]:
        if entity_id == "bad":
            raise RuntimeError("storage unavailable")
        return super().earliest_per_endpoint(entity_id)


def test_entity_failure_does_not_stop_other_entities() -> None:
    memory = InMemoryStore()
    memory.repositories.snapshots = _FailingSnapshots()
    _seed(memory, "bad", _history("bad")[:1])
    _seed(memory, "good", _history("good")[:1])

    result = _reconstructor(memory).reconstruct_all()

    assert result.errors == [{"entity_id": "bad", "error": "storage unavailable"}]
    assert (result.events_processed, result.events_completed) == (2, 1)
    assert result.success_rate == "50.0%"
    assert {state.entity_id for state in memory.states.items} == {"good"}
    assert memory.rollbacks == 1


def test_backfill_only_covers_pending_entities_and_logs_a_run() -> None:
    memory = InMemoryStore()
    _seed(memory, "done", _history("done")[:1])
    _seed(memory, "todo", _history("todo"))
    reconstructor = _reconstructor(memory)
    reconstructor.reconstruct_entity("done")

    result = reconstructor.run(ReconstructionMode.BACKFILL_ALL)

    assert result.run_id is not None
    assert {state.entity_id for state in result.states} == {"todo"}
    (run,) = memory.runs.items
    assert run.id == result.run_id
    assert run.status is SessionStatus.COMPLETED
    assert run.events_processed == result.events_processed
    assert run.completed_at is not None
    assert result.summary()["run_id"] == str(run.id)


def test_dry_run_backfill_still_logs_a_run() -> None:
    memory = InMemoryStore()
    _seed(memory, "e1", _history())

    result = _reconstructor(memory).backfill(dry_run=True)

    assert memory.states.items == []
    (run,) = memory.runs.items
    assert run.dry_run
    assert run.events_completed == result.events_completed


def test_backfill_failure_marks_run_failed(monkeypatch: pytest.MonkeyPatch) -> None:
    memory = InMemoryStore()

    def boom() -> list[str]:
        raise RuntimeError("timeline unavailable")

    monkeypatch.setattr(memory.timeline, "entity_ids", boom)

    with pytest.raises(RuntimeError, match="timeline unavailable"):
        _reconstructor(memory).backfill()

    (run,) = memory.runs.items
    assert run.status is SessionStatus.FAILED
    assert run.errors[-1]["error"] == "timeline unavailable"


def test_result_summary_and_absorb() -> None:
    total = ReconstructionResult(mode=ReconstructionMode.ALL_EMPLOYEES)
    assert total.success_rate == "0.0%"

    total.absorb(
        ReconstructionResult(
            mode=ReconstructionMode.SINGLE_EMPLOYEE,
            events_processed=4,
            events_completed=3,
            states_written=3,
            errors=[{"entity_id": "e1", "error": "x"}],
        )
    )

    summary = total.summary()
    assert summary["events_processed"] == 4
    assert summary["events_completed"] == 3
    assert summary["errors_encountered"] == 1
    assert summary["success_rate"] == "75.0%"
