from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, inspect

from staffsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemySyncUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from staffsync.domain.collection import SnapshotCollector
from staffsync.domain.matching import resolve_matches
from staffsync.domain.model import (
    CollectionMode,
    Endpoint,
    EventType,
    ExternalEmployee,
    SessionStatus,
    StaffRecord,
)
from staffsync.domain.reconstruction import StateReconstructor
from tests.helpers.fakes import FakeSnapshotSource, TickingClock
from tests.helpers.payloads import employee_payload, employment_payload

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemySyncUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_migrations_create_every_table(sqlite_engine: Engine) -> None:
    tables = set(inspect(sqlite_engine).get_table_names())

    assert {
        "snapshot_record",
        "change_record",
        "timeline_event",
        "reconstructed_state",
        "sync_session",
        "reconstruction_run",
        "staff",
        "sync_conflict",
    } <= tables


def test_exception_inside_unit_of_work_rolls_back(
    sqlite_unit_of_work: Callable[[], SqlAlchemySyncUnitOfWork],
) -> None:
    with pytest.raises(RuntimeError), sqlite_unit_of_work() as uow:
        uow.repositories.staff.add(StaffRecord(full_name="Never Stored"))
        raise RuntimeError("boom")

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.staff.list_all() == []


def test_collection_and_reconstruction_end_to_end(
    sqlite_unit_of_work: Callable[[], SqlAlchemySyncUnitOfWork],
) -> None:
    source = FakeSnapshotSource(
        payloads={
            ("e1", Endpoint.EMPLOYEE): employee_payload("e1", hourly_wage=16.28),
            ("e1", Endpoint.EMPLOYMENTS): employment_payload(),
        }
    )
    clock = TickingClock()
    collector = SnapshotCollector(
        source=source, unit_of_work_factory=sqlite_unit_of_work, clock=clock
    )

    first = collector.collect(CollectionMode.SPECIFIC, entity_ids=["e1"])
    source.payloads["e1", Endpoint.EMPLOYEE] = employee_payload("e1", hourly_wage=17.37)
    second = collector.collect(CollectionMode.SPECIFIC, entity_ids=["e1"])
    again = collector.collect(CollectionMode.SPECIFIC, entity_ids=["e1"])

    assert first.status is SessionStatus.COMPLETED
    assert first.snapshots_created == 2
    assert second.changes_detected == 1
    assert again.snapshots_verified == 2
    assert again.events_created == 0

    with sqlite_unit_of_work() as uow:
        history = uow.repositories.snapshots.history("e1", Endpoint.EMPLOYEE)
        events = uow.repositories.timeline.for_entity("e1")
    assert [item.is_latest for item in history] == [False, True]
    assert [event.event_type for event in events][-1] is EventType.SALARY_CHANGE

    reconstructor = StateReconstructor(unit_of_work_factory=sqlite_unit_of_work, clock=clock)
    result = reconstructor.reconstruct_entity("e1")
    rerun = reconstructor.reconstruct_entity("e1")

    assert result.events_completed == len(events)
    assert rerun.states_written == 0
    with sqlite_unit_of_work() as uow:
        states = uow.repositories.states.current_for_entity("e1")
    assert states[-1].hour_wage_at_event == 17.37
    assert states[-1].fields_changed == ["hour_wage_at_event"]


def test_backfill_writes_run_row(
    sqlite_unit_of_work: Callable[[], SqlAlchemySyncUnitOfWork],
) -> None:
    source = FakeSnapshotSource(
        payloads={("e1", Endpoint.EMPLOYEE): employee_payload("e1")},
        endpoints=(Endpoint.EMPLOYEE,),
    )
    SnapshotCollector(source=source, unit_of_work_factory=sqlite_unit_of_work).collect(
        CollectionMode.SPECIFIC, entity_ids=["e1"]
    )

    result = StateReconstructor(unit_of_work_factory=sqlite_unit_of_work).backfill()

    assert result.run_id is not None
    with sqlite_unit_of_work() as uow:
        run = uow.repositories.runs.get(result.run_id)
    assert run is not None
    assert run.status is SessionStatus.COMPLETED
    assert run.events_processed == 1


def test_resolve_matches_persists_staff_and_conflicts(
    sqlite_unit_of_work: Callable[[], SqlAlchemySyncUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.staff.add(StaffRecord(full_name="Jan Jansen", email="jan@old.example"))
        uow.commit()
    externals = [
        ExternalEmployee(external_id="1", first_name="Jan", surname="Jansen"),
        ExternalEmployee(external_id="2", first_name="Piet", surname="Pieters"),
    ]

    _, summary = resolve_matches(externals, unit_of_work_factory=sqlite_unit_of_work)
    _, rerun = resolve_matches(externals, unit_of_work_factory=sqlite_unit_of_work)

    assert summary.created == 1
    assert summary.updated == 1
    assert rerun.created == 0
    with sqlite_unit_of_work() as uow:
        names = [record.full_name for record in uow.repositories.staff.list_all()]
    assert names == ["Jan Jansen", "Piet Pieters"]
