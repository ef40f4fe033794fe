"""Temporal state reconstruction by replaying timeline events per employee."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import batched
from typing import TYPE_CHECKING, Any

from staffsync.domain.errors import EventNotFoundError
from staffsync.domain.field_map import field_spec, tracked_fields
from staffsync.domain.model import (
    STATE_FIELDS,
    ReconstructedState,
    ReconstructionMode,
    ReconstructionRun,
    utcnow,
)
from staffsync.domain.payloads import current_document, has_path, read_path

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from datetime import datetime
    from uuid import UUID

    from staffsync.domain.model import SnapshotRecord, TimelineEvent
    from staffsync.domain.ports import StateRepository, SyncUnitOfWork

log = logging.getLogger(__name__)

DEFAULT_TAX_RATE = 0.37
BASE_CHANGE_SOURCE = "snapshot_base"

type StateValues = dict[str, Any]


@dataclass(slots=True)
class ReconstructionResult:
    """Aggregate outcome of one reconstruction invocation."""

    mode: str
    dry_run: bool = False
    events_processed: int = 0
    events_completed: int = 0
    states_written: int = 0
    states_unchanged: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    states: list[ReconstructedState] = field(default_factory=list)
    run_id: UUID | None = None

    @property
    def errors_encountered(self) -> int:
        return len(self.errors)

    @property
    def success_rate(self) -> str:
        if self.events_processed == 0:
            return "0.0%"
        return f"{self.events_completed / self.events_processed * 100:.1f}%"

    def absorb(self, other: ReconstructionResult) -> None:
        self.events_processed += other.events_processed
        self.events_completed += other.events_completed
        self.states_written += other.states_written
        self.states_unchanged += other.states_unchanged
        self.errors.extend(other.errors)
        self.states.extend(other.states)

    def summary(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "events_processed": self.events_processed,
            "events_completed": self.events_completed,
            "states_written": self.states_written,
            "states_unchanged": self.states_unchanged,
            "errors_encountered": self.errors_encountered,
            "errors": list(self.errors),
            "success_rate": self.success_rate,
        }
        if self.run_id is not None:
            data["run_id"] = str(self.run_id)
        return data


# ---------------------------------------------------------------------------
# Pure replay
# ---------------------------------------------------------------------------


def empty_values() -> StateValues:
    return dict.fromkeys(STATE_FIELDS)


def with_derived(values: Mapping[str, Any], *, tax_rate: float = DEFAULT_TAX_RATE) -> StateValues:
    """Recompute derived fields from the monthly wage."""
    result = dict(values)
    month_wage = result.get("month_wage_at_event")
    if month_wage is None:
        result["annual_salary_at_event"] = None
        result["net_monthly_at_event"] = None
    else:
        result["annual_salary_at_event"] = month_wage * 12
        result["net_monthly_at_event"] = float(round(month_wage * (1 - tax_rate)))
    return result


def base_values(
    snapshots: Iterable[SnapshotRecord],
    *,
    tax_rate: float = DEFAULT_TAX_RATE,
) -> StateValues:
    """Merge the earliest snapshot of every endpoint into one base state."""
    values = empty_values()
    for snapshot in sorted(snapshots, key=lambda item: item.endpoint):
        document = current_document(snapshot.payload)
        for spec in tracked_fields(snapshot.endpoint):
            if has_path(document, spec.path):
                values[spec.state_field] = spec.coerce(read_path(document, spec.path))
    return with_derived(values, tax_rate=tax_rate)


def apply_event(
    previous: Mapping[str, Any],
    event: TimelineEvent,
    *,
    tax_rate: float = DEFAULT_TAX_RATE,
) -> StateValues:
    """Overwrite the fields named by ``event`` and recompute derived fields."""
    values = dict(previous)
    for path, raw in event.changes.items():
        spec = field_spec(path)
        values[spec.state_field] = spec.coerce(raw)
    return with_derived(values, tax_rate=tax_rate)


def changed_fields(previous: Mapping[str, Any] | None, current: Mapping[str, Any]) -> list[str]:
    if previous is None:
        return [name for name in STATE_FIELDS if current.get(name) is not None]
    return [name for name in STATE_FIELDS if previous.get(name) != current.get(name)]


@dataclass(slots=True)
class ReplayStep:
    event: TimelineEvent
    state: ReconstructedState | None = None
    error: str | None = None


def replay(
    events: Iterable[TimelineEvent],
    snapshots: Iterable[SnapshotRecord],
    *,
    tax_rate: float = DEFAULT_TAX_RATE,
    computed_at: datetime | None = None,
) -> list[ReplayStep]:
    """Compute one state per event, in ``(event_date, sequence_order)`` order.

    A failing event is reported on its step and skipped; the following events
    continue from the last state that could be computed.
    """
    at = computed_at or utcnow()
    earliest = list(snapshots)
    base_confidence = min((item.confidence_score for item in earliest), default=1.0)
    previous: StateValues | None = None
    version = 0
    steps: list[ReplayStep] = []
    for event in sorted(events, key=lambda item: item.ordering_key):
        step = ReplayStep(event=event)
        steps.append(step)
        try:
            start = previous if previous is not None else base_values(earliest, tax_rate=tax_rate)
            values = apply_event(start, event, tax_rate=tax_rate)
        except (LookupError, TypeError, ValueError) as exc:
            log.exception("Failed to reconstruct state for event %s", event.id)
            step.error = str(exc)
            continue
        version += 1
        step.state = ReconstructedState(
            entity_id=event.entity_id,
            event_id=event.id,
            state_version=version,
            computed_at=at,
            change_source=BASE_CHANGE_SOURCE if previous is None else str(event.event_type),
            change_confidence=base_confidence if previous is None else 1.0,
            fields_changed=changed_fields(previous, values),
            **values,
        )
        previous = values
    return steps


def persist_state(
    repository: StateRepository,
    candidate: ReconstructedState,
    *,
    at: datetime,
) -> bool:
    """Store ``candidate`` unless an identical current state exists.

    Returns ``True`` when a new revision was written. A differing current state is
    superseded rather than deleted.
    """
    revisions = repository.revisions_for_event(candidate.event_id)
    current = next((item for item in revisions if item.is_current), None)
    if current is not None and current.same_content(candidate):
        return False
    if current is not None:
        current.supersede(at=at)
    candidate.revision = max((item.revision for item in revisions), default=0) + 1
    repository.add(candidate)
    return True


def retire_states(repository: StateRepository, event_id: UUID, *, at: datetime) -> int:
    """Supersede the current state of an event that no longer reconstructs."""
    retired = 0
    for state in repository.revisions_for_event(event_id):
        if state.is_current:
            state.supersede(at=at)
            retired += 1
    return retired


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class StateReconstructor:
    """Runs replay over a chosen scope and persists the resulting states.

    Entities are independent and may be processed by several workers; the events
    of one entity are always replayed sequentially inside a single unit of work.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], SyncUnitOfWork],
        tax_rate: float = DEFAULT_TAX_RATE,
        batch_size: int = 10,
        workers: int = 1,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._uow_factory = unit_of_work_factory
        self._tax_rate = tax_rate
        self._batch_size = batch_size
        self._workers = max(1, workers)
        self._clock = clock

    def run(
        self,
        mode: ReconstructionMode | str,
        *,
        entity_id: str | None = None,
        event_id: UUID | None = None,
        dry_run: bool = False,
    ) -> ReconstructionResult:
        match ReconstructionMode(mode):
            case ReconstructionMode.SINGLE_EVENT:
                if event_id is None:
                    raise ValueError("single_event mode requires an event_id")
                return self.reconstruct_event(event_id, dry_run=dry_run)
            case ReconstructionMode.SINGLE_EMPLOYEE:
                if not entity_id:
                    raise ValueError("single_employee mode requires an entity_id")
                return self.reconstruct_entity(entity_id, dry_run=dry_run)
            case ReconstructionMode.ALL_EMPLOYEES:
                return self.reconstruct_all(dry_run=dry_run)
            case ReconstructionMode.BACKFILL_ALL:
                return self.backfill(dry_run=dry_run)

    def reconstruct_event(self, event_id: UUID, *, dry_run: bool = False) -> ReconstructionResult:
        """Reconstruct one event, replaying its predecessors first."""
        with self._uow_factory() as uow:
            event = uow.repositories.timeline.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        result = self._reconstruct(event.entity_id, dry_run=dry_run, until=event)
        result.mode = ReconstructionMode.SINGLE_EVENT
        return result

    def reconstruct_entity(self, entity_id: str, *, dry_run: bool = False) -> ReconstructionResult:
        result = self._reconstruct(entity_id, dry_run=dry_run)
        result.mode = ReconstructionMode.SINGLE_EMPLOYEE
        return result

    def reconstruct_all(self, *, dry_run: bool = False) -> ReconstructionResult:
        with self._uow_factory() as uow:
            entity_ids = uow.repositories.timeline.entity_ids()
        return self._reconstruct_many(
            entity_ids, mode=ReconstructionMode.ALL_EMPLOYEES, dry_run=dry_run
        )

    def backfill(self, *, dry_run: bool = False) -> ReconstructionResult:
        """Reconstruct every entity with events lacking a current state, logging a run row."""
        run = ReconstructionRun(
            mode=ReconstructionMode.BACKFILL_ALL, dry_run=dry_run, started_at=self._clock()
        )
        with self._uow_factory() as uow:
            uow.repositories.runs.add(run)
            uow.commit()
        log.info("Starting reconstruction backfill run %s", run.id)

        try:
            entity_ids = self._pending_entity_ids()
            result = self._reconstruct_many(
                entity_ids, mode=ReconstructionMode.BACKFILL_ALL, dry_run=dry_run
            )
        except Exception as exc:
            self._finish_run(run.id, failure=str(exc))
            raise

        result.run_id = run.id
        self._finish_run(run.id, result=result)
        return result

    def _pending_entity_ids(self) -> list[str]:
        pending: list[str] = []
        with self._uow_factory() as uow:
            repositories = uow.repositories
            for entity_id in repositories.timeline.entity_ids():
                covered = {
                    state.event_id for state in repositories.states.current_for_entity(entity_id)
                }
                events = repositories.timeline.for_entity(entity_id)
                if any(event.id not in covered for event in events):
                    pending.append(entity_id)
        return pending

    def _finish_run(
        self,
        run_id: UUID,
        *,
        result: ReconstructionResult | None = None,
        failure: str | None = None,
    ) -> None:
        with self._uow_factory() as uow:
            run = uow.repositories.runs.get(run_id)
            if run is None:
                raise LookupError(f"Reconstruction run {run_id} disappeared")
            if failure is not None:
                run.fail(message=failure, at=self._clock())
            elif result is not None:
                run.complete(
                    events_processed=result.events_processed,
                    events_completed=result.events_completed,
                    errors=result.errors,
                    at=self._clock(),
                )
            uow.commit()

    def _reconstruct_many(
        self,
        entity_ids: list[str],
        *,
        mode: ReconstructionMode,
        dry_run: bool,
    ) -> ReconstructionResult:
        total = ReconstructionResult(mode=mode, dry_run=dry_run)
        for number, batch in enumerate(batched(entity_ids, self._batch_size), start=1):
            log.info("Reconstructing batch %d (%d employees)", number, len(batch))
            if self._workers > 1:
                with ThreadPoolExecutor(max_workers=self._workers) as pool:
                    partials = list(
                        pool.map(lambda item: self._reconstruct(item, dry_run=dry_run), batch)
                    )
            else:
                partials = [self._reconstruct(item, dry_run=dry_run) for item in batch]
            for partial in partials:
                total.absorb(partial)
        log.info(
            "Reconstruction %s finished: %d/%d events (%s)",
            mode,
            total.events_completed,
            total.events_processed,
            total.success_rate,
        )
        return total

    def _reconstruct(
        self,
        entity_id: str,
        *,
        dry_run: bool,
        until: TimelineEvent | None = None,
    ) -> ReconstructionResult:
        result = ReconstructionResult(mode=ReconstructionMode.SINGLE_EMPLOYEE, dry_run=dry_run)
        events: list[TimelineEvent] = []
        try:
            with self._uow_factory() as uow:
                repositories = uow.repositories
                events = repositories.timeline.for_entity(entity_id)
                if until is not None:
                    events = [e for e in events if e.ordering_key <= until.ordering_key]
                now = self._clock()
                steps = replay(
                    events,
                    repositories.snapshots.earliest_per_endpoint(entity_id),
                    tax_rate=self._tax_rate,
                    computed_at=now,
                )
                written = unchanged = 0
                for step in steps:
                    if step.state is None:
                        if not dry_run:
                            retire_states(repositories.states, step.event.id, at=now)
                        continue
                    result.states.append(step.state)
                    if dry_run:
                        continue
                    if persist_state(repositories.states, step.state, at=now):
                        written += 1
                    else:
                        unchanged += 1
                if not dry_run:
                    uow.commit()
        except Exception as exc:
            log.exception("Reconstruction failed for employee %s", entity_id)
            result.states.clear()
            result.events_processed = max(len(events), 1)
            result.errors.append({"entity_id": entity_id, "error": str(exc)})
            return result

        result.events_processed = len(steps)
        result.events_completed = sum(1 for step in steps if step.state is not None)
        result.states_written = written
        result.states_unchanged = unchanged
        result.errors.extend(
            {"entity_id": entity_id, "event_id": str(step.event.id), "error": step.error}
            for step in steps
            if step.error is not None
        )
        return result
