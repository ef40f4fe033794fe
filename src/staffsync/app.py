"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from staffsync.adapters.employes import EmployesSnapshotSource
from staffsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemySyncUnitOfWork,
    is_started,
    startup,
)
from staffsync.config import SyncConfig, get_sync_config
from staffsync.domain.collection import CollectionResult, SnapshotCollector
from staffsync.domain.matching import ResolutionSummary, match_employees, resolve_matches
from staffsync.domain.model import ReconstructionMode
from staffsync.domain.reconstruction import ReconstructionResult, StateReconstructor
from staffsync.domain.retry import BackoffSchedule
from staffsync.domain.snapshot_store import SnapshotStore

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from staffsync.domain.model import CollectionMode, EmployeeMatch
    from staffsync.domain.ports import EmployeeDirectory, SnapshotSource, SyncUnitOfWork

UnitOfWorkFactory = Callable[[], "SyncUnitOfWork"]

log = getLogger(__name__)


@dataclass(slots=True)
class CollectionRun:
    collection: CollectionResult
    reconstruction: ReconstructionResult | None = None

    def summary(self) -> dict[str, object]:
        data: dict[str, object] = self.collection.summary()
        if self.reconstruction is not None:
            data["reconstruction"] = self.reconstruction.summary()
        return data


@dataclass(slots=True)
class MatchRun:
    matches: list[EmployeeMatch]
    resolution: ResolutionSummary | None = None

    def summary(self) -> dict[str, object]:
        data: dict[str, object] = {
            "total": len(self.matches),
            "matched": sum(1 for match in self.matches if match.internal is not None),
            "sync_required": sum(1 for match in self.matches if match.sync_required),
            "conflicts": [
                {"external_id": match.external.external_id, "conflicts": match.conflicts}
                for match in self.matches
                if match.conflicts
            ],
        }
        if self.resolution is not None:
            data["resolution"] = self.resolution.summary()
        return data


def _resolve_unit_of_work(factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemySyncUnitOfWork


def _build_source(config: SyncConfig) -> EmployesSnapshotSource:
    return EmployesSnapshotSource(
        schedule=BackoffSchedule(
            max_attempts=config.fetch_attempts,
            base_delay=config.backoff_base_seconds,
        ),
        page_size=config.list_page_size,
        max_concurrency=config.max_concurrent_fetches,
    )


def _build_reconstructor(
    config: SyncConfig,
    unit_of_work_factory: UnitOfWorkFactory,
) -> StateReconstructor:
    return StateReconstructor(
        unit_of_work_factory=unit_of_work_factory,
        tax_rate=config.effective_tax_rate,
        batch_size=config.reconstruction_batch_size,
        workers=config.reconstruction_workers,
    )


def collect_snapshots(
    mode: CollectionMode | str,
    *,
    entity_ids: Sequence[str] | None = None,
    source: SnapshotSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: SyncConfig | None = None,
    batch_size: int | None = None,
    reconstruct: bool = False,
) -> CollectionRun:
    """Collect Employes snapshots, optionally reconstructing states for changed employees."""

    effective_config = config or get_sync_config()
    if batch_size is not None:
        effective_config = replace(effective_config, collection_batch_size=batch_size)
    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    effective_source = source or _build_source(effective_config)
    log.info(
        "Starting snapshot collection: mode=%s, entities=%s, batch_size=%s",
        mode,
        len(entity_ids) if entity_ids else "all",
        effective_config.collection_batch_size,
    )

    collector = SnapshotCollector(
        source=effective_source,
        unit_of_work_factory=effective_uow,
        store=SnapshotStore(),
        batch_size=effective_config.collection_batch_size,
    )
    run = CollectionRun(collection=collector.collect(mode, entity_ids=entity_ids))

    if reconstruct and run.collection.changed_entity_ids:
        reconstructor = _build_reconstructor(effective_config, effective_uow)
        combined = ReconstructionResult(mode=ReconstructionMode.SINGLE_EMPLOYEE)
        for entity_id in run.collection.changed_entity_ids:
            combined.absorb(reconstructor.reconstruct_entity(entity_id))
        run.reconstruction = combined

    log.info(
        "Finished snapshot collection: status=%s, successful=%s/%s, success_rate=%s",
        run.collection.status,
        run.collection.successful,
        run.collection.total,
        run.collection.success_rate,
    )
    return run


def reconstruct_states(
    mode: ReconstructionMode | str,
    *,
    entity_id: str | None = None,
    event_id: UUID | None = None,
    dry_run: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: SyncConfig | None = None,
    batch_size: int | None = None,
) -> ReconstructionResult:
    """Replay timeline events into reconstructed states."""

    effective_config = config or get_sync_config()
    if batch_size is not None:
        effective_config = replace(effective_config, reconstruction_batch_size=batch_size)
    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    log.info("Starting state reconstruction: mode=%s, dry_run=%s", mode, dry_run)

    result = _build_reconstructor(effective_config, effective_uow).run(
        mode, entity_id=entity_id, event_id=event_id, dry_run=dry_run
    )

    log.info(
        "Finished state reconstruction: processed=%s, completed=%s, written=%s, errors=%s",
        result.events_processed,
        result.events_completed,
        result.states_written,
        result.errors_encountered,
    )
    return result


def match_staff(
    *,
    directory: EmployeeDirectory | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: SyncConfig | None = None,
    apply: bool = True,
) -> MatchRun:
    """Match Employes employees against staff records and persist the resolutions."""

    effective_config = config or get_sync_config()
    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    effective_directory = directory or _build_source(effective_config)
    externals = effective_directory.list_employees()
    threshold = effective_config.name_match_threshold
    log.info("Matching %d external employee(s), apply=%s", len(externals), apply)

    if not apply:
        with effective_uow() as uow:
            internal_records = uow.repositories.staff.list_all()
        return MatchRun(matches=match_employees(externals, internal_records, threshold=threshold))

    matches, resolution = resolve_matches(
        externals, unit_of_work_factory=effective_uow, threshold=threshold
    )
    return MatchRun(matches=matches, resolution=resolution)
