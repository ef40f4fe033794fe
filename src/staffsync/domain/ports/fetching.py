"""Ports for fetching data from the external payroll system."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from staffsync.domain.model import ExternalEmployee, Payload


class FetchStatus(StrEnum):
    OK = "ok"
    NO_DATA = "no_data"
    FORBIDDEN = "forbidden"
    FAILED = "failed"


@dataclass(slots=True)
class FetchOutcome:
    """Result of fetching one endpoint for one entity, after retries."""

    entity_id: str
    endpoint: str
    status: FetchStatus
    payload: Payload | None = None
    error: str | None = None
    attempts: int = 0
    issues: list[str] = field(default_factory=list[str])

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK


@runtime_checkable
class SnapshotSource(Protocol):
    """Paginated listing plus per-entity detail reads."""

    @property
    def endpoints(self) -> tuple[str, ...]: ...

    def list_entity_ids(self, *, limit: int | None = None) -> list[str]: ...

    def fetch_batch(self, entity_ids: Sequence[str]) -> list[FetchOutcome]: ...


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Source of external employee records for identity matching."""

    def list_employees(self) -> list[ExternalEmployee]: ...


__all__ = ["EmployeeDirectory", "FetchOutcome", "FetchStatus", "SnapshotSource"]
