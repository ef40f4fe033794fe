"""Invocation-request interface for externally triggered runs.

A trigger request names either a collection mode or a reconstruction mode.
The handler validates the request, dispatches to the matching application
entry point and always answers with a structured response; only missing
configuration escapes as an exception.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from logging import getLogger
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from staffsync.adapters.employes import EmployesAPIError
from staffsync.app import collect_snapshots, reconstruct_states
from staffsync.domain.errors import StaffSyncError
from staffsync.domain.model import CollectionMode, ReconstructionMode

log = getLogger(__name__)


class TriggerRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: ReconstructionMode | CollectionMode
    entity_id: str | None = None
    event_id: UUID | None = None
    entity_ids: list[str] | None = None
    batch_size: int | None = Field(default=None, gt=0)
    dry_run: bool = False
    reconstruct: bool = False

    @property
    def is_reconstruction(self) -> bool:
        return isinstance(self.mode, ReconstructionMode)

    @model_validator(mode="after")
    def _check_mode_arguments(self) -> TriggerRequest:
        if self.is_reconstruction:
            if self.entity_ids:
                raise ValueError("entity_ids only applies to collection modes")
            if self.reconstruct:
                raise ValueError("reconstruct only applies to collection modes")
        else:
            if self.dry_run:
                raise ValueError("dry_run only applies to reconstruction modes")
            if self.event_id is not None:
                raise ValueError("event_id only applies to reconstruction modes")
        return self

    def collection_ids(self) -> list[str] | None:
        ids = list(self.entity_ids or [])
        if self.entity_id and self.entity_id not in ids:
            ids.append(self.entity_id)
        return ids or None


class TriggerResponse(BaseModel):
    success: bool
    mode: str | None = None
    dry_run: bool = False
    result: dict[str, Any] | None = None
    error: str | None = None


type CollectHandler = Callable[..., Any]
type ReconstructHandler = Callable[..., Any]


def handle_trigger(
    request: TriggerRequest | Mapping[str, Any],
    *,
    collect: CollectHandler = collect_snapshots,
    reconstruct: ReconstructHandler = reconstruct_states,
    **options: Any,
) -> TriggerResponse:
    """Validate and run one trigger request.

    ``options`` are forwarded to the application entry point (for example a
    unit-of-work factory or a snapshot source).
    """

    mode = request.get("mode") if isinstance(request, Mapping) else request.mode
    try:
        parsed = (
            request
            if isinstance(request, TriggerRequest)
            else TriggerRequest.model_validate(request)
        )
    except ValueError as exc:
        log.warning("Rejected trigger request: %s", exc)
        return TriggerResponse(success=False, mode=_mode_name(mode), error=str(exc))

    try:
        if parsed.is_reconstruction:
            outcome = reconstruct(
                parsed.mode,
                entity_id=parsed.entity_id,
                event_id=parsed.event_id,
                dry_run=parsed.dry_run,
                batch_size=parsed.batch_size,
                **options,
            )
        else:
            outcome = collect(
                parsed.mode,
                entity_ids=parsed.collection_ids(),
                batch_size=parsed.batch_size,
                reconstruct=parsed.reconstruct,
                **options,
            )
    except (StaffSyncError, EmployesAPIError, ValueError) as exc:
        log.exception("Trigger %s failed", parsed.mode)
        return TriggerResponse(
            success=False, mode=str(parsed.mode), dry_run=parsed.dry_run, error=str(exc)
        )

    return TriggerResponse(
        success=True,
        mode=str(parsed.mode),
        dry_run=parsed.dry_run,
        result=outcome.summary(),
    )


def _mode_name(mode: object) -> str | None:
    return None if mode is None else str(mode)
