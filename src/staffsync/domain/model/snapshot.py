"""Temporal snapshot records of external payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


type Payload = dict[str, Any] | list[Any]


@dataclass(eq=False, kw_only=True)
class SnapshotRecord(Entity):
    """One ingested payload for one entity from one endpoint.

    Rows are append-only: a newer divergent payload closes the current row
    (``is_latest=False``, ``effective_to`` set) instead of replacing it.
    """

    entity_id: str
    endpoint: str
    payload: Payload
    content_hash: str
    collected_at: datetime = field(default_factory=utcnow)
    last_verified_at: datetime = field(default_factory=utcnow)
    effective_from: datetime = field(default_factory=utcnow)
    effective_to: datetime | None = None
    is_latest: bool = True
    confidence_score: float = 1.0
    is_partial: bool = False
    error_message: str | None = None
    sync_session_id: UUID | None = None

    def verify(self, *, at: datetime, session_id: UUID | None) -> None:
        """Record that an identical payload was observed again."""
        self.last_verified_at = at
        self.sync_session_id = session_id

    def close(self, *, at: datetime) -> None:
        self.is_latest = False
        self.effective_to = at
