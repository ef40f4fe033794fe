"""Identity matching of external employees against internal staff records."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from staffsync.domain.model import (
    EmployeeMatch,
    ExternalEmployee,
    MatchType,
    StaffRecord,
    SyncConflict,
    utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from datetime import datetime

    from staffsync.domain.ports import SyncUnitOfWork

log = logging.getLogger(__name__)

DEFAULT_NAME_THRESHOLD: Final[int] = 80
EXACT_CONFIDENCE: Final[int] = 100

_WHITESPACE = re.compile(r"\s+")
_PHONE_NOISE = re.compile(r"[\s\-()+]")


def normalize_name(name: str | None) -> str:
    if not name:
        return ""
    return _WHITESPACE.sub(" ", name.strip().lower())


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_phone(phone: str | None) -> str:
    """Strip formatting and fold the Dutch country prefix onto a trunk zero."""
    digits = _PHONE_NOISE.sub("", phone or "")
    if digits.startswith("31"):
        digits = "0" + digits[2:]
    return digits


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
        previous = current
    return previous[-1]


def name_similarity(a: str | None, b: str | None) -> int:
    """Edit-distance similarity of two names on a 0-100 scale."""
    left, right = normalize_name(a), normalize_name(b)
    if not left or not right:
        return 0
    longest = max(len(left), len(right))
    return math.floor((longest - levenshtein(left, right)) / longest * 100 + 0.5)


def find_match(
    external: ExternalEmployee,
    internal_records: Sequence[StaffRecord],
    *,
    threshold: int = DEFAULT_NAME_THRESHOLD,
) -> tuple[StaffRecord | None, MatchType, int]:
    """Pick the internal record for ``external``.

    A shared identifier (a stored payroll id or a case-insensitive email) always
    wins. Otherwise the best full-name similarity at or above ``threshold`` is
    accepted; on equal scores the first record encountered is kept. Records
    already linked to a different payroll id are never matched by email or name.
    """
    for record in internal_records:
        if record.employes_id and record.employes_id == external.external_id:
            return record, MatchType.EXACT_IDENTIFIER, EXACT_CONFIDENCE
    candidates = [
        record
        for record in internal_records
        if not record.employes_id or record.employes_id == external.external_id
    ]
    email = normalize_email(external.email)
    if email:
        for record in candidates:
            if normalize_email(record.email) == email:
                return record, MatchType.EXACT_IDENTIFIER, EXACT_CONFIDENCE

    best: StaffRecord | None = None
    best_score = -1
    for record in candidates:
        score = name_similarity(external.full_name, record.full_name)
        if score >= threshold and score > best_score:
            best, best_score = record, score
    if best is None:
        return None, MatchType.NONE, 0
    return best, MatchType.FUZZY_NAME, best_score


def detect_conflicts(external: ExternalEmployee, internal: StaffRecord) -> list[str]:
    """One human-readable line per compared field on which the two records disagree."""
    conflicts: list[str] = []
    if normalize_name(external.full_name) != normalize_name(internal.full_name):
        conflicts.append(
            f'Name: internal="{internal.full_name}" vs external="{external.full_name}"'
        )
    if (
        external.email
        and internal.email
        and normalize_email(external.email) != normalize_email(internal.email)
    ):
        conflicts.append(f'Email: internal="{internal.email}" vs external="{external.email}"')
    if (
        external.phone_number
        and internal.phone_number
        and normalize_phone(external.phone_number) != normalize_phone(internal.phone_number)
    ):
        conflicts.append(
            f'Phone: internal="{internal.phone_number}" vs external="{external.phone_number}"'
        )
    return conflicts


def needs_sync(external: ExternalEmployee, internal: StaffRecord | None) -> bool:
    if internal is None:
        return True
    return (
        internal.employes_id != external.external_id
        or normalize_email(internal.email) != normalize_email(external.email)
        or normalize_phone(internal.phone_number) != normalize_phone(external.phone_number)
        or (internal.employee_number or None) != (external.employee_number or None)
        or internal.hourly_wage != external.hourly_wage
        or internal.hours_per_week != external.hours_per_week
        or (internal.status or None) != (external.status or None)
    )


def match_employee(
    external: ExternalEmployee,
    internal_records: Sequence[StaffRecord],
    *,
    threshold: int = DEFAULT_NAME_THRESHOLD,
) -> EmployeeMatch:
    internal, match_type, confidence = find_match(
        external, internal_records, threshold=threshold
    )
    return EmployeeMatch(
        external=external,
        internal=internal,
        match_type=match_type,
        match_confidence=confidence,
        sync_required=needs_sync(external, internal),
        conflicts=detect_conflicts(external, internal) if internal is not None else [],
    )


def match_employees(
    externals: Iterable[ExternalEmployee],
    internal_records: Sequence[StaffRecord],
    *,
    threshold: int = DEFAULT_NAME_THRESHOLD,
) -> list[EmployeeMatch]:
    return [match_employee(item, internal_records, threshold=threshold) for item in externals]


@dataclass(slots=True)
class ResolutionSummary:
    matched: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    conflicts_logged: int = 0

    def summary(self) -> dict[str, int]:
        return {
            "matched": self.matched,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "conflicts_logged": self.conflicts_logged,
        }


def resolve_matches(
    externals: Iterable[ExternalEmployee],
    *,
    unit_of_work_factory: Callable[[], SyncUnitOfWork],
    threshold: int = DEFAULT_NAME_THRESHOLD,
    clock: Callable[[], datetime] = utcnow,
) -> tuple[list[EmployeeMatch], ResolutionSummary]:
    """Match external employees and persist what the matches imply.

    Unmatched employees become new staff records. Linked records are updated
    only when no field conflicts exist; conflicting pairs are parked as open
    conflicts for manual review and left untouched.
    """
    summary = ResolutionSummary()
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        internal_records = list(repositories.staff.list_all())
        matches: list[EmployeeMatch] = []
        now = clock()
        for external in externals:
            # Earlier links in this batch are visible to the next lookup.
            match = match_employee(external, internal_records, threshold=threshold)
            matches.append(match)
            internal = match.internal
            if internal is None:
                record = _new_staff_record(external, at=now)
                repositories.staff.add(record)
                internal_records.append(record)
                summary.created += 1
                continue
            summary.matched += 1
            if match.conflicts:
                if _log_conflict(uow, internal, match, at=now):
                    summary.conflicts_logged += 1
                continue
            if match.sync_required:
                _apply_external(internal, match.external, at=now)
                summary.updated += 1
            else:
                summary.unchanged += 1
        uow.commit()
    log.info(
        "Resolved %d employee(s): %d created, %d updated, %d conflict(s) logged",
        len(matches),
        summary.created,
        summary.updated,
        summary.conflicts_logged,
    )
    return matches, summary


def _new_staff_record(external: ExternalEmployee, *, at: datetime) -> StaffRecord:
    record = StaffRecord(full_name=external.full_name)
    _apply_external(record, external, at=at)
    return record


def _apply_external(record: StaffRecord, external: ExternalEmployee, *, at: datetime) -> None:
    record.employes_id = external.external_id
    record.email = external.email
    record.phone_number = external.phone_number
    record.employee_number = external.employee_number
    record.hourly_wage = external.hourly_wage
    record.hours_per_week = external.hours_per_week
    record.status = external.status
    record.last_sync_at = at


def _log_conflict(
    uow: SyncUnitOfWork,
    internal: StaffRecord,
    match: EmployeeMatch,
    *,
    at: datetime,
) -> bool:
    conflicts = uow.repositories.conflicts
    for existing in conflicts.open_for(internal.id):
        if existing.external_id == match.external.external_id and sorted(
            existing.conflicts
        ) == sorted(match.conflicts):
            return False
    conflicts.add(
        SyncConflict(
            staff_id=internal.id,
            external_id=match.external.external_id,
            conflicts=list(match.conflicts),
            detected_at=at,
        )
    )
    return True
