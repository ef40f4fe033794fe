"""Helpers for reading loosely-typed external payload documents."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from staffsync.domain.model import Payload

_MISSING: Final = object()

EFFECTIVE_DATE_KEYS: Final[tuple[str, ...]] = (
    "effective_date",
    "start_date",
    "created_at",
    "date",
    "period_start",
    "from_date",
    "contract_start_date",
    "employment_start_date",
)
NESTED_DATE_CONTAINERS: Final[tuple[str, ...]] = ("employment", "contract")

# Placeholder the payroll system emits for "no date".
_NULL_DATE_PREFIX: Final[str] = "0001-01-01"


def current_document(payload: Payload | None) -> dict[str, Any]:
    """Reduce a payload to the document describing the current situation.

    List payloads (employment history) collapse to the item with the latest
    ``start_date``; items without a start date sort first.
    """
    if payload is None:
        return {}
    if isinstance(payload, dict):
        return payload
    items = [item for item in payload if isinstance(item, dict)]
    if not items:
        return {}
    best = items[0]
    best_start = _sortable_date(best.get("start_date"))
    for item in items[1:]:
        start = _sortable_date(item.get("start_date"))
        if start >= best_start:
            best, best_start = item, start
    return best


def read_path(document: dict[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted ``path`` from ``document``."""
    value = lookup_path(document, path)
    return default if value is _MISSING else value


def has_path(document: dict[str, Any], path: str) -> bool:
    return lookup_path(document, path) is not _MISSING


def lookup_path(document: dict[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def parse_datetime(value: Any) -> datetime | None:
    """Parse a payload date or timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported date value: {value!r}")
    text = value.strip()
    if text.startswith(_NULL_DATE_PREFIX):
        return None
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def extract_effective_date(payload: Payload | None) -> datetime | None:
    """Find the domain date a payload describes, if it carries one."""
    document = current_document(payload)
    for key in EFFECTIVE_DATE_KEYS:
        found = _safe_parse(document.get(key))
        if found is not None:
            return found
    for container in NESTED_DATE_CONTAINERS:
        nested = document.get(container)
        if isinstance(nested, dict):
            found = _safe_parse(nested.get("start_date"))
            if found is not None:
                return found
    return None


def _safe_parse(value: Any) -> datetime | None:
    try:
        return parse_datetime(value)
    except ValueError:
        return None


def _sortable_date(value: Any) -> datetime:
    return _safe_parse(value) or datetime.min.replace(tzinfo=UTC)
