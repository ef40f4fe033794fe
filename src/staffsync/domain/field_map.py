"""Static table mapping external payload field paths onto reconstructed state fields.

The table is validated when the module is imported so an entry that points at a
missing state field fails loudly instead of silently dropping data.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

from staffsync.domain.errors import FieldMapError, UnknownFieldPathError
from staffsync.domain.model import DERIVED_STATE_FIELDS, STATE_FIELDS, Endpoint, FieldCategory
from staffsync.domain.payloads import parse_datetime

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class ValueKind(StrEnum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        return float(value.strip().replace(",", "."))
    raise ValueError(f"Expected a number, got {value!r}")


def _coerce_date(value: Any) -> str | None:
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    return parsed.date().isoformat()


_COERCERS: Final[dict[ValueKind, Callable[[Any], Any]]] = {
    ValueKind.TEXT: _coerce_text,
    ValueKind.NUMBER: _coerce_number,
    ValueKind.DATE: _coerce_date,
}


@dataclass(frozen=True, slots=True)
class FieldSpec:
    path: str
    endpoint: Endpoint
    state_field: str
    label: str
    category: FieldCategory
    kind: ValueKind = ValueKind.TEXT

    def coerce(self, value: Any) -> Any:
        """Convert a raw payload value into the state field's representation."""
        return _COERCERS[self.kind](value)

    @property
    def is_significant(self) -> bool:
        return self.category is not FieldCategory.PERSONAL


_EMP = Endpoint.EMPLOYEE
_JOB = Endpoint.EMPLOYMENTS
_NUM = ValueKind.NUMBER
_DATE = ValueKind.DATE
_PERSONAL = FieldCategory.PERSONAL
_SALARY = FieldCategory.SALARY
_HOURS = FieldCategory.HOURS
_CONTRACT = FieldCategory.CONTRACT
_ROLE = FieldCategory.ROLE

TRACKED_FIELDS: Final[tuple[FieldSpec, ...]] = (
    # profile
    FieldSpec("employee_number", _EMP, "employee_number_at_event", "Employee number", _PERSONAL),
    FieldSpec("email", _EMP, "email_at_event", "Email", _PERSONAL),
    FieldSpec("first_name", _EMP, "first_name_at_event", "First name", _PERSONAL),
    FieldSpec("surname", _EMP, "last_name_at_event", "Last name", _PERSONAL),
    FieldSpec("date_of_birth", _EMP, "birth_date_at_event", "Date of birth", _PERSONAL, _DATE),
    FieldSpec("phone_number", _EMP, "phone_number_at_event", "Phone number", _PERSONAL),
    FieldSpec("hourly_wage", _EMP, "hour_wage_at_event", "Hourly wage", _SALARY, _NUM),
    FieldSpec("hours_per_week", _EMP, "hours_per_week_at_event", "Hours per week", _HOURS, _NUM),
    FieldSpec("days_per_week", _EMP, "days_per_week_at_event", "Days per week", _HOURS, _NUM),
    FieldSpec("manager.name", _EMP, "manager_name_at_event", "Manager", _ROLE),
    FieldSpec("status", _EMP, "status_at_event", "Status", FieldCategory.STATUS),
    # employment history
    FieldSpec("start_date", _JOB, "contract_start_date_at_event", "Start date", _CONTRACT, _DATE),
    FieldSpec("end_date", _JOB, "contract_end_date_at_event", "End date", _CONTRACT, _DATE),
    FieldSpec("employment_type", _JOB, "employment_type_at_event", "Employment type", _CONTRACT),
    FieldSpec("contract.contract_id", _JOB, "contract_id_at_event", "Contract id", _CONTRACT),
    FieldSpec("contract.contract_type", _JOB, "contract_type_at_event", "Contract type", _CONTRACT),
    FieldSpec("contract.phase", _JOB, "phase_at_event", "Contract phase", _CONTRACT),
    FieldSpec("contract.hours_per_week", _JOB, "hours_per_week_at_event", "Hours", _HOURS, _NUM),
    FieldSpec("salary.month_wage", _JOB, "month_wage_at_event", "Monthly wage", _SALARY, _NUM),
    FieldSpec("salary.hour_wage", _JOB, "hour_wage_at_event", "Hourly wage", _SALARY, _NUM),
    FieldSpec("function.name", _JOB, "function_name_at_event", "Function", _ROLE),
    FieldSpec("cost_center.name", _JOB, "cost_center_name_at_event", "Cost center", _ROLE),
    FieldSpec("cost_center.code", _JOB, "cost_center_code_at_event", "Cost center code", _ROLE),
)

# Renamed or legacy paths still found in stored event data.
FIELD_ALIASES: Final[dict[str, str]] = {
    "last_name": "surname",
    "birth_date": "date_of_birth",
    "phone": "phone_number",
    "hour_wage": "salary.hour_wage",
    "month_wage": "salary.month_wage",
    "salary_at_event": "salary.month_wage",
    "hours_at_event": "contract.hours_per_week",
    "contract_type": "contract.contract_type",
    "contract.hours": "contract.hours_per_week",
    "phase": "contract.phase",
    "function": "function.name",
    "contract_start_date": "start_date",
    "contract_end_date": "end_date",
}

REQUIRED_FIELDS: Final[dict[Endpoint, tuple[str, ...]]] = {
    Endpoint.EMPLOYEE: ("id", "first_name"),
    Endpoint.EMPLOYMENTS: ("start_date",),
}


def validate_field_map(
    specs: Iterable[FieldSpec] = TRACKED_FIELDS,
    aliases: Mapping[str, str] = FIELD_ALIASES,
) -> dict[str, FieldSpec]:
    """Index ``specs`` by path, raising ``FieldMapError`` on any inconsistency."""
    known_state_fields = set(STATE_FIELDS)
    index: dict[str, FieldSpec] = {}
    for spec in specs:
        if spec.path in index:
            raise FieldMapError(f"Duplicate field path: {spec.path}")
        if spec.state_field not in known_state_fields:
            raise FieldMapError(f"{spec.path} maps to unknown state field {spec.state_field}")
        if spec.state_field in DERIVED_STATE_FIELDS:
            raise FieldMapError(f"{spec.path} maps to derived state field {spec.state_field}")
        index[spec.path] = spec
    for alias, target in aliases.items():
        if alias in index:
            raise FieldMapError(f"Alias shadows a tracked path: {alias}")
        if target not in index:
            raise FieldMapError(f"Alias {alias} points at untracked path {target}")
    return index


_BY_PATH: Final[dict[str, FieldSpec]] = validate_field_map()


def field_spec(path: str) -> FieldSpec:
    """Resolve ``path`` (or one of its aliases) to its tracked field spec."""
    canonical = FIELD_ALIASES.get(path, path)
    try:
        return _BY_PATH[canonical]
    except KeyError:
        raise UnknownFieldPathError(path) from None


def state_field_for(path: str) -> str:
    return field_spec(path).state_field


def tracked_fields(endpoint: str | None = None) -> tuple[FieldSpec, ...]:
    if endpoint is None:
        return TRACKED_FIELDS
    return tuple(spec for spec in TRACKED_FIELDS if spec.endpoint == endpoint)


def missing_required_fields(endpoint: str, document: Mapping[str, Any]) -> list[str]:
    try:
        required = REQUIRED_FIELDS[Endpoint(endpoint)]
    except ValueError:
        return []
    return [name for name in required if document.get(name) in (None, "")]
