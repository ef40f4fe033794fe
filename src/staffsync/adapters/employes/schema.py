"""Pydantic models describing the Employes API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_text(value: object) -> object:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class EmployesBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EmployeeSummary(EmployesBaseModel):
    """Employee row as returned by the paginated listing."""

    id: str
    first_name: str = ""
    surname: str | None = Field(default=None, alias="last_name")
    email: str | None = None
    phone_number: str | None = None
    employee_number: str | None = None
    hourly_wage: float | None = None
    hours_per_week: float | None = None
    status: str | None = None

    _normalize_text = field_validator(
        "id", "surname", "email", "phone_number", "employee_number", "status", mode="before"
    )(_to_text)


class EmployeeListPage(EmployesBaseModel):
    """One page of the employee listing.

    ``pages`` and ``total`` are only guaranteed on the first page.
    """

    data: list[EmployeeSummary] = Field(default_factory=list[EmployeeSummary])
    pages: int | None = None
    total: int | None = None
