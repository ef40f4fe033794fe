"""Translate Employes payloads into domain objects."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from staffsync.domain.model import ExternalEmployee

if TYPE_CHECKING:
    from staffsync.domain.model import Payload

    from .schema import EmployeeSummary


def unwrap_payload(body: Any) -> Payload:
    """Strip the ``data`` envelope the API wraps most responses in."""
    if isinstance(body, dict) and "data" in body and body["data"] is not None:
        body = body["data"]
    if not isinstance(body, dict | list):
        raise ValueError(f"Unexpected payload type: {type(body).__name__}")
    return body


def parse_employee(summary: EmployeeSummary) -> ExternalEmployee:
    return ExternalEmployee(
        external_id=summary.id,
        first_name=summary.first_name.strip(),
        surname=summary.surname,
        email=summary.email,
        phone_number=summary.phone_number,
        employee_number=summary.employee_number,
        hourly_wage=summary.hourly_wage,
        hours_per_week=summary.hours_per_week,
        status=summary.status,
    )
