"""Public interface for the Employes adapter."""

from __future__ import annotations

from .client import EmployesAPIError, EmployesSnapshotSource
from .schema import EmployeeListPage, EmployeeSummary
from .translator import parse_employee, unwrap_payload

__all__ = [
    "EmployeeListPage",
    "EmployeeSummary",
    "EmployesAPIError",
    "EmployesSnapshotSource",
    "parse_employee",
    "unwrap_payload",
]
