"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Endpoint(StrEnum):
    """Logical data sources per employee in the payroll system."""

    EMPLOYEE = "/employee"
    EMPLOYMENTS = "/employments"


class ChangeType(StrEnum):
    CREATED = "created"
    UPDATED = "updated"


class FieldCategory(StrEnum):
    PERSONAL = "personal"
    SALARY = "salary"
    HOURS = "hours"
    CONTRACT = "contract"
    ROLE = "role"
    STATUS = "status"


class EventType(StrEnum):
    ENTITY_ADDED = "entity_added"
    SALARY_CHANGE = "salary_change"
    HOURS_CHANGE = "hours_change"
    CONTRACT_CHANGE = "contract_change"
    STATUS_CHANGE = "status_change"
    DATA_UPDATE = "data_update"


class SessionStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class CollectionMode(StrEnum):
    TEST = "test"
    SPECIFIC = "specific"
    FULL = "full"
    RETRY_FAILED = "retry_failed"


class ReconstructionMode(StrEnum):
    SINGLE_EVENT = "single_event"
    SINGLE_EMPLOYEE = "single_employee"
    ALL_EMPLOYEES = "all_employees"
    BACKFILL_ALL = "backfill_all"


class MatchType(StrEnum):
    EXACT_IDENTIFIER = "exact_identifier"
    FUZZY_NAME = "fuzzy_name"
    NONE = "none"


class ConflictStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"
