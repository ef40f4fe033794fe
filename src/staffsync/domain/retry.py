"""Bounded retry state machine for per-entity fetches.

The state machine never sleeps itself; callers ask it for the next decision and
perform the wait with whatever clock they were given, which keeps retries testable
without real delays.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class FetchClass(StrEnum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    RETRYABLE = "retryable"


def classify_status(status_code: int) -> FetchClass:
    """Map an HTTP status code onto the fetch outcome taxonomy."""
    if 200 <= status_code < 300:
        return FetchClass.OK
    if status_code == 404:
        return FetchClass.NOT_FOUND
    if status_code == 403:
        return FetchClass.FORBIDDEN
    return FetchClass.RETRYABLE


@dataclass(frozen=True, slots=True)
class BackoffSchedule:
    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the 1-based ``attempt`` failed."""
        return self.base_delay * self.multiplier ** (attempt - 1)


@dataclass(frozen=True, slots=True)
class RetryDecision:
    retry: bool
    delay: float
    attempt: int


@dataclass(slots=True)
class RetryState:
    """Tracks attempts for one fetch and decides whether to try again."""

    schedule: BackoffSchedule = field(default_factory=BackoffSchedule)
    attempt: int = 0
    issues: list[str] = field(default_factory=list[str])
    last_error: str | None = None

    def begin(self) -> int:
        if self.exhausted:
            raise RuntimeError("Retry budget exhausted")
        self.attempt += 1
        return self.attempt

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.schedule.max_attempts

    def record_failure(self, reason: str, *, classification: FetchClass) -> RetryDecision:
        self.last_error = reason
        self.issues.append(f"Attempt {self.attempt} failed: {reason}")
        if classification is not FetchClass.RETRYABLE or self.exhausted:
            return RetryDecision(retry=False, delay=0.0, attempt=self.attempt)
        return RetryDecision(
            retry=True,
            delay=self.schedule.delay_for(self.attempt),
            attempt=self.attempt,
        )

    def record_success(self) -> None:
        if self.attempt > 1:
            self.issues.append(f"Succeeded on retry {self.attempt - 1}")
