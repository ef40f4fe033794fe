from __future__ import annotations

import pytest

from staffsync.domain.retry import (
    BackoffSchedule,
    FetchClass,
    RetryState,
    classify_status,
)


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (200, FetchClass.OK),
        (204, FetchClass.OK),
        (404, FetchClass.NOT_FOUND),
        (403, FetchClass.FORBIDDEN),
        (401, FetchClass.RETRYABLE),
        (429, FetchClass.RETRYABLE),
        (500, FetchClass.RETRYABLE),
        (503, FetchClass.RETRYABLE),
    ],
)
def test_classify_status(status: int, expected: FetchClass) -> None:
    assert classify_status(status) is expected


def test_backoff_doubles_from_base_delay() -> None:
    schedule = BackoffSchedule(max_attempts=4, base_delay=1.0)

    assert [schedule.delay_for(attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_backoff_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        BackoffSchedule(max_attempts=0)
    with pytest.raises(ValueError, match="base_delay"):
        BackoffSchedule(base_delay=-1)


def test_retryable_failures_retry_until_budget_is_spent() -> None:
    state = RetryState(schedule=BackoffSchedule(max_attempts=3, base_delay=1.0))
    decisions = []
    for _ in range(3):
        state.begin()
        decisions.append(state.record_failure("HTTP 503", classification=FetchClass.RETRYABLE))

    assert [decision.retry for decision in decisions] == [True, True, False]
    assert [decision.delay for decision in decisions] == [1.0, 2.0, 0.0]
    assert state.exhausted
    assert state.last_error == "HTTP 503"
    assert state.issues == [
        "Attempt 1 failed: HTTP 503",
        "Attempt 2 failed: HTTP 503",
        "Attempt 3 failed: HTTP 503",
    ]


@pytest.mark.parametrize("classification", [FetchClass.NOT_FOUND, FetchClass.FORBIDDEN])
def test_terminal_failures_never_retry(classification: FetchClass) -> None:
    state = RetryState()
    state.begin()

    decision = state.record_failure("terminal", classification=classification)

    assert decision.retry is False
    assert state.attempt == 1


def test_success_after_retry_is_recorded() -> None:
    state = RetryState()
    state.begin()
    state.record_failure("ReadTimeout: timed out", classification=FetchClass.RETRYABLE)
    state.begin()
    state.record_success()

    assert state.issues[-1] == "Succeeded on retry 1"


def test_begin_refuses_to_exceed_budget() -> None:
    state = RetryState(schedule=BackoffSchedule(max_attempts=1))
    state.begin()

    with pytest.raises(RuntimeError):
        state.begin()
