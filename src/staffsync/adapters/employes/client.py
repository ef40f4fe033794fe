"""HTTP client for the Employes payroll API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from staffsync.adapters.http_resilience import ResilienceConfig, ResilientClient
from staffsync.config import EmployesConfig, get_employes_config
from staffsync.config.sync import DEFAULT_LIST_PAGE_SIZE, DEFAULT_MAX_CONCURRENT_FETCHES
from staffsync.domain.model import Endpoint
from staffsync.domain.ports import EmployeeDirectory, FetchOutcome, FetchStatus, SnapshotSource
from staffsync.domain.retry import BackoffSchedule, FetchClass, RetryState, classify_status

from .schema import EmployeeListPage, EmployeeSummary
from .translator import parse_employee, unwrap_payload

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from staffsync.domain.model import ExternalEmployee

log = getLogger(__name__)

DEFAULT_ENDPOINTS: tuple[str, ...] = (Endpoint.EMPLOYEE, Endpoint.EMPLOYMENTS)


class EmployesAPIError(RuntimeError):
    """Raised when the Employes API listing cannot be read."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class EmployesSnapshotSource:
    """Paginated employee listing and per-employee detail reads.

    Each detail read runs the bounded retry state machine: transport errors and
    unexpected statuses are retried with exponential backoff, while 404 and 403
    end the fetch immediately.
    """

    config: EmployesConfig = field(default_factory=get_employes_config)
    schedule: BackoffSchedule = field(default_factory=BackoffSchedule)
    page_size: int = DEFAULT_LIST_PAGE_SIZE
    max_concurrency: int = DEFAULT_MAX_CONCURRENT_FETCHES
    endpoints: tuple[str, ...] = DEFAULT_ENDPOINTS
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def list_entity_ids(self, *, limit: int | None = None) -> list[str]:
        summaries = asyncio.run(self._list_employees(limit=limit))
        return [summary.id for summary in summaries]

    def list_employees(self) -> list[ExternalEmployee]:
        summaries = asyncio.run(self._list_employees(limit=None))
        return [parse_employee(summary) for summary in summaries]

    def fetch_batch(self, entity_ids: Sequence[str]) -> list[FetchOutcome]:
        return asyncio.run(self._fetch_batch(entity_ids))

    def _company_path(self, suffix: str) -> str:
        return f"{self.config.company_id}/{suffix}"

    def _detail_path(self, entity_id: str, endpoint: str) -> str:
        if endpoint == Endpoint.EMPLOYEE:
            return self._company_path(f"employees/{entity_id}")
        if endpoint == Endpoint.EMPLOYMENTS:
            return self._company_path(f"employees/{entity_id}/employments")
        raise ValueError(f"Unsupported endpoint: {endpoint}")

    async def _list_employees(self, *, limit: int | None) -> list[EmployeeSummary]:
        employees: list[EmployeeSummary] = []
        page = 1
        total_pages: int | None = None
        async with self.client_factory(self.config.resilience) as client:
            while True:
                listing = await self._request_page(client, page)
                if total_pages is None and listing.pages is not None:
                    total_pages = listing.pages
                employees.extend(listing.data)
                if limit is not None and len(employees) >= limit:
                    return employees[:limit]
                if not listing.data:
                    break
                if total_pages is not None:
                    if page >= total_pages:
                        break
                elif len(listing.data) < self.page_size:
                    break
                page += 1
        log.info("Listed %d employee(s) over %d page(s)", len(employees), page)
        return employees

    async def _request_page(self, client: ResilientClient, page: int) -> EmployeeListPage:
        params = {"page": page, "per_page": self.page_size}
        response, state = await self._get_with_retry(
            client, self._company_path("employees"), params=params
        )
        if response is None:
            raise EmployesAPIError(
                f"Employee listing page {page} failed: {state.last_error}"
            )
        if classify_status(response.status_code) is not FetchClass.OK:
            raise EmployesAPIError(
                f"Employee listing page {page} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return EmployeeListPage.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise EmployesAPIError(f"Unexpected employee listing payload: {exc}") from exc

    async def _fetch_batch(self, entity_ids: Sequence[str]) -> list[FetchOutcome]:
        semaphore = asyncio.Semaphore(max(1, self.max_concurrency))
        async with self.client_factory(self.config.resilience) as client:

            async def bounded(entity_id: str, endpoint: str) -> FetchOutcome:
                async with semaphore:
                    return await self._fetch_one(client, entity_id, endpoint)

            return list(
                await asyncio.gather(
                    *(
                        bounded(entity_id, endpoint)
                        for entity_id in entity_ids
                        for endpoint in self.endpoints
                    )
                )
            )

    async def _fetch_one(
        self,
        client: ResilientClient,
        entity_id: str,
        endpoint: str,
    ) -> FetchOutcome:
        response, state = await self._get_with_retry(client, self._detail_path(entity_id, endpoint))
        outcome = FetchOutcome(
            entity_id=entity_id,
            endpoint=endpoint,
            status=FetchStatus.FAILED,
            attempts=state.attempt,
            issues=state.issues,
        )
        if response is None:
            outcome.error = state.last_error
            return outcome

        match classify_status(response.status_code):
            case FetchClass.OK:
                try:
                    outcome.payload = unwrap_payload(response.json())
                except ValueError as exc:
                    outcome.error = f"Malformed payload: {exc}"
                    return outcome
                outcome.status = FetchStatus.OK
            case FetchClass.NOT_FOUND:
                outcome.status = FetchStatus.NO_DATA
                outcome.error = "HTTP 404 Not Found"
            case FetchClass.FORBIDDEN:
                outcome.status = FetchStatus.FORBIDDEN
                outcome.error = "HTTP 403 Forbidden"
            case FetchClass.RETRYABLE:
                outcome.error = state.last_error or f"HTTP {response.status_code}"
        return outcome

    async def _get_with_retry(
        self,
        client: ResilientClient,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> tuple[httpx.Response | None, RetryState]:
        """Return the final response (or ``None`` after transport failures) and the retry trail."""
        state = RetryState(schedule=self.schedule)
        response: httpx.Response | None = None
        while True:
            state.begin()
            try:
                response = await client.get(path, params=params)
            except httpx.HTTPError as exc:
                response = None
                reason = f"{type(exc).__name__}: {exc}"
                classification = FetchClass.RETRYABLE
            else:
                classification = classify_status(response.status_code)
                if classification is FetchClass.OK:
                    state.record_success()
                    return response, state
                reason = f"HTTP {response.status_code}"

            decision = state.record_failure(reason, classification=classification)
            if not decision.retry:
                return response, state
            log.warning(
                "GET %s failed (%s), retrying in %.1fs (attempt %d)",
                path,
                reason,
                decision.delay,
                decision.attempt,
            )
            await self.sleep(decision.delay)


if TYPE_CHECKING:
    _source_check: SnapshotSource = EmployesSnapshotSource()
    _directory_check: EmployeeDirectory = EmployesSnapshotSource()
