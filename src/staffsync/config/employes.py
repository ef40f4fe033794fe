"""Employes payroll API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

EMPLOYES_BASE_URL = "https://connect.employes.nl/v4"
EMPLOYES_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class EmployesConfig:
    """Holds Employes API configuration values."""

    api_key: str
    company_id: str
    resilience: ResilienceConfig


def _default_resilience(base_url: str, api_key: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="employes",
        base_url=base_url,
        timeout_seconds=EMPLOYES_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        # Throttling is retried per entity by the collector, with its own attempt count.
        retry=RetryPolicy(status_forcelist=frozenset()),
        default_headers={
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        },
    )


def get_employes_config(*, resilience: ResilienceConfig | None = None) -> EmployesConfig:
    values = require_env_vars(("EMPLOYES_API_KEY", "EMPLOYES_COMPANY_ID"))
    base_url = optional_env_var("EMPLOYES_BASE_URL", EMPLOYES_BASE_URL).rstrip("/")
    api_key = values["EMPLOYES_API_KEY"]
    return EmployesConfig(
        api_key=api_key,
        company_id=values["EMPLOYES_COMPANY_ID"],
        resilience=resilience or _default_resilience(base_url, api_key),
    )
