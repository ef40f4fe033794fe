"""Synchronization defaults for collection, reconstruction and matching."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_COLLECTION_BATCH_SIZE = 25
DEFAULT_LIST_PAGE_SIZE = 100
DEFAULT_FETCH_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE_SECONDS = 1.0
DEFAULT_MAX_CONCURRENT_FETCHES = 5
DEFAULT_NAME_MATCH_THRESHOLD = 80
DEFAULT_EFFECTIVE_TAX_RATE = 0.37
DEFAULT_RECONSTRUCTION_BATCH_SIZE = 10


@dataclass(frozen=True, slots=True)
class SyncConfig:
    collection_batch_size: int = DEFAULT_COLLECTION_BATCH_SIZE
    list_page_size: int = DEFAULT_LIST_PAGE_SIZE
    fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS
    backoff_base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS
    max_concurrent_fetches: int = DEFAULT_MAX_CONCURRENT_FETCHES
    name_match_threshold: int = DEFAULT_NAME_MATCH_THRESHOLD
    effective_tax_rate: float = DEFAULT_EFFECTIVE_TAX_RATE
    reconstruction_batch_size: int = DEFAULT_RECONSTRUCTION_BATCH_SIZE
    reconstruction_workers: int = 1


def get_sync_config() -> SyncConfig:
    return SyncConfig()
