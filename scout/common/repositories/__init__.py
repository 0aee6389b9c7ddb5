"""
Repository Pattern for MongoDB Operations

Public API:
- get_store(): Factory to get the organization store instance
- reset_store(): Drop the singleton (tests, config changes)
- OrganizationStoreInterface: Abstract interface used by discovery and research
- ResearchStatus: organization research_status values

Usage:
    from scout.common.repositories import get_store

    store = get_store()
    org = store.get_or_create_organization("Acme Corp", profile_id="default")
"""

from .base import OrganizationStoreInterface, ResearchStatus, rank_discovery_results
from .config import StoreConfig, get_store, reset_store

__all__ = [
    "get_store",
    "reset_store",
    "OrganizationStoreInterface",
    "ResearchStatus",
    "StoreConfig",
    "rank_discovery_results",
]
