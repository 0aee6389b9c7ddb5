"""
Store Configuration and Factory

Provides the factory function that returns the organization store
configured from the environment.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .base import OrganizationStoreInterface

logger = logging.getLogger(__name__)


@dataclass
class StoreConfig:
    """
    Configuration for store initialization.

    Loaded from environment variables with sensible defaults.
    """
    atlas_uri: str
    database: str = "scout"

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - MONGODB_URI (required): Atlas MongoDB connection string
        - MONGODB_DATABASE: database name (default "scout")

        Raises:
            ValueError: If MONGODB_URI is not set
        """
        atlas_uri = os.getenv("MONGODB_URI")
        if not atlas_uri:
            raise ValueError("MONGODB_URI environment variable is required")
        return cls(
            atlas_uri=atlas_uri,
            database=os.getenv("MONGODB_DATABASE", "scout"),
        )


# Singleton store instance
_store_instance: Optional[OrganizationStoreInterface] = None


def get_store() -> OrganizationStoreInterface:
    """
    Get the organization store instance.

    Uses singleton pattern for connection pooling.

    Raises:
        ValueError: If MongoDB URI is not configured
    """
    global _store_instance

    if _store_instance is None:
        config = StoreConfig.from_env()

        from .mongo_store import AtlasOrganizationStore
        _store_instance = AtlasOrganizationStore(
            mongodb_uri=config.atlas_uri,
            database=config.database,
        )
        logger.info("Initialized Atlas organization store")

    return _store_instance


def reset_store() -> None:
    """
    Reset the store singleton.

    Used for testing or when configuration changes.
    """
    global _store_instance

    if _store_instance is not None:
        from .mongo_store import AtlasOrganizationStore
        if isinstance(_store_instance, AtlasOrganizationStore):
            AtlasOrganizationStore.reset_connection()

    _store_instance = None
    logger.info("Store singleton reset")
