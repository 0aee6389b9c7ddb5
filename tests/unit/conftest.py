"""
Global fixtures for all unit tests.

This conftest provides autouse fixtures that prevent real external service calls:
- MongoDB connection attempts (would cause 5-30s timeout per test)
- Credential isolation (mock keys, so nothing reaches OpenAI or Firecrawl)
- Retry back-off (tenacity waits would add seconds per failing call)

Shared doubles live in fakes.py next to this file.
"""

import pytest
from tenacity import wait_none
from unittest.mock import patch, MagicMock

from scout.common.config import Config
from scout.common.rate_limiter import reset_global_registry
from scout.common.repositories import reset_store
from scout.common.types import Profile
from scout.discovery.llm_discovery import DiscoveryLLM
from scout.research.llm_research import ResearchLLM
from scout.search.web_search import WebSearchClient

from fakes import FakeChatModel, FakeSearchClient, InMemoryOrganizationStore


@pytest.fixture(autouse=True)
def mock_mongodb():
    """
    Prevent MongoDB connection attempts in all unit tests.

    MongoClient("") defaults to localhost:27017, causing 5-30s timeout per test.
    """
    with patch("scout.common.repositories.mongo_store.MongoClient") as mock_client:
        mock_instance = MagicMock()
        mock_db = MagicMock()
        mock_collection = MagicMock()

        # Setup chain: client["db"]["collection"]
        mock_instance.__getitem__ = MagicMock(return_value=mock_db)
        mock_db.__getitem__ = MagicMock(return_value=mock_collection)
        mock_collection.find_one = MagicMock(return_value=None)
        mock_collection.find = MagicMock(return_value=[])

        mock_client.return_value = mock_instance
        yield mock_client


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate test environment from real credentials and configurations.

    Config reads the environment at import time, so the class attributes
    are patched directly.
    """
    monkeypatch.setattr(Config, "OPENAI_API_KEY", "sk-test-mock-key")
    monkeypatch.setattr(Config, "FIRECRAWL_API_KEY", "fc-test-mock-key")
    monkeypatch.setattr(Config, "MONGODB_URI", "")
    monkeypatch.delenv("MONGODB_URI", raising=False)
    monkeypatch.setattr(Config, "SCHEDULED_RESEARCH_DELAY_SECONDS", 0)
    reset_global_registry()
    reset_store()
    yield
    reset_global_registry()
    reset_store()


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    """Failing LLM/search calls retry immediately."""
    for retried in (ResearchLLM._invoke, DiscoveryLLM._invoke, WebSearchClient._search_raw):
        monkeypatch.setattr(retried.retry, "wait", wait_none())


# ===== SHARED FIXTURES =====


@pytest.fixture
def store():
    return InMemoryOrganizationStore()


@pytest.fixture
def search_client():
    return FakeSearchClient()


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def profile():
    return Profile(
        id="default",
        target_role="Staff Backend Engineer",
        seniority="staff",
        primary_skills=["Python", "Kubernetes"],
        secondary_skills=["Go"],
        company_stages=["Series A", "Series B"],
        industries=["fintech"],
        location_preferences=["Berlin"],
        remote_ok=True,
        avoid=["crypto"],
        must_have=["remote"],
    )
