"""
Unit tests for scout/discovery/trigger.py

Tests the discovery entry points: configuration failures before any
record exists, a full run returning ranked results, and reading a run
back with get_discovery_status.
"""

import pytest

from scout.common.config import Config
from scout.common.error_handling import ConfigurationError
from scout.discovery.llm_discovery import DiscoveryLLM
from scout.discovery.orchestrator import DiscoveryCoordinator
from scout.discovery.trigger import (
    DiscoveryExecutionResult,
    build_discovery_coordinator,
    get_discovery_status,
    trigger_discovery,
)
from scout.research.llm_research import ResearchLLM
from scout.research.url_validator import UrlValidator

from fakes import FakeChatModel, FakeSearchClient, InMemoryOrganizationStore, make_result


# ===== FIXTURES =====


def discovery_reply(prompt):
    if prompt.startswith("Generate"):
        return {"queries": ["fintech series a 2026"]}
    if prompt.startswith("Extract company names"):
        return {"organizations": [{"name": "Acme"}, {"name": "Beta"}]}
    if prompt.startswith("Analyze how well"):
        if "Beta" in prompt.split("\n")[0]:
            return {"criteria_match_score": 9, "culture_match_score": 9, "opportunity_score": 9, "location_match_score": 9}
        return {"criteria_match_score": 6, "culture_match_score": 6, "opportunity_score": 6, "location_match_score": 6}
    return "Beta leads the pack."


def research_reply(prompt):
    if "Extract contacts" in prompt:
        return {"contacts": []}
    if "executive summary" in prompt:
        return {"summary": "Solid company.", "score": 7}
    return {"signals": [
        {"content": "Signal A", "confidence": 8, "source": "News"},
        {"content": "Signal B", "confidence": 8, "source": "News"},
    ]}


class RunCreationFailsStore(InMemoryOrganizationStore):
    def create_discovery_run(self, profile_id, settings=None):
        raise RuntimeError("db down")


class ProfileLoadFailsStore(InMemoryOrganizationStore):
    def get_profile(self, profile_id):
        raise RuntimeError("boom")


@pytest.fixture
def services():
    return {
        "search_client": FakeSearchClient(default=[make_result("https://techcrunch.com/funding")]),
        "discovery_llm": DiscoveryLLM(llm=FakeChatModel(discovery_reply)),
        "research_llm": ResearchLLM(llm=FakeChatModel(research_reply)),
        "url_validator": UrlValidator(use_llm=False, check_reachability=False),
    }


@pytest.fixture
def profiled_store(store, profile):
    store.save_profile(profile)
    return store


# ===== TESTS: trigger_discovery =====


class TestTriggerDiscovery:
    """Tests for trigger_discovery."""

    def test_full_discovery(self, profiled_store, services):
        """Should complete and return results ranked by fit score."""
        result = trigger_discovery(
            "default", max_organizations=5, batch_size=2, store=profiled_store, **services
        )

        assert isinstance(result, DiscoveryExecutionResult)
        assert result.succeeded
        assert result.final_phase == "complete"
        assert result.organizations_discovered == 2
        assert result.organizations_researched == 2
        assert result.organizations_analyzed == 2
        assert result.summary == "Beta leads the pack."
        assert [r["name"] for r in result.ranked_results] == ["Beta", "Acme"]
        assert result.ranked_results[0]["fit_analysis"]["overall_fit_score"] == 9
        assert profiled_store.discovery_runs[result.run_id]["settings"] == {
            "max_organizations": 5,
            "research_batch_size": 2,
        }

    def test_profile_not_found(self, store, services):
        """Should fail without creating a discovery run."""
        result = trigger_discovery("missing", store=store, **services)

        assert result.status == "failed"
        assert result.run_id is None
        assert result.errors == ["Profile not found: missing"]
        assert store.discovery_runs == {}

    def test_profile_load_failure(self, services):
        """Should report a store failure while loading the profile."""
        result = trigger_discovery("default", store=ProfileLoadFailsStore(), **services)

        assert result.errors == ["Could not load profile default: boom"]

    def test_missing_credentials(self, profiled_store, monkeypatch):
        """Should fail before creating a run when credentials are missing."""
        monkeypatch.setattr(Config, "OPENAI_API_KEY", "")

        result = trigger_discovery("default", store=profiled_store)

        assert result.status == "failed"
        assert "OPENAI_API_KEY" in result.errors[0]
        assert profiled_store.discovery_runs == {}

    def test_missing_store_configuration(self, services):
        """Should report the missing store URI."""
        result = trigger_discovery("default", **services)

        assert result.status == "failed"
        assert "MONGODB_URI" in result.errors[0]

    def test_run_creation_failure(self, profile, services):
        """Should return a failed result when the run record cannot be created."""
        store = RunCreationFailsStore()
        store.save_profile(profile)

        result = trigger_discovery("default", store=store, **services)

        assert result.errors == ["Could not create discovery run: db down"]

    def test_to_dict(self, store, services):
        """Should serialize every field."""
        data = trigger_discovery("missing", store=store, **services).to_dict()

        assert data["status"] == "failed"
        assert data["ranked_results"] == []


class TestBuildDiscoveryCoordinator:
    """Tests for build_discovery_coordinator."""

    def test_injected_services_skip_credential_check(self, store, services, monkeypatch):
        """Should not require credentials when search and LLM are injected."""
        monkeypatch.setattr(Config, "FIRECRAWL_API_KEY", "")

        coordinator = build_discovery_coordinator(store, **services)

        assert isinstance(coordinator, DiscoveryCoordinator)

    def test_missing_credentials_raise(self, store, monkeypatch):
        """Should raise ConfigurationError naming the missing key."""
        monkeypatch.setattr(Config, "FIRECRAWL_API_KEY", "")

        with pytest.raises(ConfigurationError, match="FIRECRAWL_API_KEY"):
            build_discovery_coordinator(store)

    def test_bad_service_argument_becomes_configuration_error(self, store, services):
        """Should wrap construction errors."""
        with pytest.raises(ConfigurationError, match="Could not initialize discovery services"):
            build_discovery_coordinator(store, unknown_option=True, **services)


# ===== TESTS: get_discovery_status =====


class TestGetDiscoveryStatus:
    """Tests for reading a discovery run back."""

    def test_unknown_run(self, store):
        """Should return None for an unknown run."""
        assert get_discovery_status("nope", store=store) is None

    def test_missing_store(self):
        """Should return None when no store is configured."""
        assert get_discovery_status("nope") is None

    def test_reads_completed_run(self, profiled_store, services):
        """Should match the result returned by the run."""
        result = trigger_discovery("default", store=profiled_store, **services)

        status = get_discovery_status(result.run_id, store=profiled_store)

        assert status.status == "complete"
        assert status.final_phase == "complete"
        assert status.summary == "Beta leads the pack."
        assert status.organizations_analyzed == 2
        assert [r["name"] for r in status.ranked_results] == ["Beta", "Acme"]

    def test_failed_run(self, store):
        """Should report a failed run in the error phase."""
        run_id = store.create_discovery_run("default")
        store.update_discovery_run(run_id, {"status": "failed", "errors": ["No organizations found from search queries"]})

        status = get_discovery_status(run_id, store=store)

        assert status.final_phase == "error"
        assert status.errors == ["No organizations found from search queries"]
