"""
Unit tests for scout/discovery/synthesizer.py

Tests the final discovery step: the executive summary, its fallback and
persistence of the completed run.
"""

from scout.discovery.llm_discovery import DiscoveryLLM
from scout.discovery.state import DiscoveredOrganization, DiscoveryPhase, DiscoveryRun, FitAnalysisResult
from scout.discovery.synthesizer import DiscoverySynthesizer

from fakes import FakeChatModel, InMemoryOrganizationStore


# ===== FIXTURES =====


class FailingUpdateStore(InMemoryOrganizationStore):
    def update_discovery_run(self, discovery_run_id, fields):
        raise RuntimeError("db down")


def finished_run(store):
    return DiscoveryRun(
        profile_id="default",
        discovery_run_id=store.create_discovery_run("default"),
        phase=DiscoveryPhase.SYNTHESIZING,
        organizations=[
            DiscoveredOrganization("Acme", "", "q", "", 1, organization_id="o1", research_complete=True),
            DiscoveredOrganization("Beta", "", "q", "", 2, research_failed=True),
        ],
        fit_analyses=[FitAnalysisResult(
            organization_id="o1",
            organization_name="Acme",
            criteria_match_score=8,
            culture_match_score=8,
            opportunity_score=8,
            location_match_score=8,
            overall_fit_score=8,
            criteria_match_analysis="",
            positioning_strategy="Lead with payments work.",
        )],
        errors=["Research failed for Beta: boom"],
    )


# ===== TESTS: DiscoverySynthesizer =====


class TestDiscoverySynthesizer:
    """Tests for DiscoverySynthesizer.run."""

    def test_summary_completes_run(self, store):
        """Should store the summary and counts and mark the run complete."""
        run = finished_run(store)
        chat = FakeChatModel("Acme is the strongest match.")

        updates = DiscoverySynthesizer(store, DiscoveryLLM(llm=chat)).run(run)

        assert updates == {
            "phase": DiscoveryPhase.COMPLETE,
            "summary": "Acme is the strongest match.",
            "errors": [],
            "api_calls": 1,
        }
        stored = store.get_discovery_run(run.discovery_run_id)
        assert stored["status"] == "complete"
        assert stored["summary"] == "Acme is the strongest match."
        assert stored["organizations_discovered"] == 2
        assert stored["organizations_researched"] == 1
        assert stored["organizations_analyzed"] == 1
        assert stored["errors"] == ["Research failed for Beta: boom"]
        assert "1. Acme (Score: 8/10) - Lead with payments work." in chat.prompts[0]

    def test_summary_failure_uses_fallback(self, store):
        """Should fall back to the fixed sentence and record the failure."""
        run = finished_run(store)
        chat = FakeChatModel(RuntimeError("timeout"))

        updates = DiscoverySynthesizer(store, DiscoveryLLM(llm=chat)).run(run)

        assert updates["phase"] == DiscoveryPhase.COMPLETE
        assert updates["summary"].startswith("Discovered 2 companies, researched 1, and analyzed 1 for fit.")
        assert updates["errors"] == ["Summary generation failed: llm: summary generation failed: timeout"]
        assert updates["api_calls"] == 0
        assert store.get_discovery_run(run.discovery_run_id)["errors"][-1].startswith("Summary generation failed")

    def test_store_failure_still_completes(self):
        """Should complete the run in memory and record the save failure."""
        store = FailingUpdateStore()
        run = finished_run(store)

        updates = DiscoverySynthesizer(store, DiscoveryLLM(llm=FakeChatModel("Done."))).run(run)

        assert updates["phase"] == DiscoveryPhase.COMPLETE
        assert updates["errors"] == ["Discovery run not saved: db down"]

    def test_run_without_id_skips_persistence(self, store):
        """Should not touch the store for an unsaved run."""
        run = DiscoveryRun(profile_id="default", phase=DiscoveryPhase.SYNTHESIZING)

        updates = DiscoverySynthesizer(store, DiscoveryLLM(llm=FakeChatModel("Nothing found."))).run(run)

        assert updates["summary"] == "Nothing found."
        assert store.discovery_runs == {}
