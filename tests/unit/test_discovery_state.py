"""
Unit tests for scout/discovery/state.py

Tests the discovery run reducers (organization merge by name, fit
analysis merge by id), the pending/researched/unanalyzed selectors and
the terminal phases.
"""

import pytest

from scout.common.dedupe import organization_key
from scout.discovery.state import (
    DiscoveredOrganization,
    DiscoveryPhase,
    DiscoveryRun,
    FitAnalysisResult,
    apply_updates,
    merge_discovered_organizations,
    merge_fit_analyses,
)


# ===== FIXTURES =====


def org(name, rank, **kwargs):
    return DiscoveredOrganization(
        name=name,
        snippet=f"{name} snippet",
        source_query="fintech series a",
        source_url=f"https://news.example.com/{rank}",
        rank=rank,
        **kwargs,
    )


def analysis(organization_id, score=7, name="Acme"):
    return FitAnalysisResult(
        organization_id=organization_id,
        organization_name=name,
        criteria_match_score=score,
        culture_match_score=score,
        opportunity_score=score,
        location_match_score=score,
        overall_fit_score=score,
        criteria_match_analysis="Good match.",
        positioning_strategy="Lead with payments experience.",
        prioritized_contacts=("c1", "c2"),
    )


# ===== TESTS: merge_discovered_organizations =====


class TestMergeDiscoveredOrganizations:
    """Tests for the organization reducer."""

    def test_appends_new_names_in_order(self):
        """Should keep first-seen order for new names."""
        merged = merge_discovered_organizations([org("Acme", 1)], [org("Beta", 2), org("Gamma", 3)])

        assert [o.name for o in merged] == ["Acme", "Beta", "Gamma"]

    def test_dedupes_case_insensitively(self):
        """Should treat names differing only in case and whitespace as one."""
        merged = merge_discovered_organizations([org("Acme", 1)], [org("  ACME ", 5)])

        assert len(merged) == 1
        assert merged[0].name == "Acme"

    def test_inner_whitespace_matches_store_key(self):
        """Should collapse inner whitespace the same way the store keys organizations."""
        merged = merge_discovered_organizations([org("Acme Robotics", 1)], [org("acme   robotics", 4)])

        assert len(merged) == 1
        assert merged[0].rank == 1
        assert merged[0].key == organization_key("ACME  Robotics")

    def test_update_keeps_rank_and_takes_flags(self):
        """Should take the new id and research flags but keep the original rank."""
        merged = merge_discovered_organizations(
            [org("Acme", 1)],
            [org("Acme", 9, organization_id="org-1", research_complete=True)],
        )

        assert merged[0].rank == 1
        assert merged[0].organization_id == "org-1"
        assert merged[0].research_complete is True

    def test_update_without_id_keeps_existing_id(self):
        """Should not clear a known organization id."""
        merged = merge_discovered_organizations(
            [org("Acme", 1, organization_id="org-1")],
            [org("Acme", 1, research_failed=True)],
        )

        assert merged[0].organization_id == "org-1"
        assert merged[0].research_failed is True

    def test_does_not_mutate_inputs(self):
        """Should return a new list and leave the current one unchanged."""
        current = [org("Acme", 1)]

        merge_discovered_organizations(current, [org("Acme", 1, research_complete=True)])

        assert current[0].research_complete is False


# ===== TESTS: merge_fit_analyses =====


class TestMergeFitAnalyses:
    """Tests for the fit analysis reducer."""

    def test_latest_analysis_wins(self):
        """Should replace an analysis for the same organization id."""
        merged = merge_fit_analyses([analysis("org-1", 5)], [analysis("org-1", 8)])

        assert len(merged) == 1
        assert merged[0].overall_fit_score == 8

    def test_keeps_distinct_ids(self):
        """Should keep analyses for different organizations."""
        merged = merge_fit_analyses([analysis("org-1")], [analysis("org-2")])

        assert {a.organization_id for a in merged} == {"org-1", "org-2"}


# ===== TESTS: FitAnalysisResult =====


class TestFitAnalysisResult:
    """Tests for the persisted analysis record."""

    def test_to_record_lists_contacts(self):
        """Should store prioritized contacts as a list."""
        record = analysis("org-1").to_record()

        assert record["prioritized_contacts"] == ["c1", "c2"]
        assert record["organization_id"] == "org-1"
        assert record["outreach_template"] is None


# ===== TESTS: DiscoveryRun selectors =====


class TestDiscoveryRunSelectors:
    """Tests for pending, researched and unanalyzed selectors."""

    def test_pending_excludes_researched_and_failed(self):
        """Should list only organizations with no research outcome."""
        run = DiscoveryRun(profile_id="default", organizations=[
            org("Acme", 1, organization_id="o1", research_complete=True),
            org("Beta", 2, research_failed=True),
            org("Gamma", 3),
        ])

        assert [o.name for o in run.pending_organizations()] == ["Gamma"]

    def test_pending_is_capped_by_max_organizations(self):
        """Should not return more than max_organizations pending entries."""
        run = DiscoveryRun(
            profile_id="default",
            max_organizations=2,
            organizations=[org("A", 1), org("B", 2), org("C", 3)],
        )

        assert [o.name for o in run.pending_organizations()] == ["A", "B"]

    def test_researched_requires_id(self):
        """Should skip completed entries that never got an organization id."""
        run = DiscoveryRun(profile_id="default", organizations=[
            org("Acme", 1, organization_id="o1", research_complete=True),
            org("Beta", 2, research_complete=True),
        ])

        assert [o.name for o in run.researched_organizations()] == ["Acme"]

    def test_unanalyzed_skips_analyzed_ids(self):
        """Should list researched organizations without an analysis."""
        run = DiscoveryRun(
            profile_id="default",
            organizations=[
                org("Acme", 1, organization_id="o1", research_complete=True),
                org("Beta", 2, organization_id="o2", research_complete=True),
            ],
            fit_analyses=[analysis("o1")],
        )

        assert [o.name for o in run.unanalyzed_organizations()] == ["Beta"]


# ===== TESTS: apply_updates =====


class TestApplyUpdates:
    """Tests for folding partial updates into a run."""

    def test_reducers(self):
        """Should merge organizations and analyses, append errors and sum api_calls."""
        run = DiscoveryRun(
            profile_id="default",
            organizations=[org("Acme", 1)],
            errors=["first"],
            api_calls=2,
        )

        updated = apply_updates(run, {
            "organizations": [org("Beta", 2)],
            "fit_analyses": [analysis("o1")],
            "errors": ["second"],
            "api_calls": 3,
            "phase": DiscoveryPhase.RESEARCHING,
        })

        assert [o.name for o in updated.organizations] == ["Acme", "Beta"]
        assert len(updated.fit_analyses) == 1
        assert updated.errors == ["first", "second"]
        assert updated.api_calls == 5
        assert updated.phase == DiscoveryPhase.RESEARCHING

    def test_does_not_mutate_run(self):
        """Should leave the original run unchanged."""
        run = DiscoveryRun(profile_id="default")

        apply_updates(run, {"queries": ["q1"], "errors": ["boom"]})

        assert run.queries == []
        assert run.errors == []


class TestDiscoveryPhase:
    """Tests for terminal phases."""

    @pytest.mark.parametrize("phase,terminal", [
        (DiscoveryPhase.INIT, False),
        (DiscoveryPhase.DISCOVERING, False),
        (DiscoveryPhase.RESEARCHING, False),
        (DiscoveryPhase.ANALYZING, False),
        (DiscoveryPhase.SYNTHESIZING, False),
        (DiscoveryPhase.COMPLETE, True),
        (DiscoveryPhase.ERROR, True),
    ])
    def test_is_terminal(self, phase, terminal):
        """Only complete and error should be terminal."""
        assert phase.is_terminal is terminal
