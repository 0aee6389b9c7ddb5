"""
Unit tests for scout/research/signal_worker.py

Tests one signal iteration: template rotation, recency policy, the
zero-result shortcut, the confidence gate, iteration bounds and error
handling.
"""

from dataclasses import replace

import pytest

from scout.common.agent_config import ResearchSettings
from scout.common.error_handling import ServiceError
from scout.common.types import SignalCategory
from scout.research.llm_research import ResearchLLM
from scout.research.signal_worker import (
    SIGNAL_QUERY_TEMPLATES,
    SignalWorker,
    render_query,
    select_template,
)
from scout.research.state import ResearchPhase, UrlCategory, apply_updates, initial_research_run
from scout.search.web_search import Recency

from fakes import FakeChatModel, FakeSearchClient, make_result


# ===== FIXTURES =====


def _signals_reply(*confidences):
    return {"signals": [
        {"content": f"Signal {i}", "confidence": c, "source": "TechCrunch"}
        for i, c in enumerate(confidences)
    ]}


def _run_in(category, settings=None, organization_name="Acme Robotics"):
    run = initial_research_run(organization_name, settings or ResearchSettings(), research_run_id="run-1")
    return replace(run, phase=ResearchPhase.SIGNALS, current_category=category)


@pytest.fixture
def settings():
    return ResearchSettings()


@pytest.fixture
def results():
    return [
        make_result("https://techcrunch.com/acme-series-b", title="Acme Robotics raises Series B"),
        make_result("https://acmerobotics.com/careers", title="Careers"),
    ]


# ===== TESTS: Query selection =====


class TestQuerySelection:
    def test_round_robin(self):
        """Should cycle through templates by iteration."""
        templates = ["a", "b", "c"]
        assert [select_template(templates, i) for i in range(5)] == ["a", "b", "c", "a", "b"]

    def test_render_query(self):
        """Should substitute company and year."""
        assert render_query('"{company}" jobs {year}', "Acme", year=2026) == '"Acme" jobs 2026'

    def test_every_category_has_templates(self):
        """Each category should have built-in templates."""
        assert all(SIGNAL_QUERY_TEMPLATES[c] for c in SignalCategory)


# ===== TESTS: SignalWorker =====


class TestSignalWorker:
    """Tests for one signal iteration."""

    def test_quality_gate_and_url_extraction(self, settings, results):
        """Should keep signals at or above the threshold and classify result URLs."""
        search = FakeSearchClient(default=results)
        llm = FakeChatModel(_signals_reply(8, 5, 4))
        worker = SignalWorker(search, ResearchLLM(llm=llm))

        update = worker.run(_run_in(SignalCategory.GROWTH_FUNDING), settings)

        assert [s.confidence for s in update["signals"]] == [8, 5]
        assert all(s.category == SignalCategory.GROWTH_FUNDING for s in update["signals"])
        assert update["url_bundle"].url(UrlCategory.CAREERS) == "https://acmerobotics.com/careers"
        state = update["signal_iterations"][SignalCategory.GROWTH_FUNDING]
        assert state.iteration == 1
        assert state.signals_found == 2
        assert state.needs_more_research is False
        assert update["api_calls"] == 2

    def test_category_recency(self, settings, results):
        """Should search job openings with a one-month window."""
        search = FakeSearchClient(default=results)
        worker = SignalWorker(search, ResearchLLM(llm=FakeChatModel(_signals_reply())))

        worker.run(_run_in(SignalCategory.JOB_OPENINGS), settings)

        assert search.calls[0][1] == Recency.LAST_MONTH

    def test_configured_templates_override(self, results):
        """Should use configured templates for the category."""
        settings = ResearchSettings(category_signal_templates={SignalCategory.TECH_STACK_ENGINEERING: ["{company} github"]})
        search = FakeSearchClient(default=results)
        worker = SignalWorker(search, ResearchLLM(llm=FakeChatModel(_signals_reply())))

        worker.run(_run_in(SignalCategory.TECH_STACK_ENGINEERING, settings), settings)

        assert search.queries == ["Acme Robotics github"]

    def test_zero_results_skips_extraction(self, settings):
        """Should advance the iteration without an LLM call when search is empty."""
        llm = FakeChatModel(_signals_reply(9))
        worker = SignalWorker(FakeSearchClient(), ResearchLLM(llm=llm))

        update = worker.run(_run_in(SignalCategory.GROWTH_FUNDING), settings)

        state = update["signal_iterations"][SignalCategory.GROWTH_FUNDING]
        assert llm.prompts == []
        assert state.iteration == 1
        assert state.needs_more_research is True
        assert update["api_calls"] == 1
        assert "signals" not in update

    def test_zero_results_on_last_iteration_stops(self, settings):
        """Should stop once the iteration budget is spent."""
        run = _run_in(SignalCategory.LEADERSHIP_CHANGES)
        run = replace(run, signal_iterations={
            **run.signal_iterations,
            SignalCategory.LEADERSHIP_CHANGES: replace(run.signal_iterations[SignalCategory.LEADERSHIP_CHANGES], iteration=1),
        })
        worker = SignalWorker(FakeSearchClient(), ResearchLLM(llm=FakeChatModel()))

        update = worker.run(run, settings)

        state = update["signal_iterations"][SignalCategory.LEADERSHIP_CHANGES]
        assert state.iteration == 2
        assert state.can_continue is False

    def test_extraction_error_stops_category(self, settings, results):
        """Should record the error, advance and stop the category."""
        worker = SignalWorker(FakeSearchClient(default=results), ResearchLLM(llm=FakeChatModel(RuntimeError("down"))))

        update = worker.run(_run_in(SignalCategory.CULTURE_WORK_STYLE), settings)

        state = update["signal_iterations"][SignalCategory.CULTURE_WORK_STYLE]
        assert state.iteration == 1
        assert state.needs_more_research is False
        assert update["errors"][0].startswith("Signal worker error for culture_work_style")
        assert "signals" not in update

    def test_extraction_error_keeps_classified_urls(self, settings, results):
        """Should still return URLs classified from the search when extraction fails."""
        worker = SignalWorker(FakeSearchClient(default=results), ResearchLLM(llm=FakeChatModel(RuntimeError("down"))))

        update = worker.run(_run_in(SignalCategory.JOB_OPENINGS), settings)

        assert update["errors"][0].startswith("Signal worker error for job_openings")
        assert update["url_bundle"].url(UrlCategory.CAREERS) == "https://acmerobotics.com/careers"

    def test_search_error_stops_category(self, settings):
        """Should treat search failures like extraction failures."""
        search = FakeSearchClient(responses={"Acme": ServiceError("firecrawl", "quota")})
        worker = SignalWorker(search, ResearchLLM(llm=FakeChatModel()))

        update = worker.run(_run_in(SignalCategory.GROWTH_FUNDING), settings)

        assert update["signal_iterations"][SignalCategory.GROWTH_FUNDING].can_continue is False
        assert "firecrawl: quota" in update["errors"][0]

    def test_no_current_category(self, settings):
        """Should report an error when no category is selected."""
        run = initial_research_run("Acme", settings)
        worker = SignalWorker(FakeSearchClient(), ResearchLLM(llm=FakeChatModel()))

        assert worker.run(run, settings) == {"errors": ["No signal category specified for signal worker"]}

    def test_min_signals_reached_over_two_iterations(self, results):
        """One qualifying signal per iteration should satisfy a minimum of two after iteration 2."""
        settings = ResearchSettings(
            min_signals_required=2,
            category_max_iterations={SignalCategory.GROWTH_FUNDING: 3},
        )
        search = FakeSearchClient(default=results)
        worker = SignalWorker(search, ResearchLLM(llm=FakeChatModel(_signals_reply(7))))
        run = _run_in(SignalCategory.GROWTH_FUNDING, settings)

        run = apply_updates(run, worker.run(run, settings))
        assert run.signal_iterations[SignalCategory.GROWTH_FUNDING].needs_more_research is True

        run = apply_updates(run, worker.run(run, settings))
        state = run.signal_iterations[SignalCategory.GROWTH_FUNDING]

        assert state.iteration == 2
        assert state.signals_found == 2
        assert state.needs_more_research is False
        assert state.can_continue is False
        assert len(search.calls) == 2
        assert search.queries[0] != search.queries[1]
