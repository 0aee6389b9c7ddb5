"""
Unit tests for scout/research/url_classifier.py

Tests URL safety, ownership confidence, page-kind classification and
bundle extraction from search results.
"""

import pytest

from scout.research.state import UrlCategory
from scout.research.url_classifier import (
    belongs_confidence,
    classify_result,
    extract_founded_year,
    extract_urls_from_results,
    is_obviously_invalid_url,
)

from fakes import make_result


# ===== TESTS: is_obviously_invalid_url =====


class TestIsObviouslyInvalidUrl:
    """Tests for the URL blocklist."""

    @pytest.mark.parametrize("url", [
        None,
        "",
        "ftp://acme.io/file",
        "https://www.google.com/search?q=acme",
        "https://www.google.com/url?q=https://acme.io",
        "https://webcache.googleusercontent.com/search?q=cache:acme.io",
        "https://t.co/AbC123",
        "https://bit.ly/acme",
        "not a url",
    ])
    def test_rejects(self, url):
        """Should reject empty, non-http, search-engine and shortener URLs."""
        assert is_obviously_invalid_url(url) is True

    @pytest.mark.parametrize("url", [
        "https://acmerobotics.com/careers",
        "https://acmerobot.co/about",
        "http://www.acme.io",
    ])
    def test_accepts(self, url):
        """Should accept ordinary organization pages."""
        assert is_obviously_invalid_url(url) is False


# ===== TESTS: belongs_confidence =====


class TestBelongsConfidence:
    """Tests for the ownership confidence tiers."""

    def test_known_domain(self):
        """Should give 0.95 when the host contains the known domain."""
        confidence = belongs_confidence(
            "https://careers.acmerobotics.com/jobs", "Jobs", "Acme Robotics", "https://www.acmerobotics.com/"
        )
        assert confidence == 0.95

    def test_name_in_url(self):
        """Should give 0.7 when a compact name variant is in the URL."""
        assert belongs_confidence("https://acmerobotics.com/careers", "", "Acme Robotics") == 0.7

    def test_name_in_title_only(self):
        """Should give 0.6 when only the title mentions the organization."""
        confidence = belongs_confidence("https://news.example.com/story", "Acme Robotics raises $20M", "Acme Robotics")
        assert confidence == 0.6

    def test_unrelated(self):
        """Should give 0 for unrelated pages."""
        assert belongs_confidence("https://example.com/jobs", "Jobs at Example", "Acme Robotics") == 0.0


# ===== TESTS: classify_result =====


class TestClassifyResult:
    """Tests for per-result page-kind classification."""

    def test_careers_page(self):
        """Should classify an owned careers path."""
        result = make_result("https://acmerobotics.com/careers", title="Careers at Acme")
        assert classify_result(result, "Acme Robotics") == {UrlCategory.CAREERS: 0.7}

    def test_culture_page(self):
        """Should classify an owned about/values page."""
        result = make_result("https://acmerobotics.com/about-us/", title="About")
        assert classify_result(result, "Acme Robotics") == {UrlCategory.CULTURE: 0.7}

    def test_glassdoor_reviews(self):
        """Should classify a matching Glassdoor page as reviews only."""
        result = make_result(
            "https://www.glassdoor.com/Reviews/Acme-Robotics-Reviews-E123.htm",
            title="Acme Robotics Reviews",
        )
        assert classify_result(result, "Acme Robotics") == {UrlCategory.REVIEWS: 0.7}

    def test_crunchbase_funding(self):
        """Should classify a matching funding profile."""
        result = make_result(
            "https://www.crunchbase.com/organization/acme-robotics",
            title="Acme Robotics - Crunchbase Company Profile",
        )
        assert classify_result(result, "Acme Robotics") == {UrlCategory.FUNDING: 0.7}

    def test_job_board_never_careers(self):
        """Job boards should never become the careers page."""
        result = make_result("https://www.linkedin.com/company/acme-robotics/jobs", title="Acme Robotics jobs")
        assert classify_result(result, "Acme Robotics") == {}

    def test_other_companys_glassdoor(self):
        """Should ignore review pages of other organizations."""
        result = make_result("https://www.glassdoor.com/Reviews/Globex-Reviews-E9.htm", title="Globex Reviews")
        assert classify_result(result, "Acme Robotics") == {}

    def test_invalid_url(self):
        """Should ignore blocklisted links."""
        result = make_result("https://www.google.com/search?q=acme+robotics+careers", title="Acme Robotics careers")
        assert classify_result(result, "Acme Robotics") == {}


# ===== TESTS: extract_founded_year =====


class TestExtractFoundedYear:
    def test_founded_in(self):
        """Should read the year from a snippet naming the organization."""
        assert extract_founded_year("Acme Robotics was founded in 2015 in Berlin.", "Acme Robotics", 2026) == 2015

    def test_requires_name(self):
        """Should ignore snippets about other organizations."""
        assert extract_founded_year("Globex was founded in 1999.", "Acme Robotics", 2026) is None

    def test_rejects_future_year(self):
        """Should ignore implausible years."""
        assert extract_founded_year("Acme Robotics established 2099", "Acme Robotics", 2026) is None


# ===== TESTS: extract_urls_from_results =====


class TestExtractUrlsFromResults:
    """Tests for bundle extraction."""

    def test_best_confidence_wins_with_alternates(self):
        """Should keep the most confident candidate and list the rest."""
        results = [
            make_result("https://jobs.example.com/careers", title="Acme Robotics careers"),
            make_result("https://acmerobotics.com/careers", title="Careers"),
        ]

        bundle = extract_urls_from_results(results, "Acme Robotics")

        assert bundle.url(UrlCategory.CAREERS) == "https://acmerobotics.com/careers"
        assert bundle.confidence(UrlCategory.CAREERS) == 0.7
        assert bundle.alternates[UrlCategory.CAREERS] == ("https://jobs.example.com/careers",)

    def test_founded_year_from_snippet(self):
        """Should pick up the first founding year mentioned."""
        results = [make_result("https://example.com/a", title="Profile", snippet="Acme Robotics, founded 2018, builds arms")]

        bundle = extract_urls_from_results(results, "Acme Robotics")

        assert bundle.founded_year == 2018
        assert bundle.urls == {}

    def test_empty_results(self):
        """Should return an empty bundle."""
        assert extract_urls_from_results([], "Acme Robotics").is_empty
