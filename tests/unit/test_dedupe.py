"""
Unit tests for scout/common/dedupe.py
"""

from scout.common.dedupe import (
    contact_dedupe_key,
    get_company_name_variations,
    normalize_for_dedupe,
    normalize_profile_url,
    organization_key,
)


class TestOrganizationKey:
    """Tests for the organization merge key."""

    def test_case_and_whitespace_insensitive(self):
        """Should collapse case and surrounding/inner whitespace."""
        assert organization_key("  Acme   Robotics ") == "acme robotics"
        assert organization_key("ACME ROBOTICS") == organization_key("acme robotics")

    def test_empty(self):
        """Should return an empty key for None."""
        assert organization_key(None) == ""


class TestNormalizeForDedupe:
    def test_strips_punctuation(self):
        """Should keep only lowercase alphanumerics."""
        assert normalize_for_dedupe("McKinsey & Company") == "mckinseycompany"

    def test_none(self):
        """Should return empty string for None."""
        assert normalize_for_dedupe(None) == ""


class TestNormalizeProfileUrl:
    """Tests for profile link normalization."""

    def test_strips_scheme_www_query_and_slash(self):
        """Should reduce equivalent links to one form."""
        variants = [
            "https://www.linkedin.com/in/janedoe/",
            "http://linkedin.com/in/janedoe?trk=abc",
            "https://de.linkedin.com/in/janedoe#about",
        ]
        assert {normalize_profile_url(v) for v in variants} == {"linkedin.com/in/janedoe"}

    def test_empty(self):
        """Should return empty string for None."""
        assert normalize_profile_url(None) == ""


class TestContactDedupeKey:
    """Tests for the contact merge key."""

    def test_link_wins_over_name(self):
        """Two spellings of a name with one link share a key."""
        first = contact_dedupe_key("Jane Doe", "CTO", "https://linkedin.com/in/janedoe")
        second = contact_dedupe_key("Jane A. Doe", "Chief Technology Officer", "https://www.linkedin.com/in/janedoe/")
        assert first == second

    def test_name_and_title_without_link(self):
        """Should key by normalized name and title."""
        assert contact_dedupe_key("Jane Doe", "CTO") == "person|janedoe|cto"
        assert contact_dedupe_key("Jane Doe", "CTO") != contact_dedupe_key("Jane Doe", "CEO")


class TestCompanyNameVariations:
    """Tests for name variations used in URL matching."""

    def test_strips_suffix(self):
        """Should include the suffix-stripped, compact and hyphenated forms."""
        assert get_company_name_variations("Acme Robotics Inc.") == [
            "acme robotics inc.",
            "acme robotics",
            "acmerobotics",
            "acme-robotics",
        ]

    def test_single_word(self):
        """Should not repeat identical variations."""
        assert get_company_name_variations("Stripe") == ["stripe"]

    def test_blank(self):
        """Should return nothing for a blank name."""
        assert get_company_name_variations("   ") == []
