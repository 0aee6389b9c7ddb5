"""
Deduplication and name-normalization helpers.

Single source of truth for the keys used to merge organizations and
contacts across queries, batches and persisted records.

Usage:
    from scout.common.dedupe import organization_key, contact_dedupe_key

    organization_key("  Acme Robotics ")
    # Result: "acme robotics"

    contact_dedupe_key("Jane Doe", "CTO", "https://linkedin.com/in/janedoe/")
    # Result: "url|linkedin.com/in/janedoe"
"""

import re
from typing import List, Optional


COMPANY_SUFFIXES = [
    ' Pty Ltd', ' Inc.', ' Inc', ' LLC', ' Ltd.', ' Ltd', ' Corp.', ' Corp',
    ' Co.', ' Co', ' Limited', ' GmbH', ' AG', ' S.A.', ' PLC',
    ' Pty', ' Holdings', ' Group', ' International', ' Technologies', ' Labs',
]


def normalize_for_dedupe(text: Optional[str]) -> str:
    """
    Normalize text for deduplication - remove all non-alphanumeric characters.

    Examples:
        >>> normalize_for_dedupe("McKinsey & Company")
        'mckinseycompany'
        >>> normalize_for_dedupe(None)
        ''
    """
    if not text:
        return ""
    return re.sub(r"[^a-z0-9]", "", text.lower())


def organization_key(name: Optional[str]) -> str:
    """Case-insensitive organization key: one entry per key per discovery run."""
    if not name:
        return ""
    return " ".join(name.split()).lower()


def normalize_profile_url(url: Optional[str]) -> str:
    """Strip scheme, www, query string and trailing slash from a profile link."""
    if not url:
        return ""
    cleaned = url.strip().lower()
    cleaned = re.sub(r"^https?://", "", cleaned)
    cleaned = re.sub(r"^(www\.|[a-z]{2}\.)(?=linkedin\.com)", "", cleaned)
    cleaned = cleaned.split("?", 1)[0].split("#", 1)[0]
    return cleaned.rstrip("/")


def contact_dedupe_key(name: str, title: str, profile_url: Optional[str] = None) -> str:
    """
    Contact key: profile link when present, otherwise (name, title).

    Examples:
        >>> contact_dedupe_key("Jane Doe", "CTO")
        'person|janedoe|cto'
    """
    if profile_url:
        return f"url|{normalize_profile_url(profile_url)}"
    return f"person|{normalize_for_dedupe(name)}|{normalize_for_dedupe(title)}"


def get_company_name_variations(company: str) -> List[str]:
    """
    Generate variations of a company name for URL and title matching.

    Returns the lowercase original first, then the suffix-stripped name,
    the space-stripped form and the hyphenated form.

    Examples:
        >>> get_company_name_variations("Acme Robotics Inc.")
        ['acme robotics inc.', 'acme robotics', 'acmerobotics', 'acme-robotics']
    """
    base = company.strip()
    if not base:
        return []

    variations = [base.lower()]

    stripped = base
    for suffix in COMPANY_SUFFIXES:
        if base.lower().endswith(suffix.lower()):
            stripped = base[:-len(suffix)].strip()
            break  # Only strip one suffix
    stripped = stripped.rstrip(".,").strip()

    core = stripped.lower()
    for candidate in (
        core,
        re.sub(r"[^a-z0-9]", "", core),
        re.sub(r"[^a-z0-9]+", "-", core).strip("-"),
    ):
        if candidate and len(candidate) >= 2 and candidate not in variations:
            variations.append(candidate)

    return variations
