"""
Contact Worker

One call = one people search: extract contacts, keep enabled types, drop
anyone already known, and cap the total at max_contacts.
"""

import uuid
from dataclasses import replace
from typing import Any, Dict, List, Set

from scout.common.agent_config import ResearchSettings
from scout.common.dedupe import contact_dedupe_key
from scout.common.logger import get_logger
from scout.research.llm_research import ResearchLLM
from scout.research.signal_worker import render_query, select_template
from scout.research.state import DiscoveredContact, ResearchRun
from scout.search.web_search import WebSearchClient


CONTACT_QUERY_TEMPLATES: List[str] = [
    # Leadership / C-suite
    'site:linkedin.com/in "{company}" CEO OR CTO OR "Chief Technology Officer" OR "Chief Executive"',
    'site:linkedin.com/in "{company}" "Co-founder" OR "Founder" OR "Co-Founder"',
    # Directors and VPs
    'site:linkedin.com/in "{company}" "VP Engineering" OR "VP Product" OR "Vice President"',
    'site:linkedin.com/in "{company}" "Director of Engineering" OR "Director of Product" OR "Engineering Director"',
    # Managers
    'site:linkedin.com/in "{company}" "Engineering Manager" OR "Product Manager" OR "Hiring Manager"',
    'site:linkedin.com/in "{company}" "Technical Program Manager" OR "Program Manager"',
    # Tech leads and senior ICs
    'site:linkedin.com/in "{company}" "Tech Lead" OR "Staff Engineer" OR "Principal Engineer"',
    'site:linkedin.com/in "{company}" "Senior Software Engineer" OR "Lead Engineer"',
    # Recruiters
    'site:linkedin.com/in "{company}" recruiter OR "talent acquisition" OR "people operations"',
    # Announcements and startup press
    '"{company}" "head of engineering" OR "engineering lead" announcement OR hired OR joins',
    '"{company}" startup founder CTO CEO site:techcrunch.com OR site:crunchbase.com OR site:linkedin.com',
]

CONTACT_SOURCE = "Web Search"


def _known_keys(contacts: List[DiscoveredContact]) -> Set[str]:
    """Both keys per contact, so a later hit without a link still matches by name/title."""
    keys = set()
    for contact in contacts:
        keys.add(contact.dedupe_key)
        keys.add(contact_dedupe_key(contact.name, contact.title))
    return keys


class ContactWorker:
    """Runs one contact search iteration."""

    def __init__(self, search_client: WebSearchClient, research_llm: ResearchLLM):
        self.search_client = search_client
        self.research_llm = research_llm

    def run(self, run: ResearchRun, settings: ResearchSettings) -> Dict[str, Any]:
        logger = get_logger(__name__, run_id=run.research_run_id, stage="contact_worker")
        state = run.contact_iteration
        templates = settings.contact_templates or CONTACT_QUERY_TEMPLATES
        query = render_query(select_template(templates, state.iteration), run.organization_name)

        logger.info(f"Contact iteration {state.iteration + 1}/{state.max_iterations}: {query}")

        try:
            # People search has no recency window
            results = self.search_client.search(query)

            if not results:
                logger.info("No contact search results")
                return {
                    "contact_iteration": replace(state, iteration=state.iteration + 1),
                    "api_calls": 1,
                }

            extracted = self.research_llm.extract_contacts(
                results,
                run.organization_name,
                custom_prompt=settings.contact_prompt,
            )

            seen = _known_keys(run.contacts)
            unique: List[DiscoveredContact] = []
            for item in extracted:
                if item.contact_type not in settings.contact_types:
                    continue
                keys = {contact_dedupe_key(item.name, item.title, item.linkedin_url),
                        contact_dedupe_key(item.name, item.title)}
                if keys & seen:
                    continue
                seen |= keys
                unique.append(DiscoveredContact(
                    id=str(uuid.uuid4()),
                    name=item.name,
                    title=item.title,
                    contact_type=item.contact_type,
                    linkedin_url=item.linkedin_url,
                    email=item.email,
                    relevance_score=item.relevance_score,
                    source=CONTACT_SOURCE,
                ))

            to_add = unique[:max(0, settings.max_contacts - len(run.contacts))]
            total = len(run.contacts) + len(to_add)
            logger.info(f"Found {len(to_add)} new contacts ({total} total)")

            return {
                "contacts": to_add,
                "contact_iteration": replace(
                    state,
                    iteration=state.iteration + 1,
                    contacts_found=total,
                ),
                "api_calls": 2,
            }

        except Exception as e:
            logger.error(f"Contact worker error: {e}")
            return {
                "contact_iteration": replace(state, iteration=state.max_iterations),
                "errors": [f"Contact worker error: {e}"],
            }
