"""
MongoDB Atlas implementation of the organization store.

All documents use string UUID primary keys so that ids can cross thread
and process boundaries without bson types; _to_doc exposes them as "id".
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument

from scout.common.dedupe import normalize_profile_url, organization_key
from scout.common.repositories.base import (
    OrganizationStoreInterface,
    ResearchStatus,
    rank_discovery_results,
)
from scout.common.types import AgentRole, Profile, ResearchAgentConfig

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _to_doc(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    doc = dict(raw)
    doc["id"] = doc.pop("_id")
    return doc


class AtlasOrganizationStore(OrganizationStoreInterface):
    """
    Atlas MongoDB implementation of OrganizationStoreInterface.
    """

    _client: Optional[MongoClient] = None

    COLLECTIONS = (
        "profiles",
        "organizations",
        "research_runs",
        "signals",
        "contacts",
        "discovery_runs",
        "discovery_links",
        "fit_analyses",
        "research_agent_configs",
    )

    def __init__(self, mongodb_uri: str, database: str = "scout"):
        """
        Args:
            mongodb_uri: MongoDB connection string
            database: Database name
        """
        if not mongodb_uri:
            raise ValueError("MongoDB URI is required")
        self._mongodb_uri = mongodb_uri
        self._database = database

    def _get_client(self) -> MongoClient:
        """Get or create the MongoDB client (singleton)."""
        if AtlasOrganizationStore._client is None:
            AtlasOrganizationStore._client = MongoClient(self._mongodb_uri)
            logger.info("Created new MongoDB client for organization store")
        return AtlasOrganizationStore._client

    def _get_collection(self, name: str):
        return self._get_client()[self._database][name]

    @classmethod
    def reset_connection(cls) -> None:
        if cls._client is not None:
            cls._client.close()
            cls._client = None
            logger.info("Organization store connection reset")

    def ensure_indexes(self) -> None:
        """Ensure lookup and uniqueness indexes exist."""
        try:
            self._get_collection("organizations").create_index(
                [("profile_id", ASCENDING), ("name_key", ASCENDING)], unique=True
            )
            self._get_collection("signals").create_index([("organization_id", ASCENDING)])
            self._get_collection("contacts").create_index([("organization_id", ASCENDING)])
            self._get_collection("discovery_links").create_index(
                [("discovery_run_id", ASCENDING), ("organization_id", ASCENDING)], unique=True
            )
            self._get_collection("fit_analyses").create_index(
                [("discovery_run_id", ASCENDING), ("organization_id", ASCENDING)], unique=True
            )
            logger.info("Organization store indexes ensured")
        except Exception as e:
            logger.warning(f"Error creating organization store indexes: {e}")

    # ===== Profiles =====

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        raw = self._get_collection("profiles").find_one({"_id": profile_id})
        if raw is None:
            return None
        return Profile.from_dict(_to_doc(raw))

    def save_profile(self, profile: Profile) -> None:
        data = profile.to_dict()
        data.pop("id")
        data["updated_at"] = _now()
        self._get_collection("profiles").update_one(
            {"_id": profile.id}, {"$set": data}, upsert=True
        )

    # ===== Organizations =====

    def get_or_create_organization(self, name: str, profile_id: str = "default") -> Dict[str, Any]:
        now = _now()
        raw = self._get_collection("organizations").find_one_and_update(
            {"profile_id": profile_id, "name_key": organization_key(name)},
            {
                "$setOnInsert": {
                    "_id": _new_id(),
                    "name": name.strip(),
                    "domain": None,
                    "research_status": ResearchStatus.PENDING,
                    "overall_score": None,
                    "last_researched_at": None,
                    "created_at": now,
                },
                "$set": {"updated_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return _to_doc(raw)

    def get_organization(self, organization_id: str) -> Optional[Dict[str, Any]]:
        return _to_doc(self._get_collection("organizations").find_one({"_id": organization_id}))

    def update_organization(self, organization_id: str, fields: Dict[str, Any]) -> None:
        self._get_collection("organizations").update_one(
            {"_id": organization_id},
            {"$set": {**fields, "updated_at": _now()}},
        )

    def get_organizations_needing_research(
        self,
        limit: int,
        profile_id: str,
        stale_before: datetime,
    ) -> List[Dict[str, Any]]:
        cursor = self._get_collection("organizations").find(
            {
                "profile_id": profile_id,
                "$or": [
                    {"research_status": ResearchStatus.PENDING},
                    {
                        "research_status": ResearchStatus.RESEARCHED,
                        "last_researched_at": {"$lt": stale_before},
                    },
                ],
            }
        ).sort("last_researched_at", ASCENDING).limit(limit)
        return [_to_doc(raw) for raw in cursor]

    # ===== Research runs =====

    def create_research_run(self, organization_id: str, profile_id: str = "default") -> str:
        run_id = _new_id()
        self._get_collection("research_runs").insert_one({
            "_id": run_id,
            "organization_id": organization_id,
            "profile_id": profile_id,
            "status": "running",
            "summary": None,
            "signals_found": 0,
            "contacts_found": 0,
            "error_message": None,
            "started_at": _now(),
            "completed_at": None,
        })
        return run_id

    def update_research_run(self, research_run_id: str, fields: Dict[str, Any]) -> None:
        update = dict(fields)
        if update.get("status") in ("complete", "failed"):
            update.setdefault("completed_at", _now())
        self._get_collection("research_runs").update_one({"_id": research_run_id}, {"$set": update})

    def get_research_run(self, research_run_id: str) -> Optional[Dict[str, Any]]:
        return _to_doc(self._get_collection("research_runs").find_one({"_id": research_run_id}))

    # ===== Signals =====

    def save_signals(
        self,
        organization_id: str,
        research_run_id: str,
        signals: List[Dict[str, Any]],
    ) -> int:
        if not signals:
            return 0
        now = _now()
        documents = [
            {
                **{k: v for k, v in signal.items() if k != "id"},
                "_id": signal.get("id") or _new_id(),
                "organization_id": organization_id,
                "research_run_id": research_run_id,
                "created_at": now,
            }
            for signal in signals
        ]
        self._get_collection("signals").insert_many(documents)
        return len(documents)

    def get_signals(self, organization_id: str) -> List[Dict[str, Any]]:
        cursor = self._get_collection("signals").find({"organization_id": organization_id}).sort(
            [("confidence", DESCENDING), ("created_at", DESCENDING)]
        )
        return [_to_doc(raw) for raw in cursor]

    # ===== Contacts =====

    def _find_existing_contact(self, organization_id: str, contact: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        collection = self._get_collection("contacts")
        linkedin_url = contact.get("linkedin_url")
        if linkedin_url:
            existing = collection.find_one({
                "organization_id": organization_id,
                "linkedin_key": normalize_profile_url(linkedin_url),
            })
            if existing:
                return existing
        return collection.find_one({
            "organization_id": organization_id,
            "name": contact.get("name"),
            "title": contact.get("title"),
        })

    def save_contacts(
        self,
        organization_id: str,
        research_run_id: str,
        contacts: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        collection = self._get_collection("contacts")
        saved: List[Dict[str, Any]] = []
        now = _now()

        for contact in contacts:
            existing = self._find_existing_contact(organization_id, contact)
            linkedin_url = contact.get("linkedin_url")

            if existing:
                update = {
                    "research_run_id": research_run_id,
                    "contact_type": contact.get("contact_type"),
                    "source": contact.get("source"),
                    "relevance_score": contact.get("relevance_score"),
                    "updated_at": now,
                }
                # Null never overwrites a stored link or email
                if linkedin_url:
                    update["linkedin_url"] = linkedin_url
                    update["linkedin_key"] = normalize_profile_url(linkedin_url)
                if contact.get("email"):
                    update["email"] = contact["email"]
                collection.update_one({"_id": existing["_id"]}, {"$set": update})
                saved.append(_to_doc({**existing, **update}))
            else:
                document = {
                    "_id": contact.get("id") or _new_id(),
                    "organization_id": organization_id,
                    "research_run_id": research_run_id,
                    "name": contact.get("name"),
                    "title": contact.get("title"),
                    "contact_type": contact.get("contact_type"),
                    "linkedin_url": linkedin_url,
                    "linkedin_key": normalize_profile_url(linkedin_url) if linkedin_url else None,
                    "email": contact.get("email"),
                    "source": contact.get("source"),
                    "relevance_score": contact.get("relevance_score"),
                    "notes": None,
                    "outreach_status": "not_contacted",
                    "last_contacted_at": None,
                    "created_at": now,
                    "updated_at": now,
                }
                collection.insert_one(document)
                saved.append(_to_doc(document))

        return saved

    def get_contacts(self, organization_id: str) -> List[Dict[str, Any]]:
        cursor = self._get_collection("contacts").find({"organization_id": organization_id}).sort(
            "relevance_score", DESCENDING
        )
        return [_to_doc(raw) for raw in cursor]

    # ===== Discovery runs =====

    def create_discovery_run(self, profile_id: str, settings: Optional[Dict[str, Any]] = None) -> str:
        run_id = _new_id()
        self._get_collection("discovery_runs").insert_one({
            "_id": run_id,
            "profile_id": profile_id,
            "status": "init",
            "settings": settings or {},
            "queries": [],
            "organizations_discovered": 0,
            "organizations_researched": 0,
            "summary": None,
            "errors": [],
            "started_at": _now(),
            "completed_at": None,
        })
        return run_id

    def update_discovery_run(self, discovery_run_id: str, fields: Dict[str, Any]) -> None:
        update = dict(fields)
        if update.get("status") in ("complete", "failed", "error"):
            update.setdefault("completed_at", _now())
        self._get_collection("discovery_runs").update_one({"_id": discovery_run_id}, {"$set": update})

    def get_discovery_run(self, discovery_run_id: str) -> Optional[Dict[str, Any]]:
        return _to_doc(self._get_collection("discovery_runs").find_one({"_id": discovery_run_id}))

    def create_discovery_link(
        self,
        discovery_run_id: str,
        organization_id: str,
        source_query: str,
        snippet: str,
        rank: int,
    ) -> None:
        self._get_collection("discovery_links").update_one(
            {"discovery_run_id": discovery_run_id, "organization_id": organization_id},
            {
                "$setOnInsert": {"_id": _new_id(), "created_at": _now()},
                "$set": {"source_query": source_query, "snippet": snippet, "rank": rank},
            },
            upsert=True,
        )

    def create_fit_analysis(
        self,
        discovery_run_id: str,
        profile_id: str,
        analysis: Dict[str, Any],
    ) -> str:
        collection = self._get_collection("fit_analyses")
        existing = collection.find_one({
            "discovery_run_id": discovery_run_id,
            "organization_id": analysis["organization_id"],
        })
        # One record per (organization, run); never rewritten
        if existing:
            return existing["_id"]
        analysis_id = _new_id()
        collection.insert_one({
            **analysis,
            "_id": analysis_id,
            "discovery_run_id": discovery_run_id,
            "profile_id": profile_id,
            "created_at": _now(),
        })
        return analysis_id

    def get_fit_analyses(self, discovery_run_id: str) -> List[Dict[str, Any]]:
        cursor = self._get_collection("fit_analyses").find({"discovery_run_id": discovery_run_id})
        return [_to_doc(raw) for raw in cursor]

    def get_discovery_results(self, discovery_run_id: str) -> List[Dict[str, Any]]:
        links = list(self._get_collection("discovery_links").find({"discovery_run_id": discovery_run_id}))
        analyses = {a["organization_id"]: a for a in self.get_fit_analyses(discovery_run_id)}

        results = []
        for link in links:
            organization = self.get_organization(link["organization_id"])
            if organization is None:
                continue
            results.append({
                "organization_id": organization["id"],
                "name": organization.get("name"),
                "domain": organization.get("domain"),
                "rank": link.get("rank"),
                "source_query": link.get("source_query"),
                "snippet": link.get("snippet"),
                "research_status": organization.get("research_status"),
                "research_complete": organization.get("research_status") == ResearchStatus.RESEARCHED,
                "overall_score": organization.get("overall_score"),
                "fit_analysis": analyses.get(organization["id"]),
            })
        return rank_discovery_results(results)

    # ===== Agent configuration =====

    def get_agent_config(self, role: AgentRole) -> Optional[ResearchAgentConfig]:
        raw = self._get_collection("research_agent_configs").find_one({"_id": role.value})
        if raw is None:
            return None
        raw = dict(raw)
        raw.pop("_id", None)
        raw["role"] = role.value
        return ResearchAgentConfig.from_dict(raw)

    def save_agent_config(self, config: ResearchAgentConfig) -> None:
        data = config.to_dict()
        data["updated_at"] = _now()
        self._get_collection("research_agent_configs").update_one(
            {"_id": config.role.value}, {"$set": data}, upsert=True
        )
