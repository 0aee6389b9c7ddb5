"""
Configuration loader for the company scout.

Loads all settings from environment variables (.env file).
Validates required settings and provides type-safe access.
"""

import os
from typing import Optional
from dotenv import load_dotenv

from scout.common.error_handling import ConfigurationError

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """
    Centralized configuration for discovery and research runs.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== MongoDB =====
    MONGODB_URI: str = os.getenv("MONGODB_URI", "")
    MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "scout")

    # ===== LLM APIs =====
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")

    # ===== Web Search =====
    FIRECRAWL_API_KEY: str = os.getenv("FIRECRAWL_API_KEY", "")
    SEARCH_RESULTS_LIMIT: int = int(os.getenv("SEARCH_RESULTS_LIMIT", "10"))

    # ===== LangSmith (Observability) =====
    LANGSMITH_API_KEY: str = os.getenv("LANGSMITH_API_KEY", "")
    LANGCHAIN_TRACING_V2: str = os.getenv("LANGCHAIN_TRACING_V2", "false")
    LANGCHAIN_PROJECT: str = os.getenv("LANGCHAIN_PROJECT", "company-scout")

    # ===== LLM Model Configuration =====
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "gpt-4o-mini")

    # Temperature settings
    CREATIVE_TEMPERATURE: float = 0.7  # Narratives, outreach templates
    ANALYTICAL_TEMPERATURE: float = 0.3  # Extraction, scoring, validation

    # ===== Run Budgets =====
    RESEARCH_TIMEOUT_SECONDS: float = float(os.getenv("RESEARCH_TIMEOUT_SECONDS", "300"))
    RESEARCH_MAX_STEPS: int = int(os.getenv("RESEARCH_MAX_STEPS", "100"))
    DISCOVERY_MAX_STEPS: int = int(os.getenv("DISCOVERY_MAX_STEPS", "150"))
    SCHEDULED_RESEARCH_STALE_DAYS: int = int(os.getenv("SCHEDULED_RESEARCH_STALE_DAYS", "30"))
    SCHEDULED_RESEARCH_DELAY_SECONDS: float = float(
        os.getenv("SCHEDULED_RESEARCH_DELAY_SECONDS", "2")
    )

    # ===== URL Validation =====
    URL_FETCH_TIMEOUT_SECONDS: float = float(os.getenv("URL_FETCH_TIMEOUT_SECONDS", "5"))
    URL_VALIDATION_USE_LLM: bool = _env_bool("URL_VALIDATION_USE_LLM", "true")
    URL_VALIDATION_CHECK_REACHABILITY: bool = _env_bool("URL_VALIDATION_CHECK_REACHABILITY", "true")

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required configuration is present.
        Raises ConfigurationError if critical settings are missing.
        """
        required_settings = {
            "MONGODB_URI": cls.MONGODB_URI,
            "OPENAI_API_KEY": cls.OPENAI_API_KEY,
            "FIRECRAWL_API_KEY": cls.FIRECRAWL_API_KEY,
        }

        missing = [name for name, value in required_settings.items() if not value]

        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}. "
                f"Please check your .env file."
            )

    @classmethod
    def validate_services(cls) -> None:
        """Search and LLM credentials; the store URI is checked by StoreConfig."""
        missing = [
            name
            for name, value in (("OPENAI_API_KEY", cls.OPENAI_API_KEY), ("FIRECRAWL_API_KEY", cls.FIRECRAWL_API_KEY))
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    @classmethod
    def get_llm_api_key(cls) -> str:
        """Get the API key for LLM calls."""
        return cls.OPENAI_API_KEY

    @classmethod
    def get_llm_base_url(cls) -> Optional[str]:
        """LLM base URL (None to use OpenAI directly)."""
        return os.getenv("OPENAI_BASE_URL") or None

    @classmethod
    def summary(cls) -> str:
        """Return configuration summary (safe for logging - no secrets)."""
        return f"""
Configuration Summary:
  MongoDB: {'✓' if cls.MONGODB_URI else '✗'} ({cls.MONGODB_DATABASE})
  OpenAI: {'✓' if cls.OPENAI_API_KEY else '✗'}
  FireCrawl: {'✓' if cls.FIRECRAWL_API_KEY else '✗'}
  LangSmith: {'✓' if cls.LANGSMITH_API_KEY else '✗'}
  Default Model: {cls.DEFAULT_MODEL}
  Research Timeout: {cls.RESEARCH_TIMEOUT_SECONDS}s
  URL Validation: llm={cls.URL_VALIDATION_USE_LLM}, reachability={cls.URL_VALIDATION_CHECK_REACHABILITY}
"""
