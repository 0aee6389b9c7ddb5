"""Web search adapter."""

from .web_search import Recency, SearchResult, WebSearchClient, recency_to_tbs

__all__ = ["Recency", "SearchResult", "WebSearchClient", "recency_to_tbs"]
