"""
FastAPI Dependencies
Shared dependencies for dependency injection
"""

from functools import lru_cache

from clarity.llm.database import HistoryManager, SqlStore
from clarity.llm.generate import AnalysisClient
from clarity.llm.mindmap import MindMapLayoutEngine
from clarity.tools.extractor import ShareLinkFetcher


@lru_cache()
def get_analysis_client() -> AnalysisClient:
    """
    Get or create the AnalysisClient instance (singleton)

    The API key is still read per request, so no restart is needed after
    adding it.
    """
    return AnalysisClient()


@lru_cache()
def get_share_fetcher() -> ShareLinkFetcher:
    return ShareLinkFetcher()


@lru_cache()
def get_history_manager() -> HistoryManager:
    """
    Get history manager instance backed by DATABASE_URL
    """
    return HistoryManager(SqlStore())


@lru_cache()
def get_mind_map_engine() -> MindMapLayoutEngine:
    return MindMapLayoutEngine()
