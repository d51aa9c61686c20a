from fastapi import Depends, Header
from typing import Optional
import logging

from ..database import AsyncSessionLocal
from ..core.analytics import SearchAnalytics
from ..core.chat import ChatCompletionEngine, create_chat_engine
from ..core.config import settings
from ..core.content_gaps import ContentGapAdvisor
from ..core.embeddings import EmbeddingEngine, create_embedding_engine
from ..core.indexer import IndexBuilder
from ..core.search_engine import QueryEngine
from ..core.search_exceptions import ConfigurationError
from ..core.search_store import SearchStore
from ..core.security import resolve_user_id
from ..core.suggestions import SuggestionGenerator

logger = logging.getLogger(__name__)


def get_search_store() -> SearchStore:
    return SearchStore(AsyncSessionLocal)


def get_embedding_engine() -> EmbeddingEngine:
    """Raises ConfigurationError (400) when no Gemini key is configured."""
    return create_embedding_engine()


def _optional_chat_engine(model_name: str) -> Optional[ChatCompletionEngine]:
    try:
        return create_chat_engine(model_name)
    except ConfigurationError as e:
        logger.warning(f"Chat completions disabled: {str(e)}")
        return None


def get_suggestion_chat_engine() -> Optional[ChatCompletionEngine]:
    return _optional_chat_engine(settings.SUGGESTION_MODEL)


def get_insights_chat_engine() -> Optional[ChatCompletionEngine]:
    return _optional_chat_engine(settings.INSIGHTS_MODEL)


async def get_optional_user_id(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """
    Dependency resolving the caller's Clerk user id.

    A missing or invalid token yields None (anonymous search).
    """
    return await resolve_user_id(authorization)


def get_query_engine(
    store: SearchStore = Depends(get_search_store),
    embedding_engine: EmbeddingEngine = Depends(get_embedding_engine),
    chat_engine: Optional[ChatCompletionEngine] = Depends(get_suggestion_chat_engine),
) -> QueryEngine:
    return QueryEngine(store, embedding_engine, SuggestionGenerator(chat_engine))


def get_index_builder(
    store: SearchStore = Depends(get_search_store),
    embedding_engine: EmbeddingEngine = Depends(get_embedding_engine),
) -> IndexBuilder:
    return IndexBuilder(store, embedding_engine)


def get_search_analytics(
    store: SearchStore = Depends(get_search_store),
    chat_engine: Optional[ChatCompletionEngine] = Depends(get_insights_chat_engine),
) -> SearchAnalytics:
    return SearchAnalytics(store, chat_engine)


def get_content_gap_advisor(
    store: SearchStore = Depends(get_search_store),
    chat_engine: Optional[ChatCompletionEngine] = Depends(get_insights_chat_engine),
) -> ContentGapAdvisor:
    return ContentGapAdvisor(store, chat_engine)
