"""
Query Engine: semantic + lexical search over the search index.

A query is embedded, then a vector search and a full-text search run
concurrently against the index. Their hits are merged with vector hits
preferred, the query is logged for analytics, zero-result queries feed the
content-gap backlog, and follow-up suggestions are attached.
"""

import asyncio
import logging
import time
from typing import List, Optional, Tuple

from .config import settings
from .embeddings import EmbeddingEngine
from .result_merging import merge_results_by_relevance
from .search_exceptions import SearchValidationError
from .search_store import SearchStore
from .suggestions import SuggestionGenerator, fallback_suggestions
from ..schemas.search import SearchHit, SearchRequest, SearchResponse

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2

# What happens when each dependency fails while answering a query.
# "fatal" propagates to the caller; "degraded" sets SearchResponse.degraded.
DEGRADATION_POLICY = {
    "embedding": "fatal",
    "vector_search": "degraded",
    "text_search": "fatal",
    "chat_completion": "degraded",
    "search_log": "degraded",
    "content_gap": "degraded",
}


class QueryEngine:
    """Answers search requests against the search index."""

    def __init__(
        self,
        store: SearchStore,
        embedding_engine: EmbeddingEngine,
        suggestion_generator: Optional[SuggestionGenerator] = None,
        match_threshold: Optional[float] = None,
    ):
        self.store = store
        self.embedding_engine = embedding_engine
        self.suggestion_generator = suggestion_generator or SuggestionGenerator()
        self.match_threshold = (
            match_threshold if match_threshold is not None else settings.SEARCH_MATCH_THRESHOLD
        )

    async def search(self, request: SearchRequest, user_id: Optional[str] = None) -> SearchResponse:
        """
        Run a search.

        Args:
            request: Query, optional content-type filters and result limit
            user_id: Caller id for the search log, None when anonymous

        Returns:
            SearchResponse with merged results and suggestions

        Raises:
            SearchValidationError: If the trimmed query is shorter than 2 characters
            EmbeddingError: If the query embedding cannot be generated
        """
        query = (request.query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            raise SearchValidationError("Query must be at least 2 characters")

        start_time = time.monotonic()
        content_types = request.content_types
        degraded_reasons: List[str] = []

        logger.info(f"Searching for: {query!r} (filters: {content_types}, limit: {request.limit})")

        query_embedding = await self.embedding_engine.embed_query(query)

        (vector_hits, vector_error), text_hits = await asyncio.gather(
            self._safe_vector_search(query_embedding, request.limit * 2, content_types),
            self.store.text_search(query, request.limit, content_types),
        )
        if vector_error:
            degraded_reasons.append(vector_error)

        logger.info(f"Vector hits: {len(vector_hits)}, text hits: {len(text_hits)}")

        results = merge_results_by_relevance(vector_hits, text_hits, request.limit)
        latency_ms = int((time.monotonic() - start_time) * 1000)

        try:
            await self.store.log_search(
                user_id=user_id,
                query=query,
                results_count=len(results),
                filters=request.filters.to_log() if request.filters else None,
                latency_ms=latency_ms,
            )
        except Exception as e:
            logger.warning(f"Failed to log search: {str(e)}")
            degraded_reasons.append("search log unavailable")

        if not results and len(query) >= settings.CONTENT_GAP_MIN_QUERY_LENGTH:
            try:
                await self.store.record_content_gap(query)
            except Exception as e:
                logger.warning(f"Failed to record content gap for {query!r}: {str(e)}")
                degraded_reasons.append("content gap tracking unavailable")

        if results:
            suggestions = self.suggestion_generator.basic_suggestions(
                query, [result.content_type for result in results]
            )
        else:
            suggestions, suggestion_error = await self._safe_smart_suggestions(query)
            if suggestion_error:
                degraded_reasons.append(suggestion_error)

        logger.info(f"Search completed in {latency_ms}ms with {len(results)} results")
        if degraded_reasons:
            logger.warning(f"Search degraded: {'; '.join(degraded_reasons)}")

        return SearchResponse(
            results=results,
            suggestions=suggestions,
            count=len(results),
            latency_ms=latency_ms,
            degraded=bool(degraded_reasons),
            degraded_reason="; ".join(degraded_reasons) if degraded_reasons else None,
        )

    async def _safe_vector_search(
        self,
        query_embedding: List[float],
        match_count: int,
        content_types: Optional[List[str]],
    ) -> Tuple[List[SearchHit], Optional[str]]:
        try:
            hits = await self.store.vector_search(
                query_embedding,
                match_threshold=self.match_threshold,
                match_count=match_count,
                content_types=content_types,
            )
            return hits, None
        except Exception as e:
            logger.error(f"Vector search error: {str(e)}")
            return [], "vector search unavailable"

    async def _safe_smart_suggestions(self, query: str) -> Tuple[List[str], Optional[str]]:
        try:
            return await self.suggestion_generator.smart_suggestions(query), None
        except Exception as e:
            logger.warning(f"AI suggestions unavailable, using templates: {str(e)}")
            return fallback_suggestions(query), "ai suggestions unavailable"
