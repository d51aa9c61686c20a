"""
Search API endpoints.

This module provides:
- Semantic + lexical search with follow-up suggestions
- Full and single-item search index builds
- Search analytics reports
- Content-gap recommendations

Errors are returned as HTTP 400 ``{"error": <message>}`` by the handlers
registered in ``intranet_search.main``.
"""

from fastapi import APIRouter, Depends
from typing import Optional
import logging

from ..deps import (
    get_content_gap_advisor,
    get_index_builder,
    get_optional_user_id,
    get_query_engine,
    get_search_analytics,
)
from ...core.analytics import SearchAnalytics
from ...core.content_gaps import ContentGapAdvisor
from ...core.indexer import IndexBuilder
from ...core.search_engine import QueryEngine
from ...core.search_exceptions import SearchError
from ...schemas.analytics import AnalyticsRequest, AnalyticsResponse, ContentGapReport
from ...schemas.search import (
    ErrorResponse,
    IndexItemRequest,
    IndexItemResponse,
    IndexRebuildResponse,
    SearchRequest,
    SearchResponse,
)

router = APIRouter(tags=["search"])
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {400: {"model": ErrorResponse}}


@router.post("", response_model=SearchResponse, responses=ERROR_RESPONSES)
async def search(
    request: SearchRequest,
    engine: QueryEngine = Depends(get_query_engine),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """
    Search the intranet content.

    Results merge semantic (vector) and lexical (full-text) hits, vector hits
    first, sorted by relevance. Zero-result searches get AI reformulations as
    suggestions.
    """
    try:
        return await engine.search(request, user_id=user_id)
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Error in search: {str(e)}")
        raise SearchError(str(e)) from e


@router.post("/index/rebuild", response_model=IndexRebuildResponse, responses=ERROR_RESPONSES)
async def rebuild_index(builder: IndexBuilder = Depends(get_index_builder)):
    """Rebuild the whole search index from the content tables."""
    try:
        result = await builder.rebuild()
        return IndexRebuildResponse(
            success=True,
            indexed=result.indexed,
            failed=result.failed,
            total=result.total,
        )
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Error rebuilding search index: {str(e)}")
        raise SearchError(str(e)) from e


@router.post("/index/item", response_model=IndexItemResponse, responses=ERROR_RESPONSES)
async def index_item(
    request: IndexItemRequest,
    builder: IndexBuilder = Depends(get_index_builder),
):
    """Index or re-index one content item."""
    try:
        await builder.index_item(request)
        return IndexItemResponse(success=True)
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Error indexing item: {str(e)}")
        raise SearchError(str(e)) from e


@router.post("/analytics", response_model=AnalyticsResponse, responses=ERROR_RESPONSES)
async def search_analytics(
    request: Optional[AnalyticsRequest] = None,
    analytics: SearchAnalytics = Depends(get_search_analytics),
):
    """Aggregate the search log over a window (default: last 7 days)."""
    request = request or AnalyticsRequest()
    try:
        return await analytics.generate_report(
            period=request.period,
            start=request.start_date,
            end=request.end_date,
        )
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Error in search analytics: {str(e)}")
        raise SearchError(str(e)) from e


@router.post("/content-gaps", response_model=ContentGapReport, responses=ERROR_RESPONSES)
async def content_gaps(advisor: ContentGapAdvisor = Depends(get_content_gap_advisor)):
    """Recommend new content for the most searched terms that found nothing."""
    try:
        return await advisor.recommend()
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Error generating content suggestions: {str(e)}")
        raise SearchError(str(e)) from e
