"""
Search API schemas.

Request and response models for the Query Engine and the index endpoints.
The request accepts the ``filters.contentTypes`` camelCase key used by the
intranet web client.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional

from ..core.config import settings
from ..models.content_type import ContentType


class SearchFilters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content_types: Optional[List[ContentType]] = Field(
        default=None,
        alias="contentTypes",
        description="Restrict results to these content types",
    )

    def to_log(self) -> Dict[str, Any]:
        """Shape stored in search_logs.filters."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SearchRequest(BaseModel):
    query: str = Field(description="Free-text query (at least 2 characters after trimming)")
    filters: Optional[SearchFilters] = Field(default=None)
    limit: int = Field(
        default=settings.SEARCH_DEFAULT_LIMIT,
        ge=1,
        description="Maximum number of results; values above SEARCH_MAX_LIMIT are clamped",
    )

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, v: int) -> int:
        return min(v, settings.SEARCH_MAX_LIMIT)

    @property
    def content_types(self) -> Optional[List[str]]:
        if not self.filters or not self.filters.content_types:
            return None
        return [content_type.value for content_type in self.filters.content_types]


class SearchHit(BaseModel):
    """A row returned by one of the store's search primitives."""
    content_type: str
    content_id: str
    title: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    similarity: Optional[float] = None


class SearchResultItem(BaseModel):
    content_type: str
    content_id: str
    title: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    source: Literal["vector", "text"]
    relevance_score: float


class SearchResponse(BaseModel):
    results: List[SearchResultItem]
    suggestions: List[str]
    count: int
    latency_ms: int
    degraded: bool = False
    degraded_reason: Optional[str] = None


class IndexRebuildResponse(BaseModel):
    success: bool = True
    indexed: int
    failed: int
    total: int


class IndexItemRequest(BaseModel):
    content_type: Optional[ContentType] = None
    content_id: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class IndexItemResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    error: str
