from .content_type import ContentType
from .content import (
    Announcement,
    Training,
    KnowledgeBaseArticle,
    Checklist,
    Idea,
    Campaign,
    FeedPost,
)
from .search_index import SearchIndexEntry
from .search_log import SearchLogEntry
from .content_suggestion import ContentSuggestion, ContentSuggestionStatus
from .search_trend import SearchTrend

__all__ = [
    "ContentType",
    "Announcement",
    "Training",
    "KnowledgeBaseArticle",
    "Checklist",
    "Idea",
    "Campaign",
    "FeedPost",
    "SearchIndexEntry",
    "SearchLogEntry",
    "ContentSuggestion",
    "ContentSuggestionStatus",
    "SearchTrend",
]
