"""
Index Builder: rebuilds the search index from the intranet content tables.

Every published/active item of each content type becomes one index row with
an embedding of its concatenated text. Items are embedded in fixed-size
batches processed one after another; within a batch the embedding requests
run concurrently. An item whose embedding fails is left out of the index and
counted, without aborting the run.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy import select

from .config import settings
from .embeddings import EmbeddingEngine
from .search_exceptions import SearchValidationError
from .search_store import SearchStore
from ..models.content import (
    Announcement,
    Training,
    KnowledgeBaseArticle,
    Checklist,
    Idea,
    Campaign,
    FeedPost,
)
from ..models.content_type import ContentType
from ..models.search_index import SearchIndexEntry
from ..schemas.content import (
    AnnouncementMetadata,
    TrainingMetadata,
    ManualMetadata,
    ChecklistMetadata,
    IdeaMetadata,
    CampaignMetadata,
    FeedPostMetadata,
    METADATA_MODELS,
    IndexCandidate,
    build_text,
)
from ..schemas.search import IndexItemRequest

logger = logging.getLogger(__name__)

VISIBLE_IDEA_STATUSES = ("approved", "voting", "implementing")
TITLE_MAX_LENGTH = 200

# Serializes rebuilds inside one process; the store adds a database lock
_rebuild_lock = asyncio.Lock()


@dataclass
class IndexRebuildResult:
    indexed: int
    failed: int
    total: int


@dataclass
class ContentSource:
    """How to select the visible rows of one content table and describe them."""
    content_type: ContentType
    build_query: Callable[[datetime], object]
    to_candidate: Callable[[object], IndexCandidate]


def _announcement(row: Announcement) -> IndexCandidate:
    return IndexCandidate(
        content_type=ContentType.ANNOUNCEMENT,
        content_id=row.id,
        text=build_text(row.title, row.content),
        metadata=AnnouncementMetadata(
            target_roles=row.target_roles or [],
            target_units=row.target_units or [],
        ),
    )


def _training(row: Training) -> IndexCandidate:
    return IndexCandidate(
        content_type=ContentType.TRAINING,
        content_id=row.id,
        text=build_text(row.title, row.description, row.content),
        metadata=TrainingMetadata(),
    )


def _manual(row: KnowledgeBaseArticle) -> IndexCandidate:
    return IndexCandidate(
        content_type=ContentType.MANUAL,
        content_id=row.id,
        text=build_text(row.title, row.content),
        metadata=ManualMetadata(tags=row.tags or []),
    )


def _checklist(row: Checklist) -> IndexCandidate:
    return IndexCandidate(
        content_type=ContentType.CHECKLIST,
        content_id=row.id,
        text=build_text(row.title, row.description),
        metadata=ChecklistMetadata(applicable_units=row.applicable_units or []),
    )


def _idea(row: Idea) -> IndexCandidate:
    return IndexCandidate(
        content_type=ContentType.IDEA,
        content_id=row.id,
        text=build_text(row.title, row.description),
        metadata=IdeaMetadata(category=row.category),
    )


def _campaign(row: Campaign) -> IndexCandidate:
    return IndexCandidate(
        content_type=ContentType.CAMPAIGN,
        content_id=row.id,
        text=build_text(row.title, row.description),
        metadata=CampaignMetadata(
            target_roles=row.target_roles or [],
            target_units=row.target_units or [],
        ),
    )


def _feed_post(row: FeedPost) -> IndexCandidate:
    return IndexCandidate(
        content_type=ContentType.FEED_POST,
        content_id=row.id,
        text=build_text(row.title, row.description),
        metadata=FeedPostMetadata(
            post_type=row.type,
            audience_roles=row.audience_roles or [],
            audience_units=row.audience_units or [],
        ),
    )


def _feed_post_query(now: datetime):
    window_start = now - timedelta(days=settings.FEED_POST_WINDOW_DAYS)
    return (
        select(FeedPost)
        .where(FeedPost.pinned.is_(True))
        .where(FeedPost.created_at >= window_start)
    )


CONTENT_SOURCES: Tuple[ContentSource, ...] = (
    ContentSource(
        ContentType.ANNOUNCEMENT,
        lambda now: select(Announcement).where(Announcement.is_published.is_(True)),
        _announcement,
    ),
    ContentSource(
        ContentType.TRAINING,
        lambda now: select(Training).where(Training.is_published.is_(True)),
        _training,
    ),
    ContentSource(
        ContentType.MANUAL,
        lambda now: select(KnowledgeBaseArticle).where(KnowledgeBaseArticle.is_published.is_(True)),
        _manual,
    ),
    ContentSource(
        ContentType.CHECKLIST,
        lambda now: select(Checklist).where(Checklist.is_active.is_(True)),
        _checklist,
    ),
    ContentSource(
        ContentType.IDEA,
        lambda now: select(Idea).where(Idea.status.in_(VISIBLE_IDEA_STATUSES)),
        _idea,
    ),
    ContentSource(
        ContentType.CAMPAIGN,
        lambda now: select(Campaign).where(Campaign.is_active.is_(True)),
        _campaign,
    ),
    ContentSource(ContentType.FEED_POST, _feed_post_query, _feed_post),
)


def chunk(items: Sequence, size: int) -> List[Sequence]:
    """Split ``items`` into consecutive slices of at most ``size`` elements."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class IndexBuilder:
    """Builds and maintains the search index."""

    def __init__(
        self,
        store: SearchStore,
        embedding_engine: EmbeddingEngine,
        batch_size: Optional[int] = None,
        title_words: Optional[int] = None,
        sources: Sequence[ContentSource] = CONTENT_SOURCES,
    ):
        self.store = store
        self.embedding_engine = embedding_engine
        self.batch_size = batch_size or settings.INDEX_BATCH_SIZE
        self.title_words = title_words or settings.INDEX_TITLE_WORDS
        self.sources = sources

    async def collect_candidates(self, now: Optional[datetime] = None) -> List[IndexCandidate]:
        """Fetch the visible rows of every content table concurrently."""
        now = now or datetime.now(timezone.utc)

        rows_per_source = await asyncio.gather(
            *[self.store.fetch_all(source.build_query(now)) for source in self.sources]
        )

        candidates: List[IndexCandidate] = []
        for source, rows in zip(self.sources, rows_per_source):
            candidates.extend(source.to_candidate(row) for row in rows)
            logger.debug(f"{source.content_type.value}: {len(rows)} visible items")

        return candidates

    async def rebuild(self) -> IndexRebuildResult:
        """
        Rebuild the whole index.

        Candidates are embedded first; the old rows are then deleted and the
        new ones inserted in one transaction, so readers never see an empty
        index. Concurrent rebuilds run one after the other.

        Returns:
            IndexRebuildResult with indexed, failed and total counts
        """
        async with _rebuild_lock:
            logger.info("Starting search index rebuild...")

            candidates = await self.collect_candidates()
            logger.info(f"Found {len(candidates)} items to index")

            entries: List[SearchIndexEntry] = []
            failed = 0
            batches = chunk(candidates, self.batch_size)

            for number, batch in enumerate(batches, start=1):
                logger.info(f"Processing batch {number}/{len(batches)} ({len(batch)} items)...")

                results = await asyncio.gather(*[self._embed_candidate(c) for c in batch])

                successful = [entry for entry in results if entry is not None]
                entries.extend(successful)
                failed += len(batch) - len(successful)

                logger.info(f"Batch {number} done: {len(successful)}/{len(batch)} successful")

            await self.store.replace_index(entries)

            logger.info(f"Indexed {len(entries)} items ({failed} failed)")
            return IndexRebuildResult(indexed=len(entries), failed=failed, total=len(candidates))

    async def _embed_candidate(self, candidate: IndexCandidate) -> Optional[SearchIndexEntry]:
        try:
            embedding = await self.embedding_engine.embed_document(candidate.text)
        except Exception as e:
            logger.error(
                f"Failed to embed {candidate.content_type.value}/{candidate.content_id}: {str(e)}"
            )
            return None

        return SearchIndexEntry(
            content_type=candidate.content_type.value,
            content_id=candidate.content_id,
            title=candidate.title(self.title_words)[:TITLE_MAX_LENGTH],
            content=candidate.text,
            embedding=embedding,
            metadata_=candidate.metadata_dict(),
        )

    async def index_item(self, request: IndexItemRequest) -> None:
        """
        Index or re-index a single content item.

        Raises:
            SearchValidationError: If content_type, content_id or title is missing
            EmbeddingError: If the embedding cannot be generated
        """
        if not request.content_type or not request.content_id or not request.title:
            raise SearchValidationError("content_type, content_id, and title are required")

        metadata_model = METADATA_MODELS[request.content_type]
        candidate = IndexCandidate(
            content_type=request.content_type,
            content_id=request.content_id,
            text=build_text(request.title, request.content),
            metadata=metadata_model.model_validate(request.metadata or {}),
        )

        logger.info(f"Indexing single item: {candidate.content_type.value}/{candidate.content_id}")

        embedding = await self.embedding_engine.embed_document(candidate.text)
        await self.store.upsert_entry(
            candidate,
            embedding,
            title=request.title[:TITLE_MAX_LENGTH],
        )

        logger.info(f"Successfully indexed {candidate.content_type.value}/{candidate.content_id}")
