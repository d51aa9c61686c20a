"""
Storage primitives for the search index.

PostgreSQL is the production store: embeddings are pgvector columns searched
by cosine distance, and lexical search uses ``websearch_to_tsquery`` with a
language configuration. Other dialects (SQLite in development and tests) keep
embeddings as JSON lists; similarity is computed with numpy and lexical
search applies the same web-search syntax as casefolded substring
matches in Python, without stemming, so accented text matches too.

Each public method opens its own session so independent calls can run
concurrently.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

import numpy as np
from sqlalchemy import delete, func, literal_column, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import settings
from ..models.content_suggestion import ContentSuggestion, ContentSuggestionStatus, normalize_term
from ..models.search_index import SearchIndexEntry
from ..models.search_log import SearchLogEntry
from ..models.search_trend import SearchTrend
from ..schemas.content import IndexCandidate
from ..schemas.search import SearchHit

logger = logging.getLogger(__name__)

# Advisory lock key shared by every process that rewrites the index
INDEX_REBUILD_LOCK_KEY = 727_001

_WEBSEARCH_TOKEN = re.compile(r'(-?)"([^"]*)"|(\S+)')


def parse_websearch_query(query: str) -> Tuple[List[str], List[str]]:
    """
    Split a web-search style query into required and excluded terms.

    Quoted phrases stay whole, ``-term`` excludes, everything else is ANDed.
    The ``or`` operator is treated as a plain word.

    Returns:
        (required, excluded) lists of casefolded terms/phrases
    """
    required: List[str] = []
    excluded: List[str] = []

    for negated_phrase, phrase, word in _WEBSEARCH_TOKEN.findall(query):
        if word == "-":
            continue
        if word:
            negated = word.startswith("-") and len(word) > 1
            term = word[1:] if negated else word
        else:
            negated = bool(negated_phrase)
            term = phrase
        term = term.strip().casefold()
        if not term:
            continue
        (excluded if negated else required).append(term)

    return required, excluded


def matches_terms(content: str, required: List[str], excluded: List[str]) -> bool:
    """True when casefolded ``content`` holds every required term and no excluded one."""
    folded = content.casefold()
    return all(term in folded for term in required) and not any(term in folded for term in excluded)


def cosine_similarities(query_embedding: Sequence[float], embeddings: Sequence[Sequence[float]]) -> np.ndarray:
    """Cosine similarity between one query vector and a matrix of vectors."""
    if not embeddings:
        return np.array([], dtype=np.float32)

    matrix = np.asarray(embeddings, dtype=np.float32)
    query = np.asarray(query_embedding, dtype=np.float32)

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    norms = np.where(norms == 0, 1, norms)  # Avoid division by zero
    return (matrix @ query) / norms


def _to_hit(entry: SearchIndexEntry, similarity: Optional[float] = None) -> SearchHit:
    return SearchHit(
        content_type=entry.content_type,
        content_id=entry.content_id,
        title=entry.title,
        content=entry.content,
        metadata=entry.metadata_ or {},
        similarity=similarity,
    )


class SearchStore:
    """Data access for the search index, search logs and content suggestions."""

    def __init__(self, session_factory: async_sessionmaker, text_search_config: Optional[str] = None):
        self._session_factory = session_factory
        self.text_search_config = text_search_config or settings.TEXT_SEARCH_CONFIG

    @staticmethod
    def _is_postgres(session: AsyncSession) -> bool:
        return session.bind.dialect.name == "postgresql"

    def _config_literal(self):
        # Quoted literal so the planner can use the functional GIN index
        config = self.text_search_config.replace("'", "")
        return literal_column(f"'{config}'")

    # ==================== INDEX WRITES ====================

    async def replace_index(self, entries: List[SearchIndexEntry]) -> int:
        """
        Replace the whole index with ``entries`` in a single transaction.

        On PostgreSQL the transaction takes an advisory lock so concurrent
        rebuilds in other processes serialize instead of interleaving.
        """
        async with self._session_factory() as session:
            async with session.begin():
                if self._is_postgres(session):
                    await session.execute(
                        text("SELECT pg_advisory_xact_lock(:key)"),
                        {"key": INDEX_REBUILD_LOCK_KEY},
                    )
                await session.execute(delete(SearchIndexEntry))
                session.add_all(entries)
        return len(entries)

    async def upsert_entry(self, candidate: IndexCandidate, embedding: List[float], title: str) -> None:
        """Insert or update the index row for one content item."""
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(SearchIndexEntry)
                    .where(SearchIndexEntry.content_type == candidate.content_type.value)
                    .where(SearchIndexEntry.content_id == candidate.content_id)
                )
                entry = result.scalar_one_or_none()

                if entry is None:
                    session.add(SearchIndexEntry(
                        content_type=candidate.content_type.value,
                        content_id=candidate.content_id,
                        title=title,
                        content=candidate.text,
                        embedding=embedding,
                        metadata_=candidate.metadata_dict(),
                    ))
                else:
                    entry.title = title
                    entry.content = candidate.text
                    entry.embedding = embedding
                    entry.metadata_ = candidate.metadata_dict()
                    entry.updated_at = datetime.now(timezone.utc)

    # ==================== SEARCH ====================

    async def vector_search(
        self,
        query_embedding: List[float],
        match_threshold: float,
        match_count: int,
        content_types: Optional[List[str]] = None,
    ) -> List[SearchHit]:
        """Entries whose cosine similarity to the query is at least ``match_threshold``."""
        async with self._session_factory() as session:
            if self._is_postgres(session):
                return await self._vector_search_pgvector(
                    session, query_embedding, match_threshold, match_count, content_types
                )
            return await self._vector_search_numpy(
                session, query_embedding, match_threshold, match_count, content_types
            )

    async def _vector_search_pgvector(
        self,
        session: AsyncSession,
        query_embedding: List[float],
        match_threshold: float,
        match_count: int,
        content_types: Optional[List[str]],
    ) -> List[SearchHit]:
        distance = SearchIndexEntry.embedding.cosine_distance(query_embedding)
        similarity = (1 - distance).label("similarity")

        stmt = (
            select(SearchIndexEntry, similarity)
            .where(1 - distance >= match_threshold)
            .order_by(distance)
            .limit(match_count)
        )
        if content_types:
            stmt = stmt.where(SearchIndexEntry.content_type.in_(content_types))

        result = await session.execute(stmt)
        return [_to_hit(entry, float(score)) for entry, score in result.all()]

    async def _vector_search_numpy(
        self,
        session: AsyncSession,
        query_embedding: List[float],
        match_threshold: float,
        match_count: int,
        content_types: Optional[List[str]],
    ) -> List[SearchHit]:
        stmt = select(SearchIndexEntry)
        if content_types:
            stmt = stmt.where(SearchIndexEntry.content_type.in_(content_types))

        entries = (await session.execute(stmt)).scalars().all()
        if not entries:
            return []

        scores = cosine_similarities(query_embedding, [entry.embedding for entry in entries])
        ranked = sorted(
            (
                (float(score), entry)
                for score, entry in zip(scores.tolist(), entries)
                if score >= match_threshold
            ),
            key=lambda pair: pair[0],
            reverse=True,
        )
        return [_to_hit(entry, score) for score, entry in ranked[:match_count]]

    async def text_search(
        self,
        query: str,
        limit: int,
        content_types: Optional[List[str]] = None,
    ) -> List[SearchHit]:
        """Full-text search over the ``content`` column using web-search syntax."""
        async with self._session_factory() as session:
            if self._is_postgres(session):
                config = self._config_literal()
                tsquery = func.websearch_to_tsquery(config, query)
                document = func.to_tsvector(config, SearchIndexEntry.content)
                stmt = (
                    select(SearchIndexEntry)
                    .where(document.op("@@")(tsquery))
                    .order_by(func.ts_rank(document, tsquery).desc())
                )
                if content_types:
                    stmt = stmt.where(SearchIndexEntry.content_type.in_(content_types))
                entries = (await session.execute(stmt.limit(limit))).scalars().all()
                return [_to_hit(entry) for entry in entries]

            # SQLite's lower() and LIKE only fold ASCII, so match in Python
            required, excluded = parse_websearch_query(query)
            if not required:
                return []
            stmt = select(SearchIndexEntry).order_by(SearchIndexEntry.title)
            if content_types:
                stmt = stmt.where(SearchIndexEntry.content_type.in_(content_types))
            entries = (await session.execute(stmt)).scalars().all()
            matched = [entry for entry in entries if matches_terms(entry.content, required, excluded)]
            return [_to_hit(entry) for entry in matched[:limit]]

    async def count_entries(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count(SearchIndexEntry.id)))
            return result.scalar_one()

    # ==================== LOGS & CONTENT GAPS ====================

    async def log_search(
        self,
        user_id: Optional[str],
        query: str,
        results_count: int,
        filters: Optional[dict],
        latency_ms: int,
    ) -> None:
        async with self._session_factory() as session:
            session.add(SearchLogEntry(
                user_id=user_id,
                query=query,
                results_count=results_count,
                filters=filters,
                latency_ms=latency_ms,
                no_results=results_count == 0,
            ))
            await session.commit()

    async def record_content_gap(self, term: str) -> ContentSuggestion:
        """
        Count a zero-result search for ``term``.

        Terms match on their casefolded form; the first spelling seen is kept.
        A concurrent insert of the same term trips the unique index on
        ``normalized_term`` and is retried once as an update.
        """
        normalized = normalize_term(term)
        try:
            return await self._count_content_gap(term, normalized)
        except IntegrityError:
            logger.info(f"Content suggestion for {term!r} was created concurrently, retrying as update")
            return await self._count_content_gap(term, normalized)

    async def _count_content_gap(self, term: str, normalized: str) -> ContentSuggestion:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(ContentSuggestion)
                    .where(ContentSuggestion.normalized_term == normalized)
                    .limit(1)
                )
                suggestion = result.scalar_one_or_none()

                if suggestion is not None:
                    suggestion.search_count += 1
                    suggestion.priority_score = float(suggestion.search_count)
                    suggestion.last_searched_at = datetime.now(timezone.utc)
                    logger.info(f"Updated suggestion count for: {term}")
                else:
                    suggestion = ContentSuggestion(
                        term=term,
                        normalized_term=normalized,
                        search_count=1,
                        priority_score=1.0,
                        status=ContentSuggestionStatus.PENDING.value,
                        last_searched_at=datetime.now(timezone.utc),
                    )
                    session.add(suggestion)
                    logger.info(f"Created new content suggestion: {term}")

            return suggestion

    # ==================== CONTENT SOURCES ====================

    async def fetch_all(self, stmt) -> list:
        """Run a select against the content tables and return its scalars."""
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ==================== ANALYTICS ====================

    async def logs_between(self, start: datetime, end: datetime) -> List[SearchLogEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SearchLogEntry)
                .where(SearchLogEntry.created_at >= start)
                .where(SearchLogEntry.created_at <= end)
            )
            return list(result.scalars().all())

    async def save_trend(self, trend: SearchTrend) -> None:
        async with self._session_factory() as session:
            session.add(trend)
            await session.commit()

    async def pending_suggestions(self, limit: int) -> List[ContentSuggestion]:
        """Pending content-gap terms, highest priority first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ContentSuggestion)
                .where(ContentSuggestion.status == ContentSuggestionStatus.PENDING.value)
                .order_by(ContentSuggestion.priority_score.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
