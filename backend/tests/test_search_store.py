import pytest
import numpy as np
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from unittest.mock import patch

from conftest import fake_embedding
from intranet_search.core.search_store import (
    SearchStore,
    cosine_similarities,
    matches_terms,
    parse_websearch_query,
)
from intranet_search.models.content_suggestion import ContentSuggestion, normalize_term
from intranet_search.models.content_type import ContentType
from intranet_search.models.search_index import SearchIndexEntry
from intranet_search.models.search_log import SearchLogEntry
from intranet_search.schemas.content import AnnouncementMetadata, IndexCandidate, ManualMetadata


def make_entry(content_type: str, content_id: str, text: str, metadata=None) -> SearchIndexEntry:
    return SearchIndexEntry(
        content_type=content_type,
        content_id=content_id,
        title=" ".join(text.split()[:10]),
        content=text,
        embedding=fake_embedding(text),
        metadata_=metadata or {},
    )


class TestParseWebsearchQuery:
    """Test web-search syntax parsing for the non-PostgreSQL text search."""

    def test_plain_words_are_required(self):
        assert parse_websearch_query("Política de Horários") == (["política", "de", "horários"], [])

    def test_quoted_phrase_kept_whole(self):
        required, excluded = parse_websearch_query('"banco de horas" ajuste')
        assert required == ["banco de horas", "ajuste"]
        assert excluded == []

    def test_negated_terms_excluded(self):
        required, excluded = parse_websearch_query('férias -coletivas -"fim de ano"')
        assert required == ["férias"]
        assert excluded == ["coletivas", "fim de ano"]

    def test_lone_dash_is_ignored(self):
        required, _ = parse_websearch_query("turno - noite")
        assert required == ["turno", "noite"]

    def test_empty_query(self):
        assert parse_websearch_query("   ") == ([], [])


class TestMatchesTerms:

    def test_accented_capitals_fold(self):
        assert matches_terms("POLÍTICA DE FÉRIAS", ["política", "férias"], [])

    def test_excluded_term_rejects(self):
        assert not matches_terms("Política de Férias coletivas", ["política"], ["coletivas"])

    def test_missing_term_rejects(self):
        assert not matches_terms("Política de horários", ["política", "férias"], [])


class TestCosineSimilarities:
    """Test the numpy similarity used outside PostgreSQL."""

    def test_identical_and_orthogonal(self):
        scores = cosine_similarities([1.0, 0.0], [[2.0, 0.0], [0.0, 3.0]])
        assert scores.tolist() == pytest.approx([1.0, 0.0])

    def test_zero_vector_does_not_divide_by_zero(self):
        scores = cosine_similarities([1.0, 0.0], [[0.0, 0.0]])
        assert not np.isnan(scores).any()

    def test_empty_matrix(self):
        assert cosine_similarities([1.0], []).size == 0


class TestIndexWrites:
    """Test index replacement and single-item upserts."""

    @pytest.mark.asyncio
    async def test_replace_index_swaps_all_rows(self, store: SearchStore):
        await store.replace_index([
            make_entry("announcement", "a1", "Política de horários"),
            make_entry("training", "t1", "Treinamento de segurança"),
        ])
        assert await store.count_entries() == 2

        await store.replace_index([make_entry("manual", "m1", "Manual do caixa")])

        assert await store.count_entries() == 1
        hits = await store.text_search("caixa", limit=10)
        assert [(hit.content_type, hit.content_id) for hit in hits] == [("manual", "m1")]

    @pytest.mark.asyncio
    async def test_replace_index_with_nothing_empties_index(self, store):
        await store.replace_index([make_entry("announcement", "a1", "Política de horários")])
        await store.replace_index([])
        assert await store.count_entries() == 0

    @pytest.mark.asyncio
    async def test_upsert_inserts_then_updates(self, store, session_factory):
        candidate = IndexCandidate(
            content_type=ContentType.MANUAL,
            content_id="m1",
            text="Manual do caixa",
            metadata=ManualMetadata(tags=["caixa"]),
        )
        await store.upsert_entry(candidate, fake_embedding(candidate.text), title="Manual do caixa")

        updated = IndexCandidate(
            content_type=ContentType.MANUAL,
            content_id="m1",
            text="Manual do caixa revisado",
            metadata=ManualMetadata(tags=["caixa", "revisão"]),
        )
        await store.upsert_entry(updated, fake_embedding(updated.text), title="Manual revisado")

        async with session_factory() as session:
            entries = (await session.execute(select(SearchIndexEntry))).scalars().all()

        assert len(entries) == 1
        assert entries[0].title == "Manual revisado"
        assert entries[0].content == "Manual do caixa revisado"
        assert entries[0].metadata_ == {"tags": ["caixa", "revisão"]}


class TestSearchPrimitives:
    """Test vector and text search on SQLite."""

    @pytest.mark.asyncio
    async def test_vector_search_applies_threshold_and_order(self, store):
        await store.replace_index([
            make_entry("announcement", "a1", "Política de horários novos expediente"),
            make_entry("manual", "m1", "Política de horários"),
            make_entry("training", "t1", "Treinamento de segurança"),
        ])

        hits = await store.vector_search(fake_embedding("política horários"), 0.6, 10)

        assert [hit.content_id for hit in hits] == ["m1", "a1"]
        assert hits[0].similarity == pytest.approx(1.0, abs=1e-5)
        assert all(hit.similarity >= 0.6 for hit in hits)

    @pytest.mark.asyncio
    async def test_vector_search_respects_count_and_type_filter(self, store):
        await store.replace_index([
            make_entry("announcement", "a1", "Política de horários"),
            make_entry("manual", "m1", "Política de horários"),
        ])

        limited = await store.vector_search(fake_embedding("política horários"), 0.6, 1)
        filtered = await store.vector_search(
            fake_embedding("política horários"), 0.6, 10, content_types=["manual"]
        )

        assert len(limited) == 1
        assert [hit.content_type for hit in filtered] == ["manual"]

    @pytest.mark.asyncio
    async def test_text_search_requires_every_term(self, store):
        await store.replace_index([
            make_entry("announcement", "a1", "Política de horários"),
            make_entry("manual", "m1", "Política de férias"),
        ])

        hits = await store.text_search("política horários", limit=10)

        assert [hit.content_id for hit in hits] == ["a1"]
        assert hits[0].similarity is None

    @pytest.mark.asyncio
    async def test_text_search_excludes_and_filters(self, store):
        await store.replace_index([
            make_entry("announcement", "a1", "Política de horários"),
            make_entry("manual", "m1", "Política de férias"),
            make_entry("training", "t1", "Política de segurança"),
        ])

        excluded = await store.text_search("política -férias", limit=10)
        filtered = await store.text_search("política", limit=10, content_types=["training"])

        assert sorted(hit.content_id for hit in excluded) == ["a1", "t1"]
        assert [hit.content_id for hit in filtered] == ["t1"]

    @pytest.mark.asyncio
    async def test_text_search_treats_wildcards_literally(self, store):
        await store.replace_index([make_entry("manual", "m1", "Desconto de 10 por cento")])
        assert await store.text_search("10%", limit=10) == []

    @pytest.mark.asyncio
    async def test_text_search_folds_accented_capitals(self, store):
        await store.replace_index([
            make_entry("manual", "m1", "POLÍTICA DE FÉRIAS"),
            make_entry("announcement", "a1", "Política de horários"),
        ])

        hits = await store.text_search("política", limit=10)
        without_ferias = await store.text_search("política -férias", limit=10)

        assert sorted(hit.content_id for hit in hits) == ["a1", "m1"]
        assert [hit.content_id for hit in without_ferias] == ["a1"]

    @pytest.mark.asyncio
    async def test_text_search_limit_applies_after_matching(self, store):
        await store.replace_index([
            make_entry("manual", "m1", "A escala de turnos"),
            make_entry("manual", "m2", "B uniforme"),
            make_entry("manual", "m3", "C escala de férias"),
            make_entry("manual", "m4", "D escala de feriados"),
        ])

        hits = await store.text_search("escala", limit=2)

        assert [hit.content_id for hit in hits] == ["m1", "m3"]

    @pytest.mark.asyncio
    async def test_text_search_returns_metadata(self, store):
        metadata = AnnouncementMetadata(target_roles=["caixa"]).model_dump()
        await store.replace_index([make_entry("announcement", "a1", "Política de horários", metadata)])

        hits = await store.text_search("horários", limit=10)

        assert hits[0].metadata == {"target_roles": ["caixa"], "target_units": []}


class TestLogsAndContentGaps:
    """Test search logging and the content-gap counters."""

    @pytest.mark.asyncio
    async def test_log_search_marks_no_results(self, store, session_factory):
        await store.log_search("user_1", "xyzabc", 0, {"contentTypes": ["manual"]}, 42)
        await store.log_search(None, "política", 3, None, 10)

        async with session_factory() as session:
            logs = (await session.execute(
                select(SearchLogEntry).order_by(SearchLogEntry.results_count)
            )).scalars().all()

        assert [(log.query, log.no_results) for log in logs] == [("xyzabc", True), ("política", False)]
        assert logs[0].filters == {"contentTypes": ["manual"]}
        assert logs[1].user_id is None

    @pytest.mark.asyncio
    async def test_record_content_gap_counts_case_insensitively(self, store, session_factory):
        await store.record_content_gap("xyzabc")
        await store.record_content_gap("XYZabc")
        suggestion = await store.record_content_gap("xyzabc")

        async with session_factory() as session:
            rows = (await session.execute(select(ContentSuggestion))).scalars().all()

        assert len(rows) == 1
        assert rows[0].term == "xyzabc"
        assert rows[0].search_count == 3
        assert rows[0].priority_score == 3.0
        assert rows[0].status == "pending"
        assert suggestion.search_count == 3

    @pytest.mark.asyncio
    async def test_record_content_gap_folds_accented_capitals(self, store, session_factory):
        await store.record_content_gap("ÉPOCA xyz")
        await store.record_content_gap("época  xyz")
        await store.record_content_gap("Época xyz")

        async with session_factory() as session:
            rows = (await session.execute(select(ContentSuggestion))).scalars().all()

        assert len(rows) == 1
        assert rows[0].term == "ÉPOCA xyz"
        assert rows[0].normalized_term == "época xyz"
        assert rows[0].search_count == 3

    @pytest.mark.asyncio
    async def test_normalized_term_is_unique(self, add_rows):
        await add_rows(ContentSuggestion(term="Férias coletivas"))

        with pytest.raises(IntegrityError):
            await add_rows(ContentSuggestion(term="FÉRIAS  COLETIVAS"))

    @pytest.mark.asyncio
    async def test_concurrent_insert_retried_as_update(self, store, session_factory, add_rows):
        count_content_gap = store._count_content_gap
        attempts = []

        async def insert_after_competitor(term, normalized):
            attempts.append(term)
            if len(attempts) == 1:
                # Another worker inserts between our lookup and our insert
                await add_rows(ContentSuggestion(term="Férias"))
                await add_rows(ContentSuggestion(term=term))
            return await count_content_gap(term, normalized)

        with patch.object(store, "_count_content_gap", side_effect=insert_after_competitor):
            suggestion = await store.record_content_gap("férias")

        async with session_factory() as session:
            rows = (await session.execute(select(ContentSuggestion))).scalars().all()

        assert len(attempts) == 2
        assert len(rows) == 1
        assert rows[0].term == "Férias"
        assert rows[0].search_count == 2
        assert suggestion.search_count == 2

    def test_normalize_term(self):
        assert normalize_term("  ÉPOCA   de\tFÉRIAS ") == "época de férias"

    @pytest.mark.asyncio
    async def test_pending_suggestions_ordered_by_priority(self, store, add_rows):
        await add_rows(
            ContentSuggestion(term="férias", search_count=2, priority_score=2.0),
            ContentSuggestion(term="holerite", search_count=5, priority_score=5.0),
            ContentSuggestion(term="uniforme", search_count=9, priority_score=9.0, status="resolved"),
        )

        pending = await store.pending_suggestions(limit=20)

        assert [suggestion.term for suggestion in pending] == ["holerite", "férias"]
