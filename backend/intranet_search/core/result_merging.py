from typing import List, Set, Tuple

from ..schemas.search import SearchHit, SearchResultItem

# Relevance for vector hits the store returned without a numeric similarity
DEFAULT_VECTOR_SCORE = 0.8
# Fixed relevance for lexical-only hits
TEXT_MATCH_SCORE = 0.6


def merge_results_by_relevance(
    vector_hits: List[SearchHit],
    text_hits: List[SearchHit],
    limit: int,
) -> List[SearchResultItem]:
    """
    Merge vector and lexical hits into one ranked, de-duplicated list.

    Vector hits are taken first; lexical hits are appended only when their
    ``(content_type, content_id)`` was not seen and the list is still below
    ``limit``. The final sort is stable, so on equal scores vector hits stay
    ahead of text hits.
    """
    seen: Set[Tuple[str, str]] = set()
    merged: List[SearchResultItem] = []

    for hit in vector_hits:
        key = (hit.content_type, hit.content_id)
        if key in seen:
            continue
        score = hit.similarity if hit.similarity is not None else DEFAULT_VECTOR_SCORE
        merged.append(_to_result(hit, "vector", float(score)))
        seen.add(key)

    for hit in text_hits:
        key = (hit.content_type, hit.content_id)
        if key in seen or len(merged) >= limit:
            continue
        merged.append(_to_result(hit, "text", TEXT_MATCH_SCORE))
        seen.add(key)

    merged.sort(key=lambda item: item.relevance_score, reverse=True)
    return merged[:limit]


def _to_result(hit: SearchHit, source: str, score: float) -> SearchResultItem:
    return SearchResultItem(
        content_type=hit.content_type,
        content_id=hit.content_id,
        title=hit.title,
        content=hit.content,
        metadata=hit.metadata,
        source=source,
        relevance_score=score,
    )
