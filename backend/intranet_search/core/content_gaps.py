"""
Content-gap recommendations.

Pending content suggestions (terms that returned no results) are grouped by
shared keywords, and the chat model proposes one piece of content per group.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .chat import ChatCompletionEngine
from .config import settings
from .search_store import SearchStore
from ..models.content_suggestion import ContentSuggestion, normalize_term
from ..schemas.analytics import ContentGapReport, ContentRecommendation
from ..utils.cache import cached

logger = logging.getLogger(__name__)

PENDING_SUGGESTION_LIMIT = 20
MAX_GROUPS = 10
MIN_SIGNIFICANT_WORD_LENGTH = 4
NO_GAPS_MESSAGE = "Nenhuma lacuna de conteúdo identificada!"
RECOMMENDATION_FALLBACK = "Recomendação de IA não disponível no momento."

RECOMMENDATION_PROMPT = """Analise estas buscas sem resultado e sugira um conteúdo para criação:

TERMO PRINCIPAL: "{theme}"
VARIAÇÕES: {variations}
TOTAL DE BUSCAS: {search_count}

Gere uma recomendação estruturada:

**Título Sugerido:**
[Título claro e objetivo]

**Tipo de Conteúdo:**
[manual | FAQ | treinamento | comunicado]

**Tópicos Principais:**
- [Tópico 1]
- [Tópico 2]
- [Tópico 3]

**Prioridade:**
[Alta | Média | Baixa] - Justifique

**Impacto Esperado:**
[Breve descrição de como isso ajudará os colaboradores]

Seja prático e objetivo (máx. 200 palavras)."""


@dataclass
class SuggestionGroup:
    key: str
    theme: str
    variations: List[str] = field(default_factory=list)
    search_count: int = 0
    suggestion_ids: List[str] = field(default_factory=list)


def _significant_words(term: str) -> List[str]:
    return [word for word in term.split() if len(word) >= MIN_SIGNIFICANT_WORD_LENGTH]


def are_similar_terms(first: str, second: str) -> bool:
    """
    True when the terms share at least half of the shorter term's words
    of four or more characters.

    Terms without such words are only similar to an identical term.
    """
    first, second = normalize_term(first), normalize_term(second)
    words1 = _significant_words(first)
    words2 = _significant_words(second)

    if not words1 or not words2:
        return first == second

    common = [word for word in words1 if word in words2]
    return len(common) >= min(len(words1), len(words2)) * 0.5


def group_suggestions_by_theme(
    suggestions: Sequence[ContentSuggestion],
    max_groups: int = MAX_GROUPS,
) -> List[SuggestionGroup]:
    """Group similar terms; groups are ordered by total searches, largest first."""
    groups: List[SuggestionGroup] = []

    for suggestion in suggestions:
        normalized = normalize_term(suggestion.term)
        group = next((g for g in groups if are_similar_terms(normalized, g.key)), None)
        if group is None:
            group = SuggestionGroup(key=normalized, theme=suggestion.term)
            groups.append(group)

        group.variations.append(suggestion.term)
        group.search_count += suggestion.search_count
        group.suggestion_ids.append(suggestion.id)

    groups.sort(key=lambda g: g.search_count, reverse=True)
    return groups[:max_groups]


class ContentGapAdvisor:
    """Turns the pending content-gap backlog into content recommendations."""

    def __init__(self, store: SearchStore, chat_engine: Optional[ChatCompletionEngine] = None):
        self.store = store
        self.chat_engine = chat_engine

    async def recommend(self) -> ContentGapReport:
        logger.info("Generating content suggestions...")

        suggestions = await self.store.pending_suggestions(PENDING_SUGGESTION_LIMIT)
        if not suggestions:
            return ContentGapReport(message=NO_GAPS_MESSAGE)

        logger.info(f"Found {len(suggestions)} pending suggestions")

        groups = group_suggestions_by_theme(suggestions)
        texts = await asyncio.gather(*[self._recommendation_text(group) for group in groups])

        recommendations = [
            ContentRecommendation(
                theme=group.theme,
                variations=group.variations,
                search_count=group.search_count,
                suggestion_ids=group.suggestion_ids,
                ai_recommendation=text,
            )
            for group, text in zip(groups, texts)
        ]

        logger.info(f"Generated {len(recommendations)} content recommendations")
        return ContentGapReport(total_gaps=len(suggestions), recommendations=recommendations)

    async def _recommendation_text(self, group: SuggestionGroup) -> str:
        if self.chat_engine is None:
            return RECOMMENDATION_FALLBACK
        try:
            return await self._ask_model(group.theme, group.variations, group.search_count)
        except Exception as e:
            logger.error(f"Recommendation failed for {group.theme!r}: {str(e)}")
            return RECOMMENDATION_FALLBACK

    @cached(ttl_seconds=settings.CONTENT_GAP_CACHE_TTL, skip_args=1)
    async def _ask_model(self, theme: str, variations: List[str], search_count: int) -> str:
        prompt = RECOMMENDATION_PROMPT.format(
            theme=theme,
            variations=", ".join(variations),
            search_count=search_count,
        )
        return await self.chat_engine.complete(prompt, max_output_tokens=1024)
