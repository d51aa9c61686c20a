"""
Follow-up suggestions returned with every search.

Zero-result searches ask the chat model for three reformulations of the
query, falling back to fixed templates. Searches with results get templated
suggestions pairing the first query keyword with the content types found.
"""

import logging
import re
from typing import Iterable, List, Optional

from .chat import ChatCompletionEngine
from .search_exceptions import ChatCompletionError
from ..models.content_type import ContentType

logger = logging.getLogger(__name__)

SMART_SUGGESTION_COUNT = 3
MAX_BASIC_SUGGESTIONS = 5
MIN_KEYWORD_LENGTH = 4
DEFAULT_KEYWORD = "procedimentos"

REFORMULATION_PROMPT = (
    'Reformule esta busca de 3 formas diferentes, corrigindo possíveis erros '
    'de digitação: "{query}". Retorne apenas as 3 sugestões, uma por linha, '
    'sem numeração.'
)

SUGGESTION_TEMPLATES = {
    ContentType.TRAINING.value: "treinamento sobre {keyword}",
    ContentType.ANNOUNCEMENT.value: "comunicado sobre {keyword}",
    ContentType.MANUAL.value: "manual de {keyword}",
    ContentType.CHECKLIST.value: "checklist de {keyword}",
    ContentType.IDEA.value: "ideias sobre {keyword}",
    ContentType.CAMPAIGN.value: "campanha sobre {keyword}",
    ContentType.FEED_POST.value: "publicações sobre {keyword}",
}

_LIST_MARKER = re.compile(r'^\s*(?:[-*•]|\d+[.)])\s*')


def fallback_suggestions(query: str) -> List[str]:
    return [
        f"{query} manual",
        f"{query} treinamento",
        f"como {query}",
    ]


def parse_suggestion_lines(text: str, count: int = SMART_SUGGESTION_COUNT) -> List[str]:
    """Non-empty lines of a model answer, stripped of list markers and quotes."""
    lines = []
    for line in text.splitlines():
        cleaned = _LIST_MARKER.sub("", line).strip().strip('"').strip()
        if cleaned:
            lines.append(cleaned)
    return lines[:count]


class SuggestionGenerator:
    """Builds the suggestions list for a search response."""

    def __init__(self, chat_engine: Optional[ChatCompletionEngine] = None):
        self.chat_engine = chat_engine

    async def smart_suggestions(self, query: str) -> List[str]:
        """
        Ask the chat model for three reformulations of ``query``.

        Always returns exactly three suggestions: missing lines are filled
        from the fixed templates.

        Raises:
            ChatCompletionError: If the chat model is unavailable; callers
                fall back to ``fallback_suggestions``
        """
        if self.chat_engine is None:
            raise ChatCompletionError("Chat completion engine not configured")

        answer = await self.chat_engine.complete(REFORMULATION_PROMPT.format(query=query))
        suggestions = parse_suggestion_lines(answer)

        for template in fallback_suggestions(query):
            if len(suggestions) >= SMART_SUGGESTION_COUNT:
                break
            if template not in suggestions:
                suggestions.append(template)

        return suggestions[:SMART_SUGGESTION_COUNT]

    @staticmethod
    def basic_suggestions(query: str, content_types: Iterable[str]) -> List[str]:
        """Templated suggestions from the first query keyword and the result types."""
        keywords = [word for word in query.lower().split() if len(word) >= MIN_KEYWORD_LENGTH]
        keyword = keywords[0] if keywords else DEFAULT_KEYWORD

        suggestions: List[str] = []
        for content_type in content_types:
            template = SUGGESTION_TEMPLATES.get(content_type)
            if template is None:
                continue
            suggestion = template.format(keyword=keyword)
            if suggestion not in suggestions:
                suggestions.append(suggestion)

        return suggestions[:MAX_BASIC_SUGGESTIONS]
