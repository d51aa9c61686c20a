"""
Search analytics report.

Aggregates the search log over a time window, asks the chat model for an
executive summary and stores the snapshot as a SearchTrend.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from .chat import ChatCompletionEngine
from .search_store import SearchStore
from ..models.search_trend import SearchTrend
from ..schemas.analytics import AnalyticsPeriod, AnalyticsResponse, QueryCount

logger = logging.getLogger(__name__)

TOP_QUERY_COUNT = 20
INSIGHT_QUERY_COUNT = 5
DEFAULT_WINDOW_DAYS = 7
NO_DATA_MESSAGE = "No search data for this period"
INSIGHTS_FALLBACK = "Insights de IA não disponíveis no momento."

INSIGHTS_PROMPT = """Analise os seguintes dados de busca e gere insights acionáveis:

DADOS:
- Total de buscas: {total_searches}
- Taxa de sucesso: {success_rate:.1f}%
- Latência média: {avg_latency_ms}ms

TOP 5 BUSCAS:
{top_queries}

TOP 5 BUSCAS SEM RESULTADO:
{no_result_queries}

Gere um relatório executivo com:
1. Principais tendências identificadas
2. Lacunas de conteúdo mais críticas
3. Recomendações práticas para melhorar a base de conhecimento
4. Prioridades de criação de conteúdo

Seja objetivo e acionável (máx. 250 palavras)."""


def count_queries(queries: Iterable[str], limit: int = TOP_QUERY_COUNT) -> List[QueryCount]:
    """Most frequent queries, ties kept in first-seen order."""
    return [
        QueryCount(query=query, count=count)
        for query, count in Counter(queries).most_common(limit)
    ]


def _numbered(queries: List[QueryCount]) -> str:
    return "\n".join(
        f'{i}. "{item.query}" - {item.count} vezes' for i, item in enumerate(queries, start=1)
    )


class SearchAnalytics:
    """Builds analytics reports from the search log."""

    def __init__(self, store: SearchStore, chat_engine: Optional[ChatCompletionEngine] = None):
        self.store = store
        self.chat_engine = chat_engine

    async def generate_report(
        self,
        period: str = "weekly",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> AnalyticsResponse:
        end = end or datetime.now(timezone.utc)
        start = start or end - timedelta(days=DEFAULT_WINDOW_DAYS)

        logger.info(f"Generating {period} analytics: {start.isoformat()} to {end.isoformat()}")

        logs = await self.store.logs_between(start, end)
        if not logs:
            return AnalyticsResponse(message=NO_DATA_MESSAGE)

        total = len(logs)
        top_queries = count_queries(log.query for log in logs)
        no_result_queries = count_queries(log.query for log in logs if log.no_results)

        successful = sum(1 for log in logs if log.results_count > 0)
        success_rate = successful / total * 100
        avg_latency_ms = round(sum(log.latency_ms or 0 for log in logs) / total)

        insights = await self._generate_insights(
            top_queries[:INSIGHT_QUERY_COUNT],
            no_result_queries[:INSIGHT_QUERY_COUNT],
            success_rate,
            total,
            avg_latency_ms,
        )

        await self.store.save_trend(SearchTrend(
            period=period,
            period_start=start,
            period_end=end,
            top_queries=[item.model_dump() for item in top_queries],
            no_result_queries=[item.model_dump() for item in no_result_queries],
            avg_latency_ms=avg_latency_ms,
            total_searches=total,
            success_rate=success_rate,
        ))

        logger.info(f"Analytics generated for {total} searches")

        return AnalyticsResponse(
            top_queries=top_queries,
            no_result_queries=no_result_queries,
            success_rate=round(success_rate, 2),
            avg_latency_ms=avg_latency_ms,
            total_searches=total,
            insights=insights,
            period=AnalyticsPeriod(type=period, start=start, end=end),
        )

    async def _generate_insights(
        self,
        top_queries: List[QueryCount],
        no_result_queries: List[QueryCount],
        success_rate: float,
        total_searches: int,
        avg_latency_ms: int,
    ) -> str:
        if self.chat_engine is None:
            return INSIGHTS_FALLBACK

        prompt = INSIGHTS_PROMPT.format(
            total_searches=total_searches,
            success_rate=success_rate,
            avg_latency_ms=avg_latency_ms,
            top_queries=_numbered(top_queries),
            no_result_queries=_numbered(no_result_queries),
        )
        try:
            return await self.chat_engine.complete(prompt, max_output_tokens=1024)
        except Exception as e:
            logger.error(f"Error generating AI insights: {str(e)}")
            return INSIGHTS_FALLBACK
