"""
Background jobs for the search index and the weekly analytics report.

Each task runs its coroutine with ``asyncio.run`` on a fresh event loop, so it
creates its own async engine instead of reusing the API's pooled connections.
"""

import asyncio
import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from .celery_app import celery_app
from ..core.analytics import SearchAnalytics
from ..core.chat import create_chat_engine
from ..core.config import settings
from ..core.embeddings import create_embedding_engine
from ..core.indexer import IndexBuilder
from ..core.search_exceptions import ConfigurationError
from ..core.search_store import SearchStore

logger = logging.getLogger(__name__)

MAX_RETRIES = 3


def _create_task_store():
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, SearchStore(session_factory)


async def _rebuild_index() -> Dict[str, Any]:
    engine, store = _create_task_store()
    try:
        builder = IndexBuilder(store, create_embedding_engine())
        result = await builder.rebuild()
        return {"success": True, "indexed": result.indexed, "failed": result.failed, "total": result.total}
    finally:
        await engine.dispose()


async def _weekly_report() -> Dict[str, Any]:
    engine, store = _create_task_store()
    try:
        try:
            chat_engine = create_chat_engine(settings.INSIGHTS_MODEL)
        except ConfigurationError as e:
            logger.warning(f"Weekly report without AI insights: {str(e)}")
            chat_engine = None

        report = await SearchAnalytics(store, chat_engine).generate_report(period="weekly")
        return report.model_dump(mode="json")
    finally:
        await engine.dispose()


def _retry_countdown(retries: int) -> int:
    return 60 * (2 ** retries)  # 60s, 120s, 240s...


@celery_app.task(bind=True, name='intranet_search.tasks.index_tasks.rebuild_search_index')
def rebuild_search_index(self):
    """Rebuild the whole search index (scheduled nightly)."""
    task_id = self.request.id
    logger.info(f"Starting search index rebuild task {task_id}")

    try:
        result = asyncio.run(_rebuild_index())
        logger.info(
            f"Search index rebuild task {task_id} completed: "
            f"{result['indexed']}/{result['total']} indexed, {result['failed']} failed"
        )
        return result

    except ConfigurationError as exc:
        # Retrying cannot fix a missing credential
        logger.error(f"Search index rebuild task {task_id} misconfigured: {str(exc)}")
        raise

    except Exception as exc:
        logger.error(f"Search index rebuild task {task_id} failed: {str(exc)}")
        retry_count = self.request.retries
        if retry_count < MAX_RETRIES:
            countdown = _retry_countdown(retry_count)
            logger.info(f"Retrying task {task_id} in {countdown} seconds (attempt {retry_count + 1}/{MAX_RETRIES})")
            raise self.retry(exc=exc, countdown=countdown, max_retries=MAX_RETRIES)
        raise


@celery_app.task(bind=True, name='intranet_search.tasks.index_tasks.generate_weekly_search_report')
def generate_weekly_search_report(self):
    """Aggregate the last 7 days of searches into a SearchTrend snapshot."""
    task_id = self.request.id
    logger.info(f"Starting weekly search report task {task_id}")

    try:
        report = asyncio.run(_weekly_report())
        logger.info(f"Weekly search report task {task_id} completed ({report['total_searches']} searches)")
        return report

    except Exception as exc:
        logger.error(f"Weekly search report task {task_id} failed: {str(exc)}")
        retry_count = self.request.retries
        if retry_count < MAX_RETRIES:
            countdown = _retry_countdown(retry_count)
            raise self.retry(exc=exc, countdown=countdown, max_retries=MAX_RETRIES)
        raise
