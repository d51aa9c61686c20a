from celery import Celery
from celery.schedules import crontab
from ..core.config import settings

# Create Celery app instance
celery_app = Celery(
    "intranet_search_tasks",
    include=['intranet_search.tasks.index_tasks']
)

# Configure Celery
celery_app.conf.update(
    # Broker and Backend Configuration
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,

    # Task Serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone Configuration
    timezone='UTC',
    enable_utc=True,

    # A full rebuild embeds every visible item
    task_soft_time_limit=1800,
    task_time_limit=2400,
    broker_transport_options={
        'visibility_timeout': 3600,
    },

    # Task Routing
    task_routes={
        'intranet_search.tasks.index_tasks.rebuild_search_index': {'queue': 'search'},
        'intranet_search.tasks.index_tasks.generate_weekly_search_report': {'queue': 'search'},
    },

    # Worker Configuration
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_concurrency=2,

    # Result Backend Configuration
    result_expires=3600,

    # Error Handling
    task_reject_on_worker_lost=True,
    task_default_retry_delay=60,
    task_max_retries=3,

    worker_hijack_root_logger=False,  # Preserve application logging
    worker_log_color=False,
    worker_send_task_events=True,

    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,

    # Periodic jobs (celery beat)
    beat_schedule={
        'nightly-search-index-rebuild': {
            'task': 'intranet_search.tasks.index_tasks.rebuild_search_index',
            'schedule': crontab(hour=settings.INDEX_REBUILD_HOUR_UTC, minute=0),
        },
        'weekly-search-report': {
            'task': 'intranet_search.tasks.index_tasks.generate_weekly_search_report',
            'schedule': crontab(day_of_week='monday', hour=8, minute=0),
        },
    },
)
