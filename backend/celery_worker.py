#!/usr/bin/env python3
"""
Celery worker entry point for Intranet Search.

Starts a worker for the search queue. Pass ``--beat`` to also run the
scheduler for the nightly index rebuild and the weekly report.
"""

import os
import sys
import logging
from pathlib import Path

# Add the backend directory to Python path
sys.path.insert(0, str(Path(__file__).parent))

from intranet_search.tasks.celery_app import celery_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('/app/logs/celery_worker.log') if os.path.exists('/app/logs') else logging.NullHandler()
    ]
)

logger = logging.getLogger(__name__)

def main():
    """Start the Celery worker."""
    logger.info("Starting Intranet Search Celery worker...")

    worker_args = [
        'worker',
        '--loglevel=info',
        '--concurrency=2',
        '--queues=search',
        '--prefetch-multiplier=1',
    ]

    if '--beat' in sys.argv[1:]:
        worker_args.append('--beat')

    logger.info(f"Starting worker with args: {' '.join(worker_args)}")

    celery_app.worker_main(worker_args)

if __name__ == '__main__':
    main()
