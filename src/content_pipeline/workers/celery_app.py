"""Celery application for the content pipeline.

Configures the broker, result backend and serialization.  All configuration
values are sourced from ``Settings`` so that no environment-specific values
are hard-coded here.  The pipeline schedules nothing on its own, so there
is no Beat schedule; orchestrators send tasks explicitly.

Usage (starting a worker)::

    celery -A content_pipeline.workers.celery_app worker -Q ingestion,maintenance --loglevel=info

Usage (within application code)::

    from content_pipeline.workers.celery_app import celery_app

    result = celery_app.send_task(
        "content_pipeline.workers.maintenance_tasks.backfill_deduplication",
        kwargs={"batch_size": 500},
    )
"""

from __future__ import annotations

from celery import Celery
from celery.signals import worker_process_init
from dotenv import load_dotenv

# Load .env into os.environ before settings are read.
load_dotenv()

from content_pipeline.config.settings import get_settings  # noqa: E402
from content_pipeline.core.logging_config import configure_logging  # noqa: E402

settings = get_settings()

#: The global Celery application instance.
celery_app = Celery(
    "content_pipeline",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "content_pipeline.workers.maintenance_tasks",
    ],
)

celery_app.conf.update(
    # JSON keeps tasks inspectable; every argument and result must be
    # JSON-serializable.
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Acknowledge after completion so a worker crash re-delivers the task.
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86_400,
    task_soft_time_limit=3_600,
    task_time_limit=7_200,
    # Backfills are long scans; keep them off the queue that takes fresh batches.
    task_routes={
        "content_pipeline.workers.maintenance_tasks.ingest_content": {"queue": "ingestion"},
        "content_pipeline.workers.maintenance_tasks.set_primary_content": {"queue": "ingestion"},
        "content_pipeline.workers.maintenance_tasks.backfill_deduplication": {"queue": "maintenance"},
    },
)


@worker_process_init.connect
def _configure_worker_logging(**_kwargs: object) -> None:
    """Install structlog JSON logging in every worker process."""
    configure_logging(settings.log_level)
