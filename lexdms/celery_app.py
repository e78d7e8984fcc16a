from celery import Celery
from celery.signals import setup_logging, worker_ready

from lexdms.config import settings

celery_app = Celery(
    "lexdms",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["lexdms.tasks.retention", "lexdms.tasks.notifications"],
)

celery_app.conf.update(
    task_always_eager=settings.celery_task_always_eager,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "archive-expired-retentions": {
            "task": "lexdms.tasks.retention.archive_expired_retentions",
            "schedule": settings.retention_sweep_interval_hours * 3600.0,
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    from lexdms.logging import configure_logging

    configure_logging()


@worker_ready.connect
def _schedule_startup_sweep(sender=None, **kwargs) -> None:
    # First sweep runs after warm-up; beat takes over from there
    from lexdms.tasks.retention import archive_expired_retentions

    archive_expired_retentions.apply_async(
        countdown=settings.retention_sweep_startup_delay_seconds
    )
