"""
Celery Worker Configuration
Background worker for the Excel bill ledger, with Redis as message broker
and result backend.

Run with:
    celery -A hotel_billing.celery_worker worker -B --loglevel=info

Every task lands on the "ledger" queue. The beat schedule pings the
worker with ``health_check`` so a stalled worker shows up in the logs.
"""

from celery import Celery

from hotel_billing.core.config import get_settings

settings = get_settings()

LEDGER_QUEUE = 'ledger'

celery_app = Celery(
    'hotel_billing_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['hotel_billing.tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Ledger writes are serialized by the file lock
    task_default_queue=LEDGER_QUEUE,
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    # A single export may wait for the lock and then rewrite the workbook
    task_soft_time_limit=settings.ledger_lock_timeout + 30,
    task_time_limit=settings.ledger_lock_timeout + 60,

    result_expires=3600,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    beat_schedule={
        'ledger-worker-health': {
            'task': 'hotel_billing.tasks.health_check',
            'schedule': 300.0,
        },
    },

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
