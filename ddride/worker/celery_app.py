"""
Celery Application Configuration
"""
from celery import Celery
from ddride.config import settings

# Queue every ddride task is routed to; the health check reports its depth
WORKER_QUEUE = "default"

# Create Celery app
celery_app = Celery(
    "ddride_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "ddride.worker.tasks"
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    task_default_queue=WORKER_QUEUE,

    # Beat schedule for periodic tasks
    beat_schedule={
        "reconcile-revoked-drivers": {
            "task": "ddride.worker.tasks.reconcile_revoked_drivers",
            "schedule": settings.RECONCILE_INTERVAL_SEC,
        },
        "activate-due-events": {
            "task": "ddride.worker.tasks.activate_due_events",
            "schedule": settings.EVENT_ACTIVATION_INTERVAL_SEC,
        },
    }
)

# Task routing
celery_app.conf.task_routes = {
    "ddride.worker.tasks.*": {"queue": WORKER_QUEUE},
}

if __name__ == "__main__":
    celery_app.start()
