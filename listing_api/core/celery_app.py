# listing_api/core/celery_app.py
from celery import Celery
from listing_api.config import settings

celery_app = Celery(
    "listing",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_time_limit=60*5,           # 5 min hard limit
    task_soft_time_limit=60*4,      # soft limit
    worker_max_tasks_per_child=100, # recycle to avoid leaks
    worker_prefetch_multiplier=1,
    result_expires=3600,            # 1h
    task_track_started=True,
    task_acks_late=False,           # triggers are at-most-once
    include=["listing_api.workers.triggers"],
)
