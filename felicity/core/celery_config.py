from celery import Celery

from felicity.core.config import CELERY_TASK_ALWAYS_EAGER, get_redis_url


def make_celery(app_name: str = "felicity") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url, include=["felicity.tasks"])
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    celery.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
    celery.conf.beat_schedule = {
        "refresh-trending-counters": {
            "task": "felicity.tasks.refresh_trending_counters_task",
            "schedule": 15 * 60,
        },
    }
    return celery


celery_app = make_celery()
