# catalog/scheduler.py
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from .config import SYNC_WORKERS
from .utils import logger

def _log_job_error(event):
    logger.error("Background job %s failed: %s", event.job_id, event.exception, exc_info=event.exception)

def create_scheduler(workers: int = SYNC_WORKERS, start: bool = True) -> BackgroundScheduler:
    # one-shot jobs: run however late they get picked up
    scheduler = BackgroundScheduler(
        executors={"default": ThreadPoolExecutor(workers)},
        job_defaults={"coalesce": False, "max_instances": 1, "misfire_grace_time": None},
    )
    scheduler.add_listener(_log_job_error, EVENT_JOB_ERROR)
    if start:
        scheduler.start()
        logger.info("Scheduler started with %d sync workers", workers)
    return scheduler
