"""
In-process scheduling of deferred notifications.

Jobs live in an APScheduler memory job store: pending notifications are lost
when the process exits, and every process keeps its own schedule.
"""
import logging

from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from django.db import close_old_connections

logger = logging.getLogger('notifications')

jobstores = {
    'default': MemoryJobStore()
}

job_defaults = {
    'coalesce': True,
    # Deferred sends still go out when the process was busy at run time
    'misfire_grace_time': None,
}

scheduler = BackgroundScheduler(jobstores=jobstores, job_defaults=job_defaults)


def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        logger.info("Notification scheduler started")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Notification scheduler stopped")


def run_scheduled_job(callback, *args):
    """Job wrapper; worker threads must not keep stale database connections"""
    try:
        callback(*args)
    except Exception as e:
        logger.error(f"Scheduled notification job failed: {e}")
    finally:
        close_old_connections()


def schedule(run_at, callback, *args):
    """Run ``callback(*args)`` once at ``run_at``; returns the job id"""
    start_scheduler()
    job = scheduler.add_job(run_scheduled_job, 'date', run_date=run_at, args=[callback, *args])
    logger.info(f"Scheduled notification job {job.id} for {run_at}")
    return job.id


def cancel(job_id):
    try:
        scheduler.remove_job(job_id)
    except JobLookupError:
        return False
    return True


def cancel_all():
    count = len(scheduler.get_jobs())
    scheduler.remove_all_jobs()
    return count


def pending_count():
    return len(scheduler.get_jobs())
