"""
APScheduler Configuration

Background job scheduler started from the FastAPI lifespan.
Each job opens its own database session.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,  # Allow 60 seconds grace time for misfires
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone='Asia/Kolkata'
)


async def run_job(job_name: str):
    """
    Wrapper called by APScheduler. A failing run is logged and the next
    scheduled run still happens.
    """
    from erp.jobs.maintenance_jobs import JOBS

    try:
        result = await JOBS[job_name]()
        logger.info(f"Job '{job_name}' completed: {result}")
    except Exception as e:
        logger.error(f"Job '{job_name}' failed: {e}")


def start_scheduler():
    """Start the background job scheduler."""
    if not scheduler.running:
        # Expire compliance items daily at 00:30
        scheduler.add_job(
            run_job,
            'cron',
            hour=0,
            minute=30,
            args=['expire_compliance_items'],
            id='expire_compliance_items',
            name='Expire Compliance Items',
            replace_existing=True,
        )

        # Flag overdue invoices and bills daily at 01:00
        scheduler.add_job(
            run_job,
            'cron',
            hour=1,
            minute=0,
            args=['mark_overdue_documents'],
            id='mark_overdue_documents',
            name='Mark Overdue Invoices and Bills',
            replace_existing=True,
        )

        # Remove expired export and print files every hour
        scheduler.add_job(
            run_job,
            'interval',
            hours=1,
            args=['cleanup_expired_files'],
            id='cleanup_expired_files',
            name='Cleanup Expired Export and Print Files',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    jobs = scheduler.get_jobs()
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in jobs
    ]
