"""
APScheduler setup for ClickUp Backup.

Two kinds of jobs share one single-threaded executor:
- 'clickup_backup': the recurring run, from the BACKUP_SCHEDULE_CRON crontab
- 'manual_<epoch>': one-off runs queued through trigger_backup_now()

With one worker and max_instances=1 two runs never overlap.
"""

import logging
from datetime import datetime, timedelta, timezone
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.executors.pool import ThreadPoolExecutor

from clickup_backup.backup.executor import run_backup

logger = logging.getLogger(__name__)

BACKUP_JOB_ID = 'clickup_backup'
MANUAL_RUN_DELAY = timedelta(seconds=1)

# Module state: set once by init_scheduler()
scheduler = None
flask_app = None


def _require_scheduler():
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")
    return scheduler


def _job_summary(job) -> dict:
    return {
        'id': job.id,
        'name': job.name,
        'next_run': job.next_run_time.isoformat() if job.next_run_time else None,
        'trigger': str(job.trigger)
    }


def init_scheduler(app):
    """
    Create the scheduler and register the recurring backup job.

    Calling it again returns the existing scheduler untouched.

    Args:
        app: Flask app; jobs run inside its app context

    Raises:
        ValueError: If BACKUP_SCHEDULE_CRON is not a valid crontab expression
    """
    global scheduler, flask_app

    if scheduler is not None:
        return scheduler

    flask_app = app
    tz_name = app.config.get('SCHEDULER_TIMEZONE', 'UTC')

    scheduler = BackgroundScheduler(
        jobstores={'default': SQLAlchemyJobStore(url=app.config['SQLALCHEMY_DATABASE_URI'])},
        executors={'default': ThreadPoolExecutor(max_workers=1)},
        job_defaults={
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': 300  # seconds
        },
        timezone=tz_name
    )

    crontab = app.config.get('BACKUP_SCHEDULE_CRON')
    if not crontab:
        logger.info("BACKUP_SCHEDULE_CRON is empty; only manual runs are possible")
        return scheduler

    scheduler.add_job(
        func=_execute_backup_wrapper,
        trigger=CronTrigger.from_crontab(crontab, timezone=tz_name),
        id=BACKUP_JOB_ID,
        name='Scheduled ClickUp Backup',
        replace_existing=True
    )
    logger.info(f"Scheduled ClickUp backup ({crontab} {tz_name})")
    return scheduler


def start_scheduler():
    """
    Start the background scheduler thread.

    Raises:
        RuntimeError: If init_scheduler() has not been called
    """
    sched = _require_scheduler()

    if sched.running:
        logger.info(f"Scheduler already running (state={sched.state})")
        return

    sched.start()
    logger.info(f"APScheduler started (state={sched.state})")
    for job in sched.get_jobs():
        summary = _job_summary(job)
        logger.info(f"  - {summary['id']}: {summary['name']} (next run: {summary['next_run'] or 'N/A'})")


def stop_scheduler():
    if scheduler is not None and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")


def _execute_backup_wrapper(trigger: str = 'scheduled'):
    """
    Job entry point: run a backup inside the stored app context.

    Args:
        trigger: Recorded on the BackupRun ('scheduled' or 'manual')
    """
    with flask_app.app_context():
        logger.info(f"Scheduler executing ClickUp backup (trigger={trigger})")
        record = run_backup(trigger=trigger)
        logger.info(f"Backup run {record.id} finished: {record.status}")


def trigger_backup_now() -> str:
    """
    Queue a one-off backup run shortly after now.

    Returns:
        ID of the queued job

    Raises:
        RuntimeError: If the scheduler is not initialized
    """
    sched = _require_scheduler()

    now = datetime.now(timezone.utc)
    job_id = f"manual_{int(now.timestamp())}"
    sched.add_job(
        func=_execute_backup_wrapper,
        args=['manual'],
        trigger=DateTrigger(run_date=now + MANUAL_RUN_DELAY),
        id=job_id,
        name='Manual ClickUp Backup',
        replace_existing=False
    )

    logger.info(f"Manually triggered ClickUp backup ({job_id})")
    return job_id


def get_scheduled_jobs() -> list:
    """Pending jobs as dicts (id, name, next_run, trigger); empty before init."""
    if scheduler is None:
        return []
    return [_job_summary(job) for job in scheduler.get_jobs()]


def is_scheduler_running() -> bool:
    return scheduler is not None and scheduler.running
