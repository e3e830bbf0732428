"""
Background scheduler for automated tasks.

Handles:
- Expired approval sweep (hourly, at minute 5)
"""
import os
import logging

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Store Flask app reference for context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER is on.
    Only the main gunicorn process should run the scheduler.
    """
    global _scheduler, _flask_app

    _flask_app = app

    # Don't run scheduler in testing
    if app.config.get('TESTING'):
        logger.debug('[Scheduler] Disabled in testing mode')
        return None

    if not (os.getenv('FLASK_ENV') == 'production' or app.config.get('ENABLE_SCHEDULER')):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return None

    # Prevent multiple scheduler instances (gunicorn workers)
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return None

    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.cron import CronTrigger

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,  # Prevent concurrent runs
            'misfire_grace_time': 3600
        }
    )

    _scheduler.add_job(
        run_approval_expiry,
        trigger=CronTrigger(minute=5),
        id='approval_expiry',
        name='Expire stale approval requests',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'
    logger.info('[Scheduler] Started: approval expiry hourly at :05 UTC')

    import atexit
    atexit.register(shutdown_scheduler)
    return _scheduler


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def run_approval_expiry():
    """Move PENDING approval requests past their expiry to EXPIRED."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return None

    with _flask_app.app_context():
        from ..services.maintenance_service import maintenance_service

        try:
            result = maintenance_service.expire_stale_approvals()
            logger.info('[Scheduler] Approval expiry complete: %s expired', result['expired'])
            return result
        except Exception as e:
            logger.error('[Scheduler] Approval expiry failed: %s', e)
            return None
