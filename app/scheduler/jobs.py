"""
app/scheduler/jobs.py

APScheduler-based scheduler for periodic catalog discovery and metadata sync.

Schedule (all times UTC, configurable through SchedulerSettings)
-----------------------------------------------------------------
  weekly_discovery  - quick discover-and-add, Sunday 03:00
  metadata_sync     - metadata sync pass over active datasets, every 6 hours

A run that is still in progress when its next trigger fires is skipped.
Every run is recorded as a discovery job, so ``GET /discovery/jobs`` and the
stats ``lastDiscovery`` field reflect scheduled runs too.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
"""

from __future__ import annotations

import logging
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import SchedulerSettings, get_scheduler_settings
from app.services.discovery_service import DiscoveryService, get_discovery_service
from db.models.discovery_job import DiscoveryJobType

logger = logging.getLogger(__name__)

_discovery_lock = threading.Lock()
_sync_lock = threading.Lock()


def _run_guarded(
    lock: threading.Lock,
    *,
    name: str,
    job_type: str,
    service: DiscoveryService | None = None,
) -> bool:
    """
    Run one discovery job unless the previous run still holds the lock.

    Returns False when the run was skipped.
    """

    if not lock.acquire(blocking=False):
        logger.warning("Scheduler: %s already running, skipping", name)
        return False

    try:
        logger.info("Scheduler: %s starting", name)
        job = (service or get_discovery_service()).run_job(job_type=job_type)
        logger.info(
            "Scheduler: %s finished job_id=%s status=%s result=%s",
            name,
            job.id,
            job.status,
            job.result_payload,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: %s failed: %s", name, exc)
    finally:
        lock.release()
    return True


def run_weekly_discovery(service: DiscoveryService | None = None) -> bool:
    return _run_guarded(
        _discovery_lock,
        name="weekly_discovery",
        job_type=DiscoveryJobType.QUICK_DISCOVERY,
        service=service,
    )


def run_metadata_sync(service: DiscoveryService | None = None) -> bool:
    return _run_guarded(
        _sync_lock,
        name="metadata_sync",
        job_type=DiscoveryJobType.SYNC_ALL,
        service=service,
    )


def build_scheduler(settings: SchedulerSettings | None = None) -> BackgroundScheduler:
    """
    Build and register the periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    settings = settings or get_scheduler_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_weekly_discovery,
        trigger="cron",
        day_of_week=settings.discovery_day_of_week,
        hour=settings.discovery_hour,
        minute=0,
        id="weekly_discovery",
        name="Weekly dataset discovery",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=7200,
    )
    scheduler.add_job(
        run_metadata_sync,
        trigger="interval",
        hours=settings.sync_interval_hours,
        id="metadata_sync",
        name="Dataset metadata sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )

    return scheduler
