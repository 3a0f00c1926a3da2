"""
Retention sweep for rejected shipments.

Runs once at startup and then on a fixed interval (daily by default). The
sweep is idempotent and only touches rejected shipments past the retention
window, so it is safe alongside user-initiated transitions.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from quotadesk.core.config import settings
from quotadesk.services.approval_engine import ShipmentApprovalEngine

logger = logging.getLogger(__name__)

RETENTION_JOB_ID = "rejected_shipment_retention"

job_defaults = {
    "coalesce": True,  # Combine missed runs into one
    "max_instances": 1,
    "misfire_grace_time": 300,
}


def run_retention_sweep(engine: ShipmentApprovalEngine) -> list[str]:
    try:
        removed = engine.sweep_rejected()
    except Exception:
        logger.exception("retention_sweep_failed")
        return []
    if removed:
        logger.info("retention_sweep_completed removed=%s", len(removed))
    return removed


def start_retention_scheduler(engine: ShipmentApprovalEngine) -> BackgroundScheduler | None:
    if not settings.RETENTION_SWEEP_ENABLED:
        logger.info("retention_scheduler_disabled")
        return None

    hours = max(1, int(settings.RETENTION_SWEEP_INTERVAL_HOURS))
    scheduler = BackgroundScheduler(job_defaults=job_defaults, timezone="UTC")
    scheduler.add_job(
        run_retention_sweep,
        trigger="interval",
        hours=hours,
        id=RETENTION_JOB_ID,
        args=[engine],
        replace_existing=True,
    )
    scheduler.start()
    logger.info("retention_scheduler_started interval_hours=%s", hours)
    return scheduler


def stop_retention_scheduler(scheduler: BackgroundScheduler | None) -> None:
    if scheduler is None:
        return
    scheduler.shutdown(wait=False)
    logger.info("retention_scheduler_stopped")
