from __future__ import annotations

from datetime import timedelta

from conftest import make_submission
from quotadesk.core.config import settings
from quotadesk.jobs.retention import (
    RETENTION_JOB_ID,
    run_retention_sweep,
    start_retention_scheduler,
    stop_retention_scheduler,
)


def test_run_retention_sweep_removes_expired(approval_engine, clock, store):
    approval_engine.submit(make_submission(("tuna", 450)))
    pending = approval_engine.submit(make_submission(("tuna", 100)))
    approval_engine.reject(pending.id)

    assert run_retention_sweep(approval_engine) == []
    clock.advance(days=31)
    assert run_retention_sweep(approval_engine) == [pending.id]
    assert store.get_shipment(pending.id) is None


def test_run_retention_sweep_logs_failures(approval_engine, monkeypatch, caplog):
    def _boom(*_args, **_kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(approval_engine, "sweep_rejected", _boom)
    with caplog.at_level("ERROR"):
        assert run_retention_sweep(approval_engine) == []
    assert "retention_sweep_failed" in caplog.text


def test_scheduler_disabled_by_setting(approval_engine, monkeypatch):
    monkeypatch.setattr(settings, "RETENTION_SWEEP_ENABLED", False)
    assert start_retention_scheduler(approval_engine) is None
    stop_retention_scheduler(None)


def test_scheduler_registers_interval_job(approval_engine, monkeypatch):
    monkeypatch.setattr(settings, "RETENTION_SWEEP_ENABLED", True)
    monkeypatch.setattr(settings, "RETENTION_SWEEP_INTERVAL_HOURS", 12)
    scheduler = start_retention_scheduler(approval_engine)
    try:
        job = scheduler.get_job(RETENTION_JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(hours=12)
    finally:
        stop_retention_scheduler(scheduler)
