from __future__ import annotations

import json
import threading

from conftest import make_submission
from quotadesk.models.app_snapshot import AppSnapshot


def _stored_shipment_ids(session_factory) -> list[str]:
    with session_factory() as db:
        row = db.query(AppSnapshot).first()
        if row is None:
            return []
        return [s["id"] for s in json.loads(row.payload)["state"]["shipments"]]


def _submit_during(runtime, monkeypatch, method_name: str):
    """Start a submission while the repository write is in progress."""
    original = getattr(runtime.repository, method_name)
    started: dict[str, object] = {}

    def _write_then_race(*args, **kwargs):
        result = original(*args, **kwargs)
        worker = threading.Thread(
            target=lambda: runtime.engine.submit(make_submission(("mahi", 5)))
        )
        worker.start()
        worker.join(timeout=0.2)
        started["worker"] = worker
        started["blocked"] = worker.is_alive()
        return result

    monkeypatch.setattr(runtime.repository, method_name, _write_then_race)
    return started


def test_clear_storage_holds_store_lock(runtime, session_factory, monkeypatch):
    runtime.engine.submit(make_submission(("tuna", 40)))
    started = _submit_during(runtime, monkeypatch, "clear")

    runtime.clear_storage()
    started["worker"].join(timeout=5)

    assert started["blocked"] is True
    memory_ids = [s.id for s in runtime.store.list_shipments()]
    assert len(memory_ids) == 1
    assert _stored_shipment_ids(session_factory) == memory_ids


def test_import_snapshot_holds_store_lock(runtime, session_factory, monkeypatch):
    first = runtime.engine.submit(make_submission(("tuna", 40)))
    exported = runtime.repository.export_payload()
    runtime.engine.submit(make_submission(("wahoo", 12)))
    started = _submit_during(runtime, monkeypatch, "import_payload")

    state = runtime.import_snapshot(exported)
    started["worker"].join(timeout=5)

    assert started["blocked"] is True
    assert [s.id for s in state.shipments] == [first.id]
    memory_ids = sorted(s.id for s in runtime.store.list_shipments())
    assert len(memory_ids) == 2
    assert first.id in memory_ids
    assert sorted(_stored_shipment_ids(session_factory)) == memory_ids
