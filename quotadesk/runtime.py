from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from quotadesk.core.config import settings
from quotadesk.schemas.storage import StoreState
from quotadesk.services.approval_engine import Clock, ShipmentApprovalEngine
from quotadesk.services.notification_dispatch import (
    NotificationDispatcher,
    NotificationOutbox,
    build_dispatcher,
)
from quotadesk.services.shipment_store import ShipmentStore
from quotadesk.services.snapshot_repository import SnapshotRepository

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Process-wide state owner, built once at startup and injected into routes."""

    store: ShipmentStore
    repository: SnapshotRepository
    outbox: NotificationOutbox
    engine: ShipmentApprovalEngine
    scheduler: BackgroundScheduler | None = None

    def reload(self) -> None:
        state = self.repository.load()
        if state is not None:
            self.store.load_state(state)

    def clear_storage(self) -> None:
        with self.store.exclusive() as store:
            self.repository.clear()
            store.load_state(StoreState())

    def import_snapshot(self, raw: str) -> StoreState:
        with self.store.exclusive() as store:
            state = self.repository.import_payload(raw)
            store.load_state(state)
        return state

    def close(self) -> None:
        self.outbox.flush(timeout=settings.NOTIFICATION_TIMEOUT_SECONDS)
        self.outbox.shutdown(wait_for_pending=False)


def build_runtime(
    session_factory: Callable[[], Session],
    *,
    dispatcher: NotificationDispatcher | None = None,
    clock: Clock | None = None,
    persist: bool | None = None,
) -> Runtime:
    repository = SnapshotRepository(session_factory)
    store = ShipmentStore()
    persist_enabled = settings.SNAPSHOT_PERSIST_ENABLED if persist is None else persist
    if persist_enabled:
        store.set_persist_hook(repository.save)
    outbox = NotificationOutbox(dispatcher or build_dispatcher())
    engine = ShipmentApprovalEngine(store, outbox, clock=clock)
    logger.info(
        "runtime_built snapshot_key=%s persist=%s notifications=%s",
        repository.key,
        persist_enabled,
        type(outbox.dispatcher).__name__,
    )
    return Runtime(store=store, repository=repository, outbox=outbox, engine=engine)
