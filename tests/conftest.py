from __future__ import annotations

import os
import sys
import threading
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import importlib

fastapi_app = importlib.import_module("quotadesk.main").app
from quotadesk.api.deps.runtime import get_runtime
from quotadesk.db.base import Base
from quotadesk.runtime import build_runtime
from quotadesk.schemas.shipment import ProductPurchaseIn, PurchaseItemIn, ShipmentSubmission
from quotadesk.services.approval_engine import ShipmentApprovalEngine
from quotadesk.services.notification_dispatch import NotificationDispatcher, NotificationOutbox
from quotadesk.services.shipment_store import ShipmentStore

# Ensure all models are registered with SQLAlchemy metadata
import quotadesk.models  # noqa: F401

# Wednesday; the quota week starts on Sunday 2026-03-01.
FIXED_NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)
ARRIVAL = date(2026, 3, 5)


class FixedClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str, str | None]] = []
        self._lock = threading.Lock()

    def _record(self, kind, summary, purchaser_id, reason=None):
        with self._lock:
            self.sent.append((kind, summary.shipment_id, purchaser_id, reason))

    def notify_approved(self, summary, purchaser_id):
        self._record("approved", summary, purchaser_id)

    def notify_rejected(self, summary, purchaser_id, reason):
        self._record("rejected", summary, purchaser_id, reason)

    def notify_new_pending(self, summary, purchaser_id):
        self._record("new_pending", summary, purchaser_id)

    def notify_new_auto_approved(self, summary, purchaser_id):
        self._record("new_auto_approved", summary, purchaser_id)

    def kinds(self) -> list[str]:
        with self._lock:
            return [entry[0] for entry in self.sent]


def make_submission(
    *products: tuple[str, float],
    shipper: str = "Blue Water Fisheries",
    arrival: date | None = ARRIVAL,
    custom_name: str | None = None,
) -> ShipmentSubmission:
    return ShipmentSubmission(
        shipper=shipper,
        estimated_arrival=arrival,
        products=[
            ProductPurchaseIn(
                product_id=product_id,
                custom_product_name=custom_name,
                total_pounds=pounds,
                items=[PurchaseItemIn(size_category="Medium (5-15 lbs)", pounds=pounds, cost=4.5)],
            )
            for product_id, pounds in products
        ],
    )


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def session_factory(engine):
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def outbox(dispatcher):
    outbox = NotificationOutbox(dispatcher, max_workers=2, enabled=True)
    yield outbox
    outbox.shutdown(wait_for_pending=True)


@pytest.fixture
def store():
    return ShipmentStore()


@pytest.fixture
def approval_engine(store, outbox, clock):
    return ShipmentApprovalEngine(store, outbox, clock=clock)


@pytest.fixture(scope="function")
def runtime(session_factory, dispatcher, clock):
    runtime = build_runtime(session_factory, dispatcher=dispatcher, clock=clock, persist=True)
    yield runtime
    runtime.close()


@pytest.fixture(scope="function")
def client(runtime):
    fastapi_app.state.runtime = runtime
    fastapi_app.dependency_overrides[get_runtime] = lambda: runtime
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()
    fastapi_app.state.runtime = None
