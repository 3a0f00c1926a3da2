from __future__ import annotations

from datetime import date

import pytest
import requests

from conftest import RecordingDispatcher, make_submission
from quotadesk.core.config import settings
from quotadesk.core.errors import NotificationError
from quotadesk.schemas.notification import ShipmentSummary, ShipmentSummaryLine
from quotadesk.services.notification_dispatch import (
    LoggingNotificationDispatcher,
    NotificationKind,
    NotificationOutbox,
    WebhookNotificationDispatcher,
    build_dispatcher,
    build_shipment_summary,
    render_message,
)

SUMMARY = ShipmentSummary(
    shipment_id="abc123",
    shipper="Keys Seafood",
    estimated_arrival=date(2026, 3, 5),
    purchase_order_number="PO-20260304-0003",
    total_pounds=150,
    products=[
        ShipmentSummaryLine(product_id="tuna", product_name="Tuna", total_pounds=100),
        ShipmentSummaryLine(product_id="other", product_name="Cobia", total_pounds=50),
    ],
)


class _FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class _FakeSession:
    def __init__(self, failing_routes: tuple[str, ...] = ()) -> None:
        self.calls: list[dict] = []
        self._failing = failing_routes

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if any(url.endswith(route) for route in self._failing):
            return _FakeResponse(500)
        return _FakeResponse(200)


class _ExplodingDispatcher(RecordingDispatcher):
    def notify_approved(self, summary, purchaser_id):
        raise NotificationError(message="sms gateway down", channel="sms")


def test_build_shipment_summary_names_other_by_custom_name(approval_engine, store):
    shipment = approval_engine.submit(
        make_submission(("tuna", 100), ("other", 25), custom_name="Cobia")
    )
    summary = build_shipment_summary(shipment, store.products)

    assert summary.total_pounds == 125
    assert summary.product_names == "Tuna, Cobia"
    assert summary.purchase_order_number == shipment.purchase_order_number


def test_render_messages():
    approved = render_message(NotificationKind.APPROVED, SUMMARY)
    assert approved.startswith("APPROVED: Your shipment from Keys Seafood has been approved!")
    assert "PO Number: PO-20260304-0003" in approved
    assert "Products: Tuna, Cobia" in approved
    assert "Total: 150 lbs" in approved
    assert approved.endswith("- Seafood Purchasing Team")

    rejected = render_message(NotificationKind.REJECTED, SUMMARY)
    assert f"Reason: {settings.DEFAULT_REJECTION_REASON}" in rejected

    pending = render_message(NotificationKind.NEW_PENDING, SUMMARY)
    assert pending.startswith("PENDING APPROVAL:")


def test_webhook_fans_out_approval_to_sms_and_slack():
    session = _FakeSession()
    dispatcher = WebhookNotificationDispatcher(
        "http://notify.local/api/", token="secret", timeout_seconds=3, session=session
    )

    dispatcher.dispatch(NotificationKind.APPROVED, SUMMARY, "buyer-1")

    assert [c["url"] for c in session.calls] == [
        "http://notify.local/api/notifications/shipment/approved",
        "http://notify.local/api/notifications/slack/shipment/approved",
    ]
    body = session.calls[0]["json"]
    assert body["purchaserUserId"] == "buyer-1"
    assert body["shipment"]["shipment_id"] == "abc123"
    assert body["shipment"]["estimated_arrival"] == "2026-03-05"
    assert "rejectionReason" not in body
    assert session.calls[0]["headers"] == {"Authorization": "Bearer secret"}
    assert session.calls[0]["timeout"] == 3


def test_webhook_rejection_carries_reason():
    session = _FakeSession()
    dispatcher = WebhookNotificationDispatcher("http://notify.local/api", token="", session=session)

    dispatcher.dispatch(NotificationKind.REJECTED, SUMMARY, "buyer-1", "Too much tuna")

    assert session.calls[0]["json"]["rejectionReason"] == "Too much tuna"
    assert session.calls[0]["headers"] is None


def test_webhook_new_shipment_goes_to_slack_only():
    session = _FakeSession()
    dispatcher = WebhookNotificationDispatcher("http://notify.local/api", session=session)

    dispatcher.dispatch(NotificationKind.NEW_PENDING, SUMMARY, "buyer-1")

    assert [c["url"] for c in session.calls] == [
        "http://notify.local/api/notifications/slack/shipment/new-pending"
    ]


def test_webhook_attempts_every_route_before_failing():
    session = _FakeSession(failing_routes=("/notifications/shipment/approved",))
    dispatcher = WebhookNotificationDispatcher("http://notify.local/api", session=session)

    with pytest.raises(NotificationError) as exc_info:
        dispatcher.dispatch(NotificationKind.APPROVED, SUMMARY, "buyer-1")

    assert len(session.calls) == 2
    assert exc_info.value.channel == "/notifications/shipment/approved"


def test_build_dispatcher_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "NOTIFICATION_BACKEND", "webhook")
    assert isinstance(build_dispatcher(), WebhookNotificationDispatcher)

    monkeypatch.setattr(settings, "NOTIFICATION_BACKEND", "carrier-pigeon")
    assert isinstance(build_dispatcher(), LoggingNotificationDispatcher)


def test_outbox_swallows_dispatch_failures():
    outbox = NotificationOutbox(_ExplodingDispatcher(), max_workers=1, enabled=True)
    try:
        future = outbox.enqueue(NotificationKind.APPROVED, SUMMARY, "buyer-1")
        assert future.result(timeout=5) is False
    finally:
        outbox.shutdown()


def test_outbox_disabled_or_anonymous_enqueues_nothing():
    dispatcher = RecordingDispatcher()
    disabled = NotificationOutbox(dispatcher, enabled=False)
    enabled = NotificationOutbox(dispatcher, enabled=True)
    try:
        assert disabled.enqueue(NotificationKind.APPROVED, SUMMARY, "buyer-1") is None
        assert enabled.enqueue(NotificationKind.APPROVED, SUMMARY, None) is None
        assert enabled.flush(timeout=5)
        assert dispatcher.sent == []
    finally:
        disabled.shutdown()
        enabled.shutdown()


def test_outbox_after_shutdown_drops_quietly():
    outbox = NotificationOutbox(RecordingDispatcher(), enabled=True)
    outbox.shutdown()
    assert outbox.enqueue(NotificationKind.APPROVED, SUMMARY, "buyer-1") is None


def test_transition_survives_notification_failure(store, clock):
    from quotadesk.services.approval_engine import ShipmentApprovalEngine

    outbox = NotificationOutbox(_ExplodingDispatcher(), max_workers=1, enabled=True)
    engine = ShipmentApprovalEngine(store, outbox, clock=clock)
    try:
        engine.submit(make_submission(("tuna", 450)))
        pending = engine.submit(make_submission(("tuna", 60)), purchaser_id="buyer-9")
        approved = engine.approve(pending.id)
        assert outbox.flush(timeout=5)
    finally:
        outbox.shutdown()

    assert approved.purchase_order_number == "PO-20260304-0002"
    assert store.get_shipment(pending.id).approval_status.value == "approved"
