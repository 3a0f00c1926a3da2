"""
Outbound shipment notifications.

The approval engine never talks to a channel directly. It hands a
`ShipmentSummary` to `NotificationOutbox.enqueue`, which runs the configured
`NotificationDispatcher` on a worker thread after the state change has
committed. Dispatcher failures are logged there and go no further.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Any

import requests

from quotadesk.core.catalog import OTHER_PRODUCT_ID
from quotadesk.core.config import settings
from quotadesk.core.errors import NotificationError
from quotadesk.schemas.catalog import Product
from quotadesk.schemas.notification import ShipmentSummary, ShipmentSummaryLine
from quotadesk.schemas.shipment import Shipment

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    NEW_PENDING = "new_pending"
    NEW_AUTO_APPROVED = "new_auto_approved"


def build_shipment_summary(shipment: Shipment, catalog: Mapping[str, Product]) -> ShipmentSummary:
    lines: list[ShipmentSummaryLine] = []
    for product in shipment.products:
        catalog_entry = catalog.get(product.product_id)
        if product.product_id == OTHER_PRODUCT_ID and product.custom_product_name:
            name = product.custom_product_name
        elif catalog_entry is not None:
            name = catalog_entry.name
        else:
            name = product.custom_product_name or "Unknown Product"
        lines.append(
            ShipmentSummaryLine(
                product_id=product.product_id,
                product_name=name,
                total_pounds=product.total_pounds,
            )
        )
    return ShipmentSummary(
        shipment_id=shipment.id,
        shipper=shipment.shipper,
        estimated_arrival=shipment.estimated_arrival,
        purchase_order_number=shipment.purchase_order_number,
        total_pounds=shipment.total_pounds,
        products=lines,
    )


def render_message(
    kind: NotificationKind,
    summary: ShipmentSummary,
    reason: str | None = None,
) -> str:
    arrival = summary.estimated_arrival.isoformat()
    if kind == NotificationKind.APPROVED:
        lines = [
            f"APPROVED: Your shipment from {summary.shipper} has been approved!",
            f"PO Number: {summary.purchase_order_number}",
            f"Products: {summary.product_names}",
            f"Total: {summary.total_pounds:g} lbs",
            f"Expected: {arrival}",
        ]
    elif kind == NotificationKind.REJECTED:
        lines = [
            f"REJECTED: Your shipment from {summary.shipper} was rejected.",
            f"Products: {summary.product_names}",
            f"Total: {summary.total_pounds:g} lbs",
            f"Reason: {reason or settings.DEFAULT_REJECTION_REASON}",
            "Please contact your approver for details.",
        ]
    elif kind == NotificationKind.NEW_PENDING:
        lines = [
            f"PENDING APPROVAL: New shipment from {summary.shipper} exceeds weekly quota.",
            f"Products: {summary.product_names}",
            f"Total: {summary.total_pounds:g} lbs",
            f"Expected: {arrival}",
        ]
    else:
        lines = [
            f"AUTO-APPROVED: New shipment from {summary.shipper} is within quota.",
            f"PO Number: {summary.purchase_order_number}",
            f"Products: {summary.product_names}",
            f"Total: {summary.total_pounds:g} lbs",
            f"Expected: {arrival}",
        ]
    lines.append("- Seafood Purchasing Team")
    return "\n".join(lines)


class NotificationDispatcher(ABC):
    @abstractmethod
    def notify_approved(self, summary: ShipmentSummary, purchaser_id: str) -> None: ...

    @abstractmethod
    def notify_rejected(self, summary: ShipmentSummary, purchaser_id: str, reason: str) -> None: ...

    @abstractmethod
    def notify_new_pending(self, summary: ShipmentSummary, purchaser_id: str) -> None: ...

    @abstractmethod
    def notify_new_auto_approved(self, summary: ShipmentSummary, purchaser_id: str) -> None: ...

    def dispatch(
        self,
        kind: NotificationKind,
        summary: ShipmentSummary,
        purchaser_id: str,
        reason: str | None = None,
    ) -> None:
        if kind == NotificationKind.APPROVED:
            self.notify_approved(summary, purchaser_id)
        elif kind == NotificationKind.REJECTED:
            self.notify_rejected(summary, purchaser_id, reason or settings.DEFAULT_REJECTION_REASON)
        elif kind == NotificationKind.NEW_PENDING:
            self.notify_new_pending(summary, purchaser_id)
        else:
            self.notify_new_auto_approved(summary, purchaser_id)


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Placeholder channel: renders each message into the application log."""

    def _log(self, kind: NotificationKind, summary: ShipmentSummary, purchaser_id: str, reason: str | None = None):
        logger.info(
            "notification_logged kind=%s shipment_id=%s purchaser_id=%s\n%s",
            kind.value,
            summary.shipment_id,
            purchaser_id,
            render_message(kind, summary, reason),
        )

    def notify_approved(self, summary, purchaser_id):
        self._log(NotificationKind.APPROVED, summary, purchaser_id)

    def notify_rejected(self, summary, purchaser_id, reason):
        self._log(NotificationKind.REJECTED, summary, purchaser_id, reason)

    def notify_new_pending(self, summary, purchaser_id):
        self._log(NotificationKind.NEW_PENDING, summary, purchaser_id)

    def notify_new_auto_approved(self, summary, purchaser_id):
        self._log(NotificationKind.NEW_AUTO_APPROVED, summary, purchaser_id)


class WebhookNotificationDispatcher(NotificationDispatcher):
    """
    Forwards notifications to the notification service over HTTP.

    Approval and rejection fan out to the SMS and Slack routes; new-shipment
    notices go to Slack only. Every route is attempted; if any of them fails a
    single NotificationError is raised afterwards.
    """

    ROUTES: dict[NotificationKind, tuple[str, ...]] = {
        NotificationKind.APPROVED: (
            "/notifications/shipment/approved",
            "/notifications/slack/shipment/approved",
        ),
        NotificationKind.REJECTED: (
            "/notifications/shipment/rejected",
            "/notifications/slack/shipment/rejected",
        ),
        NotificationKind.NEW_PENDING: ("/notifications/slack/shipment/new-pending",),
        NotificationKind.NEW_AUTO_APPROVED: ("/notifications/slack/shipment/new-auto-approved",),
    }

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout_seconds: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = (base_url or settings.NOTIFICATION_SERVICE_URL).rstrip("/")
        self._token = (token if token is not None else settings.NOTIFICATION_SERVICE_TOKEN).strip()
        self._timeout_seconds = float(timeout_seconds or settings.NOTIFICATION_TIMEOUT_SECONDS)
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str] | None:
        if not self._token:
            return None
        return {"Authorization": f"Bearer {self._token}"}

    def _payload(self, summary: ShipmentSummary, purchaser_id: str, reason: str | None) -> dict[str, Any]:
        body: dict[str, Any] = {
            "shipment": summary.model_dump(mode="json"),
            "purchaserUserId": purchaser_id,
        }
        if reason:
            body["rejectionReason"] = reason
        return body

    def _post_all(
        self,
        kind: NotificationKind,
        summary: ShipmentSummary,
        purchaser_id: str,
        reason: str | None = None,
    ) -> None:
        payload = self._payload(summary, purchaser_id, reason)
        failures: list[str] = []
        for route in self.ROUTES[kind]:
            url = f"{self._base_url}{route}"
            try:
                response = self._session.post(
                    url,
                    json=payload,
                    headers=self._headers(),
                    timeout=self._timeout_seconds,
                )
                response.raise_for_status()
            except requests.RequestException as exc:
                logger.warning(
                    "notification_channel_failed kind=%s route=%s shipment_id=%s error=%s",
                    kind.value,
                    route,
                    summary.shipment_id,
                    exc,
                )
                failures.append(route)
        if failures:
            raise NotificationError(
                message=f"{len(failures)} of {len(self.ROUTES[kind])} notification routes failed.",
                channel=",".join(failures),
            )

    def notify_approved(self, summary, purchaser_id):
        self._post_all(NotificationKind.APPROVED, summary, purchaser_id)

    def notify_rejected(self, summary, purchaser_id, reason):
        self._post_all(NotificationKind.REJECTED, summary, purchaser_id, reason)

    def notify_new_pending(self, summary, purchaser_id):
        self._post_all(NotificationKind.NEW_PENDING, summary, purchaser_id)

    def notify_new_auto_approved(self, summary, purchaser_id):
        self._post_all(NotificationKind.NEW_AUTO_APPROVED, summary, purchaser_id)


def build_dispatcher() -> NotificationDispatcher:
    backend = (settings.NOTIFICATION_BACKEND or "log").strip().lower()
    if backend == "webhook":
        return WebhookNotificationDispatcher()
    if backend != "log":
        logger.warning("notification_backend_unknown backend=%s fallback=log", backend)
    return LoggingNotificationDispatcher()


class NotificationOutbox:
    """
    One-way, fire-and-forget delivery of notifications.

    `enqueue` returns immediately. Retries or dead-lettering belong here, not
    in the approval engine.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        *,
        max_workers: int | None = None,
        enabled: bool | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, int(max_workers or settings.NOTIFICATION_MAX_WORKERS)),
            thread_name_prefix="notification-outbox",
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    def enqueue(
        self,
        kind: NotificationKind,
        summary: ShipmentSummary,
        purchaser_id: str | None,
        reason: str | None = None,
    ) -> Future | None:
        if not self._enabled:
            return None
        if not purchaser_id:
            logger.warning(
                "notification_skipped kind=%s shipment_id=%s reason=no_purchaser_id",
                kind.value,
                summary.shipment_id,
            )
            return None
        try:
            future = self._executor.submit(self._deliver, kind, summary, purchaser_id, reason)
        except RuntimeError as exc:
            # Executor already shut down.
            logger.warning(
                "notification_dropped kind=%s shipment_id=%s error=%s",
                kind.value,
                summary.shipment_id,
                exc,
            )
            return None
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(
        self,
        kind: NotificationKind,
        summary: ShipmentSummary,
        purchaser_id: str,
        reason: str | None,
    ) -> bool:
        try:
            self._dispatcher.dispatch(kind, summary, purchaser_id, reason)
        except Exception as exc:  # noqa: BLE001 - notifications are advisory
            logger.warning(
                "notification_failed kind=%s shipment_id=%s purchaser_id=%s error=%s",
                kind.value,
                summary.shipment_id,
                purchaser_id,
                exc,
            )
            return False
        logger.info(
            "notification_sent kind=%s shipment_id=%s purchaser_id=%s",
            kind.value,
            summary.shipment_id,
            purchaser_id,
        )
        return True

    def flush(self, timeout: float | None = None) -> bool:
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)
