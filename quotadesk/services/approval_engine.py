"""
Shipment approval state machine.

    [submit]  --within quota-->  approved (PO assigned)
    [submit]  --needs review-->  pending
    pending   --approve-->       approved (PO assigned)
    pending   --reject-->        rejected (quota released)
    rejected  --unreject-->      pending  (quota NOT restored)
    any       --delete-->        removed
    rejected  --sweep-->         removed once older than the retention window

Every read-decide-write sequence runs inside `ShipmentStore.transaction()`,
so PO issuance always sees the complete set of already-issued numbers.
Notifications are enqueued only after the transaction has committed.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

from quotadesk.core.catalog import OTHER_PRODUCT_ID, is_quota_enforced
from quotadesk.core.config import settings
from quotadesk.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from quotadesk.core.flow_logging import flow_info
from quotadesk.core.weeks import format_week_range, week_key, week_start
from quotadesk.schemas.catalog import Product, ProductQuotaUpdate, WeeklyQuota, WeeklyQuotaUpsert
from quotadesk.schemas.quota import QuotaLevel, QuotaStatus, WeeklyQuotaOverview
from quotadesk.schemas.shipment import (
    ApprovalStatus,
    ProductPurchase,
    PurchaseItem,
    Shipment,
    ShipmentSubmission,
)
from quotadesk.services.notification_dispatch import (
    NotificationKind,
    NotificationOutbox,
    build_shipment_summary,
)
from quotadesk.services.po_numbering import (
    PurchaseOrderNumberService,
    PurchaseOrderSequenceExhausted,
)
from quotadesk.services.quota_ledger import compute_total, get_quota_status
from quotadesk.services.shipment_store import ShipmentStore
from quotadesk.services.submission_validator import validate_submission

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # Snapshots written by older builds carry naive UTC timestamps.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ShipmentApprovalEngine:
    def __init__(
        self,
        store: ShipmentStore,
        outbox: NotificationOutbox | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._outbox = outbox
        self._clock = clock or _utc_now

    @property
    def store(self) -> ShipmentStore:
        return self._store

    def _now(self) -> datetime:
        return _as_aware(self._clock())

    # --- Decision ---

    def requires_approval(
        self,
        products: list[ProductPurchase],
        week: date,
        *,
        exclude_shipment_id: str | None = None,
    ) -> bool:
        """
        All-or-nothing: one product at or past near-max, or one product whose
        pounds would push the week past max, sends the whole shipment to review.
        """
        pounds_by_product: dict[str, float] = defaultdict(float)
        for product in products:
            if is_quota_enforced(product.product_id):
                pounds_by_product[product.product_id] += product.total_pounds

        committed = self._store.committed_purchases(exclude_shipment_id)
        catalog = self._store.products
        overrides = self._store.weekly_quotas
        for product_id, pounds in pounds_by_product.items():
            status = get_quota_status(product_id, week, committed, catalog, overrides)
            if status.status in (QuotaLevel.NEAR_MAX, QuotaLevel.OVER):
                flow_info(
                    logger,
                    "approval_required shipment_week=%s product_id=%s reason=%s",
                    week.isoformat(),
                    product_id,
                    status.status.value,
                    category="approval",
                )
                return True
            if status.current_total + pounds > status.max_quota:
                flow_info(
                    logger,
                    "approval_required shipment_week=%s product_id=%s reason=exceeds_max "
                    "current=%s adding=%s max=%s",
                    week.isoformat(),
                    product_id,
                    status.current_total,
                    pounds,
                    status.max_quota,
                    category="approval",
                )
                return True
        return False

    # --- Transitions ---

    def submit(self, submission: ShipmentSubmission, purchaser_id: str | None = None) -> Shipment:
        validate_submission(submission, self._store.products)
        now = self._now()
        shipment_id = uuid.uuid4().hex

        with self._store.transaction() as store:
            week = week_start(submission.estimated_arrival)
            products = self._build_products(shipment_id, submission)
            needs_review = self.requires_approval(products, week)
            status = ApprovalStatus.PENDING if needs_review else ApprovalStatus.APPROVED
            po_number = self._issue_po_number(now) if status == ApprovalStatus.APPROVED else None
            shipment = Shipment(
                id=shipment_id,
                shipper=submission.shipper.strip(),
                estimated_arrival=submission.estimated_arrival,
                purchase_date=now,
                week_start_date=week,
                products=products,
                created_at=now,
                approval_status=status,
                purchase_order_number=po_number,
                purchaser_id=purchaser_id,
            )
            store.add_shipment(shipment)

        logger.info(
            "shipment_submitted shipment_id=%s status=%s po_number=%s week=%s",
            shipment.id,
            shipment.approval_status.value,
            shipment.purchase_order_number,
            week_key(shipment.week_start_date),
        )
        kind = (
            NotificationKind.NEW_AUTO_APPROVED
            if status == ApprovalStatus.APPROVED
            else NotificationKind.NEW_PENDING
        )
        self._notify(kind, shipment)
        return shipment

    def edit(self, shipment_id: str, submission: ShipmentSubmission) -> Shipment:
        """
        Replace shipper, arrival and products. Approval status and PO number
        are kept as they are; the edit is not re-evaluated against quota.
        """
        validate_submission(submission, self._store.products)
        with self._store.transaction() as store:
            current = self._require(shipment_id)
            updated = current.model_copy(
                update={
                    "shipper": submission.shipper.strip(),
                    "estimated_arrival": submission.estimated_arrival,
                    "week_start_date": week_start(submission.estimated_arrival),
                    "products": self._build_products(shipment_id, submission),
                }
            )
            store.replace_shipment(updated)

        logger.info(
            "shipment_edited shipment_id=%s status=%s week=%s",
            shipment_id,
            updated.approval_status.value,
            week_key(updated.week_start_date),
        )
        return updated

    def approve(self, shipment_id: str) -> Shipment:
        with self._store.transaction() as store:
            current = self._require(shipment_id)
            self._require_status(current, ApprovalStatus.PENDING, "approve")
            po_number = self._issue_po_number(self._now())
            updated = current.model_copy(
                update={
                    "approval_status": ApprovalStatus.APPROVED,
                    "purchase_order_number": po_number,
                }
            )
            store.replace_shipment(updated)

        logger.info("shipment_approved shipment_id=%s po_number=%s", shipment_id, po_number)
        self._notify(NotificationKind.APPROVED, updated)
        return updated

    def reject(self, shipment_id: str, reason: str | None = None) -> Shipment:
        reason = (reason or "").strip() or settings.DEFAULT_REJECTION_REASON
        with self._store.transaction() as store:
            current = self._require(shipment_id)
            self._require_status(current, ApprovalStatus.PENDING, "reject")
            updated = current.model_copy(
                update={
                    "approval_status": ApprovalStatus.REJECTED,
                    "rejected_at": self._now(),
                    "rejection_reason": reason,
                }
            )
            # Rejected shipments derive no purchases, so quota drops immediately.
            store.replace_shipment(updated)

        logger.info("shipment_rejected shipment_id=%s reason=%s", shipment_id, reason)
        self._notify(NotificationKind.REJECTED, updated, reason=reason)
        return updated

    def unreject(self, shipment_id: str) -> Shipment:
        with self._store.transaction() as store:
            current = self._require(shipment_id)
            self._require_status(current, ApprovalStatus.REJECTED, "unreject")
            updated = current.model_copy(
                update={
                    "approval_status": ApprovalStatus.PENDING,
                    "rejected_at": None,
                    "rejection_reason": None,
                }
            )
            # Purchases stay out of the quota index until the next approve or edit.
            store.replace_shipment(updated, rederive=False)

        logger.info("shipment_unrejected shipment_id=%s", shipment_id)
        return updated

    def delete(self, shipment_id: str) -> Shipment:
        with self._store.transaction() as store:
            self._require(shipment_id)
            removed = store.remove_shipment(shipment_id)

        logger.info(
            "shipment_deleted shipment_id=%s status=%s",
            shipment_id,
            removed.approval_status.value,
        )
        return removed

    def sweep_rejected(self, now: datetime | None = None) -> list[str]:
        cutoff = _as_aware(now or self._now()) - timedelta(days=settings.REJECTED_RETENTION_DAYS)
        if not self._expired_rejections(cutoff):
            flow_info(logger, "retention_sweep_noop cutoff=%s", cutoff.isoformat(), category="retention")
            return []

        with self._store.transaction() as store:
            expired = self._expired_rejections(cutoff)
            for shipment_id in expired:
                store.remove_shipment(shipment_id)

        flow_info(
            logger,
            "retention_sweep_removed count=%s cutoff=%s ids=%s",
            len(expired),
            cutoff.isoformat(),
            ",".join(expired),
            category="retention",
        )
        return expired

    # --- Queries ---

    def get(self, shipment_id: str) -> Shipment:
        return self._require(shipment_id)

    def list_shipments(self, status: ApprovalStatus | None = None) -> list[Shipment]:
        shipments = self._store.list_shipments()
        if status is not None:
            shipments = [s for s in shipments if s.approval_status == status]
        if status == ApprovalStatus.REJECTED:
            return sorted(
                shipments,
                key=lambda s: _as_aware(s.rejected_at or s.created_at),
                reverse=True,
            )
        return sorted(shipments, key=lambda s: _as_aware(s.created_at))

    def quota_status(self, product_id: str, week: date | datetime | None = None) -> QuotaStatus:
        week = week_start(week or self._now())
        return get_quota_status(
            product_id,
            week,
            self._store.committed_purchases(),
            self._store.products,
            self._store.weekly_quotas,
        )

    def quota_overview(self, week: date | datetime | None = None) -> WeeklyQuotaOverview:
        week = week_start(week or self._now())
        statuses = [
            self.quota_status(product_id, week)
            for product_id in self._store.products
            if is_quota_enforced(product_id)
        ]
        return WeeklyQuotaOverview(
            week_start_date=week,
            week_label=format_week_range(week),
            statuses=statuses,
        )

    # --- Catalog administration ---

    def update_product_quota(self, product_id: str, update: ProductQuotaUpdate) -> Product:
        with self._store.transaction() as store:
            product = store.products.get(product_id)
            if product is None:
                raise NotFoundError(code="PRODUCT_NOT_FOUND", message=f"Product not found: {product_id}")
            changes = update.model_dump(exclude_unset=True, exclude_none=True)
            updated = product.model_copy(update=changes)
            if updated.min_quota > updated.max_quota:
                raise ValidationError(errors=["min_quota must not exceed max_quota"])
            store.update_product(updated)

        logger.info(
            "product_quota_updated product_id=%s min=%s max=%s",
            product_id,
            updated.min_quota,
            updated.max_quota,
        )
        return updated

    def set_weekly_quota(self, upsert: WeeklyQuotaUpsert) -> WeeklyQuota:
        with self._store.transaction() as store:
            if upsert.product_id not in store.products:
                raise NotFoundError(
                    code="PRODUCT_NOT_FOUND",
                    message=f"Product not found: {upsert.product_id}",
                )
            week = week_start(upsert.week_start_date)
            quota = WeeklyQuota(
                id=f"{upsert.product_id}_{week.isoformat()}",
                product_id=upsert.product_id,
                week_start_date=week,
                current_total=compute_total(upsert.product_id, week, store.committed_purchases()),
                min_quota=upsert.min_quota,
                max_quota=upsert.max_quota,
            )
            store.set_weekly_quota(quota)

        logger.info(
            "weekly_quota_set product_id=%s week=%s min=%s max=%s",
            quota.product_id,
            quota.week_start_date.isoformat(),
            quota.min_quota,
            quota.max_quota,
        )
        return quota

    # --- Helpers ---

    def _require(self, shipment_id: str) -> Shipment:
        shipment = self._store.get_shipment(shipment_id)
        if shipment is None:
            raise NotFoundError(
                code="SHIPMENT_NOT_FOUND",
                message=f"Shipment not found: {shipment_id}",
            )
        return shipment

    @staticmethod
    def _require_status(shipment: Shipment, expected: ApprovalStatus, action: str) -> None:
        if shipment.approval_status != expected:
            raise InvalidTransitionError(
                message=(
                    f"Cannot {action} shipment {shipment.id}: status is "
                    f"{shipment.approval_status.value}, expected {expected.value}."
                ),
                current_status=shipment.approval_status.value,
            )

    def _issue_po_number(self, now: datetime) -> str:
        try:
            return PurchaseOrderNumberService.generate(self._store.issued_po_numbers(), now)
        except PurchaseOrderSequenceExhausted as exc:
            raise InvalidTransitionError(code="PO_SEQUENCE_EXHAUSTED", message=str(exc)) from exc

    def _expired_rejections(self, cutoff: datetime) -> list[str]:
        return [
            s.id
            for s in self._store.list_shipments()
            if s.approval_status == ApprovalStatus.REJECTED
            and s.rejected_at is not None
            and _as_aware(s.rejected_at) <= cutoff
        ]

    @staticmethod
    def _build_products(shipment_id: str, submission: ShipmentSubmission) -> list[ProductPurchase]:
        products: list[ProductPurchase] = []
        for product_idx, product_in in enumerate(submission.products):
            product_id = product_in.product_id.strip()
            products.append(
                ProductPurchase(
                    id=f"{shipment_id}_{product_idx}",
                    product_id=product_id,
                    custom_product_name=(
                        (product_in.custom_product_name or "").strip() or None
                        if product_id == OTHER_PRODUCT_ID
                        else None
                    ),
                    total_pounds=product_in.total_pounds,
                    items=[
                        PurchaseItem(
                            id=f"{shipment_id}_{product_idx}_{item_idx}",
                            size_category=item_in.size_category,
                            pounds=item_in.pounds,
                            cost=item_in.cost,
                            notes=item_in.notes or None,
                        )
                        for item_idx, item_in in enumerate(product_in.items)
                    ],
                )
            )
        return products

    def _notify(self, kind: NotificationKind, shipment: Shipment, *, reason: str | None = None) -> None:
        if self._outbox is None:
            return
        summary = build_shipment_summary(shipment, self._store.products)
        self._outbox.enqueue(kind, summary, shipment.purchaser_id, reason)
