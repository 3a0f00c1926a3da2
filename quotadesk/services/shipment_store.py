from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from quotadesk.core.catalog import default_catalog
from quotadesk.core.weeks import week_key
from quotadesk.schemas.catalog import Product, WeeklyQuota
from quotadesk.schemas.shipment import ApprovalStatus, Purchase, Shipment
from quotadesk.schemas.storage import StoreState

logger = logging.getLogger(__name__)

PersistHook = Callable[[StoreState], None]


def derive_purchases(shipment: Shipment) -> list[Purchase]:
    if shipment.approval_status == ApprovalStatus.REJECTED:
        return []
    return [
        Purchase(
            id=f"{shipment.id}_{product.id}",
            shipment_id=shipment.id,
            product_id=product.product_id,
            total_pounds=product.total_pounds,
            purchase_date=shipment.purchase_date,
            week_start_date=shipment.week_start_date,
            shipper=shipment.shipper,
            estimated_arrival=shipment.estimated_arrival,
            items=product.items,
            created_at=shipment.created_at,
        )
        for product in shipment.products
    ]


class ShipmentStore:
    """
    Single owner of shipments, derived purchases and weekly quota overrides.

    All mutation happens inside `transaction()`, which holds the store-wide
    lock. Records are immutable, so capturing the collections is a shallow
    copy and rollback is a swap back to the captured copies.
    """

    def __init__(
        self,
        products: dict[str, Product] | None = None,
        *,
        persist: PersistHook | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._products: dict[str, Product] = dict(products or default_catalog())
        self._shipments: dict[str, Shipment] = {}
        self._purchases: list[Purchase] = []
        self._weekly_quotas: list[WeeklyQuota] = []
        self._persist = persist

    def set_persist_hook(self, persist: PersistHook | None) -> None:
        self._persist = persist

    @contextmanager
    def transaction(self) -> Iterator["ShipmentStore"]:
        with self._lock:
            captured = self._capture()
            try:
                yield self
            except BaseException:
                self._restore(captured)
                raise
            if self._persist is None:
                return
            try:
                self._persist(self.to_state())
            except Exception:
                logger.exception("store_persist_failed rollback=true")
                self._restore(captured)
                raise

    @contextmanager
    def exclusive(self) -> Iterator["ShipmentStore"]:
        """
        Hold the store lock without the persist hook.

        For callers that write the snapshot themselves and then swap the
        in-memory state with `load_state`; no transaction can commit between
        the two steps.
        """
        with self._lock:
            yield self

    def _capture(self) -> tuple:
        return (
            dict(self._products),
            dict(self._shipments),
            list(self._purchases),
            list(self._weekly_quotas),
        )

    def _restore(self, captured: tuple) -> None:
        products, shipments, purchases, weekly_quotas = captured
        self._products = products
        self._shipments = shipments
        self._purchases = purchases
        self._weekly_quotas = weekly_quotas

    # --- Reads ---

    @property
    def products(self) -> dict[str, Product]:
        with self._lock:
            return dict(self._products)

    @property
    def weekly_quotas(self) -> list[WeeklyQuota]:
        with self._lock:
            return list(self._weekly_quotas)

    def get_shipment(self, shipment_id: str) -> Shipment | None:
        with self._lock:
            return self._shipments.get(shipment_id)

    def list_shipments(self) -> list[Shipment]:
        with self._lock:
            return list(self._shipments.values())

    def purchases(self) -> list[Purchase]:
        with self._lock:
            return list(self._purchases)

    def committed_purchases(self, exclude_shipment_id: str | None = None) -> list[Purchase]:
        with self._lock:
            if exclude_shipment_id is None:
                return list(self._purchases)
            return [p for p in self._purchases if p.shipment_id != exclude_shipment_id]

    def purchases_for(self, shipment_id: str) -> list[Purchase]:
        with self._lock:
            return [p for p in self._purchases if p.shipment_id == shipment_id]

    def issued_po_numbers(self) -> list[str]:
        with self._lock:
            return [
                s.purchase_order_number
                for s in self._shipments.values()
                if s.approval_status == ApprovalStatus.APPROVED and s.purchase_order_number
            ]

    # --- Writes (call inside transaction()) ---

    def add_shipment(self, shipment: Shipment) -> None:
        self._shipments[shipment.id] = shipment
        self._purchases.extend(derive_purchases(shipment))

    def replace_shipment(self, shipment: Shipment, *, rederive: bool = True) -> None:
        self._shipments[shipment.id] = shipment
        if rederive:
            self.set_purchases_for(shipment.id, derive_purchases(shipment))

    def remove_shipment(self, shipment_id: str) -> Shipment | None:
        removed = self._shipments.pop(shipment_id, None)
        self.remove_purchases_for(shipment_id)
        return removed

    def set_purchases_for(self, shipment_id: str, purchases: list[Purchase]) -> None:
        self._purchases = [p for p in self._purchases if p.shipment_id != shipment_id]
        self._purchases.extend(purchases)

    def remove_purchases_for(self, shipment_id: str) -> int:
        before = len(self._purchases)
        self._purchases = [p for p in self._purchases if p.shipment_id != shipment_id]
        return before - len(self._purchases)

    def update_product(self, product: Product) -> None:
        self._products[product.id] = product

    def set_weekly_quota(self, quota: WeeklyQuota) -> WeeklyQuota:
        bucket = week_key(quota.week_start_date)
        for idx, existing in enumerate(self._weekly_quotas):
            if existing.product_id == quota.product_id and week_key(existing.week_start_date) == bucket:
                self._weekly_quotas[idx] = quota
                return quota
        self._weekly_quotas.append(quota)
        return quota

    # --- Snapshot boundary ---

    def to_state(self) -> StoreState:
        with self._lock:
            return StoreState(
                products=list(self._products.values()),
                purchases=list(self._purchases),
                shipments=list(self._shipments.values()),
                weekly_quotas=list(self._weekly_quotas),
            )

    def load_state(self, state: StoreState) -> None:
        with self._lock:
            self._products = {p.id: p for p in state.products} or default_catalog()
            self._shipments = {s.id: s for s in state.shipments}
            self._purchases = list(state.purchases)
            self._weekly_quotas = list(state.weekly_quotas)
        logger.info(
            "store_state_loaded shipments=%s purchases=%s weekly_quotas=%s",
            len(state.shipments),
            len(state.purchases),
            len(state.weekly_quotas),
        )
