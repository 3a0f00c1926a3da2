"""
Weekly quota arithmetic over derived purchase records.

Everything here is a pure function of its arguments: totals are recomputed on
every call, so there is no cached state to invalidate when the store changes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime

from quotadesk.core.catalog import OTHER_PRODUCT_ID
from quotadesk.core.config import settings
from quotadesk.core.errors import NotFoundError
from quotadesk.core.weeks import same_week
from quotadesk.schemas.catalog import Product, WeeklyQuota
from quotadesk.schemas.quota import QuotaLevel, QuotaStatus
from quotadesk.schemas.shipment import ProductPurchase, Purchase


def quota_bucket_key(product_purchase: ProductPurchase) -> str:
    if product_purchase.product_id == OTHER_PRODUCT_ID and product_purchase.custom_product_name:
        return f"{OTHER_PRODUCT_ID}_{product_purchase.custom_product_name}"
    return product_purchase.product_id


def compute_total(
    product_id: str,
    week_start: date | datetime,
    purchases: Iterable[Purchase],
) -> float:
    return sum(
        purchase.total_pounds
        for purchase in purchases
        if purchase.product_id == product_id
        and same_week(purchase.estimated_arrival, week_start)
    )


def resolve_bounds(
    product: Product,
    week_start: date | datetime,
    weekly_quotas: Iterable[WeeklyQuota] = (),
) -> tuple[float, float]:
    for override in weekly_quotas:
        if override.product_id == product.id and same_week(override.week_start_date, week_start):
            return override.min_quota, override.max_quota
    return product.min_quota, product.max_quota


def classify(
    current_total: float,
    min_quota: float,
    max_quota: float,
    *,
    near_max_pct: float | None = None,
) -> tuple[float, QuotaLevel]:
    threshold = settings.NEAR_MAX_THRESHOLD_PCT if near_max_pct is None else near_max_pct
    percentage = (current_total / max_quota) * 100 if max_quota > 0 else 0.0
    if current_total > max_quota:
        level = QuotaLevel.OVER
    elif percentage >= threshold:
        level = QuotaLevel.NEAR_MAX
    elif current_total >= min_quota:
        level = QuotaLevel.GOOD
    else:
        level = QuotaLevel.UNDER
    return percentage, level


def get_quota_status(
    product_id: str,
    week_start: date | datetime,
    purchases: Iterable[Purchase],
    catalog: Mapping[str, Product],
    weekly_quotas: Iterable[WeeklyQuota] = (),
) -> QuotaStatus:
    product = catalog.get(product_id)
    if product is None:
        raise NotFoundError(
            code="PRODUCT_NOT_FOUND",
            message=f"Product not found: {product_id}",
        )

    current_total = compute_total(product_id, week_start, purchases)
    min_quota, max_quota = resolve_bounds(product, week_start, weekly_quotas)
    percentage, level = classify(current_total, min_quota, max_quota)
    return QuotaStatus(
        product=product,
        current_total=current_total,
        min_quota=min_quota,
        max_quota=max_quota,
        percentage=percentage,
        status=level,
    )
