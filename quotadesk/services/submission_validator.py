from __future__ import annotations

import math
from collections.abc import Mapping

from quotadesk.core.catalog import OTHER_PRODUCT_ID
from quotadesk.core.errors import NotFoundError, ValidationError
from quotadesk.schemas.catalog import Product
from quotadesk.schemas.shipment import ShipmentSubmission

POUNDS_TOLERANCE = 0.01


def validate_submission(submission: ShipmentSubmission, catalog: Mapping[str, Product]) -> None:
    """
    Reject malformed submissions before any state is touched.

    Format problems are collected and raised together as one ValidationError.
    An unknown product id is a NotFoundError, raised only when the payload is
    otherwise well formed.
    """
    errors: list[str] = []

    if not (submission.shipper or "").strip():
        errors.append("shipper is required")
    if submission.estimated_arrival is None:
        errors.append("estimated_arrival is required")
    if not submission.products:
        errors.append("at least one product is required")

    unknown: list[str] = []
    for idx, product in enumerate(submission.products, start=1):
        label = f"product {idx}"
        product_id = (product.product_id or "").strip()
        if not product_id:
            errors.append(f"{label}: product_id is required")
        elif product_id not in catalog:
            unknown.append(product_id)

        if not math.isfinite(product.total_pounds):
            errors.append(f"{label}: total_pounds must be a finite number")
        elif product.total_pounds <= 0:
            errors.append(f"{label}: total_pounds must be greater than zero")

        if product_id == OTHER_PRODUCT_ID and not (product.custom_product_name or "").strip():
            errors.append(f"{label}: custom_product_name is required for 'other'")

        non_finite_items = False
        for item_idx, item in enumerate(product.items, start=1):
            if not math.isfinite(item.pounds):
                non_finite_items = True
                errors.append(f"{label} item {item_idx}: pounds must be a finite number")
            elif item.pounds < 0:
                errors.append(f"{label} item {item_idx}: pounds must not be negative")
            if not math.isfinite(item.cost):
                errors.append(f"{label} item {item_idx}: cost must be a finite number")

        if non_finite_items or not math.isfinite(product.total_pounds):
            continue
        items_total = sum(item.pounds for item in product.items)
        if abs(items_total - product.total_pounds) > POUNDS_TOLERANCE:
            errors.append(
                f"{label}: size breakdown ({items_total:g} lbs) must equal total pounds "
                f"({product.total_pounds:g} lbs)"
            )

    if errors:
        raise ValidationError(errors=errors)
    if unknown:
        raise NotFoundError(
            code="PRODUCT_NOT_FOUND",
            message=f"Product not found: {', '.join(sorted(set(unknown)))}",
        )
