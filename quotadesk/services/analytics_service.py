from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date

from quotadesk.core.catalog import OTHER_PRODUCT_ID
from quotadesk.schemas.analytics import ProductAnalytics
from quotadesk.schemas.catalog import Product
from quotadesk.schemas.shipment import Shipment
from quotadesk.services.quota_ledger import quota_bucket_key


def shipments_in_date_range(shipments: Iterable[Shipment], start: date, end: date) -> list[Shipment]:
    """Shipments whose estimated arrival falls within [start, end]."""
    return [s for s in shipments if start <= s.estimated_arrival <= end]


def aggregate_product_data(
    shipments: Iterable[Shipment],
    catalog: Mapping[str, Product],
) -> list[ProductAnalytics]:
    rows: dict[str, ProductAnalytics] = {
        product.id: ProductAnalytics(product_id=product.id, product_name=product.name)
        for product in catalog.values()
        if product.id != OTHER_PRODUCT_ID
    }

    for shipment in shipments:
        for product_purchase in shipment.products:
            key = quota_bucket_key(product_purchase)
            row = rows.get(key)
            if row is None:
                if product_purchase.product_id == OTHER_PRODUCT_ID and product_purchase.custom_product_name:
                    name = product_purchase.custom_product_name
                else:
                    entry = catalog.get(product_purchase.product_id)
                    name = entry.name if entry is not None else "Unknown Product"
                row = ProductAnalytics(product_id=key, product_name=name)
                rows[key] = row
            row.total_pounds += product_purchase.total_pounds
            row.total_cost += sum(item.pounds * (item.cost or 0) for item in product_purchase.items)
            row.shipment_count += 1

    return sorted(rows.values(), key=lambda r: r.total_pounds, reverse=True)
