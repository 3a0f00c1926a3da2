from __future__ import annotations

from quotadesk.schemas.catalog import Product

# Wildcard product: free-text name per purchase, never quota-checked.
OTHER_PRODUCT_ID = "other"

SEAFOOD_PRODUCTS: tuple[Product, ...] = (
    Product(id="tuna", name="Tuna", min_quota=100, max_quota=500),
    Product(id="sword", name="Swordfish", min_quota=80, max_quota=300),
    Product(id="mahi", name="Mahi", min_quota=60, max_quota=250),
    Product(id="wahoo", name="Wahoo", min_quota=50, max_quota=200),
    Product(id="grouper", name="Grouper", min_quota=70, max_quota=350),
    Product(id="snapper", name="Snapper", min_quota=90, max_quota=400),
    Product(id="salmon", name="Salmon", min_quota=120, max_quota=600),
    Product(id="seabass", name="Seabass (Branzini)", min_quota=40, max_quota=180),
    Product(id=OTHER_PRODUCT_ID, name="Other", min_quota=0, max_quota=1000),
)

COMMON_SIZE_CATEGORIES: tuple[str, ...] = (
    "Small (under 5 lbs)",
    "Medium (5-15 lbs)",
    "Large (15-30 lbs)",
    "Extra Large (30+ lbs)",
)

PRODUCT_SIZE_CATEGORIES: dict[str, tuple[str, ...]] = {
    "tuna": ("70+ lbs", "60+ lbs", "40-59 lbs", "30-40 lbs", "Other"),
}


def default_catalog() -> dict[str, Product]:
    return {product.id: product for product in SEAFOOD_PRODUCTS}


def size_categories_for(product_id: str) -> list[str]:
    if product_id == OTHER_PRODUCT_ID:
        return []
    return list(PRODUCT_SIZE_CATEGORIES.get(product_id, COMMON_SIZE_CATEGORIES))


def is_quota_enforced(product_id: str) -> bool:
    return product_id != OTHER_PRODUCT_ID
