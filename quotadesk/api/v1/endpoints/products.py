from fastapi import APIRouter, Depends

from quotadesk.api.deps.runtime import get_engine, raise_http
from quotadesk.core.catalog import is_quota_enforced, size_categories_for
from quotadesk.core.errors import NotFoundError, QuotaDeskError
from quotadesk.schemas.catalog import Product, ProductQuotaUpdate, ProductView
from quotadesk.services.approval_engine import ShipmentApprovalEngine

router = APIRouter()


def _to_view(product: Product) -> ProductView:
    return ProductView(
        **product.model_dump(),
        enforces_quota=is_quota_enforced(product.id),
        size_categories=size_categories_for(product.id),
    )


@router.get("", response_model=list[ProductView])
def list_products(engine: ShipmentApprovalEngine = Depends(get_engine)):
    return [_to_view(p) for p in engine.store.products.values()]


@router.patch("/{product_id}", response_model=ProductView)
def update_product_quota(
    product_id: str,
    payload: ProductQuotaUpdate,
    engine: ShipmentApprovalEngine = Depends(get_engine),
):
    try:
        return _to_view(engine.update_product_quota(product_id, payload))
    except QuotaDeskError as exc:
        raise_http(exc)


@router.get("/{product_id}/size-categories", response_model=list[str])
def get_size_categories(product_id: str, engine: ShipmentApprovalEngine = Depends(get_engine)):
    if product_id not in engine.store.products:
        raise_http(NotFoundError(code="PRODUCT_NOT_FOUND", message=f"Product not found: {product_id}"))
    return size_categories_for(product_id)
