from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from quotadesk.api.deps.runtime import get_engine
from quotadesk.schemas.analytics import ProductAnalytics
from quotadesk.schemas.shipment import ApprovalStatus
from quotadesk.services.analytics_service import aggregate_product_data, shipments_in_date_range
from quotadesk.services.approval_engine import ShipmentApprovalEngine

router = APIRouter()


@router.get("/products", response_model=list[ProductAnalytics])
def product_analytics(
    start: Optional[date] = None,
    end: Optional[date] = None,
    engine: ShipmentApprovalEngine = Depends(get_engine),
):
    shipments = [
        s for s in engine.store.list_shipments() if s.approval_status != ApprovalStatus.REJECTED
    ]
    if start is not None or end is not None:
        start = start or date.min
        end = end or date.max
        if start > end:
            raise HTTPException(status_code=422, detail="start must not be after end.")
        shipments = shipments_in_date_range(shipments, start, end)
    return aggregate_product_data(shipments, engine.store.products)
