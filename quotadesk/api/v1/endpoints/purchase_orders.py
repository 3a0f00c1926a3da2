from fastapi import APIRouter, Depends

from quotadesk.api.deps.runtime import get_engine
from quotadesk.schemas.purchase_order import PurchaseOrderLookup
from quotadesk.services.approval_engine import ShipmentApprovalEngine
from quotadesk.services.po_numbering import PurchaseOrderNumberService

router = APIRouter()


@router.get("/{po_number}", response_model=PurchaseOrderLookup)
def lookup_purchase_order(po_number: str, engine: ShipmentApprovalEngine = Depends(get_engine)):
    shipment_id = next(
        (s.id for s in engine.store.list_shipments() if s.purchase_order_number == po_number),
        None,
    )
    return PurchaseOrderLookup(
        po_number=po_number,
        is_valid=PurchaseOrderNumberService.is_valid(po_number),
        issued_on=PurchaseOrderNumberService.extract_date(po_number),
        sequence=PurchaseOrderNumberService.extract_sequence(po_number),
        shipment_id=shipment_id,
    )
