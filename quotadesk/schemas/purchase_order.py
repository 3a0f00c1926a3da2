from datetime import date
from typing import Optional

from pydantic import BaseModel


class PurchaseOrderLookup(BaseModel):
    po_number: str
    is_valid: bool
    issued_on: Optional[date] = None
    sequence: Optional[int] = None
    shipment_id: Optional[str] = None
