from datetime import date
from typing import List, Optional

from pydantic import BaseModel


class ShipmentSummaryLine(BaseModel):
    product_id: str
    product_name: str
    total_pounds: float


class ShipmentSummary(BaseModel):
    shipment_id: str
    shipper: str
    estimated_arrival: date
    purchase_order_number: Optional[str] = None
    total_pounds: float
    products: List[ShipmentSummaryLine] = []

    @property
    def product_names(self) -> str:
        return ", ".join(line.product_name for line in self.products)
