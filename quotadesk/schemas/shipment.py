from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import DomainRecord


class ApprovalStatus(str, Enum):
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


class PurchaseItem(DomainRecord):
    id: str
    size_category: str
    pounds: float
    cost: float = 0
    notes: Optional[str] = None


class ProductPurchase(DomainRecord):
    id: str
    product_id: str
    custom_product_name: Optional[str] = None
    total_pounds: float
    items: List[PurchaseItem] = []


class Shipment(DomainRecord):
    id: str
    shipper: str
    estimated_arrival: date
    purchase_date: datetime
    week_start_date: date
    products: List[ProductPurchase]
    created_at: datetime
    approval_status: ApprovalStatus
    purchase_order_number: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    purchaser_id: Optional[str] = None

    @property
    def total_pounds(self) -> float:
        return sum(p.total_pounds for p in self.products)


class Purchase(DomainRecord):
    """Flat per-product record of a shipment, used for quota arithmetic."""

    id: str
    shipment_id: str
    product_id: str
    total_pounds: float
    purchase_date: datetime
    week_start_date: date
    shipper: str
    estimated_arrival: date
    items: List[PurchaseItem] = []
    created_at: datetime


# --- Submission payloads ---

class PurchaseItemIn(BaseModel):
    size_category: str = ""
    pounds: float = 0
    cost: float = 0
    notes: Optional[str] = None


class ProductPurchaseIn(BaseModel):
    product_id: str = ""
    custom_product_name: Optional[str] = None
    total_pounds: float = 0
    items: List[PurchaseItemIn] = []


class ShipmentSubmission(BaseModel):
    shipper: str = ""
    estimated_arrival: Optional[date] = None
    products: List[ProductPurchaseIn] = []


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class RetentionSweepResult(BaseModel):
    removed_ids: List[str]
    removed_count: int
