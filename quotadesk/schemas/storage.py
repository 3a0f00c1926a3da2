from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from .catalog import Product, WeeklyQuota
from .shipment import Purchase, Shipment


class StoreState(BaseModel):
    products: List[Product] = []
    purchases: List[Purchase] = []
    shipments: List[Shipment] = []
    weekly_quotas: List[WeeklyQuota] = []


class SnapshotEnvelope(BaseModel):
    version: str
    timestamp: datetime
    state: StoreState


class StorageInfo(BaseModel):
    exists: bool
    size_kb: int = 0
    last_saved: Optional[datetime] = None
    version: Optional[str] = None
