from pydantic import BaseModel


class ProductAnalytics(BaseModel):
    product_id: str
    product_name: str
    total_pounds: float = 0
    total_cost: float = 0
    shipment_count: int = 0
