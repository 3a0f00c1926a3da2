from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .base import DomainRecord


class Product(DomainRecord):
    id: str
    name: str
    min_quota: float
    max_quota: float


class ProductView(Product):
    enforces_quota: bool = True
    size_categories: list[str] = []


class ProductQuotaUpdate(BaseModel):
    min_quota: Optional[float] = Field(default=None, ge=0)
    max_quota: Optional[float] = Field(default=None, ge=0)


class WeeklyQuota(DomainRecord):
    id: str
    product_id: str
    week_start_date: date
    current_total: float = 0
    min_quota: float
    max_quota: float


class WeeklyQuotaUpsert(BaseModel):
    product_id: str
    week_start_date: date
    min_quota: float = Field(ge=0)
    max_quota: float = Field(ge=0)

    @model_validator(mode="after")
    def _bounds_ordered(self):
        if self.min_quota > self.max_quota:
            raise ValueError("min_quota must not exceed max_quota")
        return self
