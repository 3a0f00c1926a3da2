from datetime import date
from enum import Enum

from pydantic import BaseModel

from .catalog import Product


class QuotaLevel(str, Enum):
    UNDER = "under"
    GOOD = "good"
    NEAR_MAX = "near-max"
    OVER = "over"


class QuotaStatus(BaseModel):
    product: Product
    current_total: float
    min_quota: float
    max_quota: float
    percentage: float
    status: QuotaLevel


class WeeklyQuotaOverview(BaseModel):
    week_start_date: date
    week_label: str
    statuses: list[QuotaStatus]
