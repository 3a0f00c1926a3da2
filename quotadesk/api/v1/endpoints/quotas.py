from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from quotadesk.api.deps.runtime import get_engine, raise_http
from quotadesk.core.errors import QuotaDeskError
from quotadesk.schemas.catalog import WeeklyQuota, WeeklyQuotaUpsert
from quotadesk.schemas.quota import QuotaStatus, WeeklyQuotaOverview
from quotadesk.services.approval_engine import ShipmentApprovalEngine

router = APIRouter()


@router.get("", response_model=WeeklyQuotaOverview)
def get_quota_overview(
    week_start: Optional[date] = None,
    engine: ShipmentApprovalEngine = Depends(get_engine),
):
    return engine.quota_overview(week_start)


@router.put("/weekly", response_model=WeeklyQuota)
def upsert_weekly_quota(
    payload: WeeklyQuotaUpsert,
    engine: ShipmentApprovalEngine = Depends(get_engine),
):
    try:
        return engine.set_weekly_quota(payload)
    except QuotaDeskError as exc:
        raise_http(exc)


@router.get("/{product_id}", response_model=QuotaStatus)
def get_quota_status(
    product_id: str,
    week_start: Optional[date] = None,
    engine: ShipmentApprovalEngine = Depends(get_engine),
):
    try:
        return engine.quota_status(product_id, week_start)
    except QuotaDeskError as exc:
        raise_http(exc)
