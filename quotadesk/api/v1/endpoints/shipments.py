from typing import Optional

from fastapi import APIRouter, Depends, Response

from quotadesk.api.deps.runtime import get_engine, get_purchaser_id, raise_http
from quotadesk.core.errors import QuotaDeskError
from quotadesk.schemas.shipment import (
    ApprovalStatus,
    RejectRequest,
    RetentionSweepResult,
    Shipment,
    ShipmentSubmission,
)
from quotadesk.services.approval_engine import ShipmentApprovalEngine

router = APIRouter()


@router.get("", response_model=list[Shipment])
def list_shipments(
    status: Optional[ApprovalStatus] = None,
    engine: ShipmentApprovalEngine = Depends(get_engine),
):
    return engine.list_shipments(status)


@router.post("/retention-sweep", response_model=RetentionSweepResult)
def run_retention_sweep(engine: ShipmentApprovalEngine = Depends(get_engine)):
    removed = engine.sweep_rejected()
    return RetentionSweepResult(removed_ids=removed, removed_count=len(removed))


@router.post("", response_model=Shipment, status_code=201)
def submit_shipment(
    payload: ShipmentSubmission,
    engine: ShipmentApprovalEngine = Depends(get_engine),
    purchaser_id: Optional[str] = Depends(get_purchaser_id),
):
    try:
        return engine.submit(payload, purchaser_id=purchaser_id)
    except QuotaDeskError as exc:
        raise_http(exc)


@router.get("/{shipment_id}", response_model=Shipment)
def get_shipment(shipment_id: str, engine: ShipmentApprovalEngine = Depends(get_engine)):
    try:
        return engine.get(shipment_id)
    except QuotaDeskError as exc:
        raise_http(exc)


@router.put("/{shipment_id}", response_model=Shipment)
def edit_shipment(
    shipment_id: str,
    payload: ShipmentSubmission,
    engine: ShipmentApprovalEngine = Depends(get_engine),
):
    try:
        return engine.edit(shipment_id, payload)
    except QuotaDeskError as exc:
        raise_http(exc)


@router.post("/{shipment_id}/approve", response_model=Shipment)
def approve_shipment(shipment_id: str, engine: ShipmentApprovalEngine = Depends(get_engine)):
    try:
        return engine.approve(shipment_id)
    except QuotaDeskError as exc:
        raise_http(exc)


@router.post("/{shipment_id}/reject", response_model=Shipment)
def reject_shipment(
    shipment_id: str,
    payload: Optional[RejectRequest] = None,
    engine: ShipmentApprovalEngine = Depends(get_engine),
):
    try:
        return engine.reject(shipment_id, payload.reason if payload else None)
    except QuotaDeskError as exc:
        raise_http(exc)


@router.post("/{shipment_id}/unreject", response_model=Shipment)
def unreject_shipment(shipment_id: str, engine: ShipmentApprovalEngine = Depends(get_engine)):
    try:
        return engine.unreject(shipment_id)
    except QuotaDeskError as exc:
        raise_http(exc)


@router.delete("/{shipment_id}", status_code=204)
def delete_shipment(shipment_id: str, engine: ShipmentApprovalEngine = Depends(get_engine)):
    try:
        engine.delete(shipment_id)
    except QuotaDeskError as exc:
        raise_http(exc)
    return Response(status_code=204)
