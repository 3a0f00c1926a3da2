from __future__ import annotations

from typing import NoReturn

from fastapi import Depends, HTTPException, Request

from quotadesk.core.errors import QuotaDeskError
from quotadesk.runtime import Runtime
from quotadesk.services.approval_engine import ShipmentApprovalEngine

PURCHASER_ID_HEADER = "X-User-Id"


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Service is starting up.")
    return runtime


def get_engine(runtime: Runtime = Depends(get_runtime)) -> ShipmentApprovalEngine:
    return runtime.engine


def get_purchaser_id(request: Request) -> str | None:
    # Identity is resolved upstream; the core only carries the id through.
    value = (request.headers.get(PURCHASER_ID_HEADER) or "").strip()
    return value or None


def raise_http(exc: QuotaDeskError) -> NoReturn:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
