from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response

from quotadesk.api.deps.runtime import get_runtime, raise_http
from quotadesk.core.errors import QuotaDeskError, ValidationError
from quotadesk.runtime import Runtime
from quotadesk.schemas.storage import StorageInfo

router = APIRouter()


async def _raw_body(request: Request) -> str:
    body = await request.body()
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise_http(
            ValidationError(
                code="SNAPSHOT_INVALID",
                message="Imported data is not a valid snapshot.",
                errors=[f"payload is not valid UTF-8: {exc.reason} at byte {exc.start}"],
            )
        )


@router.get("/info", response_model=StorageInfo)
def storage_info(runtime: Runtime = Depends(get_runtime)):
    return runtime.repository.info()


@router.get("/export")
def export_snapshot(runtime: Runtime = Depends(get_runtime)):
    try:
        payload = runtime.repository.export_payload()
    except QuotaDeskError as exc:
        raise_http(exc)
    filename = f"seafood-app-data-{datetime.now(timezone.utc).date().isoformat()}.json"
    return Response(
        content=payload,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=StorageInfo)
def import_snapshot(
    raw: str = Depends(_raw_body),
    runtime: Runtime = Depends(get_runtime),
):
    try:
        runtime.import_snapshot(raw)
    except QuotaDeskError as exc:
        raise_http(exc)
    return runtime.repository.info()


@router.delete("", status_code=204)
def clear_storage(runtime: Runtime = Depends(get_runtime)):
    runtime.clear_storage()
    return Response(status_code=204)
