import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quotadesk.api.v1.endpoints.api import api_router
from quotadesk.db.base import Base
from quotadesk.db.session import SessionLocal, engine as db_engine
from quotadesk.jobs.retention import run_retention_sweep, start_retention_scheduler, stop_retention_scheduler
from quotadesk.runtime import build_runtime

import quotadesk.models  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests install their own runtime before startup.
    runtime = getattr(app.state, "runtime", None)
    owns_runtime = runtime is None
    if owns_runtime:
        Base.metadata.create_all(bind=db_engine)
        runtime = build_runtime(SessionLocal)
        runtime.reload()
        run_retention_sweep(runtime.engine)
        runtime.scheduler = start_retention_scheduler(runtime.engine)
        app.state.runtime = runtime
    try:
        yield
    finally:
        if owns_runtime:
            stop_retention_scheduler(runtime.scheduler)
            runtime.close()
            app.state.runtime = None
            logger.info("runtime_closed")


app = FastAPI(title="QuotaDesk API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # For development; pin the frontend origin in production
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "up"}
