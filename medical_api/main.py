"""
FastAPI application entrypoint.

Run locally:  uvicorn medical_api.main:app --reload
Seed data:    python -m medical_api.seed
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medical_api.api.routes import router
from medical_api.config import settings
from medical_api.errors import (
    AccessDenied,
    AuditWriteFailure,
    NotFound,
    StorageFailure,
)
from medical_api.models.database import Base, engine

logging.basicConfig(
    level=settings.LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Medical Records API",
    description=(
        "Patient record access with role and purpose authorization, consent "
        "verification, field-level data minimization, and an audit trail that "
        "records field names, never values."
    ),
    version="1.0.0",
)

app.include_router(router, prefix="/api")


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)


# ---------------------------------------------------------------------------
# Error mapping – callers get reasons, never stack traces or field values
# ---------------------------------------------------------------------------

@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied):
    return JSONResponse(status_code=403, content={"error": exc.reason})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    if isinstance(exc, AuditWriteFailure):
        logger.critical(
            "Audit trail lost on %s %s", request.method, request.url.path, exc_info=exc
        )
    else:
        logger.error(
            "Storage failure on %s %s", request.method, request.url.path, exc_info=exc
        )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )
