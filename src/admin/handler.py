"""
Venue admin Lambda entry point.

Local dev:
    PYTHONPATH=src uv run uvicorn admin.handler:app --reload --port 8001

Lambda handler:
    admin.handler.handler
"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from mangum import Mangum
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from admin.routes import auth, upload, venues
from shared.config import get_settings
from shared.db import get_db
from shared.errors import AdminError
from shared.models import describe_errors

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Venue Admin API",
    description="Back-office API for destination venue records. Venue and upload routes require an admin session or the import secret.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(auth.router)
app.include_router(venues.router)
app.include_router(upload.router)


# ── Error rendering: every failure is {"ok": false, "error": "<message>"} ──────

def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message}, headers=headers)


@app.exception_handler(AdminError)
def handle_admin_error(request: Request, exc: AdminError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors and errors[0].get("type") == "json_invalid":
        return _error(400, "Invalid JSON body")
    return _error(400, describe_errors(errors))


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, str(exc))


@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}


@app.get("/health/db", include_in_schema=False)
def health_db(db: Session = Depends(get_db)):
    now = db.execute(text("SELECT CURRENT_TIMESTAMP")).scalar_one()
    return {"status": "ok", "time": str(now)}


# Mangum adapts the FastAPI ASGI app for AWS Lambda + API Gateway (HTTP API).
handler = Mangum(app, lifespan="off")
