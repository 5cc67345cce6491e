# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
PR Reviewer Service
===================
Assigns reviewers to pull requests inside teams and keeps those assignments
consistent as users and teams are deactivated or moved.

Entry point — app factory, middleware, error mapping, and router registration.
All business logic lives in pr_reviewer.services.*.

Port: 8080
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pr_reviewer.core.config import settings
from pr_reviewer.core.database import wait_for_database
from pr_reviewer.core.dependencies import get_storage
from pr_reviewer.core.errors import DomainError, ErrorCode
from pr_reviewer.core.logging import get_logger
from pr_reviewer.controllers import (
    pull_request_controller,
    stats_controller,
    system_controller,
    team_controller,
    user_controller,
)
from pr_reviewer.middleware import MetricsMiddleware, RequestIDMiddleware
from pr_reviewer.repositories.schema import create_schema
from pr_reviewer.repositories.sql_repository import SqlRepository
from pr_reviewer.schemas.api import ErrorBody, ErrorResponse

logger = get_logger(settings.SERVICE_NAME)


# ── Lifespan ──────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Wait for the database, optionally create the schema; dispose on shutdown."""
    storage = get_storage()
    if isinstance(storage, SqlRepository):
        wait_for_database(storage.verify_connection)
        if settings.DB_CREATE_SCHEMA:
            create_schema(storage.engine)
            logger.info("Database schema ensured")
    logger.info("%s v%s starting, storage=%s",
                settings.SERVICE_NAME, settings.SERVICE_VERSION, settings.STORAGE_BACKEND)
    yield
    storage.dispose()
    logger.info("Shutting down, storage released")


# ── FastAPI App ───────────────────────────────────────────────────────────
app = FastAPI(
    title="PR Reviewer Service",
    description="Reviewer assignment and rebalancing for team pull requests.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    responses={
        400: {"model": ErrorResponse, "description": "Validation error"},
        404: {"model": ErrorResponse, "description": "Resource not found"},
        409: {"model": ErrorResponse, "description": "Conflict with current state"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)


def _error_response(status: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(code=code, message=message))
    return JSONResponse(status_code=status, content=body.model_dump())


# ── Exception handlers ───────────────────────────────────────────────────
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    req_id = getattr(request.state, "request_id", None)
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message,
                     exc_info=exc, extra={"request_id": req_id})
        if exc.code == ErrorCode.INTERNAL_ERROR:
            return _error_response(exc.http_status, exc.code.value, "internal server error")
    else:
        logger.info("%s %s rejected: %s %s", request.method, request.url.path,
                    exc.code.value, exc.message, extra={"request_id": req_id})
    return _error_response(exc.http_status, exc.code.value, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid request')}" if field else "invalid request body"
    return _error_response(400, ErrorCode.VALIDATION_ERROR.value, message)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    req_id = getattr(request.state, "request_id", None)
    logger.exception("Unhandled exception", extra={"request_id": req_id})
    return _error_response(500, ErrorCode.INTERNAL_ERROR.value, "internal server error")


# ── Routers ───────────────────────────────────────────────────────────────
app.include_router(system_controller.router)
app.include_router(team_controller.router)
app.include_router(user_controller.router)
app.include_router(pull_request_controller.router)
app.include_router(stats_controller.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.SERVICE_PORT)
