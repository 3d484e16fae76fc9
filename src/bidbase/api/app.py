"""
FastAPI application.

Endpoints:
- POST /sync-tenders  trigger a sync run for one page
- POST /get-tenders   search with filters, pagination, stats and facets
- GET  /stats         platform statistics

Every response uses the envelope {success, data | error, timestamp}.
"""

from __future__ import annotations

import math
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from bidbase import __version__
from bidbase.core.config.models import AppConfig
from bidbase.core.errors import SyncError
from bidbase.core.logging import get_logger
from bidbase.core.normalize.parsing import utcnow
from bidbase.core.orchestrator.runner import SyncRunResult, run_sync
from bidbase.persistence.repo import TenderRepository

from .schemas import (
    GetTendersRequest,
    SyncRequest,
    iso_timestamp,
    tender_to_dict,
    validation_details,
)


logger = get_logger("api")

SyncFunc = Callable[[int, int], Awaitable[SyncRunResult]]

STATUS_OPTIONS = [
    ("open", "Open"),
    ("closed", "Closed"),
    ("cancelled", "Cancelled"),
    ("awarded", "Awarded"),
]

_NO_BODY = object()


# =============================================================================
# Envelope
# =============================================================================


def success_response(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({
            "success": True,
            "data": data,
            "timestamp": iso_timestamp(utcnow()),
        }),
    )


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({
            "success": False,
            "error": error,
            "timestamp": iso_timestamp(utcnow()),
        }),
    )


async def _read_json(request: Request) -> Any:
    """Parse the request body; returns _NO_BODY when it is not valid JSON."""
    body = await request.body()
    if not body.strip():
        return None
    try:
        return await request.json()
    except ValueError:
        return _NO_BODY


# =============================================================================
# Read Path
# =============================================================================


def _search(session_factory: sessionmaker[Session], req: GetTendersRequest) -> dict[str, Any]:
    with session_factory() as session:
        repo = TenderRepository(session)
        tenders, total = repo.search(
            req.filters.to_filters(),
            page=req.page,
            page_size=req.page_size,
            sort_by=req.sort_by,
            sort_order=req.sort_order,
        )
        stats = repo.get_platform_stats()
        facets = repo.get_filter_options()
        by_status = {
            "open": stats["open_tenders"],
            "closed": stats["closed_tenders"],
            "cancelled": stats["cancelled_tenders"],
            "awarded": stats["awarded_tenders"],
        }
        total_pages = math.ceil(total / req.page_size) if total else 0

        return {
            "tenders": [tender_to_dict(t) for t in tenders],
            "pagination": {
                "current_page": req.page,
                "total_pages": total_pages,
                "page_size": req.page_size,
                "total_count": total,
                "has_next": req.page < total_pages,
                "has_previous": req.page > 1,
            },
            "stats": {
                "total_tenders": stats["total_tenders"],
                "open_tenders": stats["open_tenders"],
                "closing_soon_tenders": stats["closing_soon"],
                "total_value": stats["total_value"],
                "last_updated": stats["last_updated"],
            },
            "filters": {
                "provinces": facets["provinces"],
                "industries": facets["industries"],
                "statuses": [
                    {"value": value, "label": label, "count": by_status[value]}
                    for value, label in STATUS_OPTIONS
                ],
            },
        }


def _stats(session_factory: sessionmaker[Session]) -> dict[str, Any]:
    with session_factory() as session:
        return TenderRepository(session).get_platform_stats()


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    config: AppConfig | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    sync_func: SyncFunc | None = None,
) -> FastAPI:
    """Create the API application.

    Args:
        config: Application configuration (default: built-in defaults)
        session_factory: Session factory for the read path and the store
            (default: process-wide engine from config.database)
        sync_func: Coroutine function (page_number, page_size) -> SyncRunResult
            (default: run_sync against the configured feed)
    """
    config = config or AppConfig()

    if session_factory is None:
        from bidbase.persistence.db import get_engine, get_session_factory

        get_engine(config.database.url, echo=config.database.echo, pool_size=config.database.pool_size)
        session_factory = get_session_factory()

    if sync_func is None:
        factory = session_factory

        async def sync_func(page_number: int, page_size: int) -> SyncRunResult:
            return await run_sync(
                config,
                page_number=page_number,
                page_size=page_size,
                session_factory=factory,
            )

    app = FastAPI(
        title="BidBase",
        version=__version__,
        description="South African government tender ingestion and search API",
    )
    app.state.config = config
    app.state.session_factory = session_factory
    app.state.sync_func = sync_func

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 405:
            return error_response(405, "METHOD_NOT_ALLOWED", f"Method {request.method} is not allowed")
        if exc.status_code == 404:
            return error_response(404, "NOT_FOUND", f"No route for {request.url.path}")
        return error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------

    @app.post("/sync-tenders")
    async def sync_tenders(request: Request) -> JSONResponse:
        body = await _read_json(request)
        # Missing or unparseable body means defaults
        if body is None or body is _NO_BODY or not isinstance(body, dict):
            body = {}

        try:
            req = SyncRequest.model_validate(body)
        except ValidationError as e:
            return error_response(400, "VALIDATION_ERROR", "Request validation failed", validation_details(e))

        page_number = req.page_number or config.sync.page_number
        page_size = req.page_size or config.sync.page_size

        try:
            result = await app.state.sync_func(page_number, page_size)
        except SyncError as e:
            logger.error(f"Sync failed: {e}")
            return error_response(500, "SYNC_ERROR", str(e))

        return success_response(result.to_dict())

    @app.post("/get-tenders")
    async def get_tenders(request: Request) -> JSONResponse:
        body = await _read_json(request)
        if body is _NO_BODY:
            return error_response(400, "INVALID_JSON", "Request body must be valid JSON")

        try:
            req = GetTendersRequest.model_validate(body if body is not None else {})
        except ValidationError as e:
            return error_response(400, "VALIDATION_ERROR", "Request validation failed", validation_details(e))

        try:
            data = await run_in_threadpool(_search, app.state.session_factory, req)
        except SQLAlchemyError as e:
            logger.error(f"Database search error: {e}")
            return error_response(500, "DATABASE_ERROR", "Failed to search tenders")

        return success_response(data)

    @app.get("/stats")
    async def stats() -> JSONResponse:
        try:
            data = await run_in_threadpool(_stats, app.state.session_factory)
        except SQLAlchemyError as e:
            logger.error(f"Database stats error: {e}")
            return error_response(500, "DATABASE_ERROR", "Failed to get platform statistics")

        return success_response(data)

    return app
