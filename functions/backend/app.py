"""
FastAPI application entry point for the seismic monitor backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.config import get_settings
from backend.errors import IdentityConflictError, StorageError, ValidationError
from backend.routes import router

logger = logging.getLogger(__name__)


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400, content={"error": "Invalid input", "details": details}
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _validation_handler(request: Request, exc: ValidationError):
    status_code = 409 if isinstance(exc, IdentityConflictError) else 400
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.message, "details": exc.details},
    )


async def _storage_handler(request: Request, exc: StorageError):
    logger.error("Failed to save alert preference: %s", exc)
    return JSONResponse(
        status_code=500, content={"error": "Failed to save alert preference"}
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="BD Quake Monitor Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
    )
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(ValidationError, _validation_handler)
    app.add_exception_handler(StorageError, _storage_handler)

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "BD Quake Monitor Backend is Running!"

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
