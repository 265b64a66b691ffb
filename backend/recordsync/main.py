"""
Record Sync - Backend API
FastAPI application exposing the push/pull synchronization protocol
"""

import os
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .routes import sync_router
from .services.sync.errors import StorageError, SyncServiceError
from .shared.error_handler import (
    ErrorInfo,
    ErrorType,
    RETRY_AFTER_SECONDS,
    classify_status,
    public_error_message,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


def get_cors_origins():
    configured = os.getenv("CORS_ALLOW_ORIGINS")
    if not configured:
        return DEFAULT_CORS_ORIGINS
    return [origin.strip() for origin in configured.split(",") if origin.strip()]


# Create FastAPI app
app = FastAPI(
    title="Record Sync API",
    description="Offline-first synchronization of receipts, warranties, bills and related records",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    max_age=3600,
)

app.include_router(sync_router)


@app.get("/health")
async def health_check():
    """Liveness probe used by the client connectivity monitor"""
    return {"status": "ok", "service": "recordsync", "version": __version__}


@app.exception_handler(SyncServiceError)
async def sync_service_exception_handler(request: Request, exc: SyncServiceError):
    """Render push/pull failures as the ``{success: false, ...}`` envelope"""
    if isinstance(exc, StorageError):
        info = ErrorInfo(
            ErrorType.STORAGE,
            public_error_message(exc.original or exc),
            technical_message=exc.message,
            error_code=exc.code,
            status_code=exc.status_code,
            retryable=True,
            retry_after=RETRY_AFTER_SECONDS,
        )
    else:
        info = ErrorInfo(
            ErrorType.VALIDATION,
            exc.message,
            error_code=exc.code,
            status_code=exc.status_code,
            errors=exc.errors,
        )
    info.log(f"{request.method} {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=info.to_dict(), headers=info.headers())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Framework-level request validation failures are reported as 400"""
    errors = [
        {"path": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    info = ErrorInfo(
        ErrorType.VALIDATION,
        "Validation failed",
        technical_message=f"{errors}",
        error_code="VALIDATION_ERROR",
        status_code=400,
        errors=errors,
    )
    info.log(f"{request.method} {request.url.path}")
    return JSONResponse(status_code=400, content=info.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions (401, 404, 405, 503) with the uniform envelope"""
    info = classify_status(exc.status_code)
    if isinstance(exc.detail, str) and exc.detail:
        info.user_message = exc.detail
    headers = dict(getattr(exc, "headers", None) or {})
    headers.update(info.headers())
    return JSONResponse(
        status_code=exc.status_code,
        content=info.to_dict(),
        headers=headers or None,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Unexpected failures: logged with traceback, generic body outside development"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    info = ErrorInfo(
        ErrorType.UNKNOWN,
        public_error_message(exc),
        error_code="INTERNAL_ERROR",
        status_code=500,
    )
    return JSONResponse(status_code=500, content=info.to_dict())


def main():
    """Main entry point for running the server"""
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    workers = int(os.getenv("WORKERS", "1"))

    logger.info(f"Starting Record Sync API on {host}:{port}")

    uvicorn.run(
        "recordsync.main:app",
        host=host,
        port=port,
        workers=workers,
        reload=os.getenv("ENVIRONMENT") == "development",
        log_level="info"
    )


if __name__ == "__main__":
    main()
