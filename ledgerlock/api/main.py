"""
LEDGERLOCK API - Main Application Entry Point

FastAPI gateway in front of the authorization engine.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledgerlock.core.exceptions import (
    AlreadyRegistered,
    CommitFailed,
    InvalidInput,
    LedgerLockError,
    LoggingFailed,
    NotFound,
    Unauthorized,
    Unavailable,
)
from ledgerlock.api.config import check_signing_secret, settings
from ledgerlock.api.ledger.adapter import close_ledger, init_ledger

logger = logging.getLogger(__name__)


ERROR_STATUS = {
    InvalidInput: 400,
    Unauthorized: 403,
    NotFound: 404,
    AlreadyRegistered: 409,
    CommitFailed: 502,
    LoggingFailed: 503,
    Unavailable: 503,
}


def status_for(exc: LedgerLockError) -> int:
    """HTTP status for a domain error; unknown kinds map to 500."""
    for exc_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    check_signing_secret(settings)
    await init_ledger()
    yield
    # Shutdown
    await close_ledger()


async def ledgerlock_error_handler(request: Request, exc: LedgerLockError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
    error = InvalidInput(
        f"Invalid request: {', '.join(fields) or 'body'}",
        details={"fields": fields},
    )
    return JSONResponse(status_code=400, content={"error": error.to_dict()})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="LEDGERLOCK - Ledger-backed access control with a tamper-evident audit log",
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LedgerLockError, ledgerlock_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include routers
    from ledgerlock.api.identity.routes import router as identity_router
    from ledgerlock.api.permissions.routes import router as permissions_router
    from ledgerlock.api.access.routes import router as access_router

    app.include_router(identity_router, prefix="/api/v1/identities", tags=["Identities"])
    app.include_router(permissions_router, prefix="/api/v1/permissions", tags=["Permissions"])
    app.include_router(access_router, prefix="/api/v1/access", tags=["Access"])

    # Health check endpoint
    @app.get("/api/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "service": settings.APP_NAME,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ledgerlock.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
