# src/wallet_session/main.py
"""Main entry point for the wallet session service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wallet_session.api.v1 import session_router, system_router
from wallet_session.api.v1.dependencies import close_clients
from wallet_session.core.errors import SessionError
from wallet_session.core.settings import settings
from wallet_session.db.session import SessionLocal, create_tables
from wallet_session.services.rate_limit import SqlRateLimitStore

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Wallet Session API",
    description="Authorizes delegated wallet sessions with email, SMS or passkey challenges",
    version="1.0.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(session_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.exception_handler(SessionError)
async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    """Render tagged protocol errors with their stable status and kind."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.kind.value, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": exc.status_code, "error": exc.kind.value, "message": exc.message},
    )


@app.on_event("startup")
async def on_startup() -> None:
    create_tables()
    SqlRateLimitStore(SessionLocal).prune()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_clients()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Wallet Session API",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("wallet_session.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
