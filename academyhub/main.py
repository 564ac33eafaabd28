"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from academyhub.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from academyhub.api.routes import academies, auth, bootstrap, invitations, metrics, users, ws
from academyhub.core.config import get_settings
from academyhub.core.errors import AppError
from academyhub.core.relay import RealtimeRelay
from academyhub.core.structured_logging import configure_logging, log_json
from academyhub.schemas.errors import ErrorResponse

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.log_level)

docs_enabled = settings.api_docs_enabled
if docs_enabled is None:
    docs_enabled = settings.environment != "production"

app = FastAPI(
    title="AcademyHub API",
    description="Academy, batch and invitation management API",
    version="1.0.0",
    docs_url="/api/docs" if docs_enabled else None,
    redoc_url="/api/redoc" if docs_enabled else None,
    openapi_url="/api/openapi.json" if docs_enabled else None,
)

# One relay per process; websocket clients and publishers share it
app.state.relay = RealtimeRelay()

# Middleware configuration (order matters - applied in reverse order)
# 1. Request logging (outermost - logs all requests)
app.add_middleware(RequestLoggingMiddleware)

# 2. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Rate limiting (applied before routing)
app.add_middleware(RateLimitMiddleware)

# 4. CORS (applied after rate limiting)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render typed errors as ``ErrorResponse``."""
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    log_json(
        logger,
        level,
        "app_error",
        method=request.method,
        path=request.url.path,
        status_code=exc.status_code,
        error=exc.error,
        message=exc.message,
    )
    body = ErrorResponse(error=exc.error, message=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(bootstrap.router, prefix="/api")
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api")
app.include_router(invitations.router, prefix="/api/invitations", tags=["invitations"])
app.include_router(academies.router, prefix="/api")
app.include_router(metrics.router, prefix="/api", tags=["metrics"])
app.include_router(ws.router, prefix="/api")
