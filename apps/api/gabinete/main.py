"""FastAPI application entry point."""
import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from sqlalchemy import text

from gabinete.core.config import settings
from gabinete.core.deps import get_current_user
from gabinete.db.models import User
from gabinete.db.session import engine

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Constituent records are personal data
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from gabinete.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Gabinete API",
    description="Constituent and demand management for a legislative office",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
    expose_headers=["X-Audit-Incomplete", "Content-Disposition"],
)

# ============================================================================
# Routers
# ============================================================================

from gabinete.routers import (
    audit,
    auth,
    categories,
    constituents,
    demands,
    geo,
    imports,
    quarantine,
    users,
)

app.include_router(auth.router, prefix="/auth")
app.include_router(constituents.router, prefix="/constituents")
app.include_router(demands.router, prefix="/demands")
app.include_router(categories.router, prefix="/categories")
app.include_router(users.router, prefix="/users")

# Admin review of soft-deleted records (router has /quarantine prefix)
app.include_router(quarantine.router)

# Audit panel (router has /audit prefix)
app.include_router(audit.router)

app.include_router(imports.router)
app.include_router(geo.router)


# ============================================================================
# Local file serving (STORAGE_BACKEND=local only)
# ============================================================================

if settings.STORAGE_BACKEND == "local":
    from gabinete.services import storage_service

    @app.get("/files/{storage_key:path}", include_in_schema=False)
    def serve_local_file(storage_key: str, user: User = Depends(get_current_user)):
        path = storage_service.local_path(storage_key)
        if path is None:
            raise HTTPException(status_code=404, detail="File not found")
        return FileResponse(path)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
