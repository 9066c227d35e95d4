"""FastAPI application entry point."""

import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from franchisehub.api.routes import api_router
from franchisehub.core.config import settings
from franchisehub.core.errors import register_exception_handlers
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import extract_token
from franchisehub.core.security import decode_access_token
from franchisehub.db.base import Base
from franchisehub.db.session import SessionLocal, engine

# Public paths that do NOT require authentication
# All other /api/v1/* paths require a valid Bearer token
PUBLIC_PATH_PREFIXES = [
    "/docs",
    "/redoc",
    "/openapi.json",
    "/storage/",
    f"{settings.api_v1_prefix}/auth/login",
    f"{settings.api_v1_prefix}/auth/register",
]

PUBLIC_EXACT_PATHS = [
    "/",
    "/health",
    "/health/ready",
]

# Configure logging: JSON in production, human-readable in debug
_log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
_root_logger = logging.getLogger()
_root_logger.setLevel(_log_level)

if not _root_logger.handlers:
    handler = logging.StreamHandler()
    if settings.debug:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    else:
        import json as _json

        class JSONFormatter(logging.Formatter):
            def format(self, record):
                return _json.dumps({
                    "ts": self.formatTime(record),
                    "level": record.levelname,
                    "logger": record.name,
                    "msg": record.getMessage(),
                    "module": record.module,
                    "line": record.lineno,
                })

        handler.setFormatter(JSONFormatter())
    _root_logger.addHandler(handler)

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add standard security headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path not in ("/docs", "/redoc"):
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response


class AuthEnforcementMiddleware(BaseHTTPMiddleware):
    """Reject unauthenticated requests to the API before they reach a route.

    Routes still resolve and authorize the user themselves; this only makes
    sure nothing under the API prefix is reachable without a token.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if request.method == "OPTIONS" or path in PUBLIC_EXACT_PATHS:
            return await call_next(request)
        if any(path.startswith(prefix) for prefix in PUBLIC_PATH_PREFIXES):
            return await call_next(request)
        if not path.startswith(settings.api_v1_prefix):
            return await call_next(request)

        token = extract_token(request)
        payload = decode_access_token(token) if token else None
        if payload is None or not all(payload.get(k) for k in ("sub", "email", "role")):
            return JSONResponse(
                status_code=401,
                content={"success": False, "message": "Authentication required"},
                headers={"WWW-Authenticate": "Bearer"},
            )
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all HTTP requests and responses."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            request_logger.error(
                f"Error: {request.method} {request.url.path} - "
                f"Exception: {type(e).__name__} - Time: {process_time:.3f}s - Client: {client_ip}"
            )
            raise

        process_time = time.time() - start_time
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            log_level,
            f"Response: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Time: {process_time:.3f}s - Client: {client_ip}"
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Franchise Hub API")

    # In production with PostgreSQL, use Alembic migrations
    if settings.database_url.startswith("sqlite"):
        db_path = settings.database_url.replace("sqlite:///", "", 1)
        if db_path and db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (SQLite mode)")

    os.makedirs(settings.upload_dir, exist_ok=True)

    yield

    logger.info("Shutting down Franchise Hub API")


app = FastAPI(
    title="Franchise Hub API",
    description="Multi-tenant backend for franchisors, franchisees and their units",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

register_exception_handlers(app)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(AuthEnforcementMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - added last so it runs first (Starlette LIFO order)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)

app.include_router(api_router, prefix=settings.api_v1_prefix)

app.mount(
    settings.public_upload_url.rstrip("/"),
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="storage",
)


@app.get("/health")
def health_check():
    """Basic liveness check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/health/ready")
def readiness_check():
    """Readiness check covering database and Redis connectivity."""
    checks = {"database": "unknown", "redis": "unknown"}

    db = None
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = "unhealthy"
    finally:
        if db:
            db.close()

    if settings.redis_url:
        try:
            import redis
            redis.from_url(settings.redis_url, socket_connect_timeout=2).ping()
            checks["redis"] = "healthy"
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            checks["redis"] = "unhealthy"
    else:
        checks["redis"] = "not configured"

    all_healthy = all(c in ("healthy", "not configured") for c in checks.values())
    return {
        "status": "ready" if all_healthy else "degraded",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Franchise Hub API",
        "docs": "/docs",
        "health": "/health",
    }
