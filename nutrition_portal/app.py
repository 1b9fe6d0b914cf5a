"""
Nutrition Portal - FastAPI Application Entrypoint

This module initializes the FastAPI application with:
- Request-ID, security-header and anti-forgery middleware
- CORS for the dashboard frontend
- Authentication, provisioning and voucher routes under /api
- Database lifecycle management
- Uniform error envelopes: {"success": false, "message": ...}
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nutrition_portal.config import configure_logging, settings
from nutrition_portal.auth.database import get_engine, init_db, get_session_factory
from nutrition_portal.auth.routes import router as auth_router
from nutrition_portal.exceptions import PortalError, ValidationFailed
from nutrition_portal.gateway.csrf import CSRFMiddleware, router as csrf_router
from nutrition_portal.gateway.middleware import SecurityMiddleware
from nutrition_portal.provisioning.routes import router as provisioning_router
from nutrition_portal.vouchers.routes import router as vouchers_router


logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Configure logging
        - Initialize the SQLModel database (accounts, details, vouchers)

    Shutdown:
        - Dispose the engine
    """
    configure_logging()

    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)
    app.state.db_engine = engine
    app.state.db_session_factory = get_session_factory(engine)
    logger.info("Database ready")

    yield

    engine.dispose()


app = FastAPI(
    title="Nutrition Portal",
    description="School nutrition programme management: accounts, officer provisioning and vouchers",
    version=VERSION,
    lifespan=lifespan,
)


# =============================================================================
# Error envelopes
# =============================================================================

def _error_response(request: Request, status_code: int, body: dict) -> JSONResponse:
    body["request_id"] = getattr(request.state, "request_id", None)
    return JSONResponse(status_code=status_code, content=body)


def _validation_errors(exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"path": ".".join(loc), "message": message})
    return errors


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return _error_response(request, exc.status_code, exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    error = ValidationFailed(_validation_errors(exc))
    return _error_response(request, error.status_code, error.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(
        request,
        exc.status_code,
        {"success": False, "message": str(exc.detail), "error_code": "http_error"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        request, 500, {"success": False, "message": "Server error", "error_code": "server_error"}
    )


# =============================================================================
# Middleware (last added runs first)
# =============================================================================

app.add_middleware(CSRFMiddleware)

# CORS - the dashboards send cookies and both token headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "x-auth-token", settings.CSRF_HEADER_NAME],
    expose_headers=["X-Request-ID", "X-CSRF-Warning"],
)

app.add_middleware(SecurityMiddleware)


# =============================================================================
# Routes
# =============================================================================

app.include_router(csrf_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(provisioning_router, prefix="/api")
app.include_router(vouchers_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint for local dev tooling."""
    return {
        "status": "healthy",
        "version": VERSION,
        "csrf_enforcement": settings.CSRF_ENFORCEMENT,
    }


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Nutrition Portal",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
    }
