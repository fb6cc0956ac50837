from contextlib import asynccontextmanager
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.api.v1.router import api_router
from app.core.exceptions import ApiError, InternalError
from app.schemas.base import ErrorBody, ErrorResponse
from app.database import init_db, async_session_factory, is_sqlite


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables on SQLite (local/dev). PostgreSQL schemas come from alembic.
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if is_sqlite:
        await init_db()
        logger.info("SQLite database initialized")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")


API_DESCRIPTION = """
## Procure-to-pay and warehouse stock

Purchase orders, goods receipts, purchase invoices and supplier payments,
kept consistent with each other by state machines and quantity/amount
reconciliation, plus a movement ledger for warehouse stock.

Every request carries the tenant in the **X-Tenant-ID** header. The acting
user and roles come in **X-User-ID** and **X-User-Roles**.

Responses are wrapped as `{"success": true, "data": ...}`; errors as
`{"success": false, "error": {"message": ..., "code": ...}}`.

- **API Docs**: /docs (Swagger UI)
- **Health Check**: /health
"""

OPENAPI_TAGS = [
    {"name": "Purchase Orders", "description": "Purchase order lifecycle and line availability"},
    {"name": "Goods Receipts", "description": "Goods received against purchase orders"},
    {"name": "Purchase Invoices", "description": "Supplier invoices for completed goods receipts"},
    {"name": "Supplier Payments", "description": "Payments against purchase invoices"},
    {"name": "Inventory", "description": "Stock adjustments, transfers and the movement ledger"},
]

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


def error_response(status_code: int, message: str, details: dict = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(message=message, code=status_code, details=details or None))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return error_response(exc.status_code, exc.message, exc.details)


def jsonable_errors(errors) -> list:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg"), "type": error.get("type")}
        for error in errors
    ]


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return error_response(400, message, {"errors": jsonable_errors(errors)})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"{request.method} {request.url.path}: integrity error {exc.orig}")
    return error_response(409, "Resource conflicts with an existing record")


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}")
    error = InternalError(str(exc) if settings.DEBUG else "Database error")
    return error_response(error.status_code, error.message)


# Global exception handler for anything unexpected
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    details = None
    if settings.DEBUG:
        details = {
            "type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        }
    return error_response(500, str(exc) if settings.DEBUG else "Internal server error", details)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
