"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response
from api.routes import health, events, uploads, datasets
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.exceptions import (
    IngestionException,
    ValidationError,
    NotFoundError,
    DuplicateError,
    ConflictError,
    TransientInfrastructureError,
)
from core.logging import setup_logging
from core.resources import create_resources
from schemas.api import ErrorResponse
import logging

# Configure logging
setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Lakehouse Ingestion API",
    description="Tenant-scoped event ingestion and file upload front door",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(events.router)
app.include_router(uploads.router)
app.include_router(datasets.router)

# Most specific first; lookup walks this list in order
ERROR_STATUS_CODES = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (TransientInfrastructureError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(exc: IngestionException) -> int:
    for exc_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(IngestionException)
async def ingestion_exception_handler(request: Request, exc: IngestionException):
    code = status_code_for(exc)
    request_id = getattr(request.state, "request_id", "-")
    if code >= 500:
        logger.error(
            f"[{request_id}] {request.method} {request.url.path} failed: {exc.message}",
            extra={"error_context": exc.to_dict()}
        )
    else:
        logger.info(f"[{request_id}] {request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=code,
        content=ErrorResponse(error=exc.message, detail={"type": exc.__class__.__name__}).model_dump()
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="Invalid request", detail={"errors": jsonable_errors(exc)}).model_dump()
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Lakehouse Ingestion API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    # Tests may install their own resources before startup
    if getattr(app.state, "resources", None) is None:
        app.state.resources = create_resources()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Lakehouse Ingestion API")
    resources = getattr(app.state, "resources", None)
    if resources is not None:
        await resources.aclose()
        app.state.resources = None


@app.get("/metrics")
async def metrics():
    """Prometheus scrape endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Lakehouse Ingestion API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "events": "/events",
            "uploads": "/uploads",
            "datasets": "/datasets",
            "metrics": "/metrics"
        }
    }
