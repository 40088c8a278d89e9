"""
Main FastAPI application
"""

import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import time
from prometheus_client import make_asgi_app
import uuid

from cinego.config import settings
from cinego.core.database import async_session, init_db, close_db
from cinego.core.exceptions import CinegoException
from cinego.core.logging import setup_logging
from cinego.core.metrics import REQUEST_COUNT, REQUEST_DURATION
from cinego.schemas.response import ErrorDetail, ErrorResponse
from cinego.api.v1.api import api_router
from cinego.api.v1.endpoints import health
from cinego.worker import build_worker, ensure_cleanup_scheduled

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=code, message=message, details=details or {})
        ).model_dump(mode="json")
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db()
    logger.info("Database connection established")

    async with async_session() as session:
        await ensure_cleanup_scheduled(session)

    stop_event = asyncio.Event()
    worker_task = None
    if settings.RUN_JOB_WORKER and not settings.is_testing:
        worker_task = asyncio.create_task(build_worker().run_forever(stop_event))
        logger.info("In-process job worker started")

    yield

    # Shutdown
    logger.info("Shutting down application")

    if worker_task is not None:
        stop_event.set()
        await worker_task

    await close_db()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Movie ticket booking API",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request tracking middleware
@app.middleware("http")
async def track_requests(request: Request, call_next):
    """
    Track request metrics and add request ID
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    # Label by route template so path ids don't explode cardinality
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)

    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code
    ).inc()

    REQUEST_DURATION.labels(
        method=request.method,
        endpoint=endpoint
    ).observe(duration)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(duration)

    return response


# Exception handlers
@app.exception_handler(CinegoException)
async def cinego_exception_handler(request: Request, exc: CinegoException):
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}",
        extra={"request_id": getattr(request.state, "request_id", None)}
    )
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return error_response(400, "VALIDATION_ERROR", "Invalid request", {"errors": errors})


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    return error_response(404, "NOT_FOUND", "The requested resource was not found")


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc):
    logger.error(f"Internal server error: {exc}", exc_info=True)
    return error_response(500, "INTERNAL_ERROR", "An internal server error occurred")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.APP_ENV,
        "api_docs": "/docs" if settings.DEBUG else None
    }


# Probes live at the root as well as under the API prefix
app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(api_router, prefix=settings.API_PREFIX)

# Mount Prometheus metrics endpoint
if settings.PROMETHEUS_ENABLED:
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cinego.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
