from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.cors import CORSMiddleware

from metricspulse.apps.metrics.routers import metrics_router, webhook_router
from metricspulse.core.config import app_logger, settings
from metricspulse.core.db import dispose_db, init_db
from metricspulse.core.dependencies import get_async_session
from metricspulse.core.exceptions.handlers import (
    authentication_exception_handler,
    database_exception_handler,
    exception_schema,
    external_service_exception_handler,
    general_exception_handler,
    request_validation_exception_handler,
    retry_exhausted_exception_handler,
    timeout_exception_handler,
)
from metricspulse.core.exceptions.types import (
    AppException,
    AuthenticationException,
    DatabaseException,
    ExternalServiceException,
    RetryExhaustedException,
    TimeoutException,
)
from metricspulse.core.logger import init_sentry
from metricspulse.core.services import (
    RedisService,
    build_idempotency_cache,
    build_recalculation_throttle,
)
from metricspulse.infrastructure.scheduler import initialize_scheduler, scheduler


def uses_redis() -> bool:
    return "redis" in (
        settings.IDEMPOTENCY_BACKEND,
        settings.RECALCULATION_THROTTLE_BACKEND,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting application...")

    if init_sentry(settings.SENTRY_DSN, environment=settings.ENVIRONMENT):
        app_logger.info("Sentry initialized.")

    # Initialize Redis service (only if a Redis backend is selected)
    if uses_redis():
        app_logger.info("Initializing Redis service...")
        await RedisService.init(settings.REDIS_URL)
        app_logger.info("Redis service initialized successfully.")

    app_logger.info("Creating database tables...")
    await init_db()

    # Start the scheduler (only if enabled)
    if settings.ENABLE_SCHEDULER:
        app_logger.info("Starting scheduler...")
        scheduler.start()
        initialize_scheduler()  # Schedule jobs after starting the scheduler
        app_logger.info("Scheduler started successfully.")
    else:
        app_logger.info("Scheduler disabled via ENABLE_SCHEDULER setting.")

    yield

    app_logger.info("Shutting down application...")

    if settings.ENABLE_SCHEDULER:
        app_logger.info("Stopping scheduler...")
        scheduler.shutdown()
        app_logger.info("Scheduler stopped successfully.")

    if uses_redis():
        app_logger.info("Closing Redis service...")
        await RedisService.aclose()
        app_logger.info("Redis service closed successfully.")

    await dispose_db()


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    debug=settings.DEBUG,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    responses=exception_schema,
    root_path_in_servers=False,
    servers=[
        {
            "url": f"{settings.API_DOMAIN}",
        },
    ],
)

# Process-scoped webhook and throttle state
app.state.idempotency_cache = build_idempotency_cache(settings)
app.state.recalculation_throttle = build_recalculation_throttle(settings)

# Register exception handlers (order matters - more specific first)
app.add_exception_handler(AuthenticationException, authentication_exception_handler)
app.add_exception_handler(DatabaseException, database_exception_handler)
app.add_exception_handler(ExternalServiceException, external_service_exception_handler)
app.add_exception_handler(RetryExhaustedException, retry_exhausted_exception_handler)
app.add_exception_handler(TimeoutException, timeout_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
# Generic fallback
app.add_exception_handler(AppException, general_exception_handler)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(webhook_router)
app.include_router(metrics_router)


@app.get("/", include_in_schema=False)
async def root(request: Request):
    base_url = str(request.base_url).rstrip("/")
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "documentations": {
            "swagger": f"{base_url}/docs",
            "redoc": f"{base_url}/redoc",
        },
        "version": settings.APP_VERSION,
    }


@app.head("/health", include_in_schema=False)
@app.get("/health")
async def health_check(session: Annotated[AsyncSession, Depends(get_async_session)]):
    """
    Health check endpoint to verify if the API is running.

    Checks:
        - Database connectivity
        - Redis connectivity (only when a Redis backend is configured)
    """
    health_status: dict = {
        "status": "ok",
        "message": f"{settings.APP_NAME} is running.",
        "checks": {
            "database": "ok",
        },
    }

    try:
        async with session.begin():
            result = await session.execute(text("SELECT 1"))
            if result.scalar() != 1:
                health_status["checks"]["database"] = "unhealthy"
                health_status["status"] = "degraded"
    except Exception as e:
        app_logger.error(f"Database health check failed: {e}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    if uses_redis():
        health_status["checks"]["redis"] = "ok"
        if not await RedisService.ping():
            health_status["checks"]["redis"] = "unhealthy"
            health_status["status"] = "degraded"

    if health_status["status"] != "ok":
        raise AppException(
            "One or more health checks failed.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=health_status,
        )

    return health_status
