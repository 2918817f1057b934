import asyncio
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text

from promoboard.config import settings
from promoboard.errors import Conflict, NotFound, TransientStoreFailure, ValidationFailure
from promoboard.logging_config import configure_logging
from promoboard.metrics import metrics_endpoint
from promoboard.middleware.logging_middleware import RequestLoggingMiddleware
from promoboard.routers import activity, listings, trending
from promoboard.services.background import drain_background_tasks
from promoboard.services.notifications import close_notifier
from promoboard.worker.scheduler_worker import scheduler_worker_loop

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure structured logging before anything else
    configure_logging()

    # Startup: create Redis connection and store on app.state
    app.state.redis = aioredis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )

    # Start the scheduler trigger and store in app.state for health checks
    app.state.scheduler_worker_task = None
    if settings.scheduler_enabled:
        app.state.scheduler_worker_task = asyncio.create_task(scheduler_worker_loop())
    try:
        yield
    finally:
        if app.state.scheduler_worker_task is not None:
            app.state.scheduler_worker_task.cancel()
        # Let in-flight activity appends and notifications finish
        await drain_background_tasks()
        await close_notifier()
        # Shutdown: close Redis connection
        await app.state.redis.aclose()


app = FastAPI(title="PromoBoard API", version="0.1.0", lifespan=lifespan)

# Register request logging middleware (runs on every request)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Conflict)
async def conflict_handler(request: Request, exc: Conflict) -> JSONResponse:
    content = {"detail": exc.reason}
    if exc.next_eligible_at is not None:
        content["next_eligible_at"] = exc.next_eligible_at.isoformat()
    return JSONResponse(status_code=409, content=content)


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(TransientStoreFailure)
async def transient_store_handler(request: Request, exc: TransientStoreFailure) -> JSONResponse:
    log.warning("transient_store_failure", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage temporarily unavailable, please retry"},
        headers={"Retry-After": "5"},
    )


# Register all API routers
app.include_router(listings.router)
app.include_router(trending.router)
app.include_router(activity.router)

# Prometheus metrics endpoint
app.get("/metrics")(metrics_endpoint)


async def _component_status(check) -> dict:
    try:
        await check()
    except Exception as exc:
        return {"status": "unhealthy", "error": str(exc)}
    return {"status": "healthy"}


async def _ping_database() -> None:
    from promoboard.database import async_session_factory

    async with async_session_factory() as db:
        await db.execute(text("SELECT 1"))


def _scheduler_status() -> dict:
    if not settings.scheduler_enabled:
        return {"status": "disabled"}
    worker = getattr(app.state, "scheduler_worker_task", None)
    if worker is None:
        return {"status": "unhealthy", "error": "Worker not initialized"}
    if worker.done() or worker.cancelled():
        return {"status": "unhealthy", "error": "Worker task stopped"}
    return {"status": "healthy"}


@app.get("/health")
async def health_check(response: Response):
    """Report database, Redis and scheduler status.

    200 when every component is healthy or disabled, 503 otherwise.
    """
    checks = {
        "database": await _component_status(_ping_database),
        "redis": await _component_status(app.state.redis.ping),
        "scheduler_worker": _scheduler_status(),
    }
    healthy = all(check["status"] != "unhealthy" for check in checks.values())

    response.status_code = 200 if healthy else 503
    return {"status": "healthy" if healthy else "unhealthy", "checks": checks}
