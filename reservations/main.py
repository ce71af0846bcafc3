import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from . import models
from .config import settings
from .database import engine
from .errors import BookingError
from .logging_config import setup_logging
from .routers import booking_router, property_router
from .outbox_poller import run_outbox_poller
from .booking_scheduler import run_booking_scheduler

import redis.asyncio as redis
from fastapi_limiter import FastAPILimiter

setup_logging()
logger = logging.getLogger("booking_service")

# Creates 'properties', 'availability_overrides', 'bookings' and 'outbox_events' if missing
models.Base.metadata.create_all(bind=engine)

ERROR_STATUS_CODES = {
    "NotFound": status.HTTP_404_NOT_FOUND,
    "PropertyInactive": status.HTTP_409_CONFLICT,
    "InvalidRange": status.HTTP_400_BAD_REQUEST,
    "CapacityExceeded": status.HTTP_400_BAD_REQUEST,
    "DateConflict": status.HTTP_409_CONFLICT,
    "InvalidTransition": status.HTTP_409_CONFLICT,
    "Unauthorized": status.HTTP_403_FORBIDDEN,
    "Retryable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "StorageFailure": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def _stop(task: asyncio.Task, name: str):
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info(f"{name} task successfully cancelled.")
    except Exception as e:
        logger.error(f"Error during {name} shutdown: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    redis_client = None
    if settings.RATE_LIMIT_ENABLED:
        try:
            redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
            await FastAPILimiter.init(redis_client)
            logger.info("FastAPILimiter initialized with Redis.")
        except Exception as e:
            logger.error(f"Failed to initialize FastAPILimiter: {e}")

    tasks = {}
    if settings.BACKGROUND_TASKS_ENABLED:
        logger.info("Starting background tasks...")
        tasks["Outbox poller"] = asyncio.create_task(run_outbox_poller())
        tasks["Booking scheduler"] = asyncio.create_task(run_booking_scheduler())

    yield  # The application is now running

    logger.info("Shutting down background tasks...")
    if redis_client is not None:
        await redis_client.close()
    for name, task in tasks.items():
        await _stop(task, name)


app = FastAPI(
    title="Reservations API",
    description="Booking admission, approval workflow and availability for property listings.",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    headers = {"Retry-After": "1"} if exc.kind == "Retryable" else None
    content = {"error": exc.kind, "detail": exc.message}
    nights = getattr(exc, "nights", None)
    if nights:
        content["nights"] = [night.isoformat() for night in nights]
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(exc.kind, status.HTTP_400_BAD_REQUEST),
        content=content,
        headers=headers,
    )


app.include_router(booking_router.router)
app.include_router(property_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the Reservations Service"}
