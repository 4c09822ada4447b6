import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from . import models
from .database import engine
from .exceptions import RentoError, ValidationError, NotFoundError, InvalidTransitionError, AuthorizationError
from .routers import booking_router, item_router, notification_router, message_router, profile_router, wishlist_router
from .outbox_poller import run_outbox_poller
from .push_consumer import run_push_consumer
from .booking_scheduler import run_booking_scheduler

import redis.asyncio as redis
from fastapi_limiter import FastAPILimiter
from .config import settings

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("rento")

# Create database tables on startup
models.Base.metadata.create_all(bind=engine)


async def _stop_task(task: asyncio.Task, name: str):
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
    logger.info("Starting background tasks...")

    redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
    try:
        await FastAPILimiter.init(redis_client)
        logger.info("FastAPILimiter initialized with Redis.")
    except Exception as e:
        logger.error(f"Failed to initialize FastAPILimiter: {e}")

    tasks = {
        "Outbox poller": asyncio.create_task(run_outbox_poller()),
        "Push consumer": asyncio.create_task(run_push_consumer()),
        "Booking scheduler": asyncio.create_task(run_booking_scheduler()),
    }

    yield  # The application is now running

    logger.info("Shutting down background tasks...")
    await redis_client.aclose()
    for name, task in tasks.items():
        await _stop_task(task, name)


app = FastAPI(
    title="Rento API",
    description="Peer-to-peer rentals: listings, bookings, messages and notifications.",
    version="1.0.0",
    lifespan=lifespan
)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
}


@app.exception_handler(RentoError)
async def rento_error_handler(request: Request, exc: RentoError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, AuthorizationError):
        logger.warning(f"Denied {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


app.include_router(profile_router.router)
app.include_router(item_router.router)
app.include_router(booking_router.router)
app.include_router(notification_router.router)
app.include_router(message_router.router)
app.include_router(wishlist_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the Rento API"}
