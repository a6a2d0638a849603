"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

import redis.asyncio as redis
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from venue_booking.api.v1.router import router as v1_router
from venue_booking.config import get_settings
from venue_booking.database import close_db, init_models
from venue_booking.errors import BookingEngineError, ErrorKind
from venue_booking.redis_client import close_redis, get_redis, redis_is_up
from venue_booking.schemas.common import ErrorResponse
from venue_booking.tasks import background_tasks


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


settings = get_settings()

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.UPSTREAM: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Venue Booking API...")

    # Create tables that do not exist yet
    await init_models()

    # Initialize Redis connection
    await get_redis()
    logger.info("Redis connection established")

    # Start background tasks
    await background_tasks.start()

    yield

    # Shutdown
    logger.info("Shutting down Venue Booking API...")

    # Stop background tasks
    await background_tasks.stop()

    # Close connections
    await close_redis()
    await close_db()
    logger.info("Redis and database connections closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## Venue Booking API

Time-slot reservations for event venues.

- **Distributed Locking**: Redis lock per venue and day serializes overlap checks
- **Optimistic Locking**: Version-checked status transitions for payments and cancellations
- **Installments**: Pay in full or pay a first installment to confirm
- **Idempotent Payments**: Repeated confirmations of a payment reference are no-ops
- **Automatic Completion**: Background sweep completes bookings whose slot has ended

### Authentication
Send `Authorization: Bearer <token>`. When header authentication is enabled,
`X-User-ID` is accepted as well.

### Workflow
1. Browse venues
2. Create a booking for a date and time range
3. Start a payment intent and confirm the payment
4. Pay the remaining balance when paying in installments
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(v1_router, prefix="/api")

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check(redis_client: Annotated[redis.Redis, Depends(get_redis)]):
        """Health check endpoint. Degraded when Redis, and so booking, is unavailable."""
        redis_up = await redis_is_up(redis_client)
        return {
            "status": "healthy" if redis_up else "degraded",
            "redis": "up" if redis_up else "down",
            "version": settings.APP_VERSION,
            "api_versions": ["v1"],
        }

    @app.exception_handler(BookingEngineError)
    async def booking_error_handler(request: Request, exc: BookingEngineError):
        """Map engine errors to their HTTP status."""
        status_code = ERROR_STATUS.get(exc.kind, 400)
        if status_code >= 500:
            logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=exc.code, detail=exc.message).model_dump(),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal Server Error",
                detail=str(exc) if settings.DEBUG else None,
            ).model_dump(),
        )

    return app


# Create application instance
app = create_app()


def run():
    """Run the application with uvicorn."""
    uvicorn.run(
        "venue_booking.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
