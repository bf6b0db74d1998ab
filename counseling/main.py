import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import Database
from .domain.bookings.router import router as bookings_router
from .domain.chat.fanout import RealtimeHub
from .domain.chat.router import router as chat_router
from .domain.counselors.router import favorites_router, notes_router
from .domain.counselors.router import router as counselors_router
from .domain.payments.router import router as payments_router
from .domain.reviews.router import router as reviews_router
from .domain.schedules.router import router as schedules_router
from .email_service import Mailer
from .errors import DomainError
from .rate_limiter import RateLimiter
from .storage import AttachmentStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)

# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        app.state.database.create_all()
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    if app.state.rate_limiter.use_redis:
        try:
            app.state.rate_limiter.redis  # Connection test
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed - chat sends will be refused until it recovers: {e}")

    yield

    logger.info("Application shutting down...")
    app.state.hub.close_all()
    app.state.database.dispose()


async def domain_error_handler(request: Request, exc: DomainError):
    logger.warning(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    # For other validation errors, return 422 as normal
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


def create_app(
    database: Optional[Database] = None,
    hub: Optional[RealtimeHub] = None,
    attachment_store: Optional[AttachmentStore] = None,
    mailer: Optional[Mailer] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the API. Collaborators default to the production ones configured
    from the environment; tests pass in their own.
    """
    app = FastAPI(title="Counseling Booking API", version="1.0.0", lifespan=lifespan)

    app.state.database = database or Database()
    app.state.hub = hub or RealtimeHub()
    app.state.attachment_store = attachment_store or AttachmentStore()
    app.state.mailer = mailer or Mailer()
    app.state.rate_limiter = rate_limiter or RateLimiter()

    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(bookings_router)
    app.include_router(schedules_router)
    app.include_router(chat_router)
    app.include_router(payments_router)
    app.include_router(reviews_router)
    app.include_router(counselors_router)
    app.include_router(favorites_router)
    app.include_router(notes_router)

    @app.get("/")
    def root():
        return {"message": "Counseling Booking API is running"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()
