"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.dependencies import get_media_uploader
from src.api.errors import (
    ApiError,
    api_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from src.api.middleware import CorrelationIdMiddleware
from src.api.routes import router
from src.api.users import router as users_router
from src.config import get_settings
from src.database import close_database, init_database, run_migrations
from src.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    await init_database()
    applied = await run_migrations()
    logger.info("database_initialized", migrations=applied)

    logger.info(
        "application_started",
        log_level=settings.log_level,
        access_token_minutes=settings.access_token_expire_minutes,
        refresh_token_days=settings.refresh_token_expire_days,
    )

    yield

    await get_media_uploader().close()
    await close_database()
    logger.info("application_shutdown")


app = FastAPI(
    title="Accounts API",
    description="User registration, sessions and channel profiles",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS middleware for browser clients; cookies require explicit origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking
app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)
app.include_router(router)
