import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.router import router as api_v1_router
from app.core.config import settings as app_settings
from app.core.exceptions import (
    CronRecentlyRunError,
    CronUnauthorizedError,
    InvalidAssignmentInputError,
)
from app.core.rate_limit import limiter

# Configure logging
logging.basicConfig(level=app_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the shared Redis connection pool for the app's lifetime."""
    app.state.redis = Redis.from_url(app_settings.REDIS_URL, decode_responses=True)
    logger.info("Redis connection pool created")
    yield
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


app = FastAPI(
    title="Raydar Lead Assignment Service",
    description="Territory matching, knockability ranking and greedy lead auto-assignment for door-to-door sales teams",
    version="0.1.0",
    debug=app_settings.DEBUG,
    lifespan=lifespan,
)

# Attach rate limiter state so slowapi middleware can find it
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware, restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in app_settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(InvalidAssignmentInputError)
async def invalid_assignment_input_handler(
    request: Request, exc: InvalidAssignmentInputError
):
    logger.warning("Invalid assignment input: %s", exc.detail)
    return JSONResponse(
        status_code=400,
        content={"detail": exc.detail, "type": "invalid_assignment_input"},
    )


@app.exception_handler(CronUnauthorizedError)
async def cron_unauthorized_handler(request: Request, exc: CronUnauthorizedError):
    logger.warning("Rejected cron trigger from %s", request.client)
    return JSONResponse(
        status_code=401,
        content={"detail": exc.detail, "type": "unauthorized"},
    )


@app.exception_handler(CronRecentlyRunError)
async def cron_recently_run_handler(request: Request, exc: CronRecentlyRunError):
    logger.info("Skipped duplicate cron run: %s", exc.detail)
    return JSONResponse(
        status_code=409,
        content={"detail": exc.detail, "type": "cron_recently_run"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation error: %s", exc.errors())
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": exc.errors(),
            "type": "validation_error",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
