"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.cache import redis_cache
from core.config import settings
from database.engine import init_db, close_db
from api.routes import health
from api.routes.v1 import (
    admin,
    applications,
    auth,
    chats,
    companies,
    connections,
    jobs,
    notifications,
    posts,
    realtime,
    search,
    users,
)
from core.middleware import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    StructuredLoggingMiddleware,
    setup_logging,
    RateLimitMiddleware,
    SlidingWindowRateLimiter,
)

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)

# The client connects on first use; requests pass through while redis is down
rate_limit_redis = redis.from_url(
    str(settings.redis_url),
    encoding="utf-8",
    decode_responses=True,
    socket_connect_timeout=5,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
    await redis_cache.init()
    await init_db()

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await rate_limit_redis.aclose()
    await redis_cache.close()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Job marketplace and professional network API",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

setup_error_handlers(app)

# Middleware added last runs first
if settings.rate_limit_enabled:
    app.add_middleware(
        RateLimitMiddleware,
        limiter=SlidingWindowRateLimiter(rate_limit_redis),
        key_prefix=f"{settings.app_name}:ratelimit",
        enable_headers=True,
    )

app.add_middleware(
    StructuredLoggingMiddleware,
    log_request_body=settings.log_request_body,
    max_body_size=settings.log_max_body_size,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    ErrorHandlingMiddleware,
    debug=settings.debug,
)

# Health check and realtime routes
app.include_router(health.router, tags=["Health"])
app.include_router(realtime.router)

# API v1 routes
for module in (
    auth,
    users,
    connections,
    companies,
    jobs,
    applications,
    chats,
    posts,
    notifications,
    search,
    admin,
):
    app.include_router(module.router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
