"""
Tourbook - Main Application Entry Point

Server-rendered tour booking site with a JSON API:
- Generic CRUD over tours, users, reviews and bookings with a shared query language
- JWT auth (bearer header or httpOnly cookie) with role restrictions
- Stripe Checkout and webhook-driven bookings
- Redis-backed stats cache and rate limiting, structured logging, Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tourbook.api.middleware import RateLimitMiddleware, RequestLoggingMiddleware
from tourbook.api.router import api_router
from tourbook.api.routes import views, webhooks
from tourbook.core.config import get_settings
from tourbook.core.errors import register_exception_handlers
from tourbook.core.logging import get_logger, setup_logging
from tourbook.core.metrics import metrics_endpoint
from tourbook.db.session import build_engine, build_sessionmaker
from tourbook.infrastructure.redis_client import close_redis, get_redis
from tourbook.services.cache_service import get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    engine = build_engine(settings)
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)

    # Initialize Redis connection
    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache and rate limiting")

    yield

    # Cleanup
    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Tour booking API and site",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware (logging added last so it wraps everything)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(api_router)
app.include_router(webhooks.router)
app.include_router(views.router)
app.mount("/static", StaticFiles(directory=str(settings.PUBLIC_DIR), check_dir=False), name="static")


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint for Docker and load balancers."""
    database = "connected"
    try:
        async with request.app.state.sessionmaker() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        database = f"error: {e}"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": database,
        "cache": await get_cache_stats(),
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()
