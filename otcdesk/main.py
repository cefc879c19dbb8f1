"""
OTC Desk — FastAPI application entry point.

Configures the app, middleware, error handlers and registers all API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import OperationalError

from otcdesk.api import admin, currencies, destinations, orders, quotes, rates
from otcdesk.config import settings
from otcdesk.core.errors import OTCError, UnavailableError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    from otcdesk.database import engine
    from otcdesk.redis_client import redis

    yield

    # Shutdown: close connections
    await engine.dispose()
    await redis.aclose()


app = FastAPI(
    title=settings.APP_NAME,
    description="OTC crypto-fiat desk: quotes, privileged pricing and order lifecycle.",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error handlers ---


@app.exception_handler(OTCError)
async def otc_error_handler(request: Request, exc: OTCError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content={"code": exc.code, "detail": exc.message},
    )


@app.exception_handler(OperationalError)
async def database_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Database unavailable on %s %s: %s", request.method, request.url.path, exc)
    err = UnavailableError("Service temporarily unavailable. Please retry shortly.")
    return JSONResponse(
        status_code=err.http_status,
        content={"code": err.code, "detail": err.message},
    )


@app.exception_handler(RedisError)
async def redis_unavailable_handler(request: Request, exc: RedisError) -> JSONResponse:
    logger.error("Redis unavailable on %s %s: %s", request.method, request.url.path, exc)
    err = UnavailableError("Service temporarily unavailable. Please retry shortly.")
    return JSONResponse(
        status_code=err.http_status,
        content={"code": err.code, "detail": err.message},
    )


# --- Routers ---
app.include_router(currencies.router, prefix="/api/v1/currencies", tags=["Currencies"])
app.include_router(rates.router, prefix="/api/v1/rates", tags=["Rates"])
app.include_router(quotes.router, prefix="/api/v1/quotes", tags=["Quotes"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(destinations.router, prefix="/api/v1/destinations", tags=["Destinations"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "0.1.0",
    }
