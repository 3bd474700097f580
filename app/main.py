"""
FastAPI Application Entry Point

Unified Order Service - Hybrid Architecture
Owns the order lifecycle shared by the customer app, the restaurant
dashboard and the rider backend, and pushes every change over WebSocket.

Endpoints (under API_PREFIX, default /api/unified):
    - POST /orders: Create order
    - GET  /orders/{id}, /orders/{id}/track: Read / timeline
    - GET  /customer/{id}/orders: Customer history
    - GET  /restaurant/{id}/orders[/pending]: Restaurant queue
    - POST /restaurant/{id}/orders/{orderId}/accept|reject|ready
    - POST /orders/{id}/rider-assigned|picked-up|out-for-delivery|delivered
    - POST /orders/{id}/status: Generic admin transition
    - WS   /ws: Push channel
    - GET  /health: System health check

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings, setup_logging
from app.core.errors import OrderServiceError
from app.database import init_db
from app.routers import orders, realtime, restaurants, webhooks
from app.schemas import ErrorResponse, HealthResponse
from app.services import get_lifecycle_engine
from app.services.lifecycle import OrderLifecycleEngine
from app.services.store import ResilientOrderStore, SqlOrderStore

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    engine = get_lifecycle_engine()
    store = engine.store

    sql_store = store.primary if isinstance(store, ResilientOrderStore) else store
    if settings.auto_create_schema and isinstance(sql_store, SqlOrderStore):
        try:
            await init_db(sql_store.engine)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"❌ Could not create schema: {e}")

    if isinstance(store, ResilientOrderStore):
        await store.probe()

    logger.info(f"✅ Order Store: {store.backend_name}")
    logger.info(f"✅ Dispatch Service: {engine.dispatcher.provider_name}")
    logger.info(f"✅ WebSocket: {settings.api_prefix}/ws")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.drain()
    await engine.dispatcher.close()
    await store.close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Unified order lifecycle service: restaurant acceptance workflow, "
        "rider dispatch and real-time order events."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders.router, prefix=settings.api_prefix)
app.include_router(restaurants.router, prefix=settings.api_prefix)
app.include_router(webhooks.router, prefix=settings.api_prefix)
app.include_router(realtime.router, prefix=settings.api_prefix)

if settings.allow_debug_delete:
    app.include_router(orders.debug_router, prefix=settings.api_prefix)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍕 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "api": settings.api_prefix,
        "websocket": f"{settings.api_prefix}/ws",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> HealthResponse:
    """Report the active store, dispatch provider and WebSocket stats."""
    store_status = engine.store.backend_name
    try:
        await engine.store.ping()
    except OrderServiceError as e:
        store_status = f"{store_status} (unhealthy: {e.message})"
        logger.error(f"Store health check failed: {e}")

    return HealthResponse(
        status="operational" if "unhealthy" not in store_status else "degraded",
        service=settings.app_name,
        environment=settings.env_mode.value,
        store=store_status,
        dispatch=engine.dispatcher.provider_name,
        websocket=engine.hub.stats(),
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderServiceError)
async def order_service_exception_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
    """Domain errors -> JSON envelope with the error's own status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are caller errors (400), not 422s."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid {location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"

    content: dict[str, Any] = {"success": False, "error": message}
    if settings.debug:
        content["detail"] = [
            {k: v for k, v in e.items() if k in ("loc", "msg", "type")} for e in errors
        ]
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )

