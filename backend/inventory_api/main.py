"""
Product Inventory API — FastAPI Application Factory
======================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Served by uvicorn locally (python -m inventory_api) or imported as an
       ASGI app by a serverless runtime (inventory_api.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────────┐ ┌──────────────┐  │
    │  │  Req ID  │→│  Logging        │→│  CORS        │  │
    │  └──────────┘ └─────────────────┘ └──────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────┐ ┌──────────────────┐ ┌─────────────┐  │
    │  │  GET /   │ │ /api/products/*  │ │ GET /health │  │
    │  └──────────┘ └──────────────────┘ └─────────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ InvalidInput→400 │ NotFound→404 │ other→500  │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Deployment Modes:
    development/test  The lifespan connects to MongoDB before serving. A
                      connection failure aborts startup and the process exits.
    production        No connection at startup (serverless cold starts stay
                      cheap). Each request acquires the cached handle; a
                      connection failure becomes a 500 for that request.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from inventory_api import __version__
from inventory_api.config import Settings, settings
from inventory_api.database import ConnectionManager
from inventory_api.exceptions import (
    DatabaseConnectionError,
    InvalidInputError,
    InventoryError,
    NotFoundError,
    QueryTimeoutError,
)
from inventory_api.middleware.logging import RequestLoggingMiddleware
from inventory_api.middleware.request_id import RequestIDMiddleware, request_id_var
from inventory_api.routes import health, products

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str) -> None:
    """
    Configure logging for the whole application. Called once during startup
    before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-operation chatter from these is noise at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
        1. Setup logging
        2. Validate cross-field configuration
        3. Local mode only: connect to MongoDB, failing hard if unreachable
    Shutdown:
        1. Close the MongoDB client
    """
    config: Settings = app.state.settings
    connections: ConnectionManager = app.state.connections

    setup_logging(config.log_level)
    logger.info("Product Inventory API starting up (environment=%s)", config.environment)
    config.validate_pool_bounds()

    if not config.is_production:
        try:
            await connections.acquire()
        except DatabaseConnectionError as e:
            logger.critical("Cannot start without a database: %s", e.error)
            raise

    logger.info("Server ready at http://%s:%d", config.host, config.port)

    yield

    logger.info("Product Inventory API shutting down...")
    await connections.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP responses.

    Handler hierarchy:
        InvalidInputError        → 400 {message, error}
        RequestValidationError   → 400 {message, error}
        NotFoundError            → 404 {message}
        DatabaseConnectionError  → 500 {message, error}, cached handle dropped
        QueryTimeoutError        → 500 {message, error}
        InventoryError (base)    → 500 {message, error}
        Exception (fallback)     → 500 {message: "Something went wrong!", error}
    """

    @app.exception_handler(InvalidInputError)
    async def handle_invalid_input(request: Request, exc: InvalidInputError):
        rid = request_id_var.get("")
        logger.warning("[%s] %s: %s", rid, exc.message, exc.error)
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """Request values FastAPI itself rejects; it would answer 422."""
        rid = request_id_var.get("")
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        logger.warning("[%s] Invalid request: %s", rid, details)
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request", "error": details},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"message": exc.message})

    @app.exception_handler(DatabaseConnectionError)
    async def handle_connection_error(request: Request, exc: DatabaseConnectionError):
        """
        The next request reconnects instead of reusing a dead handle. A
        failed bootstrap cached nothing, so only a handle this request
        actually used is dropped.
        """
        rid = request_id_var.get("")
        logger.error("[%s] Database connection error: %s", rid, exc.error)
        used = getattr(request.state, "database", None)
        if used is not None:
            await request.app.state.connections.invalidate(expected=used)
        return JSONResponse(status_code=500, content=exc.to_dict())

    @app.exception_handler(QueryTimeoutError)
    async def handle_query_timeout(request: Request, exc: QueryTimeoutError):
        rid = request_id_var.get("")
        logger.error("[%s] %s | Context: %s", rid, exc.error, exc.context)
        return JSONResponse(status_code=500, content=exc.to_dict())

    @app.exception_handler(InventoryError)
    async def handle_inventory_error(request: Request, exc: InventoryError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s | Context: %s", rid, exc.message, exc.error, exc.context)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"message": "Something went wrong!", "error": str(exc)},
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    config: Optional[Settings] = None,
    connections: Optional[ConnectionManager] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Settings to use; defaults to the module-level singleton.
        connections: Connection manager to use; one is built from `config`
            when omitted. It lives on app.state for the app's lifetime.
    """
    config = config or settings

    app = FastAPI(
        title="Product Inventory API",
        description="Product inventory REST service backed by MongoDB.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.connections = connections or ConnectionManager(config)

    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_origin_regex=config.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(products.router)

    return app


app = create_app()
