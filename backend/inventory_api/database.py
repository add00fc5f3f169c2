"""
Product Inventory API — Database Connection Management
=========================================================

What:  Owns the single Motor (async MongoDB) client for the process lifetime.
How:   `ConnectionManager.acquire()` connects on first use, verifies the
       connection with a `ping`, and caches the database handle. Later calls
       return the cached handle without reconnecting.
Who:   Created once in the application factory and stored on `app.state`;
       routes reach it through the `get_database` dependency.
When:  Eagerly during startup in local mode, lazily on the first request in
       production (serverless) mode.

Connection Settings:
    serverSelectionTimeoutMS=5000   Establishment budget
    socketTimeoutMS=45000           Idle socket budget
    minPoolSize=5 / maxPoolSize=10  Pool size range
    retryWrites / retryReads        Driver-level single retry on network blips

Refresh Policy:
    The cached handle is never re-validated per request. When a request fails
    with a driver connection error, `invalidate()` drops the cached client so
    the next request bootstraps a new one.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from inventory_api.config import Settings
from inventory_api.exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)

PRODUCTS_COLLECTION = "products"


class ConnectionManager:
    """
    Memoizes one MongoDB connection handle per process.

    The asyncio.Lock makes initialization once-only: when two cold-start
    requests race into `acquire()`, the second waits for the first and then
    reuses its handle instead of opening a second client.

    Args:
        settings: Application settings (URI, timeouts, pool bounds).
        client_factory: Callable building the client; tests pass a fake.
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[..., Any] = AsyncIOMotorClient,
    ):
        self._settings = settings
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._database: Optional[AsyncIOMotorDatabase] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._database is not None

    async def acquire(self) -> AsyncIOMotorDatabase:
        """
        Return the cached database handle, connecting on the first call.

        Raises:
            DatabaseConnectionError: The connect/ping failed or timed out.
        """
        if self._database is not None:
            logger.debug("Using cached database connection")
            return self._database

        async with self._lock:
            # Another coroutine may have connected while we waited
            if self._database is None:
                self._database = await self._connect()
        return self._database

    async def _connect(self) -> AsyncIOMotorDatabase:
        s = self._settings
        client = self._client_factory(
            s.mongodb_uri,
            serverSelectionTimeoutMS=s.db_connect_timeout_ms,
            socketTimeoutMS=s.db_socket_timeout_ms,
            maxPoolSize=s.db_max_pool_size,
            minPoolSize=s.db_min_pool_size,
            retryWrites=True,
            retryReads=True,
        )

        try:
            await self._ping_with_retry(client)
        except (PyMongoError, asyncio.TimeoutError, OSError) as e:
            client.close()
            logger.error("MongoDB connection error: %s", str(e))
            raise DatabaseConnectionError(
                error=str(e) or type(e).__name__,
                context={"error_type": type(e).__name__},
            ) from e

        self._client = client
        logger.info("MongoDB connected: %s", _describe_host(client))
        return client.get_default_database(default=s.mongodb_database)

    async def _ping_with_retry(self, client: Any) -> None:
        # wait_for backs up serverSelectionTimeoutMS in case the driver hangs
        # past its own budget
        budget = self._settings.db_connect_timeout_ms / 1000
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((PyMongoError, asyncio.TimeoutError, OSError)),
            stop=stop_after_attempt(self._settings.db_connect_attempts),
            wait=wait_exponential_jitter(initial=1, max=5, jitter=1),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await asyncio.wait_for(client.admin.command("ping"), timeout=budget)

    async def ping(self) -> bool:
        """Lightweight liveness probe used by the health route."""
        try:
            database = await self.acquire()
            await asyncio.wait_for(
                database.command("ping"),
                timeout=self._settings.db_connect_timeout_ms / 1000,
            )
            return True
        except (DatabaseConnectionError, PyMongoError, asyncio.TimeoutError) as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def invalidate(self, expected: Optional[AsyncIOMotorDatabase] = None) -> None:
        """
        Drop the cached handle so the next acquire() reconnects.

        With `expected`, only drop it if that handle is still the cached one.
        A request that fails late on an old handle then leaves a client
        rebuilt in the meantime alone.
        """
        async with self._lock:
            if expected is not None and expected is not self._database:
                logger.debug("Stale handle reported; cached connection kept")
                return
            if self._client is not None:
                logger.warning("Discarding cached database connection")
                self._client.close()
            self._client = None
            self._database = None

    async def close(self) -> None:
        """Close the client on application shutdown."""
        async with self._lock:
            if self._client is not None:
                self._client.close()
                logger.info("MongoDB connection closed")
            self._client = None
            self._database = None


def _describe_host(client: Any) -> str:
    nodes = getattr(client, "nodes", None) or ()
    if not nodes:
        return "unknown host"
    return ", ".join(f"{host}:{port}" for host, port in sorted(nodes))


# ── FastAPI Dependencies ──────────────────────────────────────────────────
def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.connections


async def get_database(request: Request) -> AsyncIOMotorDatabase:
    """
    FastAPI dependency yielding the shared database handle.

    A connection failure raises DatabaseConnectionError, which the global
    handler turns into a 500 response for this request only. The handle is
    kept on request.state so the handler can invalidate exactly this one.
    """
    database = await get_connection_manager(request).acquire()
    request.state.database = database
    return database
