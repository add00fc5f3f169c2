"""
Product Inventory API — Connection Manager Unit Tests
========================================================

What:  Tests for ConnectionManager caching, failure handling and refresh.
How:   A fake client factory replaces AsyncIOMotorClient and records every
       client built, so the tests can count reconnects.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from inventory_api.database import ConnectionManager
from inventory_api.exceptions import DatabaseConnectionError


class TestAcquire:

    @pytest.mark.asyncio
    async def test_first_call_connects_with_configured_options(
        self, test_settings, fake_client_factory
    ):
        manager = ConnectionManager(test_settings, client_factory=fake_client_factory)

        database = await manager.acquire()

        assert manager.is_connected
        assert len(fake_client_factory.clients) == 1
        client = fake_client_factory.clients[0]
        assert client.uri == test_settings.mongodb_uri
        assert client.options == {
            "serverSelectionTimeoutMS": 5000,
            "socketTimeoutMS": 45000,
            "maxPoolSize": 10,
            "minPoolSize": 5,
            "retryWrites": True,
            "retryReads": True,
        }
        client.admin.command.assert_awaited_once_with("ping")
        assert database is client.database

    @pytest.mark.asyncio
    async def test_later_calls_reuse_cached_handle(self, test_settings, fake_client_factory):
        manager = ConnectionManager(test_settings, client_factory=fake_client_factory)

        first = await manager.acquire()
        second = await manager.acquire()

        assert first is second
        assert len(fake_client_factory.clients) == 1

    @pytest.mark.asyncio
    async def test_concurrent_cold_start_creates_one_client(self, test_settings, make_client_factory):
        factory = make_client_factory()
        original_call = factory.__call__

        def slow_ping_factory(uri, **options):
            client = original_call(uri, **options)

            async def slow_ping(*args, **kwargs):
                await asyncio.sleep(0.05)
                return {"ok": 1.0}

            client.admin.command = AsyncMock(side_effect=slow_ping)
            return client

        manager = ConnectionManager(test_settings, client_factory=slow_ping_factory)

        handles = await asyncio.gather(*(manager.acquire() for _ in range(5)))

        assert len(factory.clients) == 1
        assert all(handle is handles[0] for handle in handles)

    @pytest.mark.asyncio
    async def test_failure_raises_and_is_not_cached(self, test_settings, make_client_factory):
        factory = make_client_factory(
            ping_side_effect=ServerSelectionTimeoutError("localhost:27017: connection refused")
        )
        manager = ConnectionManager(test_settings, client_factory=factory)

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await manager.acquire()

        assert exc_info.value.message == "Database connection error"
        assert "connection refused" in exc_info.value.error
        assert not manager.is_connected
        assert factory.clients[0].closed

        # Not memoized: the next call tries again
        with pytest.raises(DatabaseConnectionError):
            await manager.acquire()
        assert len(factory.clients) == 2

    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self, test_settings, make_client_factory):
        factory = make_client_factory(ping_side_effect=ServerSelectionTimeoutError("down"))
        manager = ConnectionManager(test_settings, client_factory=factory)

        with pytest.raises(DatabaseConnectionError):
            await manager.acquire()

        assert factory.clients[0].admin.command.await_count == 1

    @pytest.mark.asyncio
    async def test_ping_exceeding_budget_fails(self, test_settings, make_client_factory):
        test_settings.db_connect_timeout_ms = 100
        factory = make_client_factory()

        def hanging_factory(uri, **options):
            client = factory(uri, **options)

            async def hang(*args, **kwargs):
                await asyncio.sleep(5)

            client.admin.command = AsyncMock(side_effect=hang)
            return client

        manager = ConnectionManager(test_settings, client_factory=hanging_factory)

        with pytest.raises(DatabaseConnectionError):
            await manager.acquire()


class TestRefresh:

    @pytest.mark.asyncio
    async def test_invalidate_forces_reconnect(self, test_settings, fake_client_factory):
        manager = ConnectionManager(test_settings, client_factory=fake_client_factory)
        await manager.acquire()

        await manager.invalidate()

        assert not manager.is_connected
        assert fake_client_factory.clients[0].closed
        await manager.acquire()
        assert len(fake_client_factory.clients) == 2

    @pytest.mark.asyncio
    async def test_stale_handle_does_not_drop_replacement(self, test_settings, fake_client_factory):
        manager = ConnectionManager(test_settings, client_factory=fake_client_factory)
        old = await manager.acquire()
        await manager.invalidate()
        current = await manager.acquire()

        await manager.invalidate(expected=old)

        assert manager.is_connected
        assert await manager.acquire() is current
        assert not fake_client_factory.clients[1].closed

    @pytest.mark.asyncio
    async def test_current_handle_is_dropped(self, test_settings, fake_client_factory):
        manager = ConnectionManager(test_settings, client_factory=fake_client_factory)
        current = await manager.acquire()

        await manager.invalidate(expected=current)

        assert not manager.is_connected
        assert fake_client_factory.clients[0].closed

    @pytest.mark.asyncio
    async def test_close_is_safe_without_connection(self, test_settings, fake_client_factory):
        manager = ConnectionManager(test_settings, client_factory=fake_client_factory)
        await manager.close()
        assert fake_client_factory.clients == []


class TestPing:

    @pytest.mark.asyncio
    async def test_ping_healthy(self, test_settings, fake_client_factory):
        manager = ConnectionManager(test_settings, client_factory=fake_client_factory)
        assert await manager.ping() is True

    @pytest.mark.asyncio
    async def test_ping_unreachable(self, test_settings, make_client_factory):
        factory = make_client_factory(ping_side_effect=ServerSelectionTimeoutError("down"))
        manager = ConnectionManager(test_settings, client_factory=factory)
        assert await manager.ping() is False
