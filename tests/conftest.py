# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types. No test needs a
running MongoDB: the Motor driver is replaced by the small fakes below,
which record the calls the data layer makes.
"""

import asyncio
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from src.core.config import clear_settings_cache
from src.infrastructure.database.config import ConnectionConfig
from src.infrastructure.database.errors import ConnectionUnavailable
from src.infrastructure.database.tenant_manager import TenantConnectionRegistry


# =============================================================================
# Driver Fakes
# =============================================================================


class FakeClient:
    """Stands in for AsyncIOMotorClient."""

    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeCollection:
    """Collection whose driver methods are AsyncMocks."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.create_index = AsyncMock(
            side_effect=lambda keys, **options: "_".join(
                f"{field}_{direction}" for field, direction in keys
            )
        )
        self.insert_one = AsyncMock(
            side_effect=lambda document: MagicMock(inserted_id=ObjectId())
        )
        self.find_one = AsyncMock(return_value=None)
        self.find_one_and_update = AsyncMock(return_value=None)
        self.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
        self.count_documents = AsyncMock(return_value=0)

        self.cursor = MagicMock()
        self.cursor.sort.return_value = self.cursor
        self.cursor.to_list = AsyncMock(return_value=[])
        self.find = MagicMock(return_value=self.cursor)


class FakeDatabase:
    """Stands in for AsyncIOMotorDatabase."""

    def __init__(self, name: str, client: FakeClient | None = None) -> None:
        self.name = name
        self.client = client or FakeClient()
        self.command = AsyncMock(return_value={"ok": 1.0})
        self._collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]


class FakeConnectionFactory:
    """Connection factory returning FakeDatabases.

    Attributes:
        calls: Tenant ids open() was called with, in order.
        opened: Last database opened per tenant.
        delays: Seconds open() sleeps per tenant before answering.
        failures: Exception raised by open() per tenant.
    """

    def __init__(
        self,
        delay: float = 0.0,
        delays: dict[str, float] | None = None,
        failures: dict[str, BaseException] | None = None,
    ) -> None:
        self.delay = delay
        self.delays = delays or {}
        self.failures = failures or {}
        self.calls: list[str] = []
        self.opened: dict[str, FakeDatabase] = {}

    async def open(self, tenant_id: str, config: ConnectionConfig) -> FakeDatabase:
        self.calls.append(tenant_id)
        await asyncio.sleep(self.delays.get(tenant_id, self.delay))

        if tenant_id in self.failures:
            raise self.failures[tenant_id]

        database = FakeDatabase(config.database_for(tenant_id))
        self.opened[tenant_id] = database
        return database


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (HTTP stack, fake driver)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture
def test_environment() -> dict[str, str]:
    """Provide test environment variables.

    Returns:
        Dictionary of environment variables for testing.
    """
    return {
        "ENVIRONMENT": "development",
        "DEBUG": "true",
        "LOG_LEVEL": "DEBUG",
        "TENANT_DB_URI_TEMPLATE": "mongodb://localhost:27017/{database}",
        "TENANT_DB_CONNECT_TIMEOUT_MS": "500",
        "TENANT_DB_OPERATION_TIMEOUT_MS": "1000",
        "TENANT_DB_WARM_DEFAULT_TENANT": "false",
        "JWT_SECRET_KEY": "test-secret-key-for-testing-only",
        "JWT_ALGORITHM": "HS256",
    }


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Any:
    """Make every test read settings from its own environment."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Data Layer Fixtures
# =============================================================================


@pytest.fixture
def connection_config() -> ConnectionConfig:
    """Connection config with short budgets."""
    return ConnectionConfig(connect_timeout_ms=200, operation_timeout_ms=500)


@pytest.fixture
def fake_factory() -> FakeConnectionFactory:
    """Connection factory that never touches the network."""
    return FakeConnectionFactory()


@pytest.fixture
def make_factory() -> Callable[..., FakeConnectionFactory]:
    """Build a FakeConnectionFactory with custom delays or failures."""
    return FakeConnectionFactory


@pytest.fixture
def make_database() -> Callable[..., FakeDatabase]:
    """Build a standalone FakeDatabase."""
    return FakeDatabase


@pytest.fixture
def registry(
    connection_config: ConnectionConfig,
    fake_factory: FakeConnectionFactory,
) -> TenantConnectionRegistry:
    """Registry wired to the fake factory."""
    return TenantConnectionRegistry(connection_config, factory=fake_factory)


@pytest.fixture
def unreachable() -> Callable[[str], ConnectionUnavailable]:
    """Build the error a factory raises for an unreachable tenant."""
    return lambda tenant_id: ConnectionUnavailable(tenant_id, "server unreachable")


@pytest.fixture
def sample_tenant_id() -> str:
    """Provide a sample tenant ID for testing."""
    return "acme"


@pytest.fixture
def sample_course() -> dict[str, Any]:
    """Provide a valid course document."""
    return {
        "title": "Algebra I",
        "slug": "algebra-i",
        "description": "Linear equations and inequalities",
        "duration": 12,
        "category": "mathematics",
        "instructor": str(ObjectId()),
    }
