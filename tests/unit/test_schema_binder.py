# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for SchemaBinder and BoundModelSet."""

import asyncio
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import OperationFailure

from src.infrastructure.database.errors import ConnectionUnavailable, SchemaRegistrationError
from src.infrastructure.database.models import SCHEMA_CATALOG, get_schema
from src.infrastructure.database.schema_binder import BoundModelSet, SchemaBinder, TenantModel
from src.infrastructure.database.tenant_manager import ConnectionState, TenantConnection


@pytest.fixture
def connection(make_database: Callable[..., Any]) -> TenantConnection:
    """A READY connection on a fake database."""
    return TenantConnection(
        tenant_id="acme",
        state=ConnectionState.READY,
        handle=make_database("acmeDb"),
    )


def _index_calls(connection: TenantConnection) -> int:
    return sum(
        connection.handle[schema.collection].create_index.await_count
        for schema in SCHEMA_CATALOG
    )


class TestSchemaBinder:
    """Tests for SchemaBinder.bind."""

    @pytest.mark.asyncio
    async def test_binds_whole_catalog(self, connection: TenantConnection) -> None:
        """Test every catalog schema is registered on the connection."""
        models = await SchemaBinder().bind(connection)

        assert len(models) == len(SCHEMA_CATALOG)
        assert set(models.names()) == {schema.name for schema in SCHEMA_CATALOG}
        assert connection.model_set is models
        assert models.tenant_id == "acme"

    @pytest.mark.asyncio
    async def test_models_are_connection_scoped(self, connection: TenantConnection) -> None:
        """Test each model uses its collection on the tenant's database."""
        models = await SchemaBinder().bind(connection)

        course = models["Course"]
        assert isinstance(course, TenantModel)
        assert course.collection is connection.handle["courses"]
        assert course.tenant_id == "acme"

    @pytest.mark.asyncio
    async def test_creates_declared_indexes(self, connection: TenantConnection) -> None:
        """Test unique indexes from the catalog are created."""
        await SchemaBinder().bind(connection)

        connection.handle["courses"].create_index.assert_any_await(
            [("slug", 1)], unique=True, sparse=True
        )
        connection.handle["modules"].create_index.assert_awaited_once_with(
            [("course", 1), ("order", 1)], unique=True
        )
        connection.handle["users"].create_index.assert_any_await(
            [("tenantId", 1), ("email", 1)], unique=True
        )

    @pytest.mark.asyncio
    async def test_binding_twice_returns_same_models(self, connection: TenantConnection) -> None:
        """Test re-binding is a no-op returning the same model objects."""
        binder = SchemaBinder()

        first = await binder.bind(connection)
        index_calls = _index_calls(connection)
        second = await binder.bind(connection)

        assert second is first
        assert second["Course"] is first["Course"]
        assert _index_calls(connection) == index_calls

    @pytest.mark.asyncio
    async def test_concurrent_binds_compile_once(self, connection: TenantConnection) -> None:
        """Test simultaneous binds on one connection register each model once."""
        binder = SchemaBinder()

        results = await asyncio.gather(*(binder.bind(connection) for _ in range(5)))

        assert all(result is results[0] for result in results)
        expected = sum(len(schema.indexes) for schema in SCHEMA_CATALOG)
        assert _index_calls(connection) == expected

    @pytest.mark.asyncio
    async def test_partially_bound_connection_keeps_existing_models(
        self, connection: TenantConnection
    ) -> None:
        """Test names already present are returned unchanged, missing ones are added."""
        existing = BoundModelSet("acme")
        course = TenantModel(get_schema("Course"), connection.handle["courses"], "acme")
        existing.register(course)
        connection.model_set = existing

        models = await SchemaBinder().bind(connection)

        assert models is existing
        assert models["Course"] is course
        assert len(models) == len(SCHEMA_CATALOG)

    @pytest.mark.asyncio
    async def test_separate_connections_get_separate_models(
        self, connection: TenantConnection, make_database: Callable[..., Any]
    ) -> None:
        """Test models are never shared between tenants."""
        other = TenantConnection(
            tenant_id="globex",
            state=ConnectionState.READY,
            handle=make_database("globexDb"),
        )
        binder = SchemaBinder()

        acme_models = await binder.bind(connection)
        globex_models = await binder.bind(other)

        assert acme_models["Course"] is not globex_models["Course"]
        assert globex_models["Course"].collection is other.handle["courses"]

    @pytest.mark.asyncio
    async def test_index_creation_can_be_disabled(self, connection: TenantConnection) -> None:
        """Test ensure_indexes=False skips index creation."""
        await SchemaBinder(ensure_indexes=False).bind(connection)

        assert _index_calls(connection) == 0

    @pytest.mark.asyncio
    async def test_index_failure_does_not_block_binding(
        self, connection: TenantConnection
    ) -> None:
        """Test a failing index build is logged and the model still bound."""
        connection.handle["courses"].create_index = AsyncMock(
            side_effect=OperationFailure("E11000 duplicate key error", 11000)
        )

        models = await SchemaBinder().bind(connection)

        assert "Course" in models

    @pytest.mark.asyncio
    async def test_connection_without_handle(self) -> None:
        """Test binding a connection that is not open fails as unavailable."""
        connection = TenantConnection(tenant_id="acme", state=ConnectionState.CLOSED)

        with pytest.raises(ConnectionUnavailable):
            await SchemaBinder().bind(connection)

    def test_catalog_with_duplicate_names_rejected(self) -> None:
        """Test a catalog naming a schema twice is refused."""
        course = get_schema("Course")

        with pytest.raises(ValueError, match="duplicate"):
            SchemaBinder(catalog=(course, course))


class TestBoundModelSet:
    """Tests for BoundModelSet."""

    def test_duplicate_registration_rejected(self, make_database: Callable[..., Any]) -> None:
        """Test registering a name twice raises SchemaRegistrationError."""
        database = make_database("acmeDb")
        models = BoundModelSet("acme")
        models.register(TenantModel(get_schema("Course"), database["courses"], "acme"))

        with pytest.raises(SchemaRegistrationError, match="Course"):
            models.register(TenantModel(get_schema("Course"), database["courses"], "acme"))

    def test_models_view_is_read_only(self, make_database: Callable[..., Any]) -> None:
        """Test the models mapping cannot be mutated directly."""
        models = BoundModelSet("acme")
        models.register(
            TenantModel(get_schema("Quiz"), make_database("acmeDb")["quizzes"], "acme")
        )

        with pytest.raises(TypeError):
            models.models["Quiz"] = None  # type: ignore[index]

        assert "Quiz" in models
        assert models.get("Course") is None
