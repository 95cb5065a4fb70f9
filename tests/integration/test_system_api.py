# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the connection diagnostics and management API."""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from src.api import dependencies
from src.infrastructure.database.errors import ConnectionUnavailable

pytestmark = pytest.mark.integration

CONNECTIONS = "/api/v1/system/connections"


def _touch(client: TestClient, tenant_id: str) -> None:
    response = client.get("/api/v1/courses/count", headers={"X-Tenant-Id": tenant_id})
    assert response.status_code == 200


class TestListConnections:
    """Tests for GET /api/v1/system/connections."""

    def test_cold_registry(self, client: TestClient) -> None:
        """Test nothing is reported before any tenant connects."""
        response = client.get(CONNECTIONS)

        assert response.status_code == 200
        assert response.json() == {"success": True, "connections": {}, "count": 0}

    def test_reports_every_tenant(self, client: TestClient) -> None:
        """Test each connected tenant appears with its state and database."""
        _touch(client, "acme")
        _touch(client, "globex")

        body = client.get(CONNECTIONS).json()

        assert body["count"] == 2
        acme = body["connections"]["acme"]
        assert acme["state"] == "READY"
        assert acme["database"] == "acmeDb"
        assert acme["creations"] == 1
        assert acme["createdAt"] is not None
        assert acme["lastUsedAt"] is not None

    def test_listing_opens_nothing(self, client: TestClient, fake_factory: Any) -> None:
        """Test diagnostics never connect or ping a database."""
        _touch(client, "acme")

        client.get(CONNECTIONS)
        client.get(CONNECTIONS)

        assert fake_factory.calls == ["acme"]
        fake_factory.opened["acme"].command.assert_not_awaited()

    def test_session_tenant_not_required(self, client: TestClient) -> None:
        """Test the endpoint is reachable whatever tenant header is sent."""
        response = client.get(CONNECTIONS, headers={"X-Tenant-Id": "../admin"})

        assert response.status_code == 200


class TestReconnect:
    """Tests for POST /api/v1/system/connections/{tenant_id}/reconnect."""

    def test_reconnect_existing_tenant(self, client: TestClient, fake_factory: Any) -> None:
        """Test reconnect replaces the handle and counts a new creation."""
        _touch(client, "acme")
        old_database = fake_factory.opened["acme"]

        response = client.post(f"{CONNECTIONS}/acme/reconnect")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Connected to tenant acme",
            "connection": {"tenantId": "acme", "database": "acmeDb", "state": "READY"},
        }
        assert old_database.client.closed
        assert fake_factory.opened["acme"] is not old_database
        assert client.get(CONNECTIONS).json()["connections"]["acme"]["creations"] == 2

    def test_reconnect_cold_tenant(self, client: TestClient, fake_factory: Any) -> None:
        """Test reconnect on an unknown tenant simply connects it."""
        response = client.post(f"{CONNECTIONS}/globex/reconnect")

        assert response.status_code == 200
        assert fake_factory.calls == ["globex"]

    def test_reconnect_normalizes_tenant(self, client: TestClient) -> None:
        """Test the path tenant id is normalized like the header."""
        response = client.post(f"{CONNECTIONS}/ACME/reconnect")

        assert response.json()["connection"]["tenantId"] == "acme"

    def test_reconnect_unreachable_tenant(self, client: TestClient, fake_factory: Any) -> None:
        """Test an unreachable tenant answers 503 and stays uncached."""
        fake_factory.failures["broken"] = ConnectionUnavailable("broken", "server unreachable")

        response = client.post(f"{CONNECTIONS}/broken/reconnect")

        assert response.status_code == 503
        assert response.json()["kind"] == "ConnectionUnavailable"
        assert "broken" not in dependencies.get_registry()

    def test_reconnect_invalid_tenant(self, client: TestClient, fake_factory: Any) -> None:
        """Test a malformed tenant id is refused."""
        response = client.post(f"{CONNECTIONS}/bad%20tenant/reconnect")

        assert response.status_code == 400
        assert response.json()["kind"] == "TenantResolutionError"
        assert fake_factory.calls == []


class TestCloseConnection:
    """Tests for DELETE /api/v1/system/connections/{tenant_id}."""

    def test_close_tenant(self, client: TestClient, fake_factory: Any) -> None:
        """Test closing reports the CLOSED entry and forgets it."""
        _touch(client, "acme")

        response = client.delete(f"{CONNECTIONS}/acme")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Closed connection for tenant acme",
            "connection": {"tenantId": "acme", "database": "acmeDb", "state": "CLOSED"},
        }
        assert fake_factory.opened["acme"].client.closed
        assert client.get(CONNECTIONS).json()["count"] == 0

    def test_close_unknown_tenant(self, client: TestClient) -> None:
        """Test closing a tenant without a connection answers 404."""
        response = client.delete(f"{CONNECTIONS}/nobody")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "No connection for tenant nobody",
            "kind": "NotFound",
        }

    def test_next_request_reconnects(self, client: TestClient, fake_factory: Any) -> None:
        """Test a closed tenant connects again on its next request."""
        _touch(client, "acme")
        client.delete(f"{CONNECTIONS}/acme")

        _touch(client, "acme")

        assert fake_factory.calls == ["acme", "acme"]
