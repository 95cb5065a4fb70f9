# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the health endpoint."""

import asyncio
from typing import Any, Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.errors import AutoReconnect

pytestmark = pytest.mark.integration


class TestHealth:
    """Tests for GET /health."""

    def test_unhealthy_before_startup(self, app_factory: Callable[..., FastAPI]) -> None:
        """Test the data layer reports unhealthy when it was never initialized."""
        client = TestClient(app_factory())

        body = client.get("/health").json()

        assert body["status"] == "unhealthy"
        assert body["database"]["status"] == "unhealthy"

    def test_degraded_without_default_connection(self, client: TestClient) -> None:
        """Test a cold default tenant reports degraded."""
        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["database"]["connections"] == 0
        assert body["environment"] == "development"
        assert body["version"] == "1.0.0"

    def test_healthy_after_warm_up(
        self, app_factory: Callable[..., FastAPI], fake_factory: Any
    ) -> None:
        """Test warming the default tenant at startup makes the API healthy."""
        with TestClient(app_factory(TENANT_DB_WARM_DEFAULT_TENANT="true")) as client:
            body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["database"]["connections"] == 1
        assert body["database"]["latency_ms"] is not None
        fake_factory.opened["default"].command.assert_awaited_once_with("ping")

    def test_warm_up_failure_does_not_block_startup(
        self, app_factory: Callable[..., FastAPI], fake_factory: Any, unreachable: Any
    ) -> None:
        """Test an unreachable default tenant leaves the API up but degraded."""
        fake_factory.failures["default"] = unreachable("default")

        with TestClient(app_factory(TENANT_DB_WARM_DEFAULT_TENANT="true")) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_failing_ping_is_unhealthy(self, client: TestClient, fake_factory: Any) -> None:
        """Test a default tenant that stops answering reports unhealthy."""
        client.get("/api/v1/courses/count")
        fake_factory.opened["default"].command.side_effect = AutoReconnect("connection reset")

        body = client.get("/health").json()

        assert body["status"] == "unhealthy"
        assert body["database"]["message"] == "Database connection error. Please try again later."

    @pytest.mark.slow
    def test_hanging_ping_is_unhealthy(self, client: TestClient, fake_factory: Any) -> None:
        """Test a ping exceeding its budget reports unhealthy instead of hanging."""

        async def never_answers(*_: Any) -> dict:
            await asyncio.sleep(3)
            return {"ok": 1.0}

        client.get("/api/v1/courses/count")
        fake_factory.opened["default"].command.side_effect = never_answers

        body = client.get("/health").json()

        assert body["status"] == "unhealthy"
