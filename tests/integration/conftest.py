# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fixtures for HTTP-level tests.

The full application is built with create_app(); only the connection
factory is swapped for the fake driver from the root conftest. A small
course router is mounted so tests can exercise tenant-scoped handlers.
"""

from typing import Any, Callable, Iterator

import pytest
from fastapi import APIRouter, Body, FastAPI, status
from fastapi.testclient import TestClient
from jose import jwt

from src.api import dependencies
from src.api.app import create_app
from src.api.dependencies import ContextDep, GuardDep, ModelsDep
from src.core.config import Settings, clear_settings_cache
from src.infrastructure.database.models import serialize_document


def build_course_router() -> APIRouter:
    """Tenant-scoped course endpoints used by the tests."""
    router = APIRouter(prefix="/api/v1/courses")

    @router.get("/count")
    async def count_courses(
        context: ContextDep, models: ModelsDep, guard: GuardDep
    ) -> dict[str, Any]:
        count = await guard.run(models["Course"].count(), description="Course.count")
        return {"success": True, "tenantId": context.tenant_id, "count": count}

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_course(
        models: ModelsDep,
        guard: GuardDep,
        payload: dict[str, Any] = Body(...),
    ) -> dict[str, Any]:
        document = await guard.run(models["Course"].create(payload), description="Course.create")
        return {"success": True, "course": serialize_document(document)}

    return router


@pytest.fixture(autouse=True)
def _isolate_singletons(monkeypatch: pytest.MonkeyPatch) -> None:
    """Restore the data-layer singletons after each test."""
    monkeypatch.setattr(dependencies, "_registry", None)
    monkeypatch.setattr(dependencies, "_binder", None)
    monkeypatch.setattr(dependencies, "_guard", None)


@pytest.fixture
def app_factory(
    monkeypatch: pytest.MonkeyPatch,
    test_environment: dict[str, str],
    fake_factory: Any,
) -> Callable[..., FastAPI]:
    """Build the application with environment overrides and the fake driver."""

    def build(**env_overrides: str) -> FastAPI:
        for key, value in {**test_environment, **env_overrides}.items():
            monkeypatch.setenv(key, value)
        clear_settings_cache()

        async def init_with_fake_driver(settings: Settings | None = None) -> None:
            await dependencies.init_db(settings, factory=fake_factory)

        monkeypatch.setattr("src.api.app.init_db", init_with_fake_driver)

        app = create_app()
        app.include_router(build_course_router(), tags=["Courses"])
        return app

    return build


@pytest.fixture
def client(app_factory: Callable[..., FastAPI]) -> Iterator[TestClient]:
    """Test client with the application lifespan running."""
    with TestClient(app_factory()) as test_client:
        yield test_client


@pytest.fixture
def session_token(test_environment: dict[str, str]) -> Callable[..., str]:
    """Sign a session token the application accepts."""

    def sign(**claims: Any) -> str:
        return jwt.encode(
            {"sub": "user-1", **claims},
            test_environment["JWT_SECRET_KEY"],
            algorithm=test_environment["JWT_ALGORITHM"],
        )

    return sign
