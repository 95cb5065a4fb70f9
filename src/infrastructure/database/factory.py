# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Connection factory for tenant databases.

Opens one physical MongoDB connection (a Motor client with its own pool)
for one tenant and verifies it with a ping. The factory performs no caching
and no schema binding; TenantConnectionRegistry decides when to call it.

Example:
    factory = MongoConnectionFactory()
    database = await factory.open("acme", config)
    await database["courses"].find_one({})
    close_handle(database)
"""

import asyncio
import logging
import time
from typing import Any, Callable

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConfigurationError, ConnectionFailure, OperationFailure

from src.infrastructure.database.config import ConnectionConfig
from src.infrastructure.database.errors import ConnectionUnavailable, ConnectTimeout

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Any]


class MongoConnectionFactory:
    """Creates Motor database handles for tenants.

    Attributes:
        _client_class: Callable creating the Motor client (injectable for tests).
        _app_name: Application name reported to the MongoDB server.
    """

    def __init__(
        self,
        client_class: ClientFactory = AsyncIOMotorClient,
        app_name: str = "lms-tenancy",
    ) -> None:
        self._client_class = client_class
        self._app_name = app_name

    async def open(self, tenant_id: str, config: ConnectionConfig) -> AsyncIOMotorDatabase:
        """Open and verify a connection to a tenant's database.

        Args:
            tenant_id: Tenant identifier.
            config: Connection configuration.

        Returns:
            Motor database handle bound to the tenant's database.

        Raises:
            ConnectTimeout: If the server did not answer within connect_timeout_ms.
            ConnectionUnavailable: On invalid URI, network or authentication failure.
        """
        database_name = config.database_for(tenant_id)
        start = time.monotonic()

        try:
            client = self._client_class(
                config.uri_for(tenant_id),
                maxPoolSize=config.max_pool_size,
                minPoolSize=config.min_pool_size,
                connectTimeoutMS=config.connect_timeout_ms,
                serverSelectionTimeoutMS=config.connect_timeout_ms,
                appname=self._app_name,
            )
        except ConfigurationError as e:
            raise ConnectionUnavailable(tenant_id, f"invalid connection URI: {e}", e) from e

        try:
            await asyncio.wait_for(
                client.admin.command("ping"),
                timeout=config.connect_timeout_ms / 1000,
            )
        except TimeoutError as e:
            client.close()
            raise ConnectTimeout(tenant_id, config.connect_timeout_ms, e) from e
        except (ConnectionFailure, OperationFailure) as e:
            # ServerSelectionTimeoutError lands here when the driver gives up first
            client.close()
            raise ConnectionUnavailable(tenant_id, str(e), e) from e
        except Exception:
            client.close()
            raise

        logger.info(
            "Opened tenant connection: tenant=%s database=%s in %.3fs",
            tenant_id,
            database_name,
            time.monotonic() - start,
        )
        return client[database_name]


def close_handle(handle: AsyncIOMotorDatabase) -> None:
    """Close the client behind a tenant database handle.

    Args:
        handle: Database handle returned by MongoConnectionFactory.open().
    """
    handle.client.close()


def describe_handle(handle: AsyncIOMotorDatabase | None) -> dict[str, Any]:
    """Summarize a handle for diagnostics without touching the network.

    Args:
        handle: Database handle or None.

    Returns:
        Dictionary with database name and configured hosts.
    """
    if handle is None:
        return {"database": None, "hosts": []}

    topology = getattr(handle.client, "topology_description", None)
    hosts = (
        [f"{host}:{port}" for host, port in topology.server_descriptions()]
        if topology is not None
        else []
    )

    return {"database": handle.name, "hosts": hosts}
