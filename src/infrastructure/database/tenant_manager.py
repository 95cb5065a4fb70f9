# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant connection registry.

Each tenant has its own MongoDB database. The registry caches one live
connection per tenant for the lifetime of the process and makes sure that
concurrent first requests for the same tenant share a single physical
connection.

Connections are lazily created on first access:

    no entry  -> PENDING (factory.open running) -> READY
                                                -> FAILED (entry removed)
    READY     -> CLOSING (close_tenant / close_all) -> CLOSED (entry removed)

The registry lock only guards the map. Opening a connection happens outside
the lock, so a slow tenant never blocks other tenants. A CLOSING entry stays
in the map until its client is closed; acquire() waits for it and then
opens a fresh connection, so one tenant never has two opens in flight.

Example:
    from src.infrastructure.database import TenantConnectionRegistry

    registry = TenantConnectionRegistry(config)

    connection = await registry.acquire("acme")
    connection.handle["courses"]

    print(registry.snapshot())

    # Cleanup on shutdown
    await registry.close_all()
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from src.infrastructure.database.config import ConnectionConfig
from src.infrastructure.database.errors import ConnectionUnavailable
from src.infrastructure.database.factory import (
    MongoConnectionFactory,
    close_handle,
    describe_handle,
)
from src.utils.datetime import format_iso, utc_now

if TYPE_CHECKING:
    from src.infrastructure.database.schema_binder import BoundModelSet

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle state of a tenant connection."""

    PENDING = "PENDING"
    READY = "READY"
    FAILED = "FAILED"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


@dataclass
class TenantConnection:
    """Registry entry for one tenant.

    Attributes:
        tenant_id: Tenant identifier (unique key in the registry).
        state: Current lifecycle state.
        handle: Motor database handle, set once READY.
        created_at: When the entry was created.
        last_used_at: Last time a request acquired the connection.
        model_set: Models bound by the schema binder, None until bound.
    """

    tenant_id: str
    state: ConnectionState = ConnectionState.PENDING
    handle: Optional[AsyncIOMotorDatabase] = None
    created_at: datetime = field(default_factory=utc_now)
    last_used_at: Optional[datetime] = None
    model_set: Optional["BoundModelSet"] = None
    pending: Optional[asyncio.Future["TenantConnection"]] = field(default=None, repr=False)
    closing: Optional[asyncio.Future[None]] = field(default=None, repr=False)
    bind_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY

    def touch(self) -> None:
        self.last_used_at = utc_now()

    def snapshot(self) -> dict[str, Any]:
        """Diagnostic view of this entry. Never performs I/O."""
        return {
            "state": self.state.value,
            "createdAt": format_iso(self.created_at),
            "lastUsedAt": format_iso(self.last_used_at) if self.last_used_at else None,
            "database": describe_handle(self.handle)["database"],
            "models": len(self.model_set) if self.model_set is not None else 0,
        }


class TenantConnectionRegistry:
    """Process-wide cache of tenant connections.

    Attributes:
        config: Connection configuration shared by all tenants.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        factory: MongoConnectionFactory | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            config: Connection configuration.
            factory: Connection factory. A MongoConnectionFactory if omitted.
        """
        self.config = config
        self._factory = factory or MongoConnectionFactory()
        self._connections: dict[str, TenantConnection] = {}
        self._creation_counts: defaultdict[str, int] = defaultdict(int)
        self._lock = asyncio.Lock()

    async def acquire(self, tenant_id: str) -> TenantConnection:
        """Get the tenant's connection, opening it on first use.

        A READY entry is returned without I/O. A PENDING entry is awaited
        rather than opened again. A failed open removes the entry so the
        next call retries. A CLOSING entry is waited out, then the tenant is
        opened again.

        Args:
            tenant_id: Tenant identifier.

        Returns:
            The READY tenant connection.

        Raises:
            ConnectionUnavailable: If the connection could not be opened.
        """
        if not tenant_id:
            raise ValueError("tenant_id is required")

        while True:
            async with self._lock:
                connection = self._connections.get(tenant_id)
                if connection is None:
                    connection = TenantConnection(tenant_id=tenant_id)
                    connection.pending = asyncio.ensure_future(self._open(connection))
                    self._connections[tenant_id] = connection
                    self._creation_counts[tenant_id] += 1
                    logger.debug("Creating connection for tenant %s", tenant_id)
                closing = connection.closing

            if closing is not None:
                await asyncio.shield(closing)
                continue

            if not connection.is_ready:
                # Shielded so a cancelled request does not abort a shared open
                await asyncio.shield(connection.pending)
                if connection.closing is not None:
                    # Closed while opening; wait for it and open again
                    continue

            connection.touch()
            return connection

    async def _open(self, connection: TenantConnection) -> TenantConnection:
        tenant_id = connection.tenant_id
        try:
            handle = await self._factory.open(tenant_id, self.config)
        except Exception as e:
            connection.state = ConnectionState.FAILED
            async with self._lock:
                if self._connections.get(tenant_id) is connection:
                    del self._connections[tenant_id]
            logger.warning("Failed to open connection for tenant %s: %s", tenant_id, e)

            if isinstance(e, ConnectionUnavailable):
                raise
            raise ConnectionUnavailable(tenant_id, str(e) or e.__class__.__name__, e) from e

        connection.handle = handle
        if connection.closing is None:
            connection.state = ConnectionState.READY
        logger.info("Tenant connection ready: %s", tenant_id)
        return connection

    def get(self, tenant_id: str) -> Optional[TenantConnection]:
        """Return the cached entry for a tenant without opening anything."""
        return self._connections.get(tenant_id)

    async def close_tenant(self, tenant_id: str) -> bool:
        """Close and forget a tenant's connection.

        An open in progress is allowed to finish first so its client is
        closed rather than leaked. The entry stays CLOSING in the map until
        then, so concurrent acquires wait instead of opening a second
        connection. Concurrent closes of one tenant share the same close.

        Returns:
            True if an entry existed, False otherwise.
        """
        async with self._lock:
            connection = self._connections.get(tenant_id)
            if connection is None:
                return False
            if connection.closing is None:
                connection.closing = asyncio.ensure_future(self._close(connection))
            closing = connection.closing

        await asyncio.shield(closing)
        return True

    async def _close(self, connection: TenantConnection) -> None:
        tenant_id = connection.tenant_id
        connection.state = ConnectionState.CLOSING
        try:
            if connection.pending is not None and not connection.pending.done():
                await asyncio.wait({connection.pending})

            if connection.handle is not None:
                close_handle(connection.handle)
        finally:
            connection.state = ConnectionState.CLOSED
            connection.handle = None
            connection.model_set = None
            async with self._lock:
                if self._connections.get(tenant_id) is connection:
                    del self._connections[tenant_id]

        logger.info("Closed connection for tenant %s", tenant_id)

    async def reconnect(self, tenant_id: str) -> TenantConnection:
        """Close the tenant's connection, if any, and open a fresh one."""
        await self.close_tenant(tenant_id)
        return await self.acquire(tenant_id)

    async def close_all(self) -> int:
        """Close every cached connection.

        Returns:
            Number of connections closed.
        """
        async with self._lock:
            tenant_ids = list(self._connections)

        results = await asyncio.gather(
            *(self.close_tenant(tenant_id) for tenant_id in tenant_ids)
        )
        closed = sum(1 for result in results if result)
        if closed:
            logger.info("Closed %d tenant connections", closed)
        return closed

    def creation_count(self, tenant_id: str) -> int:
        """How many times a connection was created for the tenant."""
        return self._creation_counts.get(tenant_id, 0)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Read-only view of all entries, keyed by tenant id."""
        return {
            tenant_id: {
                **connection.snapshot(),
                "creations": self.creation_count(tenant_id),
            }
            for tenant_id, connection in list(self._connections.items())
        }

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
