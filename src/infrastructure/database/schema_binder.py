# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schema binding for tenant connections.

A tenant connection starts with no models. SchemaBinder.bind() compiles each
entry of the static schema catalog into a TenantModel scoped to that
connection, creates its declared indexes, and records it in the connection's
BoundModelSet. Binding is idempotent: a name already present on the
connection is returned unchanged and never compiled twice.

Example:
    binder = SchemaBinder()
    connection = await registry.acquire("acme")
    models = await binder.bind(connection)

    course = await guard.run(models["Course"].create({"title": "Algebra", ...}))
"""

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from src.infrastructure.database.errors import ConnectionUnavailable, SchemaRegistrationError
from src.infrastructure.database.models import SCHEMA_CATALOG
from src.infrastructure.database.models.base import SchemaDefinition, to_object_id
from src.utils.datetime import utc_now

if TYPE_CHECKING:
    from src.infrastructure.database.tenant_manager import TenantConnection

logger = logging.getLogger(__name__)

# Stored keys a partial update may not overwrite, by alias and by field name
_PROTECTED_KEYS = ("_id", "id", "tenantId", "tenant_id", "createdAt", "created_at")


class TenantModel:
    """A schema compiled against one tenant's connection.

    All methods are coroutines intended to be passed to OperationGuard.run();
    driver and validation errors propagate raw and are classified there.

    Attributes:
        name: Model name from the catalog.
        definition: The catalog entry this model was compiled from.
        collection: Collection handle on the tenant's database.
        tenant_id: Owning tenant.
    """

    def __init__(
        self,
        definition: SchemaDefinition,
        collection: AsyncIOMotorCollection,
        tenant_id: str,
    ) -> None:
        self.name = definition.name
        self.definition = definition
        self.collection = collection
        self.tenant_id = tenant_id

    def __repr__(self) -> str:
        return f"TenantModel(name={self.name!r}, tenant_id={self.tenant_id!r})"

    def validate(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Validate a document against the schema.

        Returns:
            The document as it would be stored (aliased keys, defaults applied).

        Raises:
            pydantic.ValidationError: If a constraint is violated.
        """
        document = self.definition.document.model_validate(dict(data))
        return document.model_dump(by_alias=True, exclude_none=True)

    async def ensure_indexes(self) -> list[str]:
        """Create the schema's declared indexes on the collection."""
        names = []
        for spec in self.definition.indexes:
            names.append(
                await self.collection.create_index(list(spec.keys), **spec.create_options())
            )
        return names

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a new document stamped with the owning tenant."""
        document = self.validate({**data, "tenantId": self.tenant_id})
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    async def find_by_id(self, document_id: Any) -> Optional[dict[str, Any]]:
        """Fetch one document by key.

        Raises:
            InvalidId: If document_id is not a valid document key.
        """
        return await self.collection.find_one({"_id": to_object_id(document_id)})

    async def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        *,
        limit: int = 100,
        sort: Optional[Sequence[tuple[str, int]]] = None,
    ) -> list[dict[str, Any]]:
        cursor = self.collection.find(dict(filter or {}))
        if sort:
            cursor = cursor.sort(list(sort))
        return await cursor.to_list(length=limit)

    async def update_by_id(
        self,
        document_id: Any,
        changes: Mapping[str, Any],
    ) -> Optional[dict[str, Any]]:
        """Apply a partial update and return the updated document.

        Only the fields present in ``changes`` are validated and written.
        Returns None if no document has that key.
        """
        key = to_object_id(document_id)
        partial = self.definition.update_document.model_validate(dict(changes))
        update = partial.model_dump(by_alias=True, exclude_unset=True)
        for protected in _PROTECTED_KEYS:
            update.pop(protected, None)
        update["updatedAt"] = utc_now()

        return await self.collection.find_one_and_update(
            {"_id": key},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )

    async def delete_by_id(self, document_id: Any) -> bool:
        result = await self.collection.delete_one({"_id": to_object_id(document_id)})
        return result.deleted_count > 0

    async def count(self, filter: Optional[Mapping[str, Any]] = None) -> int:
        return await self.collection.count_documents(dict(filter or {}))


class BoundModelSet:
    """Models registered on one tenant connection, keyed by schema name."""

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        self._models: dict[str, TenantModel] = {}

    @property
    def models(self) -> Mapping[str, TenantModel]:
        """Read-only view of the registered models."""
        return MappingProxyType(self._models)

    def register(self, model: TenantModel) -> TenantModel:
        """Add a model to the set.

        Raises:
            SchemaRegistrationError: If the name is already registered.
        """
        if model.name in self._models:
            raise SchemaRegistrationError(self.tenant_id, model.name)
        self._models[model.name] = model
        return model

    def get(self, name: str) -> Optional[TenantModel]:
        return self._models.get(name)

    def names(self) -> list[str]:
        return list(self._models)

    def __getitem__(self, name: str) -> TenantModel:
        return self._models[name]

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)


class SchemaBinder:
    """Registers the schema catalog on tenant connections.

    Attributes:
        catalog: Schema definitions bound to every connection.
        ensure_indexes: Whether to create declared indexes while binding.
    """

    def __init__(
        self,
        catalog: Sequence[SchemaDefinition] = SCHEMA_CATALOG,
        ensure_indexes: bool = True,
    ) -> None:
        names = [schema.name for schema in catalog]
        if len(names) != len(set(names)):
            raise ValueError("Schema catalog contains duplicate names")
        self.catalog = tuple(catalog)
        self.ensure_indexes = ensure_indexes

    def _is_complete(self, model_set: Optional[BoundModelSet]) -> bool:
        return model_set is not None and all(
            schema.name in model_set for schema in self.catalog
        )

    async def bind(self, connection: "TenantConnection") -> BoundModelSet:
        """Bind the catalog to a connection, once.

        Concurrent calls for the same connection are serialized on the
        connection's bind lock; the first compiles, the rest reuse.

        Args:
            connection: A READY tenant connection.

        Returns:
            The connection's BoundModelSet.

        Raises:
            ConnectionUnavailable: If the connection has no open handle.
        """
        if self._is_complete(connection.model_set):
            return connection.model_set

        async with connection.bind_lock:
            if connection.handle is None:
                raise ConnectionUnavailable(connection.tenant_id, "connection is not open")

            model_set = connection.model_set
            if model_set is None:
                model_set = BoundModelSet(connection.tenant_id)
            added = 0

            for schema in self.catalog:
                if schema.name in model_set:
                    continue

                model = TenantModel(
                    schema,
                    connection.handle[schema.collection],
                    connection.tenant_id,
                )
                if self.ensure_indexes and schema.indexes:
                    await self._create_indexes(model)
                model_set.register(model)
                added += 1

            connection.model_set = model_set

        if added:
            logger.info(
                "Bound %d models for tenant %s", added, connection.tenant_id
            )
        return model_set

    async def _create_indexes(self, model: TenantModel) -> None:
        try:
            await model.ensure_indexes()
        except PyMongoError as e:
            # Existing data may violate a new unique index; the model stays usable
            logger.warning(
                "Index creation failed for %s (tenant %s): %s",
                model.name,
                model.tenant_id,
                e,
            )
