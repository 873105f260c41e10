"""
Cosmos DB Client for the Hospital Use Case.

Async ``DocumentStore`` implementation on Azure Cosmos DB.
Uses DefaultAzureCredential for flexible authentication.
"""

import logging
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple

from azure.core.exceptions import AzureError
from azure.cosmos.aio import CosmosClient
from azure.cosmos.exceptions import CosmosResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential

from config import settings
from core.data import Document, DocumentStore, QueryOptions
from core.errors import RecordNotFound, StoreError

# Import shared configuration
from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    get_container_name,
)

logger = logging.getLogger(__name__)

# Properties Cosmos adds to every item
SYSTEM_PROPERTIES = ("_rid", "_self", "_etag", "_attachments", "_ts")

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _field(name: str) -> str:
    if not _FIELD_NAME.match(name):
        raise ValueError(f"Invalid field name: {name!r}")
    return f"c.{name}"


def build_query(options: Optional[QueryOptions]) -> Tuple[str, List[Dict[str, Any]]]:
    """Translate query options into a parameterised Cosmos SQL query."""
    query = "SELECT * FROM c"
    params: List[Dict[str, Any]] = []
    if options is None:
        return query, params

    clauses = []
    for index, condition in enumerate(options.filters):
        name = f"@p{index}"
        params.append({"name": name, "value": condition.value})
        if condition.op == "==":
            clauses.append(f"{_field(condition.field)} = {name}")
        elif condition.op == "in":
            clauses.append(f"ARRAY_CONTAINS({name}, {_field(condition.field)})")
        else:
            raise ValueError(f"Unsupported filter operator: {condition.op}")
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    if options.order_by:
        query += f" ORDER BY {_field(options.order_by)} {'DESC' if options.order_desc else 'ASC'}"
    if options.limit is not None:
        query += f" OFFSET 0 LIMIT {int(options.limit)}"
    return query, params


def _clean(item: Dict[str, Any]) -> Document:
    return {key: value for key, value in item.items() if key not in SYSTEM_PROPERTIES}


class HospitalCosmosStore(DocumentStore):
    """Document store backed by the hospital Cosmos DB containers."""

    def __init__(self, endpoint: str = COSMOS_ENDPOINT, database: str = DATABASE_NAME):
        """Initialize the Cosmos DB client."""
        logger.info("Initializing Hospital Cosmos DB client...")
        self._credential = DefaultAzureCredential()
        self._client = CosmosClient(endpoint, credential=self._credential)
        self._database = self._client.get_database_client(database)
        self._containers = {}
        self.poll_interval = settings.subscription_poll_seconds
        logger.info("Hospital Cosmos DB client initialized")

    def _get_container(self, name: str):
        """Get a container client, caching for reuse."""
        if name not in self._containers:
            self._containers[name] = self._database.get_container_client(get_container_name(name))
        return self._containers[name]

    # =========================================================================
    # READS
    # =========================================================================

    async def query(self, collection: str, options: Optional[QueryOptions] = None) -> List[Document]:
        container = self._get_container(collection)
        query, params = build_query(options)
        try:
            return [_clean(item) async for item in container.query_items(query, parameters=params)]
        except AzureError as e:
            logger.error(f"Query on {collection} failed: {e}")
            raise StoreError(f"Could not read {collection}") from e

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        container = self._get_container(collection)
        try:
            return _clean(await container.read_item(item=doc_id, partition_key=doc_id))
        except CosmosResourceNotFoundError:
            return None
        except AzureError as e:
            logger.error(f"Read of {collection}/{doc_id} failed: {e}")
            raise StoreError(f"Could not read {collection}") from e

    # =========================================================================
    # WRITES
    # =========================================================================

    async def add(self, collection: str, data: Document) -> Document:
        container = self._get_container(collection)
        body = dict(data)
        body["id"] = uuid.uuid4().hex
        try:
            created = await container.create_item(body=body)
        except AzureError as e:
            logger.error(f"Create in {collection} failed: {e}")
            raise StoreError(f"Could not write to {collection}") from e
        logger.info(f"Created {collection}/{body['id']}")
        return _clean(created)

    async def update(self, collection: str, doc_id: str, changes: Document) -> Document:
        container = self._get_container(collection)
        try:
            current = await container.read_item(item=doc_id, partition_key=doc_id)
        except CosmosResourceNotFoundError:
            raise RecordNotFound(collection, doc_id)
        except AzureError as e:
            logger.error(f"Read of {collection}/{doc_id} failed: {e}")
            raise StoreError(f"Could not read {collection}") from e

        body = _clean(current)
        body.update(changes)
        body["id"] = doc_id
        try:
            replaced = await container.replace_item(item=doc_id, body=body)
        except AzureError as e:
            logger.error(f"Replace of {collection}/{doc_id} failed: {e}")
            raise StoreError(f"Could not write to {collection}") from e
        logger.info(f"Updated {collection}/{doc_id}: {sorted(changes)}")
        return _clean(replaced)

    async def set(self, collection: str, doc_id: str, data: Document) -> Document:
        container = self._get_container(collection)
        body = dict(data)
        body["id"] = doc_id
        try:
            return _clean(await container.upsert_item(body=body))
        except AzureError as e:
            logger.error(f"Upsert of {collection}/{doc_id} failed: {e}")
            raise StoreError(f"Could not write to {collection}") from e

    async def delete(self, collection: str, doc_id: str) -> None:
        container = self._get_container(collection)
        try:
            await container.delete_item(item=doc_id, partition_key=doc_id)
        except CosmosResourceNotFoundError:
            raise RecordNotFound(collection, doc_id)
        except AzureError as e:
            logger.error(f"Delete of {collection}/{doc_id} failed: {e}")
            raise StoreError(f"Could not write to {collection}") from e
        logger.info(f"Deleted {collection}/{doc_id}")

    async def close(self):
        await self._client.close()
        await self._credential.close()
        logger.info("Hospital Cosmos DB client closed")
