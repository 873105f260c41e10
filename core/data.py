"""
Data Layer Base Classes.

The data layer hides the concrete document database (Cosmos DB in
production, an in-memory fake in tests) behind the ``DocumentStore``
interface and provides read-only, optionally cached, access to reference
collections.

Key principles:
- Stores handle document I/O only
- No business logic in stores or repositories
- Documents are plain dicts keyed by the stored camelCase field names
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Generic, List, Optional, TypeVar
from datetime import datetime, timezone

from .events import Snapshot, SnapshotStream

logger = logging.getLogger(__name__)

# Type variable for entity types
T = TypeVar("T")

Document = Dict[str, Any]


@dataclass(frozen=True)
class FieldFilter:
    """A single ``field <op> value`` condition. Supported ops: ``==`` and ``in``."""
    field: str
    value: Any
    op: str = "=="

    def matches(self, document: Document) -> bool:
        actual = document.get(self.field)
        if self.op == "==":
            return actual == self.value
        if self.op == "in":
            return actual in self.value
        raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass
class QueryOptions:
    """Options for collection queries."""
    filters: List[FieldFilter] = field(default_factory=list)
    order_by: Optional[str] = None
    order_desc: bool = False
    limit: Optional[int] = None

    @classmethod
    def where(cls, **equals) -> "QueryOptions":
        """Shorthand for equality filters: ``QueryOptions.where(email=...)``."""
        return cls(filters=[FieldFilter(name, value) for name, value in equals.items()])


def apply_query_options(documents: List[Document], options: Optional[QueryOptions]) -> List[Document]:
    """Filter, sort and limit documents in memory."""
    if options is None:
        return list(documents)

    result = [doc for doc in documents if all(f.matches(doc) for f in options.filters)]
    if options.order_by:
        result.sort(
            key=lambda doc: (doc.get(options.order_by) is None, doc.get(options.order_by) or ""),
            reverse=options.order_desc,
        )
    if options.limit is not None:
        result = result[:options.limit]
    return result


class DocumentStore(ABC):
    """
    Abstract async document database.

    Collections are addressed by their logical names (``patients``,
    ``appointments``, ...). Every document carries an ``id`` field.
    Implementations raise ``core.errors.StoreError`` for transport failures
    and ``core.errors.RecordNotFound`` when updating a missing document.
    """

    poll_interval: float = 2.0

    @abstractmethod
    async def query(self, collection: str, options: Optional[QueryOptions] = None) -> List[Document]:
        """Return documents matching the options."""
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Return one document by id, or None."""
        pass

    @abstractmethod
    async def add(self, collection: str, data: Document) -> Document:
        """Append a new document with a store-generated id; return it."""
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, changes: Document) -> Document:
        """Merge ``changes`` into an existing document; return the result."""
        pass

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Document) -> Document:
        """Create or replace the document stored under ``doc_id``."""
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document; raise ``RecordNotFound`` if it does not exist."""
        pass

    async def close(self):
        """Release any held connections."""
        pass

    def subscribe(self, collection: str, options: Optional[QueryOptions] = None) -> SnapshotStream:
        """
        Subscribe to a collection.

        Returns a lazy, infinite, non-restartable stream of ``Snapshot``
        events. The first snapshot is delivered on the first iteration, later
        ones only when the result set changes.
        """
        return SnapshotStream(self._poll(collection, options))

    async def _poll(self, collection: str, options: Optional[QueryOptions]) -> AsyncIterator[Snapshot]:
        sequence = 0
        last: Optional[List[Document]] = None
        while True:
            documents = await self.query(collection, options)
            if documents != last:
                sequence += 1
                last = documents
                logger.debug(f"Snapshot {sequence} for {collection}: {len(documents)} documents")
                yield Snapshot(
                    collection=collection,
                    sequence=sequence,
                    documents=tuple(documents),
                    received_at=datetime.now(timezone.utc),
                )
            await asyncio.sleep(self.poll_interval)


class ReadOnlyRepository(ABC, Generic[T]):
    """
    Abstract base class for read-only repositories.

    Use this for reference data that doesn't change during a booking
    (doctors, departments, the lab test catalogue).
    """

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[T]:
        """Get an entity by its ID."""
        pass

    @abstractmethod
    async def get_all(self) -> List[T]:
        """Get all entities."""
        pass

    async def get_by_name(self, name: str) -> Optional[T]:
        """
        Get an entity by a case-insensitive ``name`` field.

        Default implementation searches get_all().
        """
        wanted = (name or "").strip().lower()
        for entity in await self.get_all():
            if isinstance(entity, dict) and (entity.get("name") or "").strip().lower() == wanted:
                return entity
            if hasattr(entity, "name") and (entity.name or "").strip().lower() == wanted:
                return entity
        return None


class CollectionReader(ReadOnlyRepository[Document]):
    """Reads a whole reference collection straight from a store."""

    def __init__(self, store: DocumentStore, collection: str, order_by: Optional[str] = "name"):
        self._store = store
        self._collection = collection
        self._order_by = order_by

    async def get_by_id(self, id: str) -> Optional[Document]:
        return await self._store.get(self._collection, id)

    async def get_all(self) -> List[Document]:
        return await self._store.query(self._collection, QueryOptions(order_by=self._order_by))


class CachingRepository(ReadOnlyRepository[T]):
    """
    A repository decorator that adds caching.

    Use for reference data that is frequently accessed but rarely changes.
    """

    def __init__(self, inner: ReadOnlyRepository[T], ttl_seconds: int = 300):
        """
        Initialize with an inner repository and cache TTL.

        Args:
            inner: The underlying repository to cache
            ttl_seconds: How long to cache data (default 5 minutes)
        """
        self._inner = inner
        self._ttl_seconds = ttl_seconds
        self._cache: Dict[str, Any] = {}
        self._cache_time: Optional[datetime] = None

    def _is_cache_valid(self) -> bool:
        if self._cache_time is None:
            return False
        age = (datetime.now(timezone.utc) - self._cache_time).total_seconds()
        return age < self._ttl_seconds

    async def _refresh_cache(self):
        self._cache["all"] = await self._inner.get_all()
        self._cache_time = datetime.now(timezone.utc)

    async def get_all(self) -> List[T]:
        if not self._is_cache_valid():
            await self._refresh_cache()
        return self._cache.get("all", [])

    async def get_by_id(self, id: str) -> Optional[T]:
        for item in await self.get_all():
            if hasattr(item, "id") and item.id == id:
                return item
            if isinstance(item, dict) and item.get("id") == id:
                return item
        # Not cached yet (created after the last refresh)
        return await self._inner.get_by_id(id)

    def invalidate(self):
        """Invalidate the cache."""
        self._cache.clear()
        self._cache_time = None
