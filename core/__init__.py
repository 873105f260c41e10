"""
Core Framework for the Care-Coord backend.

Layered architecture shared by the hospital use case:

1. Domain Layer - Pure business rules, no I/O
2. Data Layer - Document store interface and reference repositories
3. Events - Snapshot streams for realtime subscriptions
4. Session - Conversation context for the booking assistant
"""

from .domain import DomainService, PolicyEngine, PolicyDecision, PolicyResult
from .data import DocumentStore, QueryOptions, FieldFilter, CachingRepository, CollectionReader
from .events import Snapshot, SnapshotStream, fold
from .session import SessionManager, SessionContext
from .errors import (
    CareCoordError,
    StoreError,
    RecordNotFound,
    InvalidTransition,
    InvalidRequest,
    AuthenticationError,
    PermissionDenied,
)

__all__ = [
    # Domain
    "DomainService",
    "PolicyEngine",
    "PolicyDecision",
    "PolicyResult",
    # Data
    "DocumentStore",
    "QueryOptions",
    "FieldFilter",
    "CachingRepository",
    "CollectionReader",
    # Events
    "Snapshot",
    "SnapshotStream",
    "fold",
    # Session
    "SessionManager",
    "SessionContext",
    # Errors
    "CareCoordError",
    "StoreError",
    "RecordNotFound",
    "InvalidTransition",
    "InvalidRequest",
    "AuthenticationError",
    "PermissionDenied",
]
