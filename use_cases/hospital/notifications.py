"""
Admin Notifications.

The notification feed is folded from a snapshot stream over the
``notifications`` collection (newest first). ``reduce_notifications`` is
pure: every newer snapshot replaces the feed, stale ones are ignored.
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncGenerator, Tuple

from core.data import DocumentStore, QueryOptions
from core.events import Snapshot, SnapshotStream, fold

from .identity import Session, require_role
from .models import Notification, Role

logger = logging.getLogger(__name__)

COLLECTION = "notifications"


@dataclass(frozen=True)
class NotificationFeed:
    notifications: Tuple[Notification, ...] = field(default_factory=tuple)
    sequence: int = 0

    @property
    def unread_count(self) -> int:
        return sum(1 for notification in self.notifications if not notification.read)

    def to_dict(self):
        return {
            "sequence": self.sequence,
            "unreadCount": self.unread_count,
            "notifications": [n.model_dump(by_alias=True, mode="json") for n in self.notifications],
        }


def reduce_notifications(feed: NotificationFeed, event: Snapshot) -> NotificationFeed:
    """Replace the feed with a newer snapshot; return ``feed`` itself for stale ones."""
    if event.sequence <= feed.sequence:
        return feed
    return NotificationFeed(
        notifications=tuple(Notification.from_document(doc) for doc in event.documents),
        sequence=event.sequence,
    )


class NotificationService:
    """Admin access to the notification feed."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def subscribe(self, session: Session) -> SnapshotStream:
        require_role(session, Role.ADMIN)
        return self.store.subscribe(COLLECTION, QueryOptions(order_by="createdAt", order_desc=True))

    def feed(self, session: Session) -> AsyncGenerator[NotificationFeed, None]:
        """
        Successive feed states, one per changed snapshot.

        The role check happens here, before the first state is requested.
        Closing the returned generator closes the underlying subscription.
        """
        return self._fold(self.subscribe(session))

    async def _fold(self, stream: SnapshotStream) -> AsyncGenerator[NotificationFeed, None]:
        try:
            async for state in fold(stream, reduce_notifications, NotificationFeed()):
                yield state
        finally:
            await stream.aclose()

    async def current(self, session: Session) -> NotificationFeed:
        require_role(session, Role.ADMIN)
        documents = await self.store.query(COLLECTION, QueryOptions(order_by="createdAt", order_desc=True))
        return NotificationFeed(notifications=tuple(Notification.from_document(doc) for doc in documents))

    async def mark_as_read(self, session: Session, notification_id: str):
        require_role(session, Role.ADMIN)
        await self.store.update(COLLECTION, notification_id, {"read": True, "status": "read"})

    async def mark_all_as_read(self, session: Session) -> int:
        """Mark every unread notification read; returns how many were updated."""
        require_role(session, Role.ADMIN)
        unread = await self.store.query(COLLECTION, QueryOptions.where(read=False))
        for document in unread:
            await self.store.update(COLLECTION, document["id"], {"read": True, "status": "read"})
        logger.info(f"Marked {len(unread)} notifications as read")
        return len(unread)
