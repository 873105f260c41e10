"""
Conversation Session Management.

Provides per-conversation context tracking across assistant turns.
This enables:
- Remembering which step of a booking flow the user is in
- Understanding references to options listed in an earlier turn
- Resetting a flow without losing who the user is
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """
    Base conversation context.

    Each flow extends this with flow-specific fields. The context is:
    - Scoped to a single conversation
    - Reset when a flow completes or is cancelled
    """
    conversation_id: str = ""

    # Options listed in the last reply, for "the first one" style answers
    displayed_options: List[Dict[str, Any]] = field(default_factory=list)

    # Current flow state
    current_step: str = "not_started"

    # Timestamps
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def set_displayed_options(self, options: List[Dict[str, Any]]):
        """Remember the options shown to the user."""
        self.displayed_options = list(options)
        self._touch()

    def _touch(self):
        """Update the timestamp."""
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "conversation_id": self.conversation_id,
            "current_step": self.current_step,
            "displayed_options": self.displayed_options,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class SessionManager:
    """
    Manages conversation contexts.

    This is a simple in-memory manager; contexts are lost on restart.
    """

    def __init__(self, context_class: type = SessionContext):
        """
        Initialize the session manager.

        Args:
            context_class: The SessionContext class to use (can be a subclass)
        """
        self._sessions: Dict[str, SessionContext] = {}
        self._context_class = context_class

    def get_or_create(self, conversation_id: str) -> SessionContext:
        """Get an existing context or create a new one."""
        if conversation_id not in self._sessions:
            session = self._context_class()
            session.conversation_id = conversation_id
            self._sessions[conversation_id] = session
            logger.debug(f"Created new session for conversation {conversation_id}")
        return self._sessions[conversation_id]

    def get(self, conversation_id: str) -> Optional[SessionContext]:
        return self._sessions.get(conversation_id)

    def clear(self, conversation_id: str):
        """Forget a conversation."""
        if conversation_id in self._sessions:
            del self._sessions[conversation_id]
            logger.debug(f"Cleared session for conversation {conversation_id}")
