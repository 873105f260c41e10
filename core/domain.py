"""
Domain Layer Base Classes.

The domain layer contains pure business logic with no external dependencies.
This makes business rules:
- Easy to test (no mocking needed)
- Reusable across the HTTP API, the booking assistant and scripts
- Clear and self-documenting

Example Usage:
    class CancellationRule(PolicyEngine):
        def evaluate(self, context: dict) -> PolicyDecision:
            # Pure business logic here
            ...
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import date, datetime, time
from enum import Enum


class PolicyResult(Enum):
    """Result of a policy evaluation."""
    APPROVED = "approved"
    DENIED = "denied"


@dataclass
class PolicyDecision:
    """
    The outcome of a policy evaluation.

    Attributes:
        result: The policy decision result
        reason: Human-readable explanation
        metadata: Additional context for the decision
    """
    result: PolicyResult
    reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_denied(self) -> bool:
        return self.result == PolicyResult.DENIED

    @classmethod
    def approve(cls, reason: str, **metadata) -> "PolicyDecision":
        return cls(result=PolicyResult.APPROVED, reason=reason, metadata=metadata)

    @classmethod
    def deny(cls, reason: str, **metadata) -> "PolicyDecision":
        return cls(result=PolicyResult.DENIED, reason=reason, metadata=metadata)


class PolicyEngine(ABC):
    """
    Abstract base class for policy engines.

    A PolicyEngine encapsulates a set of business rules that can be
    evaluated against a context to produce a decision.
    """

    @abstractmethod
    def evaluate(self, context: Any) -> PolicyDecision:
        """
        Evaluate the policy against the given context.

        Args:
            context: Everything needed for evaluation

        Returns:
            PolicyDecision with the result and explanation
        """
        pass


class DomainService(ABC):
    """
    Abstract base class for domain services.

    Domain services contain business logic that doesn't belong to a single entity.

    Key principles:
    - No I/O operations (database, network, file)
    - All dependencies passed as parameters
    - Return domain objects, not DTOs
    """

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """Execute the domain service operation."""
        pass


@dataclass
class ValidationError:
    """A validation error with field and message."""
    field: str
    message: str
    code: str = "invalid"


class Validator(ABC):
    """
    Abstract base class for validators.

    Validators check that data meets business requirements before processing.
    """

    @abstractmethod
    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        """Return any validation errors (empty if valid)."""
        pass

    def is_valid(self, data: Dict[str, Any]) -> bool:
        """Check if data is valid."""
        return len(self.validate(data)) == 0


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def format_date(value: date) -> str:
    """Format a calendar day the way records store it (YYYY-MM-DD)."""
    return value.strftime(DATE_FORMAT)


def format_time(value: time) -> str:
    """Format a clock time the way records store it (HH:MM, 24-hour)."""
    return value.strftime(TIME_FORMAT)


def slot_datetime(date_string: str, time_string: str) -> Optional[datetime]:
    """Combine stored ``date``/``time`` fields into a naive local datetime."""
    if not date_string:
        return None
    try:
        day = datetime.strptime(date_string, DATE_FORMAT).date()
        clock = datetime.strptime(time_string or "00:00", TIME_FORMAT).time()
    except (ValueError, TypeError):
        return None
    return datetime.combine(day, clock)
