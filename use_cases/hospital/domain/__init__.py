"""Hospital domain layer - pure business logic."""

from .policies import (
    AppointmentTransitionPolicy,
    LabTestTransitionPolicy,
    PatientProfileValidator,
    TransitionContext,
)
from .scheduling import (
    DateTimeNormalizer,
    DatePhrase,
    TimeOfDay,
    ResolvedSlot,
)
from .services import (
    FeeCalculator,
    FeeBreakdown,
    AppointmentBuilder,
    LabTestOrderBuilder,
)

__all__ = [
    "AppointmentTransitionPolicy",
    "LabTestTransitionPolicy",
    "PatientProfileValidator",
    "TransitionContext",
    "DateTimeNormalizer",
    "DatePhrase",
    "TimeOfDay",
    "ResolvedSlot",
    "FeeCalculator",
    "FeeBreakdown",
    "AppointmentBuilder",
    "LabTestOrderBuilder",
]
