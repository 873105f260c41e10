"""
Hospital Domain Policies.

Pure business rules for record lifecycles and patient profiles.
These classes have NO I/O dependencies - they can be unit tested in isolation.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from core.domain import PolicyDecision, PolicyEngine, ValidationError, Validator

from ..models import AppointmentStatus, LabTestStatus, Role


# =============================================================================
# CONSTANTS
# =============================================================================

# Statuses a patient may move their own appointment to
PATIENT_APPOINTMENT_ACTIONS = frozenset({
    AppointmentStatus.CANCELLED,
    AppointmentStatus.RESCHEDULE_REQUESTED,
})

# Statuses a doctor may record once the appointment time has passed
DOCTOR_APPOINTMENT_OUTCOMES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
})

TERMINAL_APPOINTMENT_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
    AppointmentStatus.CANCELLED,
})

# Lab operator workflow: current status -> allowed next statuses
LAB_TEST_TRANSITIONS: Dict[LabTestStatus, FrozenSet[LabTestStatus]] = {
    LabTestStatus.SCHEDULED: frozenset({
        LabTestStatus.PENDING,
        LabTestStatus.IN_PROGRESS,
        LabTestStatus.TEST_TAKEN,
        LabTestStatus.CANCELLED,
    }),
    LabTestStatus.PENDING: frozenset({
        LabTestStatus.IN_PROGRESS,
        LabTestStatus.TEST_TAKEN,
        LabTestStatus.CANCELLED,
    }),
    LabTestStatus.IN_PROGRESS: frozenset({
        LabTestStatus.TEST_TAKEN,
        LabTestStatus.CANCELLED,
    }),
    LabTestStatus.TEST_TAKEN: frozenset({
        LabTestStatus.COMPLETED,
        LabTestStatus.CANCELLED,
    }),
    LabTestStatus.COMPLETED: frozenset(),
    LabTestStatus.CANCELLED: frozenset(),
}

REQUIRED_PROFILE_FIELDS = ("name", "email", "phone", "dateOfBirth", "gender")
PHONE_DIGITS = 11


# =============================================================================
# POLICY ENGINES
# =============================================================================

@dataclass
class TransitionContext:
    """Context for status transition evaluation."""
    current: str
    requested: str
    actor: Role
    slot_at: Optional[datetime] = None
    now: Optional[datetime] = None

    @property
    def slot_has_passed(self) -> bool:
        if self.slot_at is None or self.now is None:
            return False
        return self.slot_at < self.now


class AppointmentTransitionPolicy(PolicyEngine):
    """
    Who may move an appointment to which status.

    - Patients cancel or ask to reschedule a scheduled, upcoming appointment
    - Doctors record completed / no-show after the appointment time
    - Admins may set any status
    """

    def evaluate(self, context: TransitionContext) -> PolicyDecision:
        try:
            current = AppointmentStatus(context.current)
            requested = AppointmentStatus(context.requested)
        except ValueError:
            return PolicyDecision.deny(f"Unknown appointment status '{context.requested}'")

        if context.actor == Role.ADMIN:
            return PolicyDecision.approve("Admins may set any appointment status")

        if context.actor == Role.PATIENT:
            if requested not in PATIENT_APPOINTMENT_ACTIONS:
                return PolicyDecision.deny("Patients may only cancel or request a reschedule")
            if current != AppointmentStatus.SCHEDULED:
                return PolicyDecision.deny("Only scheduled appointments can be changed")
            if context.slot_has_passed:
                return PolicyDecision.deny("The appointment time has already passed")
            return PolicyDecision.approve("Patient change allowed")

        if context.actor == Role.DOCTOR:
            if requested not in DOCTOR_APPOINTMENT_OUTCOMES:
                return PolicyDecision.deny("Doctors may only mark appointments completed or no-show")
            if current in TERMINAL_APPOINTMENT_STATUSES:
                return PolicyDecision.deny(f"Appointment is already {current.value}")
            if not context.slot_has_passed:
                return PolicyDecision.deny("Status can be updated once the appointment time has passed")
            return PolicyDecision.approve("Outcome recorded")

        return PolicyDecision.deny(f"{context.actor.value} cannot change appointments")


class LabTestTransitionPolicy(PolicyEngine):
    """Lab operators follow LAB_TEST_TRANSITIONS; admins may set any status."""

    def evaluate(self, context: TransitionContext) -> PolicyDecision:
        try:
            current = LabTestStatus(context.current)
            requested = LabTestStatus(context.requested)
        except ValueError:
            return PolicyDecision.deny(f"Unknown lab test status '{context.requested}'")

        if context.actor == Role.ADMIN:
            return PolicyDecision.approve("Admins may set any lab test status")

        if context.actor != Role.LAB_OPERATOR:
            return PolicyDecision.deny(f"{context.actor.value} cannot change lab tests")

        allowed = LAB_TEST_TRANSITIONS.get(current, frozenset())
        if requested not in allowed:
            return PolicyDecision.deny(
                f"Lab test cannot go from {current.value} to {requested.value}",
                allowed=sorted(status.value for status in allowed),
            )
        return PolicyDecision.approve("Lab test status change allowed")


# =============================================================================
# VALIDATORS
# =============================================================================

class PatientProfileValidator(Validator):
    """A patient profile is complete when every required field is filled in."""

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []
        for name in REQUIRED_PROFILE_FIELDS:
            value = data.get(name)
            if not value or not str(value).strip():
                errors.append(ValidationError(field=name, message=f"{name} is required", code="required"))

        phone = data.get("phone")
        if phone and len(re.sub(r"\D", "", str(phone))) != PHONE_DIGITS:
            errors.append(ValidationError(
                field="phone",
                message=f"phone must contain exactly {PHONE_DIGITS} digits",
            ))
        return errors
