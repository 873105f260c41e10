"""
Hospital Domain Services.

Services that orchestrate domain logic for bookings.
These have NO I/O dependencies - pure calculations and transformations.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from core.domain import DomainService, format_date

from ..models import (
    Appointment,
    AppointmentStatus,
    AvailableLabTest,
    Department,
    Doctor,
    LabTestItem,
    LabTestOrder,
    LabTestStatus,
    Patient,
    PaymentStatus,
)
from .scheduling import ResolvedSlot


# =============================================================================
# SERVICE RESULTS
# =============================================================================

@dataclass(frozen=True)
class FeeBreakdown:
    """Appointment fee split into its parts."""
    base_fee: int
    doctor_fee: int
    department_fee: int

    @property
    def total_fee(self) -> int:
        return self.base_fee + self.doctor_fee + self.department_fee

    def to_dict(self) -> Dict:
        return {
            "baseFee": self.base_fee,
            "doctorFee": self.doctor_fee,
            "departmentFee": self.department_fee,
            "totalFee": self.total_fee,
        }


# =============================================================================
# DOMAIN SERVICES
# =============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for non-negative input."""
    return int(math.floor(value + 0.5))


class FeeCalculator(DomainService):
    """
    Computes the fee for an appointment.

    Each surcharge is a percentage of the base fee and is rounded on its
    own before the parts are summed:

        total = base + round(base * doctor% / 100) + round(base * department% / 100)
    """

    def execute(self, base_fee: int, doctor_pct: float, department_pct: float) -> FeeBreakdown:
        return self.calculate(base_fee, doctor_pct, department_pct)

    def calculate(self, base_fee: int, doctor_pct: float = 0, department_pct: float = 0) -> FeeBreakdown:
        if base_fee < 0 or doctor_pct < 0 or department_pct < 0:
            raise ValueError("Fees and fee percentages must be non-negative")
        return FeeBreakdown(
            base_fee=base_fee,
            doctor_fee=round_half_up(base_fee * doctor_pct / 100),
            department_fee=round_half_up(base_fee * department_pct / 100),
        )


class AppointmentBuilder:
    """Builds appointment records ready to be appended to the store."""

    def __init__(self, fee_calculator: Optional[FeeCalculator] = None):
        self.fee_calculator = fee_calculator or FeeCalculator()

    def build(
        self,
        patient: Patient,
        doctor_id: str,
        doctor: Optional[Doctor],
        department: Optional[Department],
        slot: ResolvedSlot,
        base_fee: int,
        now: datetime,
        reason: str = "",
        symptoms: str = "",
        previous_visit: str = "no",
        department_name: str = "",
    ) -> Appointment:
        """
        Build a scheduled, paid appointment.

        A missing doctor or department contributes a 0% surcharge.
        """
        fees = self.fee_calculator.calculate(
            base_fee,
            doctor.fee_percentage if doctor else 0,
            department.fee_percentage if department else 0,
        )
        timestamp = now.isoformat()
        return Appointment(
            patient_id=patient.id,
            patient_name=patient.name or "Patient",
            patient_email=patient.email,
            patient_phone=patient.phone,
            doctor_id=doctor_id,
            doctor_name=doctor.name if doctor else "",
            department_id=department.id if department else "",
            department_name=department.name if department else department_name,
            date=slot.date_str,
            time=slot.time_str,
            reason=reason,
            symptoms=symptoms,
            previous_visit=previous_visit,
            status=AppointmentStatus.SCHEDULED,
            base_fee=fees.base_fee,
            total_fee=fees.total_fee,
            payment_status=PaymentStatus.PAID,
            payment_date=format_date(now.date()),
            created_at=timestamp,
            updated_at=timestamp,
        )


class LabTestOrderBuilder:
    """Builds lab test orders from catalogue entries."""

    def build(
        self,
        patient: Patient,
        tests: List[AvailableLabTest],
        slot: ResolvedSlot,
        now: datetime,
        special_instructions: str = "",
    ) -> LabTestOrder:
        items = [LabTestItem(id=test.id, name=test.name, price=test.price) for test in tests]
        timestamp = now.isoformat()
        return LabTestOrder(
            patient_id=patient.id,
            patient_name=patient.name or "Patient",
            patient_email=patient.email,
            tests=items,
            date=slot.date_str,
            time=slot.time_str,
            total_price=sum(item.price for item in items),
            special_instructions=special_instructions,
            status=LabTestStatus.SCHEDULED,
            payment_status=PaymentStatus.PAID,
            results=None,
            created_at=timestamp,
            updated_at=timestamp,
        )
