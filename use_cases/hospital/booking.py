"""
Booking Workflow.

Turns a booking request (doctor or lab tests, free-text date and time)
into exactly one stored record.

Flow:
1. Resolve the signed-in patient's profile by email (exactly one match)
2. Read reference data (doctor, department, base fee / lab catalogue)
3. Normalise the date and time phrases
4. Build the record and append it to the store

Nothing is written unless every step before the append succeeds. There is
no idempotency key: submitting twice books twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from core.errors import StoreError

from .domain.scheduling import DateTimeNormalizer
from .domain.services import AppointmentBuilder, FeeBreakdown, FeeCalculator, LabTestOrderBuilder
from .identity import PatientSession, Session
from .models import Appointment, LabTestOrder, Patient
from .repository import HospitalRepository

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "We couldn't complete your booking right now. Please try again."
BOOKING_FAILED = "booking_failed"


@dataclass
class BookingResult:
    """Outcome of a booking submission."""
    success: bool
    message: str
    record_id: Optional[str] = None
    record: Optional[Union[Appointment, LabTestOrder]] = None
    error_code: Optional[str] = None
    clamped: bool = False

    @classmethod
    def failed(cls, code: str, message: str) -> "BookingResult":
        return cls(success=False, message=message, error_code=code)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.record_id:
            data["id"] = self.record_id
        if self.record is not None:
            data["record"] = self.record.model_dump(by_alias=True, mode="json")
        if self.error_code:
            data["errorCode"] = self.error_code
        if self.clamped:
            data["clamped"] = True
        return data


class ProfileLookupFailed(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class BookingService:
    """Submits appointment and lab test bookings for patients."""

    def __init__(
        self,
        repository: HospitalRepository,
        normalizer: Optional[DateTimeNormalizer] = None,
        fee_calculator: Optional[FeeCalculator] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.normalizer = normalizer or DateTimeNormalizer()
        self.fee_calculator = fee_calculator or FeeCalculator()
        self.appointments = AppointmentBuilder(self.fee_calculator)
        self.lab_tests = LabTestOrderBuilder()
        self.clock = clock

    async def _resolve_patient(self, session: Session) -> Patient:
        if not isinstance(session, PatientSession):
            raise ProfileLookupFailed("not_signed_in", "Please sign in as a patient to book.")
        matches = await self.repository.find_patients_by_email(session.email)
        if not matches:
            raise ProfileLookupFailed(
                "profile_not_found",
                "Patient profile not found. Please complete your profile first.",
            )
        if len(matches) > 1:
            logger.warning(f"{len(matches)} patient profiles share the email {session.email}")
            raise ProfileLookupFailed(
                "profile_ambiguous",
                "More than one patient profile uses this email. Please contact the hospital.",
            )
        return matches[0]

    # =========================================================================
    # FEES
    # =========================================================================

    async def quote_fee(
        self,
        doctor_id: Optional[str] = None,
        department_id: Optional[str] = None,
        department_name: Optional[str] = None,
    ) -> FeeBreakdown:
        """Fee a booking with this doctor/department would be charged now."""
        doctor = await self.repository.get_doctor(doctor_id) if doctor_id else None
        department = await self._find_department(doctor, department_id, department_name)
        base_fee = await self.repository.get_base_fee()
        return self.fee_calculator.calculate(
            base_fee,
            doctor.fee_percentage if doctor else 0,
            department.fee_percentage if department else 0,
        )

    async def _find_department(self, doctor, department_id, department_name):
        department_id = department_id or (doctor.department_id if doctor else None)
        if department_id:
            department = await self.repository.get_department(department_id)
            if department:
                return department
        department_name = department_name or (doctor.department_name if doctor else None)
        if department_name:
            return await self.repository.get_department_by_name(department_name)
        return None

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    async def submit_appointment(
        self,
        session: Session,
        doctor_id: str,
        date_phrase: str = "",
        time_phrase: str = "",
        department_id: Optional[str] = None,
        department_name: Optional[str] = None,
        reason: str = "",
        symptoms: str = "",
        previous_visit: str = "no",
    ) -> BookingResult:
        """Book an appointment. Returns a result; never raises for store or data failures."""
        try:
            patient = await self._resolve_patient(session)
            doctor = await self.repository.get_doctor(doctor_id)
            if doctor is None:
                logger.warning(f"Doctor {doctor_id} not found, booking without doctor surcharge")
            department = await self._find_department(doctor, department_id, department_name)
            base_fee = await self.repository.get_base_fee()

            now = self.clock()
            slot = self.normalizer.resolve(date_phrase, time_phrase, now)
            appointment = self.appointments.build(
                patient=patient,
                doctor_id=doctor_id,
                doctor=doctor,
                department=department,
                slot=slot,
                base_fee=base_fee,
                now=now,
                reason=reason,
                symptoms=symptoms,
                previous_visit=previous_visit,
                department_name=department_name or "",
            )
            stored = await self.repository.add_appointment(appointment)
        except ProfileLookupFailed as e:
            return BookingResult.failed(e.code, e.message)
        except StoreError as e:
            logger.error(f"Appointment booking failed: {e}")
            return BookingResult.failed(e.code, GENERIC_FAILURE)
        except (ValueError, ValidationError) as e:
            logger.error(f"Appointment booking failed on stored data: {e}")
            return BookingResult.failed(BOOKING_FAILED, GENERIC_FAILURE)

        logger.info(f"Booked appointment {stored.id} for patient {stored.patient_id} on {stored.date} {stored.time}")
        return BookingResult(
            success=True,
            message=(
                f"Appointment booked for {stored.date} at {stored.time}"
                f"{' with ' + stored.doctor_name if stored.doctor_name else ''}. "
                f"Total fee: {stored.total_fee}."
            ),
            record_id=stored.id,
            record=stored,
            clamped=slot.clamped,
        )

    async def submit_lab_test(
        self,
        session: Session,
        test_ids: List[str],
        date_phrase: str = "",
        time_phrase: str = "",
        special_instructions: str = "",
    ) -> BookingResult:
        """Schedule a lab test order for the selected catalogue tests."""
        try:
            patient = await self._resolve_patient(session)
            tests = await self.repository.get_available_lab_tests(test_ids)
            if not tests:
                return BookingResult.failed("no_tests_selected", "Please select at least one lab test.")

            now = self.clock()
            slot = self.normalizer.resolve(date_phrase, time_phrase, now)
            order = self.lab_tests.build(patient, tests, slot, now, special_instructions)
            stored = await self.repository.add_lab_test(order)
        except ProfileLookupFailed as e:
            return BookingResult.failed(e.code, e.message)
        except StoreError as e:
            logger.error(f"Lab test booking failed: {e}")
            return BookingResult.failed(e.code, GENERIC_FAILURE)
        except (ValueError, ValidationError) as e:
            logger.error(f"Lab test booking failed on stored data: {e}")
            return BookingResult.failed(BOOKING_FAILED, GENERIC_FAILURE)

        logger.info(f"Scheduled lab tests {stored.id} for patient {stored.patient_id} on {stored.date} {stored.time}")
        names = ", ".join(item.name for item in stored.tests)
        return BookingResult(
            success=True,
            message=f"{names} scheduled for {stored.date} at {stored.time}. Total: {stored.total_price:g}.",
            record_id=stored.id,
            record=stored,
            clamped=slot.clamped,
        )
