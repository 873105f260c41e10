"""
Patient Records.

Profile read/update for patients, the patient directory for doctors and the
admin, and a doctor's view of one patient's history.

A profile is complete when ``PatientProfileValidator`` finds nothing
missing; bookings need a profile, and clients use ``missingFields`` to send
the patient to a completion form. The sign-in email is not editable here:
bookings resolve the profile by the session's email.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List

from pydantic.alias_generators import to_camel

from core.errors import InvalidRequest, PermissionDenied, RecordNotFound

from .domain.policies import PatientProfileValidator
from .identity import DoctorSession, Session, require_role
from .models import Appointment, LabTestOrder, Patient, Role
from .repository import HospitalRepository

logger = logging.getLogger(__name__)

EDITABLE_PROFILE_FIELDS = (
    "name",
    "phone",
    "date_of_birth",
    "gender",
    "address",
    "blood_type",
    "allergies",
    "medical_history",
    "insurance_info",
    "emergency_contact",
)


@dataclass
class PatientProfile:
    """A patient record plus what is still missing from it."""
    patient: Patient
    missing_fields: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": self.patient.model_dump(by_alias=True, mode="json"),
            "complete": self.is_complete,
            "missingFields": self.missing_fields,
        }


@dataclass
class PatientHistory:
    patient: Patient
    appointments: List[Appointment]
    lab_tests: List[LabTestOrder]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patient": self.patient.model_dump(by_alias=True, mode="json"),
            "appointments": [a.model_dump(by_alias=True, mode="json") for a in self.appointments],
            "labTests": [t.model_dump(by_alias=True, mode="json") for t in self.lab_tests],
        }


def matches_search(patient: Patient, search: str) -> bool:
    """Case-insensitive match on name or email; phone matches on digits."""
    term = (search or "").strip().lower()
    if not term:
        return True
    return term in patient.name.lower() or term in patient.email.lower() or term in patient.phone


class PatientRecords:
    """Patient profiles and histories, scoped by the caller's session."""

    def __init__(
        self,
        repository: HospitalRepository,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.clock = clock
        self.validator = PatientProfileValidator()

    def _profile(self, patient: Patient) -> PatientProfile:
        errors = self.validator.validate(patient.to_document())
        return PatientProfile(patient=patient, missing_fields=sorted({error.field for error in errors}))

    async def _own_patient(self, session: Session) -> Patient:
        require_role(session, Role.PATIENT)
        patient = await self.repository.get_patient(session.user_id)
        if patient is None:
            raise RecordNotFound("patients", session.user_id)
        return patient

    # =========================================================================
    # OWN PROFILE
    # =========================================================================

    async def get_profile(self, session: Session) -> PatientProfile:
        return self._profile(await self._own_patient(session))

    async def update_profile(self, session: Session, changes: Dict[str, Any]) -> PatientProfile:
        """
        Apply profile edits and return the updated profile.

        The merged profile must pass ``PatientProfileValidator``; nothing is
        written otherwise.
        """
        patient = await self._own_patient(session)
        unknown = sorted(set(changes) - set(EDITABLE_PROFILE_FIELDS))
        if unknown:
            raise InvalidRequest(f"Fields cannot be edited: {', '.join(unknown)}")

        cleaned = {name: value.strip() if isinstance(value, str) else value for name, value in changes.items()}
        merged = patient.model_copy(update=cleaned)
        errors = self.validator.validate(merged.to_document())
        if errors:
            raise InvalidRequest("; ".join(error.message for error in errors))

        document = {to_camel(name): value for name, value in cleaned.items()}
        document["updatedAt"] = self.clock().isoformat()
        updated = await self.repository.update_patient(patient.id, document)
        logger.info(f"Patient {patient.id} updated profile fields {sorted(cleaned)}")
        return self._profile(updated)

    # =========================================================================
    # DIRECTORY
    # =========================================================================

    async def list_patients(self, session: Session, search: str = "") -> List[Patient]:
        """All patients for the admin; a doctor sees the patients they have appointments with."""
        require_role(session, Role.DOCTOR, Role.ADMIN)
        if isinstance(session, DoctorSession):
            seen = []
            for appointment in await self.repository.list_appointments(doctor_id=session.doctor_id):
                if appointment.patient_id not in seen:
                    seen.append(appointment.patient_id)
            patients = [await self.repository.get_patient(patient_id) for patient_id in seen]
            patients = sorted((p for p in patients if p is not None), key=lambda p: p.name.lower())
        else:
            patients = await self.repository.list_patients()
        return [patient for patient in patients if matches_search(patient, search)]

    async def patient_history(self, session: Session, patient_id: str) -> PatientHistory:
        """Appointments (newest first) and lab tests for one patient."""
        require_role(session, Role.DOCTOR, Role.ADMIN)
        patient = await self.repository.get_patient(patient_id)
        if patient is None:
            raise RecordNotFound("patients", patient_id)

        if isinstance(session, DoctorSession):
            appointments = await self.repository.list_appointments(
                patient_id=patient_id, doctor_id=session.doctor_id
            )
            if not appointments:
                raise PermissionDenied("You can only view the history of your own patients")
        else:
            appointments = await self.repository.list_appointments(patient_id=patient_id)

        lab_tests = await self.repository.list_lab_tests(patient_id=patient_id)
        return PatientHistory(patient=patient, appointments=appointments, lab_tests=lab_tests)

    async def delete_patient(self, session: Session, patient_id: str):
        require_role(session, Role.ADMIN)
        await self.repository.delete_patient(patient_id)
        logger.info(f"Admin {session.email} deleted patient {patient_id}")
