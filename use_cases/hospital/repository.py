"""
Hospital Repository.

Typed access to the hospital collections on top of a ``DocumentStore``.
Reference data (doctors, departments, the lab test catalogue) is read
through a ``CachingRepository``; bookings always hit the store.
"""

import logging
from typing import List, Optional

from config import settings
from core.data import CachingRepository, CollectionReader, DocumentStore, FieldFilter, QueryOptions

from .domain.services import round_half_up
from .models import (
    Appointment,
    AvailableLabTest,
    Department,
    Doctor,
    LabTestOrder,
    Patient,
)

logger = logging.getLogger(__name__)

GLOBAL_COLLECTION = "global"
BASE_FEE_DOCUMENT = "baseAppointmentFee"


class HospitalRepository:
    """Reads and writes hospital records."""

    def __init__(self, store: DocumentStore, cache_ttl_seconds: Optional[int] = None):
        ttl = settings.reference_cache_ttl_seconds if cache_ttl_seconds is None else cache_ttl_seconds
        self.store = store
        self._doctors = CachingRepository(CollectionReader(store, "doctors"), ttl)
        self._departments = CachingRepository(CollectionReader(store, "departments"), ttl)
        self._lab_catalogue = CachingRepository(CollectionReader(store, "availableLabTests"), ttl)

    def invalidate_reference_data(self):
        self._doctors.invalidate()
        self._departments.invalidate()
        self._lab_catalogue.invalidate()

    # =========================================================================
    # PEOPLE
    # =========================================================================

    async def find_patients_by_email(self, email: str) -> List[Patient]:
        documents = await self.store.query("patients", QueryOptions.where(email=email))
        return [Patient.from_document(doc) for doc in documents]

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        document = await self.store.get("patients", patient_id)
        return Patient.from_document(document) if document else None

    async def list_patients(self) -> List[Patient]:
        documents = await self.store.query("patients", QueryOptions(order_by="name"))
        return [Patient.from_document(doc) for doc in documents]

    async def update_patient(self, patient_id: str, changes: dict) -> Patient:
        document = await self.store.update("patients", patient_id, changes)
        return Patient.from_document(document)

    async def delete_patient(self, patient_id: str):
        await self.store.delete("patients", patient_id)

    async def find_by_email(self, collection: str, email: str) -> Optional[dict]:
        """Raw lookup used by sign-in (password fields are not on the read models)."""
        documents = await self.store.query(collection, QueryOptions.where(email=email))
        return documents[0] if documents else None

    # =========================================================================
    # REFERENCE DATA
    # =========================================================================

    async def list_doctors(self) -> List[Doctor]:
        return [Doctor.from_document(doc) for doc in await self._doctors.get_all()]

    async def get_doctor(self, doctor_id: str) -> Optional[Doctor]:
        document = await self._doctors.get_by_id(doctor_id)
        return Doctor.from_document(document) if document else None

    async def list_departments(self) -> List[Department]:
        return [Department.from_document(doc) for doc in await self._departments.get_all()]

    async def get_department(self, department_id: str) -> Optional[Department]:
        document = await self._departments.get_by_id(department_id)
        return Department.from_document(document) if document else None

    async def get_department_by_name(self, name: str) -> Optional[Department]:
        document = await self._departments.get_by_name(name)
        return Department.from_document(document) if document else None

    async def list_available_lab_tests(self) -> List[AvailableLabTest]:
        return [AvailableLabTest.from_document(doc) for doc in await self._lab_catalogue.get_all()]

    async def get_available_lab_tests(self, test_ids: List[str]) -> List[AvailableLabTest]:
        """Catalogue entries selected by ``test_ids``, once each, in catalogue order."""
        selected = set(test_ids)
        return [test for test in await self.list_available_lab_tests() if test.id in selected]

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    async def get_base_fee(self) -> int:
        document = await self.store.get(GLOBAL_COLLECTION, BASE_FEE_DOCUMENT)
        if document and document.get("value") is not None:
            try:
                return round_half_up(float(document["value"]))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed base fee: {document['value']!r}")
        return settings.default_base_appointment_fee

    async def set_base_fee(self, value: int) -> int:
        await self.store.set(GLOBAL_COLLECTION, BASE_FEE_DOCUMENT, {"value": value})
        logger.info(f"Base appointment fee set to {value}")
        return value

    # =========================================================================
    # APPOINTMENTS
    # =========================================================================

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        document = await self.store.get("appointments", appointment_id)
        return Appointment.from_document(document) if document else None

    async def list_appointments(
        self,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
    ) -> List[Appointment]:
        options = QueryOptions(order_by="date", order_desc=True)
        if patient_id:
            options.filters.append(FieldFilter("patientId", patient_id))
        if doctor_id:
            options.filters.append(FieldFilter("doctorId", doctor_id))
        return [Appointment.from_document(doc) for doc in await self.store.query("appointments", options)]

    async def add_appointment(self, appointment: Appointment) -> Appointment:
        document = await self.store.add("appointments", appointment.to_document())
        return Appointment.from_document(document)

    async def update_appointment(self, appointment_id: str, changes: dict) -> Appointment:
        document = await self.store.update("appointments", appointment_id, changes)
        return Appointment.from_document(document)

    # =========================================================================
    # LAB TESTS
    # =========================================================================

    async def get_lab_test(self, order_id: str) -> Optional[LabTestOrder]:
        document = await self.store.get("labTests", order_id)
        return LabTestOrder.from_document(document) if document else None

    async def list_lab_tests(self, patient_id: Optional[str] = None) -> List[LabTestOrder]:
        options = QueryOptions(order_by="date", order_desc=True)
        if patient_id:
            options.filters.append(FieldFilter("patientId", patient_id))
        return [LabTestOrder.from_document(doc) for doc in await self.store.query("labTests", options)]

    async def add_lab_test(self, order: LabTestOrder) -> LabTestOrder:
        document = await self.store.add("labTests", order.to_document())
        return LabTestOrder.from_document(document)

    async def update_lab_test(self, order_id: str, changes: dict) -> LabTestOrder:
        document = await self.store.update("labTests", order_id, changes)
        return LabTestOrder.from_document(document)

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    async def add_department(self, department: Department) -> Department:
        document = await self.store.add("departments", department.to_document())
        self._departments.invalidate()
        return Department.from_document(document)

    async def add_doctor(self, doctor: Doctor, hashed_password: str) -> Doctor:
        data = doctor.to_document()
        data["hashedPassword"] = hashed_password
        document = await self.store.add("doctors", data)
        self._doctors.invalidate()
        return Doctor.from_document(document)

    async def update_fee_percentage(self, collection: str, record_id: str, fee_percentage: float):
        await self.store.update(collection, record_id, {"feePercentage": fee_percentage})
        self.invalidate_reference_data()
