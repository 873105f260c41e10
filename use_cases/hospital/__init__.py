"""
Hospital Booking Use Case.

Structure:
- domain/: Pure business logic (no I/O)
  - scheduling.py: DateTimeNormalizer and its phrase vocabularies
  - services.py: FeeCalculator, AppointmentBuilder, LabTestOrderBuilder
  - policies.py: status transition policies, profile validation
- models.py: typed read models for every collection
- identity.py: typed sessions (anonymous, patient, doctor, lab operator, admin)
- repository.py: HospitalRepository over a DocumentStore
- cosmos_client.py: Cosmos DB DocumentStore
- booking.py: BookingService
- workflows.py: RecordLifecycle, AdminService
- patients.py: PatientRecords (profiles, patient directory, patient history)
- notifications.py: NotificationService and the feed reducer
- session.py / assistant.py: rule-based booking assistant
"""

from .booking import BookingService, BookingResult
from .workflows import RecordLifecycle, AdminService
from .patients import PatientRecords, PatientProfile, PatientHistory
from .notifications import NotificationService, NotificationFeed, reduce_notifications
from .assistant import BookingAssistant
from .repository import HospitalRepository
from .session import BookingSessionContext, AppointmentFlowStep, LabTestFlowStep

__all__ = [
    "BookingService",
    "BookingResult",
    "RecordLifecycle",
    "AdminService",
    "PatientRecords",
    "PatientProfile",
    "PatientHistory",
    "NotificationService",
    "NotificationFeed",
    "reduce_notifications",
    "BookingAssistant",
    "HospitalRepository",
    "BookingSessionContext",
    "AppointmentFlowStep",
    "LabTestFlowStep",
]
