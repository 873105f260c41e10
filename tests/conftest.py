"""
Shared pytest fixtures for Care-Coord tests
"""

import copy
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from auth import hash_password
from core.data import DocumentStore, QueryOptions, apply_query_options
from core.errors import RecordNotFound, StoreError
from use_cases.hospital.booking import BookingService
from use_cases.hospital.identity import PatientSession
from use_cases.hospital.repository import HospitalRepository

NOW = datetime(2024, 1, 1, 10, 0)
PATIENT_PASSWORD = "secret123"


class FakeDocumentStore(DocumentStore):
    """In-memory DocumentStore that counts writes and can be told to fail."""

    poll_interval = 0

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self.writes = 0
        self.fail_reads = False
        self.fail_writes = False
        self._next_id = 0

    def seed(self, collection: str, *documents: dict):
        for document in documents:
            self.collections.setdefault(collection, {})[document["id"]] = copy.deepcopy(document)

    def all(self, collection: str) -> List[dict]:
        return [copy.deepcopy(doc) for doc in self.collections.get(collection, {}).values()]

    def _check(self, writing: bool):
        if writing and self.fail_writes:
            raise StoreError("store offline")
        if not writing and self.fail_reads:
            raise StoreError("store offline")

    async def query(self, collection: str, options: Optional[QueryOptions] = None) -> List[dict]:
        self._check(writing=False)
        return apply_query_options(self.all(collection), options)

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        self._check(writing=False)
        document = self.collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(document) if document else None

    async def add(self, collection: str, data: dict) -> dict:
        self._check(writing=True)
        self._next_id += 1
        document = dict(copy.deepcopy(data), id=f"{collection}-{self._next_id}")
        self.collections.setdefault(collection, {})[document["id"]] = document
        self.writes += 1
        return copy.deepcopy(document)

    async def update(self, collection: str, doc_id: str, changes: dict) -> dict:
        self._check(writing=True)
        document = self.collections.get(collection, {}).get(doc_id)
        if document is None:
            raise RecordNotFound(collection, doc_id)
        document.update(copy.deepcopy(changes))
        self.writes += 1
        return copy.deepcopy(document)

    async def set(self, collection: str, doc_id: str, data: dict) -> dict:
        self._check(writing=True)
        document = dict(copy.deepcopy(data), id=doc_id)
        self.collections.setdefault(collection, {})[doc_id] = document
        self.writes += 1
        return copy.deepcopy(document)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._check(writing=True)
        if doc_id not in self.collections.get(collection, {}):
            raise RecordNotFound(collection, doc_id)
        del self.collections[collection][doc_id]
        self.writes += 1


PATIENT = {
    "id": "patient-1",
    "name": "Ayesha Malik",
    "email": "ayesha@example.com",
    "phone": "03001234567",
    "dateOfBirth": "1990-05-04",
    "gender": "female",
}

DEPARTMENT = {"id": "cardiology", "name": "Cardiology", "description": "Heart care", "feePercentage": 5}

DOCTOR = {
    "id": "dr-ahmed",
    "name": "Dr. Sara Ahmed",
    "email": "sara.ahmed@carecoord.local",
    "specialization": "Cardiologist",
    "departmentId": "cardiology",
    "departmentName": "Cardiology",
    "feePercentage": 10,
    "availability": "Mon-Fri",
}

LAB_TESTS = [
    {"id": "cbc", "name": "Complete Blood Count (CBC)", "description": "Blood cells", "price": 800},
    {"id": "lft", "name": "Liver Function Test", "description": "Liver enzymes", "price": 1500},
    {"id": "rft", "name": "Renal Function Test", "description": "Kidney markers", "price": 1400},
    {"id": "lipid", "name": "Lipid Profile", "description": "Cholesterol", "price": 1200},
]


@pytest.fixture
def store():
    """A store seeded with one patient, department, doctor and the lab catalogue."""
    fake = FakeDocumentStore()
    fake.seed("patients", dict(PATIENT, passwordHash=hash_password(PATIENT_PASSWORD)))
    fake.seed("departments", DEPARTMENT)
    fake.seed("doctors", dict(DOCTOR, hashedPassword=hash_password("doctor123")))
    fake.seed("availableLabTests", *LAB_TESTS)
    fake.seed("labOperators", {
        "id": "lab-1", "name": "Main Lab", "email": "lab@carecoord.local",
        "hashedPassword": hash_password("lab123"),
    })
    fake.seed("global", {"id": "baseAppointmentFee", "value": 1200})
    return fake


@pytest.fixture
def repository(store):
    return HospitalRepository(store, cache_ttl_seconds=0)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def booking(repository, clock):
    return BookingService(repository, clock=clock)


@pytest.fixture
def patient_session():
    return PatientSession(user_id=PATIENT["id"], email=PATIENT["email"], name=PATIENT["name"])
