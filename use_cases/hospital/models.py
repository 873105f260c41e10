"""
Hospital Read Models.

Each model mirrors one document in a store collection. Documents use
camelCase field names (``feePercentage``, ``totalFee``); the models expose
snake_case attributes and round-trip through ``from_document`` /
``to_document``.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    ANONYMOUS = "anonymous"
    PATIENT = "patient"
    DOCTOR = "doctor"
    LAB_OPERATOR = "lab_operator"
    ADMIN = "admin"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"
    RESCHEDULE_REQUESTED = "reschedule_requested"


class LabTestStatus(str, Enum):
    SCHEDULED = "scheduled"
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    TEST_TAKEN = "test-taken"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"


class DocumentModel(BaseModel):
    """Base for models stored as camelCase documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=True,
    )

    id: Optional[str] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        return cls.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        """Serialize for the store; the id lives outside the payload."""
        return self.model_dump(by_alias=True, mode="json", exclude={"id"})


class Patient(DocumentModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    date_of_birth: str = ""
    gender: str = ""
    address: str = ""
    blood_type: str = ""
    allergies: str = ""
    medical_history: str = ""
    insurance_info: str = ""
    emergency_contact: str = ""
    created_at: str = ""
    updated_at: str = ""

    @field_validator(
        "address", "blood_type", "allergies", "medical_history", "insurance_info", "emergency_contact",
        mode="before",
    )
    @classmethod
    def blank_optional_text(cls, value):
        return "" if value is None else value


class Department(DocumentModel):
    name: str
    description: str = ""
    fee_percentage: float = 0

    @field_validator("fee_percentage", mode="before")
    @classmethod
    def default_fee_percentage(cls, value):
        return 0 if value in (None, "") else value


class Doctor(DocumentModel):
    name: str
    email: str = ""
    specialization: str = ""
    department_id: str = ""
    department_name: str = ""
    fee_percentage: float = 0
    availability: str = ""

    @field_validator("fee_percentage", mode="before")
    @classmethod
    def default_fee_percentage(cls, value):
        return 0 if value in (None, "") else value


class AvailableLabTest(DocumentModel):
    name: str
    description: str = ""
    price: float = 0
    preparation_instructions: str = ""

    @field_validator("price", mode="before")
    @classmethod
    def default_price(cls, value):
        return 0 if value in (None, "") else value


class LabTestItem(BaseModel):
    """One test inside a lab test order (stored as ``{id, name, price}``)."""
    id: str
    name: str
    price: float = 0


class Appointment(DocumentModel):
    patient_id: str
    patient_name: str = ""
    patient_email: str = ""
    patient_phone: str = ""
    doctor_id: str
    doctor_name: str = ""
    department_id: str = ""
    department_name: str = ""
    date: str
    time: str
    reason: str = ""
    symptoms: str = ""
    previous_visit: str = "no"
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    base_fee: int
    total_fee: int
    payment_status: PaymentStatus = PaymentStatus.PAID
    payment_date: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    completed_at: Optional[str] = None
    completed_by: Optional[str] = None
    no_show: Optional[bool] = None


class LabTestOrder(DocumentModel):
    patient_id: str
    patient_name: str = ""
    patient_email: str = ""
    tests: List[LabTestItem] = Field(default_factory=list)
    date: str
    time: str
    total_price: float = 0
    special_instructions: str = ""
    status: LabTestStatus = LabTestStatus.SCHEDULED
    payment_status: PaymentStatus = PaymentStatus.PAID
    results: Optional[Any] = None
    created_at: str = ""
    updated_at: str = ""


class Notification(DocumentModel):
    type: str = "general"
    message: str = ""
    status: str = ""
    read: bool = False
    created_at: str = ""
