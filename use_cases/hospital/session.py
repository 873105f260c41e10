"""
Booking Assistant Session Context.

Extends the core SessionContext with the state of an appointment or lab
test booking conversation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from core.session import SessionContext


class BookingFlow(Enum):
    NONE = "none"
    APPOINTMENT = "appointment"
    LAB_TEST = "lab_test"


class AppointmentFlowStep(Enum):
    """Steps in the appointment booking flow."""
    NOT_STARTED = "not_started"
    DEPARTMENT = "department"
    DOCTOR = "doctor"
    DATE = "date"
    TIME = "time"
    REASON = "reason"
    SYMPTOMS = "symptoms"
    PREVIOUS_VISIT = "previous_visit"


class LabTestFlowStep(Enum):
    """Steps in the lab test scheduling flow."""
    NOT_STARTED = "not_started"
    TESTS = "tests"
    DATE = "date"
    TIME = "time"
    INSTRUCTIONS = "instructions"


@dataclass
class BookingSessionContext(SessionContext):
    """
    Session context for the booking assistant.

    Only one flow is active at a time; answers are collected as raw text and
    normalised when the booking is submitted.
    """

    flow: BookingFlow = BookingFlow.NONE
    appointment_step: AppointmentFlowStep = AppointmentFlowStep.NOT_STARTED
    lab_step: LabTestFlowStep = LabTestFlowStep.NOT_STARTED

    # Appointment selection
    department_id: str = ""
    department_name: str = ""
    doctor_id: str = ""
    doctor_name: str = ""

    # Lab test selection
    test_ids: List[str] = field(default_factory=list)
    test_names: List[str] = field(default_factory=list)

    # Collected answers
    date_phrase: str = ""
    time_phrase: str = ""
    reason: str = ""
    symptoms: str = ""
    special_instructions: str = ""

    def start_appointment(self):
        self.reset()
        self.flow = BookingFlow.APPOINTMENT
        self.appointment_step = AppointmentFlowStep.DEPARTMENT
        self.current_step = self.appointment_step.value
        self._touch()

    def start_lab_test(self):
        self.reset()
        self.flow = BookingFlow.LAB_TEST
        self.lab_step = LabTestFlowStep.TESTS
        self.current_step = self.lab_step.value
        self._touch()

    def advance(self, step):
        """Move the active flow to ``step``."""
        if isinstance(step, AppointmentFlowStep):
            self.appointment_step = step
        else:
            self.lab_step = step
        self.current_step = step.value
        self._touch()

    def set_department(self, department_id: str, name: str):
        self.department_id = department_id
        self.department_name = name
        self.advance(AppointmentFlowStep.DOCTOR)

    def set_doctor(self, doctor_id: str, name: str, department_id: str = "", department_name: str = ""):
        self.doctor_id = doctor_id
        self.doctor_name = name
        self.department_id = self.department_id or department_id
        self.department_name = self.department_name or department_name
        self.advance(AppointmentFlowStep.DATE)

    def set_tests(self, test_ids: List[str], names: List[str]):
        self.test_ids = list(test_ids)
        self.test_names = list(names)
        self.advance(LabTestFlowStep.DATE)

    def reset(self):
        """Forget the current booking; the conversation itself is kept."""
        self.flow = BookingFlow.NONE
        self.appointment_step = AppointmentFlowStep.NOT_STARTED
        self.lab_step = LabTestFlowStep.NOT_STARTED
        self.current_step = "not_started"
        self.department_id = ""
        self.department_name = ""
        self.doctor_id = ""
        self.doctor_name = ""
        self.test_ids = []
        self.test_names = []
        self.date_phrase = ""
        self.time_phrase = ""
        self.reason = ""
        self.symptoms = ""
        self.special_instructions = ""
        self.displayed_options = []
        self._touch()
