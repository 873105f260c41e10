"""
Booking Assistant.

A rule-based conversational front end to the booking workflow. Each message
moves the conversation one step through the appointment or lab test flow;
the collected answers are submitted through ``BookingService``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from core.session import SessionManager

from .booking import BookingService
from .identity import PatientSession, Session
from .models import AvailableLabTest, Department, Doctor
from .repository import HospitalRepository
from .session import AppointmentFlowStep, BookingFlow, BookingSessionContext, LabTestFlowStep

logger = logging.getLogger(__name__)

CANCEL_WORDS = frozenset({"cancel", "stop", "start over", "reset"})

# Abbreviation -> keywords looked for in test names and descriptions
LAB_TEST_ALIASES: Dict[str, Sequence[str]] = {
    "cbc": ("blood count", "cbc"),
    "lft": ("liver",),
    "rft": ("kidney",),
    "lipid": ("lipid", "cholesterol"),
}

NO_ANSWERS = frozenset({"no", "none", "nothing", "n/a", "na", "skip"})


@dataclass
class AssistantReply:
    text: str
    options: List[Dict[str, Any]] = field(default_factory=list)
    booking: Optional[Dict[str, Any]] = None
    step: str = "not_started"

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "options": self.options, "booking": self.booking, "step": self.step}


# =============================================================================
# MATCHING HELPERS
# =============================================================================

def _pick_by_number(text: str, options: Sequence[Any]) -> Optional[Any]:
    match = re.fullmatch(r"\s*(?:#|no\.?\s*|number\s*)?(\d+)\s*\.?\s*", text)
    if match:
        index = int(match.group(1)) - 1
        if 0 <= index < len(options):
            return options[index]
    return None


def _normalize_name(name: str) -> str:
    return re.sub(r"^(dr\.?\s+)", "", (name or "").strip().lower())


def match_department(text: str, departments: Sequence[Department]) -> Optional[Department]:
    picked = _pick_by_number(text, departments)
    if picked:
        return picked
    lowered = text.strip().lower()
    for department in departments:
        if department.name.lower() in lowered or lowered == department.name.lower():
            return department
    return None


def match_doctor(text: str, doctors: Sequence[Doctor]) -> Optional[Doctor]:
    picked = _pick_by_number(text, doctors)
    if picked:
        return picked
    wanted = _normalize_name(text)
    if not wanted:
        return None
    for doctor in doctors:
        name = _normalize_name(doctor.name)
        if name and (name in wanted or wanted in name):
            return doctor
    return None


def match_lab_tests(text: str, catalogue: Sequence[AvailableLabTest]) -> List[AvailableLabTest]:
    """
    Tests named in ``text``: list numbers, abbreviations (cbc, lft, rft,
    lipid) or full test names. Catalogue order is kept, duplicates dropped.
    """
    lowered = text.strip().lower()
    wanted_ids = []

    for number in re.findall(r"\b(\d+)\b", lowered):
        index = int(number) - 1
        if 0 <= index < len(catalogue):
            wanted_ids.append(catalogue[index].id)

    words = set(re.findall(r"[a-z]+", lowered))
    for alias, keywords in LAB_TEST_ALIASES.items():
        if alias not in words and not any(keyword in lowered for keyword in keywords):
            continue
        for test in catalogue:
            haystack = f"{test.name} {test.description}".lower()
            if any(keyword in haystack for keyword in keywords):
                wanted_ids.append(test.id)
                break

    for test in catalogue:
        if test.name and test.name.lower() in lowered:
            wanted_ids.append(test.id)

    return [test for test in catalogue if test.id in wanted_ids]


def is_lab_test_request(text: str) -> bool:
    lowered = text.lower()
    words = set(re.findall(r"[a-z]+", lowered))
    if words & set(LAB_TEST_ALIASES):
        return True
    return "lab" in words or "test" in words or "tests" in words


def is_appointment_request(text: str) -> bool:
    lowered = text.lower()
    return "appointment" in lowered or "book" in lowered or ("see" in lowered and "doctor" in lowered)


def _options(records: Sequence[Any]) -> List[Dict[str, Any]]:
    return [{"id": record.id, "name": record.name} for record in records]


def _numbered(records: Sequence[Any], detail=None) -> str:
    lines = []
    for index, record in enumerate(records, start=1):
        extra = detail(record) if detail else ""
        lines.append(f"{index}. {record.name}{f' ({extra})' if extra else ''}")
    return "\n".join(lines)


# =============================================================================
# ASSISTANT
# =============================================================================

class BookingAssistant:
    """Routes each message to the step of the active booking flow."""

    def __init__(
        self,
        repository: HospitalRepository,
        booking: BookingService,
        sessions: Optional[SessionManager] = None,
    ):
        self.repository = repository
        self.booking = booking
        self.sessions = sessions or SessionManager(BookingSessionContext)

    async def handle(self, session: Session, conversation_id: str, message: str) -> AssistantReply:
        if not isinstance(session, PatientSession):
            return AssistantReply(
                "Please sign in as a patient to book appointments or lab tests."
            )

        context: BookingSessionContext = self.sessions.get_or_create(f"{session.user_id}:{conversation_id}")
        text = (message or "").strip()
        lowered = text.lower()
        logger.debug(f"Assistant message in {conversation_id} at step {context.current_step}")

        if lowered in CANCEL_WORDS:
            context.reset()
            return self._reply(context, "Okay, I've cancelled that booking. How else can I help?")

        if context.flow == BookingFlow.APPOINTMENT:
            return await self._continue_appointment(session, context, text)
        if context.flow == BookingFlow.LAB_TEST:
            return await self._continue_lab_test(session, context, text)

        if "appointment" in lowered:
            return await self._start_appointment(context, text)
        if is_lab_test_request(text):
            return await self._start_lab_test(context, text)
        if is_appointment_request(text):
            return await self._start_appointment(context, text)

        return self._reply(
            context,
            "I can book a doctor's appointment or schedule lab tests. "
            "Say \"book an appointment\" or \"schedule a lab test\" to begin.",
        )

    def _reply(self, context: BookingSessionContext, text: str, options=None, booking=None) -> AssistantReply:
        return AssistantReply(text=text, options=options or [], booking=booking, step=context.current_step)

    # =========================================================================
    # APPOINTMENT FLOW
    # =========================================================================

    async def _start_appointment(self, context: BookingSessionContext, text: str) -> AssistantReply:
        context.start_appointment()
        doctor = match_doctor(text, await self.repository.list_doctors()) if re.search(r"\bdr\b", text.lower()) else None
        if doctor:
            context.set_doctor(doctor.id, doctor.name, doctor.department_id, doctor.department_name)
            return self._reply(context, self._date_prompt(f"Great! You've selected {doctor.name}."))

        departments = await self.repository.list_departments()
        if not departments:
            context.reset()
            return self._reply(context, "No departments are available for booking right now.")
        context.set_displayed_options(_options(departments))
        return self._reply(
            context,
            f"Which department would you like to visit?\n\n{_numbered(departments)}",
            options=context.displayed_options,
        )

    async def _continue_appointment(
        self, session: PatientSession, context: BookingSessionContext, text: str
    ) -> AssistantReply:
        step = context.appointment_step

        if step == AppointmentFlowStep.DEPARTMENT:
            department = match_department(text, await self.repository.list_departments())
            if department is None:
                return self._reply(context, "Please choose a department by name or number.",
                                   options=context.displayed_options)
            doctors = [
                doctor for doctor in await self.repository.list_doctors()
                if doctor.department_id == department.id
                or doctor.department_name.lower() == department.name.lower()
            ]
            if not doctors:
                return self._reply(
                    context,
                    f"We don't currently have doctors available in {department.name}. "
                    "Would you like to choose another department?",
                    options=context.displayed_options,
                )
            context.set_department(department.id, department.name)
            context.set_displayed_options(_options(doctors))
            return self._reply(
                context,
                f"For {department.name}, we have the following doctors available:\n\n"
                f"{_numbered(doctors, lambda d: d.availability)}\n\n"
                "Please select a doctor by name or number.",
                options=context.displayed_options,
            )

        if step == AppointmentFlowStep.DOCTOR:
            shown = [option["id"] for option in context.displayed_options]
            by_id = {doctor.id: doctor for doctor in await self.repository.list_doctors()}
            doctor = match_doctor(text, [by_id[doctor_id] for doctor_id in shown if doctor_id in by_id])
            if doctor is None:
                return self._reply(context, "Please choose a doctor by name or number.",
                                   options=context.displayed_options)
            context.set_doctor(doctor.id, doctor.name)
            return self._reply(context, self._date_prompt(f"Great! You've selected {doctor.name}."))

        if step == AppointmentFlowStep.DATE:
            context.date_phrase = text
            context.advance(AppointmentFlowStep.TIME)
            return self._reply(context, "What time would you prefer? (e.g., morning, afternoon, 3:30 pm)")

        if step == AppointmentFlowStep.TIME:
            context.time_phrase = text
            context.advance(AppointmentFlowStep.REASON)
            return self._reply(context, "What is the reason for your visit?")

        if step == AppointmentFlowStep.REASON:
            context.reason = text
            context.advance(AppointmentFlowStep.SYMPTOMS)
            return self._reply(context, "Please describe any symptoms you're experiencing.")

        if step == AppointmentFlowStep.SYMPTOMS:
            context.symptoms = text
            context.advance(AppointmentFlowStep.PREVIOUS_VISIT)
            return self._reply(
                context,
                f"Have you previously visited {context.doctor_name} for this or a related issue? "
                "Please answer with 'yes' or 'no'.",
            )

        previous_visit = "yes" if "yes" in text.lower() else "no"
        result = await self.booking.submit_appointment(
            session,
            doctor_id=context.doctor_id,
            date_phrase=context.date_phrase,
            time_phrase=context.time_phrase,
            department_id=context.department_id or None,
            department_name=context.department_name or None,
            reason=context.reason,
            symptoms=context.symptoms,
            previous_visit=previous_visit,
        )
        context.reset()
        return self._reply(context, result.message, booking=result.to_dict())

    def _date_prompt(self, prefix: str) -> str:
        return f"{prefix} What date would you prefer? (e.g., tomorrow, next Monday, June 15th)"

    # =========================================================================
    # LAB TEST FLOW
    # =========================================================================

    async def _start_lab_test(self, context: BookingSessionContext, text: str) -> AssistantReply:
        context.start_lab_test()
        catalogue = await self.repository.list_available_lab_tests()
        if not catalogue:
            context.reset()
            return self._reply(context, "No lab tests are available for booking right now.")

        selected = match_lab_tests(text, catalogue)
        if selected:
            context.set_tests([t.id for t in selected], [t.name for t in selected])
            return self._reply(
                context,
                f"I'll schedule: {', '.join(context.test_names)}. "
                "What date would you prefer? (e.g., tomorrow, next Monday, June 15th)",
            )

        context.set_displayed_options(_options(catalogue))
        return self._reply(
            context,
            "Which tests would you like? You can answer with names, numbers or "
            f"abbreviations like CBC, LFT, RFT or lipid.\n\n{_numbered(catalogue, lambda t: f'{t.price:g}')}",
            options=context.displayed_options,
        )

    async def _continue_lab_test(
        self, session: PatientSession, context: BookingSessionContext, text: str
    ) -> AssistantReply:
        step = context.lab_step

        if step == LabTestFlowStep.TESTS:
            selected = match_lab_tests(text, await self.repository.list_available_lab_tests())
            if not selected:
                return self._reply(context, "I couldn't match those tests. Please choose by name or number.",
                                   options=context.displayed_options)
            context.set_tests([t.id for t in selected], [t.name for t in selected])
            return self._reply(
                context,
                f"I'll schedule: {', '.join(context.test_names)}. What date would you prefer?",
            )

        if step == LabTestFlowStep.DATE:
            context.date_phrase = text
            context.advance(LabTestFlowStep.TIME)
            return self._reply(context, "What time would you prefer? (e.g., morning, 10:30)")

        if step == LabTestFlowStep.TIME:
            context.time_phrase = text
            context.advance(LabTestFlowStep.INSTRUCTIONS)
            return self._reply(context, "Any special instructions for the lab? Say 'none' if not.")

        context.special_instructions = "" if text.lower() in NO_ANSWERS else text
        result = await self.booking.submit_lab_test(
            session,
            test_ids=context.test_ids,
            date_phrase=context.date_phrase,
            time_phrase=context.time_phrase,
            special_instructions=context.special_instructions,
        )
        context.reset()
        return self._reply(context, result.message, booking=result.to_dict())
