"""
Unit tests for the rule-based booking assistant
"""

import asyncio

import pytest

from use_cases.hospital.assistant import BookingAssistant, is_lab_test_request, match_lab_tests
from use_cases.hospital.identity import ANONYMOUS
from use_cases.hospital.models import AvailableLabTest
from tests.conftest import LAB_TESTS


@pytest.fixture
def assistant(repository, booking):
    return BookingAssistant(repository, booking)


def converse(assistant, session, *messages, conversation="c1"):
    async def scenario():
        return [await assistant.handle(session, conversation, message) for message in messages]
    return asyncio.run(scenario())


CATALOGUE = [AvailableLabTest.from_document(doc) for doc in LAB_TESTS]


class TestLabTestMatching:

    @pytest.mark.parametrize("text, expected", [
        ("cbc", ["cbc"]),
        ("LFT and RFT", ["lft", "rft"]),
        ("lipid", ["lipid"]),
        ("cholesterol check", ["lipid"]),
        ("1, 3", ["cbc", "rft"]),
        ("Liver Function Test", ["lft"]),
    ])
    def test_matches(self, text, expected):
        assert [t.id for t in match_lab_tests(text, CATALOGUE)] == expected

    def test_no_match(self):
        assert match_lab_tests("x-ray", CATALOGUE) == []

    def test_intent(self):
        assert is_lab_test_request("I need a CBC")
        assert is_lab_test_request("schedule a lab test")
        assert not is_lab_test_request("book an appointment")


class TestAppointmentFlow:

    def test_full_conversation_books_once(self, assistant, store, patient_session):
        replies = converse(
            assistant, patient_session,
            "I want to book an appointment",
            "Cardiology",
            "1",
            "tomorrow",
            "afternoon",
            "Chest pain",
            "Breathless on stairs",
            "no",
        )

        assert replies[0].options == [{"id": "cardiology", "name": "Cardiology"}]
        assert replies[1].options == [{"id": "dr-ahmed", "name": "Dr. Sara Ahmed"}]
        assert replies[2].step == "date"
        assert "Dr. Sara Ahmed" in replies[6].text
        final = replies[-1]
        assert final.booking["success"] is True
        assert final.step == "not_started"

        stored = store.all("appointments")
        assert len(stored) == 1
        assert stored[0]["date"] == "2024-01-02"
        assert stored[0]["time"] == "14:00"
        assert stored[0]["symptoms"] == "Breathless on stairs"
        assert stored[0]["previousVisit"] == "no"
        assert stored[0]["totalFee"] == 1380

    def test_doctor_named_up_front(self, assistant, patient_session):
        reply = converse(assistant, patient_session, "book with Dr. Sara Ahmed")[0]
        assert reply.step == "date"

    def test_unknown_department_reprompts(self, assistant, patient_session):
        replies = converse(assistant, patient_session, "book an appointment", "dermatology")
        assert replies[1].step == "department"

    def test_cancel_resets_flow(self, assistant, store, patient_session):
        replies = converse(assistant, patient_session, "book an appointment", "Cardiology", "cancel")
        assert replies[-1].step == "not_started"
        assert store.writes == 0

    def test_appointment_about_test_results_starts_appointment_flow(self, assistant, store, patient_session):
        reply = converse(assistant, patient_session, "book an appointment to discuss my test results")[0]
        assert reply.step == "department"
        assert store.writes == 0

    def test_anonymous_told_to_sign_in(self, assistant, store):
        reply = converse(assistant, ANONYMOUS, "book an appointment")[0]
        assert "sign in" in reply.text
        assert store.writes == 0


class TestLabTestFlow:

    def test_direct_test_request(self, assistant, store, patient_session):
        replies = converse(assistant, patient_session, "CBC", "tomorrow", "morning", "none")
        assert replies[0].step == "date"
        assert replies[-1].booking["success"] is True
        record = store.all("labTests")[0]
        assert [t["id"] for t in record["tests"]] == ["cbc"]
        assert record["specialInstructions"] == ""
        assert record["date"] == "2024-01-02"
        assert record["time"] == "09:00"

    def test_choose_from_catalogue(self, assistant, store, patient_session):
        replies = converse(
            assistant, patient_session,
            "schedule a lab test", "lft, lipid", "next week", "10:30", "Fasting since 10pm",
        )
        assert len(replies[0].options) == len(LAB_TESTS)
        record = store.all("labTests")[0]
        assert record["totalPrice"] == 2700
        assert record["date"] == "2024-01-08"
        assert record["specialInstructions"] == "Fasting since 10pm"

    def test_conversations_are_independent(self, assistant, patient_session):
        converse(assistant, patient_session, "schedule a lab test", conversation="a")
        reply = converse(assistant, patient_session, "hello", conversation="b")[0]
        assert reply.step == "not_started"
