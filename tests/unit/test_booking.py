"""
Unit tests for booking submission
"""

import asyncio

from use_cases.hospital.booking import GENERIC_FAILURE
from use_cases.hospital.identity import ANONYMOUS, PatientSession
from tests.conftest import PATIENT


def book(booking, session, **kwargs):
    kwargs.setdefault("doctor_id", "dr-ahmed")
    kwargs.setdefault("date_phrase", "tomorrow")
    kwargs.setdefault("time_phrase", "afternoon")
    return asyncio.run(booking.submit_appointment(session, **kwargs))


class TestAppointmentBooking:

    def test_books_one_scheduled_paid_appointment(self, booking, store, patient_session):
        result = book(booking, patient_session, reason="Chest pain", symptoms="Shortness of breath")

        assert result.success
        assert store.writes == 1
        stored = store.all("appointments")
        assert len(stored) == 1
        record = stored[0]
        assert record["id"] == result.record_id
        assert record["status"] == "scheduled"
        assert record["paymentStatus"] == "paid"
        assert record["paymentDate"] == "2024-01-01"
        assert record["date"] == "2024-01-02"
        assert record["time"] == "14:00"
        assert record["patientId"] == PATIENT["id"]
        assert record["patientPhone"] == PATIENT["phone"]
        assert record["doctorName"] == "Dr. Sara Ahmed"
        assert record["departmentName"] == "Cardiology"
        assert record["reason"] == "Chest pain"

    def test_fee_uses_doctor_and_department_percentages(self, booking, store, patient_session):
        book(booking, patient_session)
        record = store.all("appointments")[0]
        assert record["baseFee"] == 1200
        assert record["totalFee"] == 1380

    def test_base_fee_falls_back_to_default(self, booking, store, patient_session):
        del store.collections["global"]["baseAppointmentFee"]
        result = book(booking, patient_session)
        assert result.record.base_fee == 1200

    def test_configured_base_fee_is_used(self, booking, store, patient_session):
        store.seed("global", {"id": "baseAppointmentFee", "value": 2000})
        result = book(booking, patient_session)
        assert result.record.total_fee == 2000 + 200 + 100

    def test_fractional_base_fee_rounds_half_up(self, booking, store, patient_session):
        store.seed("global", {"id": "baseAppointmentFee", "value": 1199.5})
        result = book(booking, patient_session)
        assert result.record.base_fee == 1200

    def test_unknown_doctor_books_without_surcharges(self, booking, store, patient_session):
        result = book(booking, patient_session, doctor_id="missing", department_name="Nowhere")
        assert result.success
        assert result.record.total_fee == 1200
        assert result.record.department_name == "Nowhere"

    def test_department_resolved_by_name(self, booking, store, patient_session):
        store.collections["doctors"]["dr-ahmed"]["departmentId"] = ""
        result = book(booking, patient_session, department_name="cardiology")
        assert result.record.department_id == "cardiology"
        assert result.record.total_fee == 1380

    def test_missing_profile_writes_nothing(self, booking, store):
        stranger = PatientSession(user_id="u-9", email="nobody@example.com")
        result = book(booking, stranger)

        assert not result.success
        assert result.error_code == "profile_not_found"
        assert store.writes == 0
        assert store.all("appointments") == []

    def test_ambiguous_profile_writes_nothing(self, booking, store, patient_session):
        store.seed("patients", dict(PATIENT, id="patient-2"))
        result = book(booking, patient_session)
        assert result.error_code == "profile_ambiguous"
        assert store.writes == 0

    def test_anonymous_session_rejected(self, booking, store):
        result = book(booking, ANONYMOUS)
        assert result.error_code == "not_signed_in"
        assert store.writes == 0

    def test_duplicate_submissions_create_duplicate_records(self, booking, store, patient_session):
        first = book(booking, patient_session)
        second = book(booking, patient_session)

        assert first.success and second.success
        assert first.record_id != second.record_id
        assert len(store.all("appointments")) == 2

    def test_store_failure_returns_generic_failure(self, booking, store, patient_session):
        store.fail_writes = True
        result = book(booking, patient_session)

        assert not result.success
        assert result.message == GENERIC_FAILURE
        assert result.error_code == "store_unavailable"
        assert store.all("appointments") == []

    def test_store_read_failure_returns_generic_failure(self, booking, store, patient_session):
        store.fail_reads = True
        result = book(booking, patient_session)
        assert not result.success
        assert result.message == GENERIC_FAILURE
        assert store.writes == 0

    def test_negative_stored_fee_percentage_returns_generic_failure(self, booking, store, patient_session):
        store.seed("doctors", dict(store.collections["doctors"]["dr-ahmed"], feePercentage=-10))
        result = book(booking, patient_session)

        assert not result.success
        assert result.message == GENERIC_FAILURE
        assert result.error_code == "booking_failed"
        assert store.writes == 0

    def test_malformed_doctor_document_returns_generic_failure(self, booking, store, patient_session):
        store.seed("doctors", {"id": "dr-broken", "departmentId": "cardiology"})
        result = book(booking, patient_session, doctor_id="dr-broken")

        assert not result.success
        assert result.error_code == "booking_failed"
        assert store.all("appointments") == []

    def test_past_slot_is_clamped(self, booking, patient_session):
        result = book(booking, patient_session, date_phrase="2023-06-01", time_phrase="morning")
        assert result.clamped
        assert (result.record.date, result.record.time) == ("2024-01-01", "11:00")


class TestLabTestBooking:

    def test_books_selected_tests(self, booking, store, patient_session):
        result = asyncio.run(booking.submit_lab_test(
            patient_session, ["cbc", "lipid"], "tomorrow", "morning", "Fasting"
        ))

        assert result.success
        assert store.writes == 1
        record = store.all("labTests")[0]
        assert [t["id"] for t in record["tests"]] == ["cbc", "lipid"]
        assert record["totalPrice"] == 2000
        assert record["status"] == "scheduled"
        assert record["paymentStatus"] == "paid"
        assert record["specialInstructions"] == "Fasting"
        assert record["results"] is None

    def test_repeated_ids_are_charged_once(self, booking, store, patient_session):
        result = asyncio.run(booking.submit_lab_test(patient_session, ["cbc", "cbc"], "tomorrow", "morning"))

        assert result.success
        assert result.record.total_price == 800
        assert [t["id"] for t in store.all("labTests")[0]["tests"]] == ["cbc"]

    def test_tests_follow_catalogue_order(self, booking, patient_session):
        result = asyncio.run(booking.submit_lab_test(patient_session, ["lipid", "cbc"], "tomorrow", "morning"))
        assert [t.id for t in result.record.tests] == ["cbc", "lipid"]

    def test_malformed_catalogue_entry_returns_generic_failure(self, booking, store, patient_session):
        store.seed("availableLabTests", {"id": "bad", "name": "Bad", "price": "free"})
        result = asyncio.run(booking.submit_lab_test(patient_session, ["cbc"], "tomorrow", "morning"))
        assert result.error_code == "booking_failed"
        assert store.writes == 0

    def test_unknown_tests_rejected(self, booking, store, patient_session):
        result = asyncio.run(booking.submit_lab_test(patient_session, ["nope"], "tomorrow", "morning"))
        assert result.error_code == "no_tests_selected"
        assert store.writes == 0

    def test_missing_profile_writes_nothing(self, booking, store):
        stranger = PatientSession(user_id="u-9", email="nobody@example.com")
        result = asyncio.run(booking.submit_lab_test(stranger, ["cbc"], "tomorrow", "morning"))
        assert result.error_code == "profile_not_found"
        assert store.writes == 0


def test_fee_quote(booking):
    fees = asyncio.run(booking.quote_fee(doctor_id="dr-ahmed"))
    assert fees.to_dict() == {"baseFee": 1200, "doctorFee": 120, "departmentFee": 60, "totalFee": 1380}


def test_booking_result_to_dict(booking, patient_session):
    data = book(booking, patient_session).to_dict()
    assert data["success"] is True
    assert data["record"]["totalFee"] == 1380
    assert "errorCode" not in data
