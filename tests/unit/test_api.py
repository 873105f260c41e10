"""
HTTP API tests using FastAPI's TestClient against the in-memory store
"""

import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from auth import hash_password
from config import settings
from core.events import Snapshot, SnapshotStream
from main import app, build_services, get_services
from tests.conftest import NOW, PATIENT, PATIENT_PASSWORD


@pytest.fixture
def services(store):
    built = build_services(store)
    built.booking.clock = lambda: NOW
    built.lifecycle.clock = lambda: NOW
    built.patients.clock = lambda: NOW
    return built


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def patient_headers(client):
    response = client.post("/api/auth/login", json={"email": PATIENT["email"], "password": PATIENT_PASSWORD})
    token = response.json()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_password_hash", hash_password("admin-pass"))
    response = client.post(
        "/api/auth/login", json={"email": settings.admin_email, "password": "admin-pass", "role": "admin"}
    )
    return {"Authorization": f"Bearer {response.json()['token']}"}


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


class TestAuthEndpoints:

    def test_login_and_me(self, client, patient_headers):
        body = client.get("/api/auth/me", headers=patient_headers).json()
        assert body["authenticated"] is True
        assert body["user"]["role"] == "patient"

    def test_failed_login(self, client):
        body = client.post("/api/auth/login", json={"email": PATIENT["email"], "password": "bad"}).json()
        assert body["success"] is False
        assert body["token"] is None

    def test_logout(self, client, patient_headers):
        assert client.post("/api/auth/logout", headers=patient_headers).json()["message"] == "Logged out successfully"
        assert client.get("/api/auth/me", headers=patient_headers).json()["authenticated"] is False

    def test_register_validation_error(self, client):
        response = client.post("/api/auth/register", json={
            "name": "X", "email": "x@example.com", "password": "secret1",
            "phone": "1", "date_of_birth": "2000-01-01", "gender": "male",
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_request"


class TestBookingEndpoints:

    def test_book_appointment(self, client, store, patient_headers):
        response = client.post("/api/appointments", headers=patient_headers, json={
            "doctorId": "dr-ahmed", "date": "tomorrow", "time": "afternoon", "reason": "Checkup",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["record"]["totalFee"] == 1380
        assert body["record"]["date"] == "2024-01-02"
        assert len(store.all("appointments")) == 1

    def test_booking_requires_patient(self, client, store):
        response = client.post("/api/appointments", json={"doctorId": "dr-ahmed"})
        assert response.status_code == 401
        assert response.json()["errorCode"] == "not_signed_in"
        assert store.writes == 0

    def test_store_outage_is_503(self, client, store, patient_headers):
        store.fail_writes = True
        response = client.post("/api/appointments", headers=patient_headers, json={"doctorId": "dr-ahmed"})
        assert response.status_code == 503
        assert response.json()["success"] is False

    def test_cancel_and_list(self, client, patient_headers):
        created = client.post("/api/appointments", headers=patient_headers, json={
            "doctorId": "dr-ahmed", "date": "tomorrow", "time": "morning",
        }).json()
        cancelled = client.post(f"/api/appointments/{created['id']}/cancel", headers=patient_headers)
        assert cancelled.json()["status"] == "cancelled"
        listed = client.get("/api/appointments", headers=patient_headers).json()["appointments"]
        assert [a["status"] for a in listed] == ["cancelled"]

    def test_missing_appointment_envelope(self, client, patient_headers):
        response = client.post("/api/appointments/nope/cancel", headers=patient_headers)
        assert response.status_code == 404
        assert response.json() == {
            "ok": False,
            "error": {"code": "not_found", "message": "appointments record nope not found"},
        }

    def test_book_lab_test(self, client, patient_headers):
        response = client.post("/api/lab-tests", headers=patient_headers, json={
            "testIds": ["cbc", "rft"], "date": "tomorrow", "time": "morning",
        })
        assert response.status_code == 201
        assert response.json()["record"]["totalPrice"] == 2200

    def test_fee_quote(self, client):
        assert client.get("/api/fees/quote", params={"doctor_id": "dr-ahmed"}).json()["totalFee"] == 1380


class TestAdminEndpoints:

    def test_patient_forbidden(self, client, patient_headers):
        response = client.get("/api/admin/earnings", headers=patient_headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "permission_denied"

    def test_anonymous_unauthorized(self, client):
        assert client.get("/api/admin/base-fee").status_code == 401


class TestDirectoryEndpoints:

    def test_departments(self, client, store):
        store.seed("departments", {"id": "neurology", "name": "Neurology", "feePercentage": 12})
        names = [d["name"] for d in client.get("/api/departments").json()["departments"]]
        assert names == ["Cardiology", "Neurology"]

    def test_doctors_filtered_by_department(self, client, store):
        store.seed("doctors", {"id": "dr-khan", "name": "Dr. Imran Khan", "departmentId": "neurology"})
        everyone = client.get("/api/doctors").json()["doctors"]
        assert [d["id"] for d in everyone] == ["dr-khan", "dr-ahmed"]
        cardiology = client.get("/api/doctors", params={"department_id": "cardiology"}).json()["doctors"]
        assert [d["id"] for d in cardiology] == ["dr-ahmed"]
        assert cardiology[0]["feePercentage"] == 10
        assert "hashedPassword" not in cardiology[0]


class TestPatientEndpoints:

    def test_read_and_update_own_profile(self, client, patient_headers):
        body = client.get("/api/patients/me", headers=patient_headers).json()
        assert body["complete"] is True
        assert body["profile"]["email"] == PATIENT["email"]

        updated = client.put(
            "/api/patients/me", headers=patient_headers, json={"bloodType": "A+", "allergies": "Penicillin"}
        ).json()
        assert updated["profile"]["bloodType"] == "A+"
        assert updated["profile"]["allergies"] == "Penicillin"

    def test_invalid_profile_update(self, client, patient_headers):
        response = client.put("/api/patients/me", headers=patient_headers, json={"phone": "123"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_request"

    def test_admin_lists_and_deletes_patients(self, client, store, admin_headers):
        listed = client.get("/api/patients", headers=admin_headers, params={"search": "ayesha"}).json()
        assert [p["id"] for p in listed["patients"]] == [PATIENT["id"]]

        response = client.delete(f"/api/admin/patients/{PATIENT['id']}", headers=admin_headers)
        assert response.json()["deleted"] is True
        assert store.all("patients") == []

    def test_patient_history_for_admin(self, client, patient_headers, admin_headers):
        client.post("/api/appointments", headers=patient_headers, json={"doctorId": "dr-ahmed", "date": "tomorrow"})
        history = client.get(f"/api/patients/{PATIENT['id']}/history", headers=admin_headers).json()
        assert [a["doctorId"] for a in history["appointments"]] == ["dr-ahmed"]
        assert history["labTests"] == []

    def test_patient_cannot_list_patients(self, client, patient_headers):
        assert client.get("/api/patients", headers=patient_headers).status_code == 403


class TestNotificationStream:

    def test_frames_follow_snapshots_and_stream_closes(self, client, store, admin_headers):
        streams = []

        def subscribe(collection, options=None):
            async def snapshots():
                for sequence, ids in enumerate([["n1"], ["n1", "n2"]], start=1):
                    yield Snapshot(
                        collection=collection,
                        sequence=sequence,
                        documents=tuple({"id": i, "message": i, "read": False} for i in ids),
                        received_at=datetime.now(timezone.utc),
                    )
            stream = SnapshotStream(snapshots())
            streams.append(stream)
            return stream

        store.subscribe = subscribe
        response = client.get("/api/notifications/stream", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = [json.loads(line[len("data: "):]) for line in response.text.splitlines() if line.startswith("data: ")]
        assert [f["unreadCount"] for f in frames] == [1, 2]
        assert [n["id"] for n in frames[0]["notifications"]] == ["n1"]
        assert streams[0].closed

    def test_stream_requires_admin(self, client, patient_headers):
        assert client.get("/api/notifications/stream", headers=patient_headers).status_code == 403


def test_assistant_endpoint(client, patient_headers):
    body = client.post(
        "/api/assistant/messages", headers=patient_headers, json={"conversationId": "x", "message": "cbc"}
    ).json()
    assert body["step"] == "date"
