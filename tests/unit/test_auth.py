"""
Unit tests for authentication and typed sessions
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from auth import Authenticator, RegisterRequest, SessionStore, hash_password, verify_password
from config import settings
from core.errors import AuthenticationError, InvalidRequest, PermissionDenied
from use_cases.hospital.domain.policies import PatientProfileValidator
from use_cases.hospital.identity import (
    ANONYMOUS,
    AdminSession,
    DoctorSession,
    LabOperatorSession,
    PatientSession,
    require_role,
)
from use_cases.hospital.models import Role
from tests.conftest import PATIENT, PATIENT_PASSWORD


@pytest.fixture
def authenticator(repository):
    return Authenticator(repository)


def sign_in(authenticator, role, email, password):
    return asyncio.run(authenticator.sign_in(role, email, password))


class TestPasswords:

    def test_hash_verifies(self):
        hashed = hash_password("s3cret")
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_salts_differ(self):
        assert hash_password("same") != hash_password("same")

    @pytest.mark.parametrize("stored", ["", "no-separator", None])
    def test_malformed_hash_never_verifies(self, stored):
        assert not verify_password("anything", stored)


class TestSignIn:

    def test_patient(self, authenticator):
        token, session = sign_in(authenticator, Role.PATIENT, "AYESHA@example.com ", PATIENT_PASSWORD)
        assert isinstance(session, PatientSession)
        assert session.user_id == PATIENT["id"]
        assert authenticator.current(token) == session

    def test_wrong_password(self, authenticator):
        with pytest.raises(AuthenticationError):
            sign_in(authenticator, Role.PATIENT, PATIENT["email"], "nope")

    def test_doctor_email_rejected_on_patient_login(self, authenticator):
        with pytest.raises(AuthenticationError, match="doctor login"):
            sign_in(authenticator, Role.PATIENT, "sara.ahmed@carecoord.local", "doctor123")

    def test_doctor(self, authenticator):
        _, session = sign_in(authenticator, Role.DOCTOR, "sara.ahmed@carecoord.local", "doctor123")
        assert isinstance(session, DoctorSession)
        assert session.doctor_id == "dr-ahmed"

    def test_lab_operator(self, authenticator):
        _, session = sign_in(authenticator, Role.LAB_OPERATOR, "lab@carecoord.local", "lab123")
        assert isinstance(session, LabOperatorSession)

    def test_admin(self, authenticator, monkeypatch):
        monkeypatch.setattr(settings, "admin_password_hash", hash_password("admin-pass"))
        _, session = sign_in(authenticator, Role.ADMIN, settings.admin_email, "admin-pass")
        assert isinstance(session, AdminSession)
        assert session.expires_at - datetime.now(timezone.utc) <= timedelta(hours=settings.admin_session_ttl_hours)

    def test_admin_without_configured_hash(self, authenticator, monkeypatch):
        monkeypatch.setattr(settings, "admin_password_hash", "")
        with pytest.raises(AuthenticationError):
            sign_in(authenticator, Role.ADMIN, settings.admin_email, "")

    def test_sign_out(self, authenticator):
        token, _ = sign_in(authenticator, Role.PATIENT, PATIENT["email"], PATIENT_PASSWORD)
        assert authenticator.sign_out(token)
        assert authenticator.current(token) is ANONYMOUS


class TestSessionStore:

    def test_unknown_token_is_anonymous(self):
        assert SessionStore().get("missing") is ANONYMOUS
        assert SessionStore().get(None) is ANONYMOUS

    def test_expired_session_dropped(self):
        sessions = SessionStore()
        expired = PatientSession(user_id="p", email="p@example.com",
                                 expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
        token = sessions.create(expired)
        assert sessions.get(token) is ANONYMOUS
        assert not sessions.delete(token)


class TestRegistration:

    def request(self, **overrides):
        data = dict(
            name="Bilal Shah", email="Bilal@Example.com", password="secret1",
            phone="0300-1234567", date_of_birth="1985-02-03", gender="male",
        )
        data.update(overrides)
        return RegisterRequest(**data)

    def test_registers_and_signs_in(self, authenticator, store):
        token, session = asyncio.run(authenticator.register_patient(self.request()))
        assert session.email == "bilal@example.com"
        stored = store.collections["patients"][session.user_id]
        assert stored["dateOfBirth"] == "1985-02-03"
        assert verify_password("secret1", stored["passwordHash"])
        assert authenticator.current(token) == session

    def test_incomplete_profile_rejected(self, authenticator, store):
        with pytest.raises(InvalidRequest):
            asyncio.run(authenticator.register_patient(self.request(phone="12345")))
        assert store.writes == 0

    def test_existing_email_rejected(self, authenticator):
        with pytest.raises(InvalidRequest):
            asyncio.run(authenticator.register_patient(self.request(email=PATIENT["email"])))

    def test_doctor_email_rejected(self, authenticator):
        with pytest.raises(InvalidRequest):
            asyncio.run(authenticator.register_patient(self.request(email="sara.ahmed@carecoord.local")))


class TestRoles:

    def test_require_role(self, patient_session):
        assert require_role(patient_session, Role.PATIENT) is patient_session
        with pytest.raises(PermissionDenied):
            require_role(patient_session, Role.ADMIN)
        with pytest.raises(AuthenticationError):
            require_role(ANONYMOUS, Role.PATIENT)

    def test_profile_validator(self):
        validator = PatientProfileValidator()
        assert validator.is_valid(PATIENT)
        errors = validator.validate({"name": "A", "email": "a@b.c", "phone": "123"})
        assert {e.field for e in errors} == {"phone", "dateOfBirth", "gender"}
