"""
Authentication module.

Email/password sign-in for patients, doctors, lab operators and the admin.
A successful sign-in issues an opaque token mapped to a typed session
(see ``use_cases.hospital.identity``). Passwords are stored as salted
PBKDF2-SHA256 hashes in ``salt$digest`` form.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from config import settings
from core.errors import AuthenticationError, InvalidRequest
from use_cases.hospital.domain.policies import PatientProfileValidator
from use_cases.hospital.identity import (
    ANONYMOUS,
    AdminSession,
    DoctorSession,
    LabOperatorSession,
    PatientSession,
    Session,
)
from use_cases.hospital.models import Patient, Role
from use_cases.hospital.repository import HospitalRepository

logger = logging.getLogger(__name__)

HASH_ITERATIONS = 120_000


# =============================================================================
# MODELS
# =============================================================================

class LoginRequest(BaseModel):
    """Login request model."""
    email: str
    password: str
    role: Role = Role.PATIENT


class LoginResponse(BaseModel):
    """Login response model."""
    success: bool
    message: str
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None


class RegisterRequest(BaseModel):
    """Patient self-registration."""
    name: str
    email: str
    password: str
    phone: str
    date_of_birth: str
    gender: str


# =============================================================================
# PASSWORD UTILITIES
# =============================================================================

def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Hash a password with PBKDF2-SHA256 and a random per-user salt."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), HASH_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its ``salt$digest`` hash."""
    if not password_hash or "$" not in password_hash:
        return False
    salt, _ = password_hash.split("$", 1)
    return hmac.compare_digest(hash_password(password, salt), password_hash)


def generate_session_token() -> str:
    """Generate a secure session token."""
    return secrets.token_urlsafe(32)


def describe_session(session: Session) -> Dict[str, Any]:
    """Public view of a session for API responses."""
    data: Dict[str, Any] = {"role": session.role.value}
    for name in ("user_id", "doctor_id", "operator_id", "email", "name"):
        value = getattr(session, name, None)
        if value:
            data[name] = value
    return data


# =============================================================================
# SESSION STORE (In-Memory)
# =============================================================================

class SessionStore:
    """Maps tokens to typed sessions; expired sessions are dropped on lookup."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def create(self, session: Session) -> str:
        token = generate_session_token()
        self._sessions[token] = session
        logger.info(f"Created {session.role.value} session for {getattr(session, 'email', '')}")
        return token

    def get(self, token: Optional[str]) -> Session:
        """The session for ``token``, or the anonymous session."""
        if not token or token not in self._sessions:
            return ANONYMOUS
        session = self._sessions[token]
        expires_at = getattr(session, "expires_at", None)
        if expires_at is not None and datetime.now(timezone.utc) > expires_at:
            del self._sessions[token]
            return ANONYMOUS
        return session

    def delete(self, token: Optional[str]) -> bool:
        """Delete a session (logout)."""
        if token and token in self._sessions:
            del self._sessions[token]
            return True
        return False


# =============================================================================
# AUTHENTICATOR
# =============================================================================

class Authenticator:
    """Signs users in against the hospital collections."""

    def __init__(self, repository: HospitalRepository, sessions: Optional[SessionStore] = None):
        self.repository = repository
        self.sessions = sessions or SessionStore()
        self.profile_validator = PatientProfileValidator()

    def _expiry(self, role: Role) -> datetime:
        hours = settings.admin_session_ttl_hours if role == Role.ADMIN else settings.session_ttl_hours
        return datetime.now(timezone.utc) + timedelta(hours=hours)

    async def sign_in(self, role: Role, email: str, password: str) -> Tuple[str, Session]:
        email = (email or "").strip().lower()
        session = await self._authenticate(role, email, password)
        logger.info(f"User signed in: {email} ({role.value})")
        return self.sessions.create(session), session

    async def _authenticate(self, role: Role, email: str, password: str) -> Session:
        invalid = AuthenticationError("Invalid email or password")

        if role == Role.ADMIN:
            if email != settings.admin_email.lower() or not verify_password(password, settings.admin_password_hash):
                raise invalid
            return AdminSession(email=email, expires_at=self._expiry(role))

        if role == Role.PATIENT:
            if await self.repository.find_by_email("doctors", email):
                raise AuthenticationError("Doctor accounts must sign in through the doctor login")
            document = await self.repository.find_by_email("patients", email)
            if not document or not verify_password(password, document.get("passwordHash", "")):
                raise invalid
            return PatientSession(
                user_id=document["id"],
                email=document["email"],
                name=document.get("name", ""),
                expires_at=self._expiry(role),
            )

        if role == Role.DOCTOR:
            document = await self.repository.find_by_email("doctors", email)
            if not document or not verify_password(password, document.get("hashedPassword", "")):
                raise invalid
            return DoctorSession(
                doctor_id=document["id"],
                email=document["email"],
                name=document.get("name", ""),
                expires_at=self._expiry(role),
            )

        if role == Role.LAB_OPERATOR:
            document = await self.repository.find_by_email("labOperators", email)
            if not document or not verify_password(password, document.get("hashedPassword", "")):
                raise invalid
            return LabOperatorSession(
                operator_id=document["id"],
                email=document["email"],
                name=document.get("name", ""),
                expires_at=self._expiry(role),
            )

        raise invalid

    async def register_patient(self, request: RegisterRequest) -> Tuple[str, PatientSession]:
        """Create a complete patient profile and sign the patient in."""
        email = request.email.strip().lower()
        patient = Patient(
            name=request.name.strip(),
            email=email,
            phone=request.phone.strip(),
            date_of_birth=request.date_of_birth,
            gender=request.gender,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        errors = self.profile_validator.validate(patient.to_document())
        if errors:
            raise InvalidRequest("; ".join(error.message for error in errors))
        if len(request.password) < 6:
            raise InvalidRequest("password must be at least 6 characters")
        if await self.repository.find_by_email("doctors", email):
            raise InvalidRequest("This email belongs to a doctor account")
        if await self.repository.find_patients_by_email(email):
            raise InvalidRequest("An account with this email already exists")

        data = patient.to_document()
        data["passwordHash"] = hash_password(request.password)
        document = await self.repository.store.add("patients", data)
        logger.info(f"Registered patient {document['id']}")

        session = PatientSession(
            user_id=document["id"],
            email=email,
            name=patient.name,
            expires_at=self._expiry(Role.PATIENT),
        )
        return self.sessions.create(session), session

    def current(self, token: Optional[str]) -> Session:
        return self.sessions.get(token)

    def sign_out(self, token: Optional[str]) -> bool:
        return self.sessions.delete(token)
