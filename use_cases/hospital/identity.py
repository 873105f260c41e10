"""
Typed Sessions.

Who is acting is passed explicitly into every operation as one of the
session types below. ``Session`` is the union of all of them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union

from core.errors import AuthenticationError, PermissionDenied

from .models import Role


@dataclass(frozen=True)
class AnonymousSession:
    role = Role.ANONYMOUS


@dataclass(frozen=True)
class PatientSession:
    """A signed-in patient; the profile is looked up by ``email`` when needed."""
    user_id: str
    email: str
    name: str = ""
    expires_at: Optional[datetime] = None
    role = Role.PATIENT


@dataclass(frozen=True)
class DoctorSession:
    doctor_id: str
    email: str
    name: str = ""
    expires_at: Optional[datetime] = None
    role = Role.DOCTOR


@dataclass(frozen=True)
class LabOperatorSession:
    operator_id: str
    email: str
    name: str = ""
    expires_at: Optional[datetime] = None
    role = Role.LAB_OPERATOR


@dataclass(frozen=True)
class AdminSession:
    email: str
    expires_at: Optional[datetime] = None
    role = Role.ADMIN


Session = Union[AnonymousSession, PatientSession, DoctorSession, LabOperatorSession, AdminSession]

ANONYMOUS = AnonymousSession()


def require_role(session: Session, *roles: Role):
    """Raise unless the session has one of ``roles``."""
    if session.role in roles:
        return session
    if isinstance(session, AnonymousSession):
        raise AuthenticationError("Please sign in to continue")
    allowed: Tuple[str, ...] = tuple(role.value for role in roles)
    raise PermissionDenied(f"This action requires one of: {', '.join(allowed)}")
