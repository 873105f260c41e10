"""
Record Lifecycle and Administration.

Status changes for appointments and lab tests, and the admin-only
configuration operations. Unlike booking, these raise:
``RecordNotFound``, ``InvalidTransition`` and ``PermissionDenied``.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.domain import slot_datetime
from core.errors import InvalidRequest, InvalidTransition, PermissionDenied, RecordNotFound

from .domain.policies import AppointmentTransitionPolicy, LabTestTransitionPolicy, TransitionContext
from .identity import (
    DoctorSession,
    PatientSession,
    Session,
    require_role,
)
from .models import (
    Appointment,
    AppointmentStatus,
    Department,
    Doctor,
    LabTestOrder,
    LabTestStatus,
    Notification,
    PaymentStatus,
    Role,
)
from .repository import HospitalRepository

logger = logging.getLogger(__name__)


class RecordLifecycle:
    """Moves appointments and lab tests between statuses."""

    def __init__(
        self,
        repository: HospitalRepository,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.clock = clock
        self.appointment_policy = AppointmentTransitionPolicy()
        self.lab_test_policy = LabTestTransitionPolicy()

    # =========================================================================
    # LISTING
    # =========================================================================

    async def list_appointments(self, session: Session) -> List[Appointment]:
        require_role(session, Role.PATIENT, Role.DOCTOR, Role.ADMIN)
        if isinstance(session, PatientSession):
            return await self.repository.list_appointments(patient_id=session.user_id)
        if isinstance(session, DoctorSession):
            return await self.repository.list_appointments(doctor_id=session.doctor_id)
        return await self.repository.list_appointments()

    async def list_lab_tests(self, session: Session) -> List[LabTestOrder]:
        require_role(session, Role.PATIENT, Role.LAB_OPERATOR, Role.ADMIN)
        if isinstance(session, PatientSession):
            return await self.repository.list_lab_tests(patient_id=session.user_id)
        return await self.repository.list_lab_tests()

    # =========================================================================
    # APPOINTMENTS
    # =========================================================================

    async def change_appointment_status(
        self,
        session: Session,
        appointment_id: str,
        requested: str,
    ) -> Appointment:
        require_role(session, Role.PATIENT, Role.DOCTOR, Role.ADMIN)
        appointment = await self.repository.get_appointment(appointment_id)
        if appointment is None:
            raise RecordNotFound("appointments", appointment_id)

        if isinstance(session, PatientSession) and appointment.patient_id != session.user_id:
            raise PermissionDenied("You can only change your own appointments")
        if isinstance(session, DoctorSession) and appointment.doctor_id != session.doctor_id:
            raise PermissionDenied("You can only update your own patients' appointments")

        now = self.clock()
        decision = self.appointment_policy.evaluate(TransitionContext(
            current=appointment.status,
            requested=requested,
            actor=session.role,
            slot_at=slot_datetime(appointment.date, appointment.time),
            now=now,
        ))
        if decision.is_denied:
            raise InvalidTransition(appointment.status, requested, decision.reason)

        changes: Dict[str, Any] = {"status": requested, "updatedAt": now.isoformat()}
        if isinstance(session, DoctorSession):
            changes["completedAt"] = now.isoformat()
            changes["completedBy"] = session.doctor_id
            changes["noShow"] = requested == AppointmentStatus.NO_SHOW.value

        updated = await self.repository.update_appointment(appointment_id, changes)
        logger.info(f"Appointment {appointment_id}: {appointment.status} -> {requested} by {session.role.value}")

        if isinstance(session, PatientSession):
            await self._notify_admin(updated, requested, now)
        return updated

    async def cancel_appointment(self, session: Session, appointment_id: str) -> Appointment:
        return await self.change_appointment_status(session, appointment_id, AppointmentStatus.CANCELLED.value)

    async def request_reschedule(self, session: Session, appointment_id: str) -> Appointment:
        return await self.change_appointment_status(
            session, appointment_id, AppointmentStatus.RESCHEDULE_REQUESTED.value
        )

    async def _notify_admin(self, appointment: Appointment, status: str, now: datetime):
        if status == AppointmentStatus.CANCELLED.value:
            kind, verb = "appointment_cancelled", "cancelled"
        else:
            kind, verb = "reschedule_request", "asked to reschedule"
        notification = Notification(
            type=kind,
            message=(
                f"{appointment.patient_name} {verb} the appointment on "
                f"{appointment.date} at {appointment.time}"
                f"{' with ' + appointment.doctor_name if appointment.doctor_name else ''}"
            ),
            status="unread",
            read=False,
            created_at=now.isoformat(),
        )
        await self.repository.store.add("notifications", notification.to_document())

    # =========================================================================
    # LAB TESTS
    # =========================================================================

    async def change_lab_test_status(
        self,
        session: Session,
        order_id: str,
        requested: str,
        results: Optional[Any] = None,
    ) -> LabTestOrder:
        require_role(session, Role.LAB_OPERATOR, Role.ADMIN)
        order = await self.repository.get_lab_test(order_id)
        if order is None:
            raise RecordNotFound("labTests", order_id)

        decision = self.lab_test_policy.evaluate(TransitionContext(
            current=order.status,
            requested=requested,
            actor=session.role,
        ))
        if decision.is_denied:
            raise InvalidTransition(order.status, requested, decision.reason)

        changes: Dict[str, Any] = {"status": requested, "updatedAt": self.clock().isoformat()}
        if results is not None:
            if requested != LabTestStatus.COMPLETED.value:
                raise InvalidTransition(order.status, requested, "results can only be attached when completing")
            changes["results"] = results

        updated = await self.repository.update_lab_test(order_id, changes)
        logger.info(f"Lab test {order_id}: {order.status} -> {requested} by {session.role.value}")
        return updated


class AdminService:
    """Hospital configuration. Every operation requires an admin session."""

    def __init__(self, repository: HospitalRepository, password_hasher: Callable[[str], str]):
        self.repository = repository
        self.password_hasher = password_hasher

    async def get_base_fee(self, session: Session) -> int:
        require_role(session, Role.ADMIN)
        return await self.repository.get_base_fee()

    async def set_base_fee(self, session: Session, value: int) -> int:
        require_role(session, Role.ADMIN)
        if value < 0:
            raise InvalidRequest("Base fee must be non-negative")
        return await self.repository.set_base_fee(value)

    async def create_department(
        self,
        session: Session,
        name: str,
        description: str = "",
        fee_percentage: float = 0,
    ) -> Department:
        require_role(session, Role.ADMIN)
        if await self.repository.get_department_by_name(name):
            raise InvalidRequest(f"Department '{name}' already exists")
        department = Department(name=name.strip(), description=description, fee_percentage=fee_percentage)
        return await self.repository.add_department(department)

    async def create_doctor(
        self,
        session: Session,
        name: str,
        email: str,
        password: str,
        department_id: str,
        specialization: str = "",
        fee_percentage: float = 0,
        availability: str = "",
    ) -> Doctor:
        require_role(session, Role.ADMIN)
        email = email.strip().lower()
        department = await self.repository.get_department(department_id)
        if department is None:
            raise RecordNotFound("departments", department_id)
        if await self.repository.find_by_email("doctors", email):
            raise InvalidRequest(f"A doctor with email {email} already exists")

        doctor = Doctor(
            name=name.strip(),
            email=email,
            specialization=specialization,
            department_id=department.id,
            department_name=department.name,
            fee_percentage=fee_percentage,
            availability=availability,
        )
        created = await self.repository.add_doctor(doctor, self.password_hasher(password))
        logger.info(f"Created doctor {created.id} in {department.name}")
        return created

    async def set_fee_percentage(self, session: Session, kind: str, record_id: str, fee_percentage: float):
        """Update ``feePercentage`` on a doctor or department."""
        require_role(session, Role.ADMIN)
        collections = {"doctor": "doctors", "department": "departments"}
        if kind not in collections:
            raise InvalidRequest(f"Unknown fee target: {kind}")
        if fee_percentage < 0:
            raise InvalidRequest("Fee percentage must be non-negative")
        await self.repository.update_fee_percentage(collections[kind], record_id, fee_percentage)

    async def earnings_summary(self, session: Session) -> Dict[str, Any]:
        """Total paid appointment fees, overall and per doctor / department."""
        require_role(session, Role.ADMIN)
        by_doctor: Dict[str, int] = defaultdict(int)
        by_department: Dict[str, int] = defaultdict(int)
        total = 0
        count = 0
        for appointment in await self.repository.list_appointments():
            if appointment.status == AppointmentStatus.CANCELLED.value:
                continue
            if appointment.payment_status != PaymentStatus.PAID.value:
                continue
            total += appointment.total_fee
            count += 1
            by_doctor[appointment.doctor_name or appointment.doctor_id] += appointment.total_fee
            by_department[appointment.department_name or "Unassigned"] += appointment.total_fee
        return {
            "totalEarnings": total,
            "appointmentCount": count,
            "byDoctor": dict(by_doctor),
            "byDepartment": dict(by_department),
        }
