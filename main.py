"""
FastAPI Application for the Care-Coord hospital backend.

Composition root: builds the document store, repository and services at
startup, resolves the caller's typed session from the auth token and passes
it explicitly into every operation.
"""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from config import settings

# Import authentication module
from auth import (
    Authenticator,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    describe_session,
    hash_password,
)
from core.data import DocumentStore
from core.errors import CareCoordError
from shared.cosmos_config import COSMOS_ENDPOINT, DATABASE_NAME
from use_cases.hospital import (
    AdminService,
    BookingAssistant,
    BookingResult,
    BookingService,
    HospitalRepository,
    NotificationService,
    PatientRecords,
    RecordLifecycle,
)
from use_cases.hospital.identity import Session

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Reduce Azure SDK logging verbosity
logging.getLogger("azure.cosmos").setLevel(logging.WARNING)
logging.getLogger("azure.core").setLevel(logging.WARNING)
logging.getLogger("azure.identity").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


# =============================================================================
# COMPOSITION
# =============================================================================

@dataclass
class Services:
    store: DocumentStore
    repository: HospitalRepository
    auth: Authenticator
    booking: BookingService
    lifecycle: RecordLifecycle
    admin: AdminService
    notifications: NotificationService
    patients: PatientRecords
    assistant: BookingAssistant


def build_services(store: DocumentStore) -> Services:
    """Wire every service around one document store."""
    repository = HospitalRepository(store)
    booking = BookingService(repository)
    return Services(
        store=store,
        repository=repository,
        auth=Authenticator(repository),
        booking=booking,
        lifecycle=RecordLifecycle(repository),
        admin=AdminService(repository, hash_password),
        notifications=NotificationService(store),
        patients=PatientRecords(repository),
        assistant=BookingAssistant(repository, booking),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    from use_cases.hospital.cosmos_client import HospitalCosmosStore

    logger.info("Starting Care-Coord hospital backend...")
    store = HospitalCosmosStore()
    app.state.services = build_services(store)
    logger.info(f"Cosmos DB store initialized: {COSMOS_ENDPOINT} / {DATABASE_NAME}")

    yield

    # Cleanup
    logger.info("Shutting down...")
    await store.close()


# Create FastAPI app
app = FastAPI(
    title="Care-Coord",
    description="Hospital appointment booking, lab tests and administration",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CareCoordError)
async def care_coord_error_handler(request: Request, exc: CareCoordError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": {"code": exc.code, "message": exc.message}},
    )


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_services(request: Request) -> Services:
    return request.app.state.services


def get_token(request: Request) -> Optional[str]:
    """Token from the Authorization header, falling back to the auth cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    return request.cookies.get("auth_token")


def get_session(
    token: Optional[str] = Depends(get_token),
    services: Services = Depends(get_services),
) -> Session:
    return services.auth.current(token)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AppointmentRequest(ApiModel):
    doctor_id: str
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    date: str = ""
    time: str = ""
    reason: str = ""
    symptoms: str = ""
    previous_visit: str = "no"


class LabTestRequest(ApiModel):
    test_ids: List[str]
    date: str = ""
    time: str = ""
    special_instructions: str = ""


class StatusChange(ApiModel):
    status: str
    results: Optional[Any] = None


class BaseFeeUpdate(ApiModel):
    value: int


class DepartmentCreate(ApiModel):
    name: str
    description: str = ""
    fee_percentage: float = 0


class DoctorCreate(ApiModel):
    name: str
    email: str
    password: str
    department_id: str
    specialization: str = ""
    fee_percentage: float = 0
    availability: str = ""


class FeePercentageUpdate(ApiModel):
    fee_percentage: float


class ProfileUpdate(ApiModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    blood_type: Optional[str] = None
    allergies: Optional[str] = None
    medical_history: Optional[str] = None
    insurance_info: Optional[str] = None
    emergency_contact: Optional[str] = None


class AssistantMessage(ApiModel):
    conversation_id: str = "default"
    message: str


def _dump(record) -> Dict[str, Any]:
    return record.model_dump(by_alias=True, mode="json")


BOOKING_FAILURE_STATUS = {
    "not_signed_in": 401,
    "profile_not_found": 404,
    "profile_ambiguous": 409,
    "store_unavailable": 503,
    "booking_failed": 500,
}


def _booking_response(result: BookingResult) -> JSONResponse:
    if result.success:
        return JSONResponse(status_code=201, content=result.to_dict())
    return JSONResponse(
        status_code=BOOKING_FAILURE_STATUS.get(result.error_code, 400),
        content=result.to_dict(),
    )


# =============================================================================
# HEALTH
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "cosmos_db": COSMOS_ENDPOINT,
        "database": DATABASE_NAME,
    }


# =============================================================================
# AUTHENTICATION ENDPOINTS
# =============================================================================

@app.post("/api/auth/login")
async def login(request: LoginRequest, response: Response, services: Services = Depends(get_services)):
    """
    Authenticate with email, password and role.
    Returns a session token on success.
    """
    try:
        token, session = await services.auth.sign_in(request.role, request.email, request.password)
    except CareCoordError as e:
        logger.info(f"Failed sign-in for {request.email}: {e.code}")
        return LoginResponse(success=False, message=e.message)

    response.set_cookie("auth_token", token, httponly=True, samesite="lax")
    return LoginResponse(success=True, message="Login successful", token=token, user=describe_session(session))


@app.post("/api/auth/register", status_code=201)
async def register(request: RegisterRequest, response: Response, services: Services = Depends(get_services)):
    token, session = await services.auth.register_patient(request)
    response.set_cookie("auth_token", token, httponly=True, samesite="lax")
    return LoginResponse(success=True, message="Registration successful", token=token, user=describe_session(session))


@app.post("/api/auth/logout")
async def logout(
    response: Response,
    token: Optional[str] = Depends(get_token),
    services: Services = Depends(get_services),
):
    """Log out the current user by invalidating their session."""
    response.delete_cookie("auth_token")
    if services.auth.sign_out(token):
        return {"success": True, "message": "Logged out successfully"}
    return {"success": True, "message": "No active session"}


@app.get("/api/auth/me")
async def get_current_user(session: Session = Depends(get_session)):
    """Get the current session."""
    return {"authenticated": session.role.value != "anonymous", "user": describe_session(session)}


# =============================================================================
# DOCTORS & DEPARTMENTS
# =============================================================================

@app.get("/api/departments")
async def list_departments(services: Services = Depends(get_services)):
    departments = await services.repository.list_departments()
    return {"departments": [_dump(d) for d in sorted(departments, key=lambda d: d.name.lower())]}


@app.get("/api/doctors")
async def list_doctors(department_id: Optional[str] = None, services: Services = Depends(get_services)):
    """Doctors, optionally only those in one department."""
    doctors = await services.repository.list_doctors()
    if department_id:
        doctors = [d for d in doctors if d.department_id == department_id]
    return {"doctors": [_dump(d) for d in sorted(doctors, key=lambda d: d.name.lower())]}


# =============================================================================
# PATIENTS
# =============================================================================

@app.get("/api/patients/me")
async def get_profile(session: Session = Depends(get_session), services: Services = Depends(get_services)):
    """The signed-in patient's profile and whether it is complete."""
    profile = await services.patients.get_profile(session)
    return profile.to_dict()


@app.put("/api/patients/me")
async def update_profile(
    update: ProfileUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    profile = await services.patients.update_profile(session, update.model_dump(exclude_unset=True))
    return profile.to_dict()


@app.get("/api/patients")
async def list_patients(
    search: str = "",
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    patients = await services.patients.list_patients(session, search)
    return {"patients": [_dump(p) for p in patients]}


@app.get("/api/patients/{patient_id}/history")
async def patient_history(
    patient_id: str,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    history = await services.patients.patient_history(session, patient_id)
    return history.to_dict()


# =============================================================================
# APPOINTMENTS
# =============================================================================

@app.get("/api/appointments")
async def list_appointments(session: Session = Depends(get_session), services: Services = Depends(get_services)):
    appointments = await services.lifecycle.list_appointments(session)
    return {"appointments": [_dump(a) for a in appointments]}


@app.post("/api/appointments")
async def book_appointment(
    request: AppointmentRequest,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    result = await services.booking.submit_appointment(
        session,
        doctor_id=request.doctor_id,
        date_phrase=request.date,
        time_phrase=request.time,
        department_id=request.department_id,
        department_name=request.department_name,
        reason=request.reason,
        symptoms=request.symptoms,
        previous_visit=request.previous_visit,
    )
    return _booking_response(result)


@app.post("/api/appointments/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: str,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return _dump(await services.lifecycle.cancel_appointment(session, appointment_id))


@app.post("/api/appointments/{appointment_id}/reschedule")
async def request_reschedule(
    appointment_id: str,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return _dump(await services.lifecycle.request_reschedule(session, appointment_id))


@app.patch("/api/appointments/{appointment_id}/status")
async def change_appointment_status(
    appointment_id: str,
    change: StatusChange,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return _dump(await services.lifecycle.change_appointment_status(session, appointment_id, change.status))


# =============================================================================
# LAB TESTS
# =============================================================================

@app.get("/api/lab-tests")
async def list_lab_tests(session: Session = Depends(get_session), services: Services = Depends(get_services)):
    orders = await services.lifecycle.list_lab_tests(session)
    return {"labTests": [_dump(order) for order in orders]}


@app.get("/api/lab-tests/catalogue")
async def lab_test_catalogue(services: Services = Depends(get_services)):
    tests = await services.repository.list_available_lab_tests()
    return {"tests": [_dump(test) for test in tests]}


@app.post("/api/lab-tests")
async def book_lab_test(
    request: LabTestRequest,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    result = await services.booking.submit_lab_test(
        session,
        test_ids=request.test_ids,
        date_phrase=request.date,
        time_phrase=request.time,
        special_instructions=request.special_instructions,
    )
    return _booking_response(result)


@app.patch("/api/lab-tests/{order_id}/status")
async def change_lab_test_status(
    order_id: str,
    change: StatusChange,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    order = await services.lifecycle.change_lab_test_status(session, order_id, change.status, change.results)
    return _dump(order)


# =============================================================================
# FEES
# =============================================================================

@app.get("/api/fees/quote")
async def quote_fee(
    doctor_id: Optional[str] = None,
    department_id: Optional[str] = None,
    department_name: Optional[str] = None,
    services: Services = Depends(get_services),
):
    fees = await services.booking.quote_fee(doctor_id, department_id, department_name)
    return fees.to_dict()


# =============================================================================
# ADMINISTRATION
# =============================================================================

@app.get("/api/admin/base-fee")
async def get_base_fee(session: Session = Depends(get_session), services: Services = Depends(get_services)):
    return {"value": await services.admin.get_base_fee(session)}


@app.put("/api/admin/base-fee")
async def set_base_fee(
    update: BaseFeeUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return {"value": await services.admin.set_base_fee(session, update.value)}


@app.post("/api/admin/departments", status_code=201)
async def create_department(
    request: DepartmentCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    department = await services.admin.create_department(
        session, request.name, request.description, request.fee_percentage
    )
    return _dump(department)


@app.patch("/api/admin/departments/{department_id}/fee")
async def update_department_fee(
    department_id: str,
    update: FeePercentageUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    await services.admin.set_fee_percentage(session, "department", department_id, update.fee_percentage)
    return {"id": department_id, "feePercentage": update.fee_percentage}


@app.post("/api/admin/doctors", status_code=201)
async def create_doctor(
    request: DoctorCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    doctor = await services.admin.create_doctor(
        session,
        name=request.name,
        email=request.email,
        password=request.password,
        department_id=request.department_id,
        specialization=request.specialization,
        fee_percentage=request.fee_percentage,
        availability=request.availability,
    )
    return _dump(doctor)


@app.patch("/api/admin/doctors/{doctor_id}/fee")
async def update_doctor_fee(
    doctor_id: str,
    update: FeePercentageUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    await services.admin.set_fee_percentage(session, "doctor", doctor_id, update.fee_percentage)
    return {"id": doctor_id, "feePercentage": update.fee_percentage}


@app.delete("/api/admin/patients/{patient_id}")
async def delete_patient(
    patient_id: str,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    await services.patients.delete_patient(session, patient_id)
    return {"id": patient_id, "deleted": True}


@app.get("/api/admin/earnings")
async def earnings(session: Session = Depends(get_session), services: Services = Depends(get_services)):
    return await services.admin.earnings_summary(session)


# =============================================================================
# NOTIFICATIONS
# =============================================================================

@app.get("/api/notifications")
async def list_notifications(session: Session = Depends(get_session), services: Services = Depends(get_services)):
    feed = await services.notifications.current(session)
    return feed.to_dict()


@app.post("/api/notifications/read-all")
async def mark_all_notifications_read(
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return {"updated": await services.notifications.mark_all_as_read(session)}


@app.post("/api/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    await services.notifications.mark_as_read(session, notification_id)
    return {"id": notification_id, "read": True}


@app.get("/api/notifications/stream")
async def stream_notifications(
    request: Request,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    """Server-sent events: one ``data:`` frame per changed notification feed."""
    states = services.notifications.feed(session)

    async def events():
        try:
            async for feed in states:
                if await request.is_disconnected():
                    break
                yield f"data: {json.dumps(feed.to_dict())}\n\n"
        finally:
            await states.aclose()

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"
        }
    )


# =============================================================================
# BOOKING ASSISTANT
# =============================================================================

@app.post("/api/assistant/messages")
async def assistant_message(
    request: AssistantMessage,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    reply = await services.assistant.handle(session, request.conversation_id, request.message)
    return reply.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower()
    )
