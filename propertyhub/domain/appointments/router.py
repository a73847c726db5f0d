"""Appointment router - FastAPI endpoints for visit scheduling"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import get_current_user, reject_co_admin, require_admin, require_staff
from ...database import get_db
from ...models import User
from ...services.messaging import MessagingGateway, get_messaging
from ...workers.reminder_worker import check_and_send_reminders
from .schemas import (
    AppointmentCreate,
    AppointmentCreateResponse,
    AppointmentResponse,
    AssignRequest,
    AvailableSlotsResponse,
    CancelRequest,
    SMSConfirmRequest,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Appointments"])

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def get_appointment_service(
    db: Session = Depends(get_db),
    messaging: MessagingGateway = Depends(get_messaging),
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, messaging)


# ============================================================================
# VISITOR ENDPOINTS
# ============================================================================


@router.post("/appointments", response_model=AppointmentCreateResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(reject_co_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment, confirmation_required = await service.create_appointment(data, current_user)
    message = (
        "Appointment created. Reply YES to the SMS to confirm it."
        if confirmation_required
        else "Appointment created and confirmed."
    )
    return AppointmentCreateResponse(
        message=message,
        confirmationRequired=confirmation_required,
        appointment=AppointmentResponse.from_model(appointment),
    )


@router.get("/appointments/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    propertyId: int = Query(...),
    date: str = Query(..., description="YYYY-MM-DD"),
    service: AppointmentService = Depends(get_appointment_service),
):
    return {"availableSlots": service.get_available_slots(propertyId, date)}


@router.get("/my-appointments", response_model=list[AppointmentResponse])
async def get_my_appointments(
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return [AppointmentResponse.from_model(a) for a in service.list_for_user(current_user)]


@router.get("/appointments/confirm/{appointment_id}/{code}")
async def confirm_by_link(
    appointment_id: int,
    code: str,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Public confirmation link included in the SMS"""
    appointment = service.confirm_by_link(appointment_id, code)
    return {"message": "Appointment confirmed", "appointment": AppointmentResponse.from_model(appointment)}


@router.post("/appointments/confirm-sms")
async def confirm_by_sms_code(
    data: SMSConfirmRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = service.confirm_by_code(data.confirmationCode, data.response)
    message = "Appointment confirmed" if appointment.status == "confirmed" else "Appointment cancelled"
    return {"message": message, "appointment": AppointmentResponse.from_model(appointment)}


@router.post("/appointments/webhook/sms")
async def sms_webhook(
    Body: str = Form(""),
    From: str = Form(""),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Inbound SMS from Twilio; always answers with empty TwiML so Twilio does not retry"""
    try:
        appointment = service.handle_sms_reply(Body, From)
        if appointment:
            logger.info(f"📱 SMS reply from {From} set appointment {appointment.id} to {appointment.status}")
    except Exception as e:
        logger.exception(f"❌ Failed to process SMS reply from {From}: {e}")
    return Response(content=EMPTY_TWIML, media_type="application/xml")


@router.put("/appointments/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    reason = data.reason if data else None
    return AppointmentResponse.from_model(service.cancel_appointment(appointment_id, current_user, reason))


# ============================================================================
# STAFF ENDPOINTS
# ============================================================================


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    propertyId: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    _: User = Depends(require_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointments = service.list_all(startDate, endDate, propertyId, status)
    return [AppointmentResponse.from_model(a) for a in appointments]


@router.delete("/appointments")
async def purge_appointments(
    _: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    deleted = service.purge_all()
    return {"message": f"Deleted {deleted} appointments", "deleted": deleted}


@router.post("/appointments/reminders/run")
async def run_reminders_now(
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
    messaging: MessagingGateway = Depends(get_messaging),
):
    return await check_and_send_reminders(db, messaging)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    _: User = Depends(require_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(service.get_appointment(appointment_id))


@router.put("/appointments/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
    appointment_id: int,
    _: User = Depends(require_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(service.confirm_appointment(appointment_id))


@router.put("/appointments/{appointment_id}/assign", response_model=AppointmentResponse)
async def assign_appointment(
    appointment_id: int,
    data: AssignRequest,
    _: User = Depends(require_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(await service.assign_staff(appointment_id, data.staffId))


@router.put("/appointments/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    _: User = Depends(require_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(service.complete_appointment(appointment_id))
