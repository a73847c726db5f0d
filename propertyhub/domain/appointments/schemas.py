"""Appointment domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import normalize_phone, parse_iso_date, parse_time_of_day, validate_email


class AppointmentCreate(BaseModel):
    """Visitor details default to the requester's account"""

    propertyId: int
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return parse_iso_date(v).date().isoformat()

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        parse_time_of_day(v)
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return normalize_phone(v)
        return v

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        if v:
            return validate_email(v)
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        if v and len(v) > 1000:
            raise ValueError("Notes cannot exceed 1000 characters")
        return v


class AssignRequest(BaseModel):
    staffId: int


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class SMSConfirmRequest(BaseModel):
    confirmationCode: str
    response: str


class PropertySummary(BaseModel):
    id: int
    title: str
    address: str
    status: str


class StaffSummary(BaseModel):
    id: int
    username: str
    email: str
    phone: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: int
    propertyId: int
    property: Optional[PropertySummary] = None
    userId: Optional[int] = None
    visitorName: str
    visitorPhone: str
    visitorEmail: str
    date: datetime
    time: str
    timeSlot: str
    status: str
    assignedTo: Optional[StaffSummary] = None
    assignedAt: Optional[datetime] = None
    confirmedAt: Optional[datetime] = None
    notificationHistory: list[dict[str, Any]] = []
    notes: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, appointment) -> "AppointmentResponse":
        prop = appointment.property
        staff = appointment.assigned_to
        return cls(
            id=appointment.id,
            propertyId=appointment.property_id,
            property=(
                PropertySummary(
                    id=prop.id,
                    title=prop.title,
                    address=f"{prop.street}, {prop.city}, {prop.state} {prop.zip_code}",
                    status=prop.status,
                )
                if prop
                else None
            ),
            userId=appointment.user_id,
            visitorName=appointment.visitor_name,
            visitorPhone=appointment.visitor_phone,
            visitorEmail=appointment.visitor_email,
            date=appointment.appointment_date,
            time=appointment.appointment_time,
            timeSlot=appointment.time_slot,
            status=appointment.status,
            assignedTo=(
                StaffSummary(id=staff.id, username=staff.username, email=staff.email, phone=staff.phone)
                if staff
                else None
            ),
            assignedAt=appointment.assigned_at,
            confirmedAt=appointment.confirmed_at,
            notificationHistory=appointment.notification_history or [],
            notes=appointment.notes,
            createdAt=appointment.created_at,
        )


class AppointmentCreateResponse(BaseModel):
    message: str
    confirmationRequired: bool
    appointment: AppointmentResponse


class TimeSlot(BaseModel):
    time: str
    available: bool = True


class AvailableSlotsResponse(BaseModel):
    availableSlots: list[TimeSlot]
