"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import (
    APPOINTMENT_ACTIVE_STATUSES,
    APPOINTMENT_CANCELLED,
    APPOINTMENT_PENDING_SMS,
    Appointment,
    Property,
    User,
)


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def _query(db: Session):
        return db.query(Appointment).options(
            joinedload(Appointment.property), joinedload(Appointment.assigned_to)
        )

    @staticmethod
    def get_property(db: Session, property_id: int) -> Optional[Property]:
        return db.query(Property).filter(Property.id == property_id).first()

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return AppointmentRepository._query(db).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[Appointment]:
        return AppointmentRepository._query(db).filter(Appointment.confirmation_code == code).first()

    @staticmethod
    def code_exists(db: Session, code: str) -> bool:
        return db.query(Appointment.id).filter(Appointment.confirmation_code == code).first() is not None

    @staticmethod
    def get_latest_pending_for_phone(db: Session, phone: str) -> Optional[Appointment]:
        """Most recent appointment still waiting for an SMS reply from this number"""
        return (
            AppointmentRepository._query(db)
            .filter(Appointment.visitor_phone == phone, Appointment.status == APPOINTMENT_PENDING_SMS)
            .order_by(Appointment.created_at.desc(), Appointment.id.desc())
            .first()
        )

    @staticmethod
    def is_slot_taken(db: Session, property_id: int, time_slot: str) -> bool:
        return (
            db.query(Appointment.id)
            .filter(
                Appointment.property_id == property_id,
                Appointment.time_slot == time_slot,
                Appointment.status != APPOINTMENT_CANCELLED,
            )
            .first()
            is not None
        )

    @staticmethod
    def get_held_slots(db: Session, property_id: int, date_prefix: str) -> set[str]:
        """Slot keys held by non-cancelled appointments for one property and day"""
        rows = (
            db.query(Appointment.time_slot)
            .filter(
                Appointment.property_id == property_id,
                Appointment.time_slot.like(f"{date_prefix}-%"),
                Appointment.status != APPOINTMENT_CANCELLED,
            )
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def count_active_for_user(db: Session, user_id: int) -> int:
        return (
            db.query(func.count(Appointment.id))
            .filter(Appointment.user_id == user_id, Appointment.status.in_(APPOINTMENT_ACTIVE_STATUSES))
            .scalar()
            or 0
        )

    @staticmethod
    def create(db: Session, **data) -> Appointment:
        appointment = Appointment(**data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def list_for_user(db: Session, user_id: int) -> list[Appointment]:
        return (
            AppointmentRepository._query(db)
            .filter(Appointment.user_id == user_id)
            .order_by(Appointment.appointment_date.desc())
            .all()
        )

    @staticmethod
    def list_all(
        db: Session,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        property_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        query = AppointmentRepository._query(db)
        if start_date:
            query = query.filter(Appointment.appointment_date >= start_date)
        if end_date:
            query = query.filter(Appointment.appointment_date <= end_date)
        if property_id:
            query = query.filter(Appointment.property_id == property_id)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.appointment_date.asc()).all()

    @staticmethod
    def delete_all(db: Session) -> int:
        deleted = db.query(Appointment).delete(synchronize_session=False)
        db.commit()
        return deleted
