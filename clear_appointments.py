"""
Delete every appointment (frees all booked slots)
Usage: python clear_appointments.py
"""

import logging
import sys

from propertyhub import models, models_notification  # noqa: F401
from propertyhub.database import SessionLocal
from propertyhub.domain.appointments.repository import AppointmentRepository

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def clear_appointments() -> int:
    db = SessionLocal()
    try:
        deleted = AppointmentRepository.delete_all(db)
        logger.info(f"🗑️  {deleted} appointments deleted")
        return deleted
    finally:
        db.close()


if __name__ == "__main__":
    try:
        clear_appointments()
        logger.info("✅ Appointments cleared")
    except Exception as e:
        logger.error(f"❌ Error: {e}")
        sys.exit(1)
