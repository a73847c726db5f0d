"""Shared validation utilities"""

import re
from datetime import datetime
from typing import Optional

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number to E.164 format.

    Ten-digit numbers (and 11 digits with a leading 1) are treated as US
    numbers. Numbers written with a leading "+" keep their country code.

    Raises:
        ValueError: If the phone number is invalid
    """
    if not phone:
        return phone

    raw = phone.strip()
    digits = re.sub(r"\D", "", raw)

    if raw.startswith("+") and not digits.startswith("1"):
        if not 8 <= len(digits) <= 15:
            raise ValueError("Phone number must have between 8 and 15 digits")
        return f"+{digits}"

    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not _EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")
    return email


def parse_time_of_day(value: str) -> tuple[int, int]:
    """Parse an "HH:MM" string into (hour, minute)"""
    match = _TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError("Time must use the HH:MM format")
    return int(match.group(1)), int(match.group(2))


def parse_iso_date(value: str) -> datetime:
    """Parse a "YYYY-MM-DD" date string into a midnight datetime"""
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        raise ValueError("Date must use the YYYY-MM-DD format") from None
