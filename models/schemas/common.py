import re

from marshmallow import ValidationError

PHONE_RE = re.compile(r"^\+?[\d\s-]{8,20}$")


def normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


def normalize_phone(value):
    if not isinstance(value, str):
        return value
    value = value.strip()
    return value or None


def validate_phone(value) -> None:
    if value is not None and not PHONE_RE.match(value):
        raise ValidationError("Phone number must be 8-20 digits")


def validate_password_length(value) -> None:
    if not 8 <= len(value) <= 128:
        raise ValidationError("Password must be between 8 and 128 characters long.")
